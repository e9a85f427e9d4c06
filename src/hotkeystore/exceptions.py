"""Custom exception hierarchy for hotkeystore."""

from __future__ import annotations

import os


class KeyStoreError(Exception):
    """Base exception for all hotkeystore errors."""


class KeyStoreConfigError(KeyStoreError, ValueError):
    """Invalid or missing configuration (e.g. no password given)."""


class KeyStoreNotLoadedError(KeyStoreError):
    """No keystore is loaded, or the store has been closed."""


class KeyStoreLoadError(KeyStoreError):
    """The keystore file could not be turned into a usable keystore.

    Covers corrupt data, unsupported formats, unknown providers and wrong
    passwords.  The previously loaded keystore, if any, stays active.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | os.PathLike[str] | None = None,
        store_type: str = "",
    ) -> None:
        self.path = path
        self.store_type = store_type
        super().__init__(message)


class KeyStoreFileAccessError(KeyStoreLoadError):
    """The keystore file is missing or unreadable."""
