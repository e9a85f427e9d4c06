"""Filesystem access for keystore files."""

from __future__ import annotations

import os

from hotkeystore.exceptions import KeyStoreFileAccessError

StrPath = str | os.PathLike[str]


def get_modification_time(path: StrPath) -> int:
    """Return the file's modification time in nanoseconds since the epoch.

    Raises
    ------
    KeyStoreFileAccessError
        If the file is missing or cannot be stat'ed.
    """
    try:
        return os.stat(path).st_mtime_ns
    except OSError as exc:
        raise KeyStoreFileAccessError(
            f"Cannot read modification time of {os.fspath(path)}: {exc}",
            path=path,
        ) from exc


def read_bytes(path: StrPath) -> bytes:
    """Read the whole file.

    Raises
    ------
    KeyStoreFileAccessError
        If the file is missing or unreadable.
    """
    try:
        with open(path, "rb") as fp:
            return fp.read()
    except OSError as exc:
        raise KeyStoreFileAccessError(
            f"Cannot read keystore file {os.fspath(path)}: {exc}",
            path=path,
        ) from exc
