"""Keystore that reloads its backing file when the file changes on disk.

:class:`ReloadingKeyStore` wraps a keystore engine instance held in a
:class:`~hotkeystore.holder.DelegateHolder`.  Every operation first
reconciles: it compares the file's modification time with the one recorded
at the last successful load and, when the file is newer, loads it into a
fresh engine instance and swaps that in.  No background thread is involved;
the thread whose call notices the change pays for the reload.
"""

from __future__ import annotations

import dataclasses
import io
import logging
import os
import threading
from collections.abc import Sequence
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from hotkeystore._fs import StrPath, get_modification_time, read_bytes
from hotkeystore.config import KeyStoreConfig
from hotkeystore.engines import KeyStoreSpi, open_engine
from hotkeystore.exceptions import (
    KeyStoreConfigError,
    KeyStoreError,
    KeyStoreLoadError,
    KeyStoreNotLoadedError,
)
from hotkeystore.holder import DelegateHolder
from hotkeystore.models import KeyStoreEntry, KeyStoreStatus

_logger = logging.getLogger(__name__)


def _zero(buffer: bytearray) -> None:
    for i in range(len(buffer)):
        buffer[i] = 0


@dataclasses.dataclass
class ReloadState:
    """Mutable bookkeeping of a reloading keystore.

    ``last_modified_ns`` stays ``None`` until the first successful load.
    After that it is the modification time of the file revision the
    current delegate was built from.
    """

    path: StrPath
    store_type: str
    provider: str | None
    password: bytearray = dataclasses.field(repr=False)
    last_modified_ns: int | None = None
    loaded_at: datetime | None = None
    reload_count: int = 0


class ReloadingKeyStore:
    """Keystore facade that hot-reloads its file when it is modified.

    Parameters
    ----------
    store_type : str
        Engine name, e.g. ``"PKCS12"`` or ``"PEM"``.
    provider : str or None
        Engine provider, ``None`` for the default one.
    path : str or os.PathLike
        Keystore file.
    password : str or bytes
        Keystore password.  Empty is allowed, ``None`` is not.
    reload_on_unchanged : bool
        Reload even when the file's modification time equals the recorded
        one.  Only a file time older than the recorded one skips the reload.
        An unchanged file then re-reads on every access.
        The default (``False``) reloads only when the file is strictly newer,
        so an unchanged file never triggers a reload.

    Raises
    ------
    KeyStoreConfigError
        If the password is ``None`` or the type or path is empty.
    KeyStoreLoadError
        If the initial load fails (``KeyStoreFileAccessError`` when the
        file is missing or unreadable).
    """

    def __init__(
        self,
        store_type: str,
        provider: str | None,
        path: StrPath,
        password: str | bytes,
        *,
        reload_on_unchanged: bool = False,
    ) -> None:
        if password is None:
            raise KeyStoreConfigError("Password must not be None")
        if not store_type:
            raise KeyStoreConfigError("Keystore type must not be empty")
        if not os.fspath(path):
            raise KeyStoreConfigError("Keystore path must not be empty")

        secret = bytearray(password.encode("utf-8") if isinstance(password, str) else password)
        self._state = ReloadState(path=path, store_type=store_type, provider=provider, password=secret)
        self._reload_on_unchanged = reload_on_unchanged
        self._holder: DelegateHolder[KeyStoreSpi] = DelegateHolder()
        self._lock = threading.Lock()
        self._closed = False

        try:
            self.reconcile()
        except BaseException:
            _zero(secret)
            raise

    @classmethod
    def from_config(cls, config: KeyStoreConfig) -> ReloadingKeyStore:
        return cls(
            config.store_type,
            config.provider,
            config.path,
            config.password,
            reload_on_unchanged=config.reload_on_unchanged,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> ReloadingKeyStore:
        """Build a keystore from ``HOTKEYSTORE_*`` environment variables."""
        return cls.from_config(KeyStoreConfig.from_env(**overrides))

    # ------------------------------------------------------------------
    # Reload control
    # ------------------------------------------------------------------

    @property
    def path(self) -> StrPath:
        return self._state.path

    @property
    def store_type(self) -> str:
        return self._state.store_type

    def _is_stale(self, recorded_ns: int, current_ns: int) -> bool:
        if self._reload_on_unchanged:
            return not recorded_ns > current_ns
        return recorded_ns < current_ns

    def _load(self) -> KeyStoreSpi:
        state = self._state
        data = read_bytes(state.path)
        try:
            delegate = open_engine(state.store_type, state.provider)
            delegate.load(io.BytesIO(data), bytes(state.password) or None)
        except KeyStoreLoadError as exc:
            if exc.path is None:
                exc.path = state.path
            raise
        except KeyStoreError:
            raise
        except Exception as exc:
            raise KeyStoreLoadError(
                f"Failed to load keystore {os.fspath(state.path)}: {exc}",
                path=state.path,
                store_type=state.store_type,
            ) from exc
        return delegate

    def reconcile(self) -> None:
        """Reload the keystore if its file was modified since the last load.

        On failure the previously loaded keystore stays active and the
        error propagates to the caller.
        The recorded modification time is left untouched, so the next call
        retries the load and raises again until the file loads cleanly.

        Raises
        ------
        KeyStoreFileAccessError
            If the file is missing or unreadable.
        KeyStoreLoadError
            If the file content cannot be loaded.
        KeyStoreNotLoadedError
            If the keystore has been closed.
        """
        with self._lock:
            if self._closed:
                raise KeyStoreNotLoadedError("Keystore has been closed")
            state = self._state
            current_ns = get_modification_time(state.path)
            if state.last_modified_ns is not None and not self._is_stale(state.last_modified_ns, current_ns):
                return

            _logger.debug("Reloading keystore %s", state.path)
            try:
                delegate = self._load()
            except KeyStoreError as exc:
                if state.last_modified_ns is not None:
                    _logger.warning("Reloading keystore %s failed, keeping previous revision: %s", state.path, exc)
                raise

            initial = state.last_modified_ns is None
            self._holder.set(delegate)
            state.last_modified_ns = current_ns
            state.loaded_at = datetime.now(UTC)
            state.reload_count += 1
            if not initial:
                _logger.info("Reloaded keystore %s (%d entries)", state.path, delegate.size())

    def status(self) -> KeyStoreStatus:
        """Return a snapshot of the reload bookkeeping without reconciling."""
        with self._lock:
            state = self._state
            return KeyStoreStatus(
                path=os.fspath(state.path),
                store_type=state.store_type,
                provider=state.provider,
                last_modified_ns=state.last_modified_ns,
                loaded_at=state.loaded_at,
                reload_count=state.reload_count,
                closed=self._closed,
            )

    def close(self) -> None:
        """Erase the password and drop the loaded keystore.

        Any later operation raises :class:`KeyStoreNotLoadedError`.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            _zero(self._state.password)
            self._holder.clear()

    def __enter__(self) -> ReloadingKeyStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(store_type={self._state.store_type!r}, path={os.fspath(self._state.path)!r})"

    # ------------------------------------------------------------------
    # Forwarded keystore operations
    # ------------------------------------------------------------------

    @property
    def delegate(self) -> KeyStoreSpi:
        """The up-to-date engine instance operations are forwarded to."""
        self.reconcile()
        return self._holder.get()

    @property
    def last_loaded(self) -> KeyStoreSpi:
        """The engine instance of the last successful load, without checking the file.

        Lets callers keep serving the previous revision while a reload fails.
        """
        return self._holder.get()

    def aliases(self) -> list[str]:
        return self.delegate.aliases()

    def contains_alias(self, alias: str) -> bool:
        return self.delegate.contains_alias(alias)

    def size(self) -> int:
        return self.delegate.size()

    def get_entry(self, alias: str) -> KeyStoreEntry | None:
        return self.delegate.get_entry(alias)

    def is_key_entry(self, alias: str) -> bool:
        return self.delegate.is_key_entry(alias)

    def is_certificate_entry(self, alias: str) -> bool:
        return self.delegate.is_certificate_entry(alias)

    def get_key(self, alias: str) -> PrivateKeyTypes | None:
        return self.delegate.get_key(alias)

    def get_certificate(self, alias: str) -> x509.Certificate | None:
        return self.delegate.get_certificate(alias)

    def get_certificate_chain(self, alias: str) -> list[x509.Certificate] | None:
        return self.delegate.get_certificate_chain(alias)

    def get_certificate_alias(self, certificate: x509.Certificate) -> str | None:
        return self.delegate.get_certificate_alias(certificate)

    def get_creation_date(self, alias: str) -> datetime | None:
        return self.delegate.get_creation_date(alias)

    # Edits only touch the loaded revision; the next reload discards them.

    def set_key_entry(
        self,
        alias: str,
        private_key: PrivateKeyTypes,
        certificate_chain: Sequence[x509.Certificate],
    ) -> None:
        self.delegate.set_key_entry(alias, private_key, certificate_chain)

    def set_certificate_entry(self, alias: str, certificate: x509.Certificate) -> None:
        self.delegate.set_certificate_entry(alias, certificate)

    def delete_entry(self, alias: str) -> None:
        self.delegate.delete_entry(alias)
