"""Build :mod:`ssl` contexts from a reloading keystore.

``ssl.SSLContext`` only accepts key material from files, so the selected
key entry is written as PEM into a private temporary directory, loaded and
removed again.
"""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
import threading

from cryptography.hazmat.primitives import serialization

from hotkeystore.engines import KeyStoreSpi
from hotkeystore.exceptions import KeyStoreError
from hotkeystore.models import KeyStoreEntry
from hotkeystore.reloading import ReloadingKeyStore

_logger = logging.getLogger(__name__)


def _key_entry(delegate: KeyStoreSpi, alias: str | None) -> KeyStoreEntry:
    if alias is None:
        alias = next((name for name in delegate.aliases() if delegate.is_key_entry(name)), None)
        if alias is None:
            raise KeyStoreError("Keystore holds no private key entry")
    entry = delegate.get_entry(alias)
    if entry is None or entry.private_key is None:
        raise KeyStoreError(f"Alias {alias!r} is not a private key entry")
    return entry


def _trusted_pem(delegate: KeyStoreSpi) -> str:
    blocks = []
    for alias in delegate.aliases():
        if delegate.is_certificate_entry(alias):
            certificate = delegate.get_certificate(alias)
            if certificate is not None:
                blocks.append(certificate.public_bytes(serialization.Encoding.PEM).decode("ascii"))
    return "".join(blocks)


def _build_context(
    delegate: KeyStoreSpi,
    alias: str | None,
    purpose: ssl.Purpose,
    trust: KeyStoreSpi | None,
) -> ssl.SSLContext:
    entry = _key_entry(delegate, alias)
    key_pem = entry.private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    chain_pem = b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in entry.certificate_chain)

    context = ssl.create_default_context(purpose)
    with tempfile.TemporaryDirectory(prefix="hotkeystore-") as tmp:
        cert_path = os.path.join(tmp, "chain.pem")
        key_path = os.path.join(tmp, "key.pem")
        with open(cert_path, "wb") as fp:
            fp.write(chain_pem)
        with open(key_path, "wb") as fp:
            fp.write(key_pem)
        context.load_cert_chain(cert_path, key_path)

    if trust is not None:
        cadata = _trusted_pem(trust)
        if cadata:
            context.load_verify_locations(cadata=cadata)
    return context


def server_context(
    store: ReloadingKeyStore,
    alias: str | None = None,
    *,
    purpose: ssl.Purpose = ssl.Purpose.CLIENT_AUTH,
    trust_store: ReloadingKeyStore | None = None,
) -> ssl.SSLContext:
    """Create an SSL context presenting the key entry *alias* of *store*.

    Parameters
    ----------
    store : ReloadingKeyStore
        Keystore holding the private key and certificate chain.
    alias : str or None
        Key entry to use.  ``None`` picks the first key entry.
    purpose : ssl.Purpose
        ``CLIENT_AUTH`` (default) for a server-side context,
        ``SERVER_AUTH`` for a client presenting a certificate.
    trust_store : ReloadingKeyStore or None
        Keystore whose trusted certificate entries become the context's
        verification CAs.

    Raises
    ------
    KeyStoreError
        If the keystore holds no matching private key entry.
    """
    trust = trust_store.delegate if trust_store is not None else None
    return _build_context(store.delegate, alias, purpose, trust)


class ReloadingSSLContext:
    """Caches an SSL context and rebuilds it whenever the keystore reloads.

    Install :meth:`sni_callback` on a listener's context so every handshake
    is served with the context built from the current keystore revision::

        reloading = ReloadingSSLContext(store)
        listener = reloading.context()
        listener.sni_callback = reloading.sni_callback
    """

    def __init__(
        self,
        store: ReloadingKeyStore,
        alias: str | None = None,
        *,
        purpose: ssl.Purpose = ssl.Purpose.CLIENT_AUTH,
    ) -> None:
        self._store = store
        self._alias = alias
        self._purpose = purpose
        self._lock = threading.Lock()
        self._source: KeyStoreSpi | None = None
        self._context: ssl.SSLContext | None = None

    def context(self) -> ssl.SSLContext:
        """Return the context for the current keystore revision."""
        delegate = self._store.delegate
        with self._lock:
            if self._context is None or delegate is not self._source:
                _logger.debug("Building SSL context from keystore %s", os.fspath(self._store.path))
                context = _build_context(delegate, self._alias, self._purpose, None)
                self._context = context
                self._source = delegate
            return self._context

    def sni_callback(
        self,
        ssl_object: ssl.SSLObject | ssl.SSLSocket,
        server_name: str | None,
        listener_context: ssl.SSLContext,
    ) -> int | None:
        try:
            ssl_object.context = self.context()
        except KeyStoreError as exc:
            with self._lock:
                fallback = self._context
            if fallback is None:
                _logger.error("No usable SSL context for %s: %s", server_name, exc)
                return ssl.ALERT_DESCRIPTION_INTERNAL_ERROR
            _logger.warning("Keystore reload failed, serving previous certificate: %s", exc)
            ssl_object.context = fallback
        return None
