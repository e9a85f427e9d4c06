"""Keystore engines: the file formats a reloading keystore can serve.

Engines are looked up by store type (``"PKCS12"``, ``"PEM"``) and an
optional provider name, and must satisfy :class:`KeyStoreSpi`.  Third-party
formats can be plugged in with :func:`register_engine`.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import BinaryIO, Protocol

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from hotkeystore.engines._memory import InMemoryKeyStore
from hotkeystore.engines.pem import PemKeyStore
from hotkeystore.engines.pkcs12 import Pkcs12KeyStore
from hotkeystore.exceptions import KeyStoreLoadError
from hotkeystore.models import KeyStoreEntry


class KeyStoreSpi(Protocol):
    """Operations every keystore engine instance provides."""

    def load(self, stream: BinaryIO, password: bytes | None) -> None: ...

    def aliases(self) -> list[str]: ...

    def contains_alias(self, alias: str) -> bool: ...

    def size(self) -> int: ...

    def get_entry(self, alias: str) -> KeyStoreEntry | None: ...

    def is_key_entry(self, alias: str) -> bool: ...

    def is_certificate_entry(self, alias: str) -> bool: ...

    def get_key(self, alias: str) -> PrivateKeyTypes | None: ...

    def get_certificate(self, alias: str) -> x509.Certificate | None: ...

    def get_certificate_chain(self, alias: str) -> list[x509.Certificate] | None: ...

    def get_certificate_alias(self, certificate: x509.Certificate) -> str | None: ...

    def get_creation_date(self, alias: str) -> datetime | None: ...

    def set_key_entry(
        self,
        alias: str,
        private_key: PrivateKeyTypes,
        certificate_chain: Sequence[x509.Certificate],
    ) -> None: ...

    def set_certificate_entry(self, alias: str, certificate: x509.Certificate) -> None: ...

    def delete_entry(self, alias: str) -> None: ...


EngineFactory = Callable[[], KeyStoreSpi]

#: Provider used when none is requested.
DEFAULT_PROVIDER = "cryptography"

_registry_lock = threading.Lock()
_registry: dict[str, dict[str, EngineFactory]] = {
    DEFAULT_PROVIDER: {
        Pkcs12KeyStore.store_type: Pkcs12KeyStore,
        PemKeyStore.store_type: PemKeyStore,
    },
}


def register_engine(store_type: str, factory: EngineFactory, provider: str = DEFAULT_PROVIDER) -> None:
    """Make *factory* available under *store_type* for *provider*.

    Registering an existing type replaces it.
    """
    with _registry_lock:
        _registry.setdefault(provider, {})[store_type.upper()] = factory


def unregister_engine(store_type: str, provider: str = DEFAULT_PROVIDER) -> None:
    with _registry_lock:
        engines = _registry.get(provider, {})
        engines.pop(store_type.upper(), None)
        if not engines and provider != DEFAULT_PROVIDER:
            _registry.pop(provider, None)


def available_types(provider: str | None = None) -> list[str]:
    with _registry_lock:
        return sorted(_registry.get(provider or DEFAULT_PROVIDER, {}))


def open_engine(store_type: str, provider: str | None = None) -> KeyStoreSpi:
    """Create a fresh, empty engine instance.

    Raises
    ------
    KeyStoreLoadError
        If the provider is unknown or does not implement *store_type*.
    """
    provider_name = provider or DEFAULT_PROVIDER
    with _registry_lock:
        engines = _registry.get(provider_name)
        if engines is None:
            raise KeyStoreLoadError(f"Unknown keystore provider {provider_name!r}", store_type=store_type)
        factory = engines.get(store_type.upper())
    if factory is None:
        raise KeyStoreLoadError(
            f"Keystore type {store_type!r} is not supported by provider {provider_name!r}",
            store_type=store_type,
        )
    return factory()


__all__ = [
    "DEFAULT_PROVIDER",
    "EngineFactory",
    "InMemoryKeyStore",
    "KeyStoreSpi",
    "PemKeyStore",
    "Pkcs12KeyStore",
    "available_types",
    "open_engine",
    "register_engine",
    "unregister_engine",
]
