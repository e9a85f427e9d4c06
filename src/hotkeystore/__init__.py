"""hotkeystore - Keystores that reload their backing file when it changes."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("hotkeystore")
except PackageNotFoundError:
    __version__ = "0+local"
from hotkeystore.config import KeyStoreConfig
from hotkeystore.engines import (
    DEFAULT_PROVIDER,
    KeyStoreSpi,
    available_types,
    open_engine,
    register_engine,
    unregister_engine,
)
from hotkeystore.exceptions import (
    KeyStoreConfigError,
    KeyStoreError,
    KeyStoreFileAccessError,
    KeyStoreLoadError,
    KeyStoreNotLoadedError,
)
from hotkeystore.holder import DelegateHolder
from hotkeystore.models import EntryKind, KeyStoreEntry, KeyStoreStatus
from hotkeystore.reloading import ReloadingKeyStore
from hotkeystore.tls import ReloadingSSLContext, server_context

__all__ = [
    "__version__",
    "DEFAULT_PROVIDER",
    "DelegateHolder",
    "EntryKind",
    "KeyStoreConfig",
    "KeyStoreConfigError",
    "KeyStoreEntry",
    "KeyStoreError",
    "KeyStoreFileAccessError",
    "KeyStoreLoadError",
    "KeyStoreNotLoadedError",
    "KeyStoreSpi",
    "KeyStoreStatus",
    "ReloadingKeyStore",
    "ReloadingSSLContext",
    "available_types",
    "open_engine",
    "register_engine",
    "server_context",
    "unregister_engine",
]
