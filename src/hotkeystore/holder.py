"""Swappable reference to the active keystore engine instance."""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

from hotkeystore.exceptions import KeyStoreNotLoadedError

T = TypeVar("T")


class DelegateHolder(Generic[T]):
    """Holds the delegate every keystore operation is forwarded to.

    ``get`` and ``set`` are serialized by a lock, so a reader observes
    either the previous or the new delegate and every ``get`` issued after
    a ``set`` returns sees the new one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._delegate: T | None = None

    @property
    def loaded(self) -> bool:
        with self._lock:
            return self._delegate is not None

    def get(self) -> T:
        with self._lock:
            delegate = self._delegate
        if delegate is None:
            raise KeyStoreNotLoadedError("No keystore loaded")
        return delegate

    def set(self, delegate: T) -> None:
        with self._lock:
            self._delegate = delegate

    def clear(self) -> None:
        with self._lock:
            self._delegate = None
