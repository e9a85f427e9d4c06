"""Dictionary-backed keystore shared by the file format engines."""

from __future__ import annotations

import abc
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from typing import BinaryIO, ClassVar

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from hotkeystore.exceptions import KeyStoreError, KeyStoreLoadError
from hotkeystore.models import EntryKind, KeyStoreEntry


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryKeyStore(abc.ABC):
    """Keystore whose entries live in a dict keyed by alias.

    Subclasses implement :meth:`_parse` for their file format.  Everything
    else (lookups, enumeration and in-memory edits) is shared.
    """

    store_type: ClassVar[str] = ""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._entries: dict[str, KeyStoreEntry] = {}

    @abc.abstractmethod
    def _parse(self, data: bytes, password: bytes | None, created_at: datetime) -> Iterable[KeyStoreEntry]:
        """Decode *data* into entries, all stamped with *created_at*."""

    def load(self, stream: BinaryIO, password: bytes | None) -> None:
        """Replace the entries with the ones parsed from *stream*.

        Raises
        ------
        KeyStoreLoadError
            If the data is corrupt, uses an unsupported algorithm or the
            password is wrong.  Existing entries are kept in that case.
        """
        data = stream.read()
        try:
            entries = list(self._parse(data, password, self._clock()))
        except KeyStoreError:
            raise
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise KeyStoreLoadError(
                f"Failed to load {self.store_type} keystore: {exc}",
                store_type=self.store_type,
            ) from exc
        self._entries = {entry.alias: entry for entry in entries}

    def aliases(self) -> list[str]:
        return list(self._entries)

    def contains_alias(self, alias: str) -> bool:
        return alias in self._entries

    def size(self) -> int:
        return len(self._entries)

    def get_entry(self, alias: str) -> KeyStoreEntry | None:
        return self._entries.get(alias)

    def is_key_entry(self, alias: str) -> bool:
        entry = self._entries.get(alias)
        return entry is not None and entry.kind is EntryKind.PRIVATE_KEY

    def is_certificate_entry(self, alias: str) -> bool:
        entry = self._entries.get(alias)
        return entry is not None and entry.kind is EntryKind.TRUSTED_CERTIFICATE

    def get_key(self, alias: str) -> PrivateKeyTypes | None:
        entry = self._entries.get(alias)
        return entry.private_key if entry is not None else None

    def get_certificate(self, alias: str) -> x509.Certificate | None:
        entry = self._entries.get(alias)
        return entry.certificate if entry is not None else None

    def get_certificate_chain(self, alias: str) -> list[x509.Certificate] | None:
        entry = self._entries.get(alias)
        if entry is None or entry.kind is not EntryKind.PRIVATE_KEY:
            return None
        return list(entry.certificate_chain)

    def get_certificate_alias(self, certificate: x509.Certificate) -> str | None:
        """Return the first alias whose (leaf) certificate equals *certificate*."""
        for alias, entry in self._entries.items():
            if entry.certificate == certificate:
                return alias
        return None

    def get_creation_date(self, alias: str) -> datetime | None:
        entry = self._entries.get(alias)
        return entry.created_at if entry is not None else None

    def set_key_entry(
        self,
        alias: str,
        private_key: PrivateKeyTypes,
        certificate_chain: Sequence[x509.Certificate],
    ) -> None:
        if not certificate_chain:
            raise KeyStoreError(f"Private key entry {alias!r} requires a certificate chain")
        self._entries[alias] = KeyStoreEntry(
            alias=alias,
            kind=EntryKind.PRIVATE_KEY,
            private_key=private_key,
            certificate_chain=tuple(certificate_chain),
            created_at=self._clock(),
        )

    def set_certificate_entry(self, alias: str, certificate: x509.Certificate) -> None:
        if self.is_key_entry(alias):
            raise KeyStoreError(f"Alias {alias!r} already holds a private key entry")
        self._entries[alias] = KeyStoreEntry(
            alias=alias,
            kind=EntryKind.TRUSTED_CERTIFICATE,
            private_key=None,
            certificate_chain=(certificate,),
            created_at=self._clock(),
        )

    def delete_entry(self, alias: str) -> None:
        self._entries.pop(alias, None)
