"""Keystore entry and status models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from pydantic import BaseModel, ConfigDict, Field


class EntryKind(StrEnum):
    PRIVATE_KEY = "private_key"
    TRUSTED_CERTIFICATE = "trusted_certificate"


@dataclass(frozen=True)
class KeyStoreEntry:
    """A single aliased entry of a keystore.

    Parameters
    ----------
    alias : str
        Name the entry is addressed by.
    kind : EntryKind
        Whether the entry holds a private key or only a trusted certificate.
    private_key : PrivateKeyTypes or None
        The private key for ``PRIVATE_KEY`` entries.
    certificate_chain : tuple of x509.Certificate
        Leaf certificate first.  Trusted certificate entries carry exactly
        one certificate.
    created_at : datetime
        When the entry was created.  File formats without per-entry dates
        report the time the keystore was loaded.
    """

    alias: str
    kind: EntryKind
    private_key: PrivateKeyTypes | None
    certificate_chain: tuple[x509.Certificate, ...]
    created_at: datetime

    @property
    def certificate(self) -> x509.Certificate | None:
        """Leaf certificate of the entry, if any."""
        return self.certificate_chain[0] if self.certificate_chain else None


class KeyStoreStatus(BaseModel):
    """Point-in-time view of a :class:`~hotkeystore.ReloadingKeyStore`.

    Safe to log or expose from health endpoints: it never carries secrets.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    store_type: str
    provider: str | None = None
    last_modified_ns: int | None = Field(
        default=None,
        description="Modification time (ns since epoch) of the file revision currently served.",
    )
    loaded_at: datetime | None = None
    reload_count: int = Field(default=0, description="Successful loads, including the initial one.")
    closed: bool = False
