"""PEM bundle keystore engine.

A PEM keystore is a text file holding at most one private key (plain or
encrypted) and any number of certificates, the layout produced by most
certificate-management sidecars (``tls.key`` + ``tls.crt`` concatenated).
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from datetime import datetime

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

from hotkeystore.engines._memory import InMemoryKeyStore
from hotkeystore.exceptions import KeyStoreLoadError
from hotkeystore.models import EntryKind, KeyStoreEntry

#: Alias of the key entry when the bundle contains a private key.
DEFAULT_KEY_ALIAS = "default"

_PEM_BLOCK = re.compile(rb"-----BEGIN ([A-Z0-9 ]+)-----.*?-----END \1-----", re.DOTALL)
_KEY_LABELS = frozenset({b"PRIVATE KEY", b"ENCRYPTED PRIVATE KEY", b"RSA PRIVATE KEY", b"EC PRIVATE KEY"})
_CERT_LABELS = frozenset({b"CERTIFICATE", b"X509 CERTIFICATE"})


def _is_encrypted(label: bytes, block: bytes) -> bool:
    # Traditional OpenSSL keys announce encryption in a header instead of the label.
    return label == b"ENCRYPTED PRIVATE KEY" or b"Proc-Type: 4,ENCRYPTED" in block


def _public_der(public_key: PublicKeyTypes) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class PemKeyStore(InMemoryKeyStore):
    """Keystore backed by a PEM bundle."""

    store_type = "PEM"

    def _parse(self, data: bytes, password: bytes | None, created_at: datetime) -> Iterator[KeyStoreEntry]:
        key_blocks: list[tuple[bytes, bytes]] = []
        certificates: list[x509.Certificate] = []
        for match in _PEM_BLOCK.finditer(data):
            label, block = match.group(1), match.group(0)
            if label in _KEY_LABELS:
                key_blocks.append((label, block))
            elif label in _CERT_LABELS:
                certificates.append(x509.load_pem_x509_certificate(block))

        if not key_blocks and not certificates:
            raise KeyStoreLoadError("No PEM private key or certificate found", store_type=self.store_type)
        if len(key_blocks) > 1:
            raise KeyStoreLoadError(
                f"PEM bundle holds {len(key_blocks)} private keys; expected at most one",
                store_type=self.store_type,
            )

        if key_blocks:
            label, block = key_blocks[0]
            key_password = password if _is_encrypted(label, block) else None
            private_key = serialization.load_pem_private_key(block, key_password)
            if not certificates:
                raise KeyStoreLoadError(
                    "PEM private key has no accompanying certificate",
                    store_type=self.store_type,
                )
            if _public_der(private_key.public_key()) != _public_der(certificates[0].public_key()):
                raise KeyStoreLoadError(
                    "PEM private key does not match the first certificate",
                    store_type=self.store_type,
                )
            yield KeyStoreEntry(
                alias=DEFAULT_KEY_ALIAS,
                kind=EntryKind.PRIVATE_KEY,
                private_key=private_key,
                certificate_chain=tuple(certificates),
                created_at=created_at,
            )
            return

        for index, certificate in enumerate(certificates, start=1):
            yield KeyStoreEntry(
                alias=f"cert-{index}",
                kind=EntryKind.TRUSTED_CERTIFICATE,
                private_key=None,
                certificate_chain=(certificate,),
                created_at=created_at,
            )
