from __future__ import annotations

import functools
import os
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from hotkeystore.engines import InMemoryKeyStore, register_engine, unregister_engine
from hotkeystore.models import EntryKind, KeyStoreEntry

TEST_PROVIDER = "test"


def make_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def make_certificate(
    common_name: str,
    key: ec.EllipticCurvePrivateKey,
    *,
    issuer: x509.Certificate | None = None,
    issuer_key: ec.EllipticCurvePrivateKey | None = None,
    ca: bool = False,
) -> x509.Certificate:
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(UTC)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer.subject if issuer is not None else subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    return builder.sign(issuer_key or key, hashes.SHA256())


@functools.cache
def shared_certificate() -> x509.Certificate:
    return make_certificate("shared", make_key())


def set_mtime(path: Path, seconds: int) -> None:
    ns = seconds * 1_000_000_000
    os.utime(path, ns=(ns, ns))


def write_pkcs12(
    path: Path,
    name: str,
    *,
    password: bytes = b"secret",
    cas: Iterable[x509.Certificate | pkcs12.PKCS12Certificate] = (),
    key: ec.EllipticCurvePrivateKey | None = None,
    certificate: x509.Certificate | None = None,
) -> x509.Certificate:
    """Write a PKCS#12 file with one key entry and return its certificate."""
    key = key or make_key()
    certificate = certificate or make_certificate(name, key)
    encryption = (
        serialization.BestAvailableEncryption(password) if password else serialization.NoEncryption()
    )
    path.write_bytes(
        pkcs12.serialize_key_and_certificates(name.encode(), key, certificate, list(cas) or None, encryption)
    )
    return certificate


class TextKeyStore(InMemoryKeyStore):
    """One trusted certificate entry per line; a ``CORRUPT`` line fails the load."""

    store_type = "TEXT"

    def _parse(self, data: bytes, password: bytes | None, created_at: datetime) -> Iterator[KeyStoreEntry]:
        aliases = [line.strip() for line in data.decode("utf-8").splitlines() if line.strip()]
        if "CORRUPT" in aliases:
            raise ValueError("corrupt keystore")
        for alias in aliases:
            yield KeyStoreEntry(
                alias=alias,
                kind=EntryKind.TRUSTED_CERTIFICATE,
                private_key=None,
                certificate_chain=(shared_certificate(),),
                created_at=created_at,
            )


def write_text_store(path: Path, aliases: Iterable[str], mtime: int) -> None:
    path.write_text("\n".join(aliases) + "\n")
    set_mtime(path, mtime)


@pytest.fixture
def text_engine() -> Iterator[list[TextKeyStore]]:
    """Register the ``TEXT`` engine and collect every instance it creates."""
    created: list[TextKeyStore] = []

    def factory() -> TextKeyStore:
        store = TextKeyStore()
        created.append(store)
        return store

    register_engine(TextKeyStore.store_type, factory, provider=TEST_PROVIDER)
    yield created
    unregister_engine(TextKeyStore.store_type, provider=TEST_PROVIDER)
