from __future__ import annotations

import io
from pathlib import Path

import pytest
from conftest import make_certificate, make_key, write_pkcs12
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from hotkeystore import EntryKind, KeyStoreError, KeyStoreLoadError, available_types, open_engine
from hotkeystore.engines import InMemoryKeyStore, PemKeyStore, Pkcs12KeyStore


def _pem(*objects: object, password: bytes | None = None) -> bytes:
    blocks = []
    for obj in objects:
        if hasattr(obj, "private_bytes"):
            encryption = (
                serialization.BestAvailableEncryption(password) if password else serialization.NoEncryption()
            )
            blocks.append(
                obj.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption)
            )
        else:
            blocks.append(obj.public_bytes(serialization.Encoding.PEM))  # type: ignore[attr-defined]
    return b"".join(blocks)


def test_default_provider_types() -> None:
    assert available_types() == ["PEM", "PKCS12"]
    assert isinstance(open_engine("pkcs12"), Pkcs12KeyStore)
    assert isinstance(open_engine("pem", "cryptography"), PemKeyStore)


def test_pkcs12_chain_and_trusted_entries(tmp_path: Path) -> None:
    root_key = make_key()
    root = make_certificate("root", root_key, ca=True)
    leaf_key = make_key()
    leaf = make_certificate("server", leaf_key, issuer=root, issuer_key=root_key)
    other = make_certificate("other-ca", make_key(), ca=True)
    path = tmp_path / "store.p12"
    write_pkcs12(
        path,
        "server",
        key=leaf_key,
        certificate=leaf,
        cas=[root, pkcs12.PKCS12Certificate(other, b"other-ca")],
    )

    engine = open_engine("PKCS12")
    engine.load(io.BytesIO(path.read_bytes()), b"secret")

    assert sorted(engine.aliases()) == ["other-ca", "server"]
    assert engine.is_key_entry("server")
    assert engine.get_certificate_chain("server") == [leaf, root]
    assert engine.is_certificate_entry("other-ca")
    assert engine.get_certificate("other-ca") == other
    assert engine.get_certificate_chain("other-ca") is None
    assert engine.get_certificate_alias(root) is None
    assert engine.get_creation_date("server") is not None


def test_pkcs12_without_friendly_name_uses_default_alias(tmp_path: Path) -> None:
    key = make_key()
    certificate = make_certificate("anonymous", key)
    data = pkcs12.serialize_key_and_certificates(None, key, certificate, None, serialization.NoEncryption())

    engine = open_engine("PKCS12")
    engine.load(io.BytesIO(data), None)

    assert engine.aliases() == ["1"]


def test_pkcs12_rejects_garbage() -> None:
    engine = open_engine("PKCS12")

    with pytest.raises(KeyStoreLoadError, match="PKCS12"):
        engine.load(io.BytesIO(b"not a keystore"), b"secret")


def test_pem_key_and_chain() -> None:
    root_key = make_key()
    root = make_certificate("root", root_key, ca=True)
    key = make_key()
    leaf = make_certificate("server", key, issuer=root, issuer_key=root_key)

    engine = open_engine("PEM")
    engine.load(io.BytesIO(_pem(key, leaf, root)), None)

    assert engine.aliases() == ["default"]
    entry = engine.get_entry("default")
    assert entry is not None
    assert entry.kind is EntryKind.PRIVATE_KEY
    assert entry.certificate == leaf
    assert engine.get_certificate_chain("default") == [leaf, root]


def test_pem_encrypted_key_needs_password() -> None:
    key = make_key()
    certificate = make_certificate("server", key)
    data = _pem(certificate, key, password=b"secret")

    engine = open_engine("PEM")
    engine.load(io.BytesIO(data), b"secret")
    assert engine.is_key_entry("default")

    with pytest.raises(KeyStoreLoadError):
        open_engine("PEM").load(io.BytesIO(data), b"wrong")


def test_pem_plain_key_ignores_password() -> None:
    key = make_key()
    certificate = make_certificate("server", key)

    engine = open_engine("PEM")
    engine.load(io.BytesIO(_pem(key, certificate)), b"unused")

    assert engine.is_key_entry("default")


def test_pem_certificates_only_become_trusted_entries() -> None:
    first = make_certificate("ca-1", make_key(), ca=True)
    second = make_certificate("ca-2", make_key(), ca=True)

    engine = open_engine("PEM")
    engine.load(io.BytesIO(_pem(first, second)), None)

    assert engine.aliases() == ["cert-1", "cert-2"]
    assert engine.get_certificate_alias(second) == "cert-2"


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"-----BEGIN SOMETHING-----\nAAAA\n-----END SOMETHING-----\n",
    ],
)
def test_pem_without_key_material_fails(data: bytes) -> None:
    with pytest.raises(KeyStoreLoadError, match="No PEM"):
        open_engine("PEM").load(io.BytesIO(data), None)


def test_pem_rejects_multiple_keys() -> None:
    key = make_key()
    data = _pem(key, make_key(), make_certificate("server", key))

    with pytest.raises(KeyStoreLoadError, match="2 private keys"):
        open_engine("PEM").load(io.BytesIO(data), None)


def test_failed_load_keeps_entries() -> None:
    certificate = make_certificate("ca", make_key(), ca=True)
    engine = open_engine("PEM")
    engine.load(io.BytesIO(_pem(certificate)), None)

    with pytest.raises(KeyStoreLoadError):
        engine.load(io.BytesIO(b"garbage"), None)

    assert engine.aliases() == ["cert-1"]


def test_in_memory_edits() -> None:
    key = make_key()
    leaf = make_certificate("server", key)
    trusted = make_certificate("ca", make_key(), ca=True)
    engine = open_engine("PEM")
    engine.load(io.BytesIO(_pem(trusted)), None)

    engine.set_key_entry("server", key, [leaf])
    engine.set_certificate_entry("extra", trusted)

    assert engine.is_key_entry("server")
    assert engine.size() == 3
    with pytest.raises(KeyStoreError):
        engine.set_certificate_entry("server", trusted)
    with pytest.raises(KeyStoreError):
        engine.set_key_entry("empty", key, [])

    engine.delete_entry("server")
    engine.delete_entry("missing")
    assert not engine.contains_alias("server")
    assert engine.size() == 2


def test_pkcs12_generated_alias_skips_taken_friendly_name() -> None:
    named = make_certificate("named", make_key(), ca=True)
    unnamed = make_certificate("unnamed", make_key(), ca=True)
    data = pkcs12.serialize_key_and_certificates(
        None,
        None,
        None,
        [pkcs12.PKCS12Certificate(named, b"cert-2"), unnamed],
        serialization.NoEncryption(),
    )

    engine = open_engine("PKCS12")
    engine.load(io.BytesIO(data), None)

    assert engine.size() == 2
    assert engine.get_certificate("cert-2") == named
    assert engine.get_certificate_alias(unnamed) not in (None, "cert-2")


def test_pem_rejects_key_not_matching_certificate() -> None:
    certificate = make_certificate("server", make_key())

    with pytest.raises(KeyStoreLoadError, match="does not match"):
        open_engine("PEM").load(io.BytesIO(_pem(make_key(), certificate)), None)


def test_in_memory_keystore_requires_parser() -> None:
    with pytest.raises(TypeError):
        InMemoryKeyStore()  # type: ignore[abstract]
