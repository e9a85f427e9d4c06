"""PKCS#12 keystore engine."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime

from cryptography import x509
from cryptography.hazmat.primitives.serialization import pkcs12

from hotkeystore.engines._memory import InMemoryKeyStore
from hotkeystore.exceptions import KeyStoreLoadError
from hotkeystore.models import EntryKind, KeyStoreEntry

#: Alias used for the key entry when the bag carries no friendly name.
DEFAULT_KEY_ALIAS = "1"


def _friendly_name(bag: pkcs12.PKCS12Certificate) -> str | None:
    if bag.friendly_name is None:
        return None
    return bag.friendly_name.decode("utf-8", errors="replace") or None


def _build_chain(
    leaf: x509.Certificate,
    candidates: list[pkcs12.PKCS12Certificate],
) -> tuple[list[x509.Certificate], list[pkcs12.PKCS12Certificate]]:
    """Follow issuer links from *leaf* through *candidates*.

    Returns the chain (leaf first) and the bags that are not part of it.
    """
    chain = [leaf]
    remaining = list(candidates)
    current = leaf
    while current.issuer != current.subject:
        issuer = next((bag for bag in remaining if bag.certificate.subject == current.issuer), None)
        if issuer is None:
            break
        remaining.remove(issuer)
        current = issuer.certificate
        chain.append(current)
    return chain, remaining


class Pkcs12KeyStore(InMemoryKeyStore):
    """Keystore backed by a PKCS#12 (``.p12`` / ``.pfx``) file.

    The private key (if any) becomes a key entry named after the bag's
    friendly name, with every additional certificate that extends its chain.
    Additional certificates outside the chain become trusted entries.
    """

    store_type = "PKCS12"

    def _parse(self, data: bytes, password: bytes | None, created_at: datetime) -> Iterator[KeyStoreEntry]:
        bundle = pkcs12.load_pkcs12(data, password)
        used: set[str] = set()
        extra = list(bundle.additional_certs)

        if bundle.key is not None:
            if bundle.cert is None:
                raise KeyStoreLoadError(
                    "PKCS#12 private key has no matching certificate",
                    store_type=self.store_type,
                )
            chain, extra = _build_chain(bundle.cert.certificate, extra)
            alias = _friendly_name(bundle.cert) or DEFAULT_KEY_ALIAS
            used.add(alias)
            yield KeyStoreEntry(
                alias=alias,
                kind=EntryKind.PRIVATE_KEY,
                private_key=bundle.key,
                certificate_chain=tuple(chain),
                created_at=created_at,
            )
        elif bundle.cert is not None:
            extra.insert(0, bundle.cert)

        for index, bag in enumerate(extra, start=1):
            alias = _friendly_name(bag)
            while alias is None or alias in used:
                alias = f"cert-{index}"
                index += 1
            used.add(alias)
            yield KeyStoreEntry(
                alias=alias,
                kind=EntryKind.TRUSTED_CERTIFICATE,
                private_key=None,
                certificate_chain=(bag.certificate,),
                created_at=created_at,
            )
