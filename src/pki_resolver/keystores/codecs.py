"""Format-specific reading and writing of keystores.

JKS and JCEKS containers are handled by ``pyjks``; their private keys stay
encrypted until an entry is unlocked, and entries that were never unlocked
are written back in their original encrypted form. ``pyjks`` can write JKS
but not JCEKS, and stores the aliases of new entries in lower case as
keytool does. PKCS#12 containers are
handled by ``cryptography``; the whole file is protected by one password,
which therefore is also the password of its key entry.
"""
from __future__ import annotations

import logging

import jks
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.serialization import pkcs12
from jks.util import KeystoreException

from pki_resolver.errors import KeystoreError
from pki_resolver.keystores.format import KeystoreFormat
from pki_resolver.keystores.keystore import (
    Keystore,
    PrivateKeyEntry,
    SecretKeyEntry,
    TrustedCertificateEntry,
)

logger = logging.getLogger(__name__)

# Alias used for a PKCS#12 key or certificate that carries no friendly name.
DEFAULT_ALIAS = "1"


def decode_keystore(
    keystore_format: KeystoreFormat, data: bytes, password: str | None
) -> Keystore:
    """Parse *data* as a keystore of the given format.

    Raises
    ------
    KeystoreError
        If the content is not a keystore of that format or the password is
        wrong.
    """
    if keystore_format in (KeystoreFormat.JKS, KeystoreFormat.JCEKS):
        return _decode_jks(keystore_format, data, password)
    elif keystore_format is KeystoreFormat.PKCS12:
        return _decode_pkcs12(data, password)
    raise KeystoreError(f"Unsupported keystore format: {keystore_format!r}")


def encode_keystore(keystore: Keystore, password: str | None) -> bytes:
    """Serialize *keystore* in its own format, protected by *password*.

    Raises
    ------
    KeystoreError
        If an entry cannot be represented in the format or encryption fails.
    """
    keystore_format = keystore.keystore_format
    if keystore_format in (KeystoreFormat.JKS, KeystoreFormat.JCEKS):
        return _encode_jks(keystore, password)
    elif keystore_format is KeystoreFormat.PKCS12:
        return _encode_pkcs12(keystore, password)
    raise KeystoreError(f"Unsupported keystore format: {keystore_format!r}")


# ------------------------------------------------------------------
# JKS / JCEKS
# ------------------------------------------------------------------


class JksSealedKey:
    """Private key of a JKS/JCEKS entry, decrypted on first unseal.

    The password that unsealed the key is remembered so the entry can be
    re-encrypted with that same password when the keystore is saved.
    """

    def __init__(self, entry: jks.PrivateKeyEntry) -> None:
        self.entry = entry
        self.password: str | None = None

    def unseal(self, password: str | None) -> PrivateKeyTypes:
        password = password or ""
        if self.entry.is_decrypted():
            if self.password is not None and password != self.password:
                raise KeystoreError(
                    f"Cannot recover key {self.entry.alias!r}: wrong password"
                )
        else:
            try:
                self.entry.decrypt(password)
            except (KeystoreException, ValueError) as exc:
                raise KeystoreError(
                    f"Cannot recover key {self.entry.alias!r}"
                ) from exc
        self.password = password

        try:
            return serialization.load_der_private_key(self.entry.pkey_pkcs8, password=None)
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise KeystoreError(
                f"Key {self.entry.alias!r} is not a supported private key"
            ) from exc


def _decode_jks(
    keystore_format: KeystoreFormat, data: bytes, password: str | None
) -> Keystore:
    try:
        store = jks.KeyStore.loads(data, password or "", try_decrypt_keys=False)
    except (KeystoreException, ValueError) as exc:
        raise KeystoreError(
            f"Can not load the {keystore_format.name} keystore"
        ) from exc

    if store.store_type != keystore_format.value:
        raise KeystoreError(
            f"Keystore is a {store.store_type.upper()} keystore, not {keystore_format.name}"
        )

    keystore = Keystore(keystore_format)
    try:
        for alias, entry in store.entries.items():
            if isinstance(entry, jks.PrivateKeyEntry):
                keystore.set_entry(
                    alias,
                    PrivateKeyEntry(
                        certificate_chain=tuple(
                            x509.load_der_x509_certificate(der)
                            for _, der in entry.cert_chain
                        ),
                        sealed_key=JksSealedKey(entry),
                    ),
                )
            elif isinstance(entry, jks.TrustedCertEntry):
                keystore.set_certificate(alias, x509.load_der_x509_certificate(entry.cert))
            elif isinstance(entry, jks.SecretKeyEntry):
                keystore.set_entry(alias, SecretKeyEntry(native=entry))
            else:
                raise KeystoreError(f"Unsupported entry type for alias {alias!r}")
    except ValueError as exc:
        raise KeystoreError("Keystore contains an invalid certificate") from exc
    return keystore


def _encode_jks(keystore: Keystore, password: str | None) -> bytes:
    store_type = keystore.keystore_format.value
    store_password = password or ""
    entries: list[object] = []

    for alias, entry in keystore.items():
        if isinstance(entry, TrustedCertificateEntry):
            entries.append(
                jks.TrustedCertEntry.new(
                    alias, entry.certificate.public_bytes(serialization.Encoding.DER)
                )
            )
        elif isinstance(entry, PrivateKeyEntry):
            entries.append(_jks_private_key(alias, entry, store_type, store_password))
        elif isinstance(entry, SecretKeyEntry):
            if keystore.keystore_format is not KeystoreFormat.JCEKS:
                raise KeystoreError(f"Secret key {alias!r} can only be stored in JCEKS keystores")
            entries.append(entry.native)

    try:
        store = jks.KeyStore.new(store_type, entries)
        return store.saves(store_password)
    except NotImplementedError as exc:
        raise KeystoreError(
            f"Writing {keystore.keystore_format.name} keystores is not supported: {exc}"
        ) from exc
    except (KeystoreException, ValueError) as exc:
        raise KeystoreError(
            f"Can not encode the {keystore.keystore_format.name} keystore"
        ) from exc


def _jks_private_key(
    alias: str, entry: PrivateKeyEntry, store_type: str, store_password: str
) -> jks.PrivateKeyEntry:
    sealed = entry.sealed_key
    if (
        isinstance(sealed, JksSealedKey)
        and sealed.entry.store_type == store_type
        and sealed.entry.alias == alias
    ):
        native = sealed.entry
        # saves() seals decrypted keys with the store password
        if (
            native.is_decrypted()
            and sealed.password is not None
            and sealed.password != store_password
        ):
            native.encrypt(sealed.password)
        return native
    return _new_jks_private_key(alias, entry, sealed.unseal(store_password))


def _new_jks_private_key(
    alias: str, entry: PrivateKeyEntry, key: PrivateKeyTypes
) -> jks.PrivateKeyEntry:
    pkcs8 = key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    certs = [c.public_bytes(serialization.Encoding.DER) for c in entry.certificate_chain]
    try:
        return jks.PrivateKeyEntry.new(alias, certs, pkcs8)
    except KeystoreException as exc:
        raise KeystoreError(f"Can not encode key {alias!r}") from exc


# ------------------------------------------------------------------
# PKCS#12
# ------------------------------------------------------------------


class Pkcs12SealedKey:
    """Private key of a PKCS#12 store, protected by the store password."""

    def __init__(self, key: PrivateKeyTypes, password: str | None) -> None:
        self.key = key
        self.password = password or ""

    def unseal(self, password: str | None) -> PrivateKeyTypes:
        if (password or "") != self.password:
            raise KeystoreError("Cannot recover PKCS#12 key: wrong password")
        return self.key


def _password_bytes(password: str | None) -> bytes | None:
    return password.encode("utf-8") if password else None


def _friendly_name(item: pkcs12.PKCS12Certificate | None) -> str | None:
    if item is None or not item.friendly_name:
        return None
    return item.friendly_name.decode("utf-8", errors="replace")


def build_chain(
    leaf: x509.Certificate, candidates: list[x509.Certificate]
) -> tuple[x509.Certificate, ...]:
    """Order the certificates issuing *leaf*, leaf first.

    Issuers are looked up by subject name among *candidates*; the chain
    ends at a self-issued certificate or when no issuer is found.
    """
    chain = [leaf]
    remaining = list(candidates)
    current = leaf
    while current.issuer != current.subject:
        issuer = next((c for c in remaining if c.subject == current.issuer), None)
        if issuer is None:
            break
        chain.append(issuer)
        remaining.remove(issuer)
        current = issuer
    return tuple(chain)


def _decode_pkcs12(data: bytes, password: str | None) -> Keystore:
    try:
        bundle = pkcs12.load_pkcs12(data, _password_bytes(password))
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeystoreError("Can not load the PKCS12 keystore") from exc

    keystore = Keystore(KeystoreFormat.PKCS12)
    additional = [item.certificate for item in bundle.additional_certs]
    chain: tuple[x509.Certificate, ...] = ()

    if bundle.key is not None:
        if bundle.cert is None:
            raise KeystoreError("PKCS12 keystore holds a private key without certificate")
        alias = _friendly_name(bundle.cert) or DEFAULT_ALIAS
        chain = build_chain(bundle.cert.certificate, additional)
        keystore.set_entry(
            alias,
            PrivateKeyEntry(
                certificate_chain=chain,
                sealed_key=Pkcs12SealedKey(bundle.key, password),
            ),
        )
    elif bundle.cert is not None:
        keystore.set_certificate(
            _friendly_name(bundle.cert) or DEFAULT_ALIAS, bundle.cert.certificate
        )

    for index, item in enumerate(bundle.additional_certs, start=1):
        alias = _friendly_name(item)
        if alias is None:
            # unnamed CA certificates only belong to the key's chain
            if item.certificate in chain:
                continue
            alias = f"cert-{index}"
        if alias in keystore:
            logger.debug("Skipping PKCS12 certificate with duplicate alias %r", alias)
            continue
        keystore.set_certificate(alias, item.certificate)
    return keystore


def _encode_pkcs12(keystore: Keystore, password: str | None) -> bytes:
    name: bytes | None = None
    key: PrivateKeyTypes | None = None
    cert: x509.Certificate | None = None
    cas: list[pkcs12.PKCS12Certificate] = []

    key_entries = [(a, e) for a, e in keystore.items() if isinstance(e, PrivateKeyEntry)]
    if len(key_entries) > 1:
        raise KeystoreError("A PKCS12 keystore can hold only one key pair")
    if key_entries:
        alias, entry = key_entries[0]
        sealed = entry.sealed_key
        key = sealed.key if isinstance(sealed, Pkcs12SealedKey) else sealed.unseal(password)
        name = alias.encode("utf-8")
        cert = entry.certificate_chain[0]
        cas.extend(pkcs12.PKCS12Certificate(c, None) for c in entry.certificate_chain[1:])

    for alias, entry in keystore.items():
        if isinstance(entry, TrustedCertificateEntry):
            cas.append(pkcs12.PKCS12Certificate(entry.certificate, alias.encode("utf-8")))
        elif isinstance(entry, SecretKeyEntry):
            raise KeystoreError(f"Secret key {alias!r} can not be stored in a PKCS12 keystore")

    if password:
        encryption: serialization.KeySerializationEncryption = (
            serialization.BestAvailableEncryption(password.encode("utf-8"))
        )
    else:
        encryption = serialization.NoEncryption()

    try:
        return pkcs12.serialize_key_and_certificates(name, key, cert, cas or None, encryption)
    except (ValueError, TypeError) as exc:
        raise KeystoreError("Can not encode the PKCS12 keystore") from exc
