"""In-memory keystore and its entry types.

A :class:`Keystore` maps unique aliases to entries. Private keys are held
sealed: the entry exposes its certificate chain freely, but the key itself
is only released by :meth:`PrivateKeyEntry.unlock` with the entry password.
How a key is sealed depends on the format the keystore was loaded from.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Protocol

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from pki_resolver.errors import KeystoreError
from pki_resolver.keystores.format import KeystoreFormat


class SealedKey(Protocol):
    """A private key that is released only with the right password."""

    def unseal(self, password: str | None) -> PrivateKeyTypes:
        """Return the private key.

        Raises
        ------
        KeystoreError
            If *password* does not unlock the key.
        """


@dataclass(frozen=True)
class ClearKey:
    """A key added in memory; sealed with the store password when saved."""

    key: PrivateKeyTypes = field(repr=False)

    def unseal(self, password: str | None) -> PrivateKeyTypes:
        return self.key


@dataclass(frozen=True)
class KeyPairEntry:
    """A private key together with its certificate chain.

    Parameters
    ----------
    private_key:
        The unlocked private key.
    certificate_chain:
        Certificates belonging to the key, leaf certificate first.
    """

    private_key: PrivateKeyTypes = field(repr=False)
    certificate_chain: tuple[x509.Certificate, ...]

    def __post_init__(self) -> None:
        if not self.certificate_chain:
            raise ValueError("A key pair needs at least one certificate")

    @property
    def certificate(self) -> x509.Certificate:
        """The leaf certificate of the key pair."""
        return self.certificate_chain[0]


@dataclass(frozen=True)
class TrustedCertificateEntry:
    """A certificate stored without a private key."""

    certificate: x509.Certificate


@dataclass(frozen=True)
class PrivateKeyEntry:
    """A sealed private key with its certificate chain (leaf first)."""

    certificate_chain: tuple[x509.Certificate, ...]
    sealed_key: SealedKey = field(repr=False)

    def unlock(self, password: str | None) -> KeyPairEntry:
        """Unseal the private key with *password*.

        Raises
        ------
        KeystoreError
            If the password does not unlock the key.
        """
        return KeyPairEntry(
            private_key=self.sealed_key.unseal(password),
            certificate_chain=self.certificate_chain,
        )


@dataclass(frozen=True)
class SecretKeyEntry:
    """A symmetric key (JCEKS only), kept in its format-native sealed form."""

    native: object = field(repr=False)


KeystoreEntry = TrustedCertificateEntry | PrivateKeyEntry | SecretKeyEntry


class Keystore:
    """Password-protected container of certificates and keys, addressed by alias.

    Parameters
    ----------
    keystore_format:
        The container format used when the keystore is saved.
    """

    def __init__(self, keystore_format: KeystoreFormat) -> None:
        if keystore_format is None:
            raise ValueError("A keystore format must be specified")
        self.keystore_format = keystore_format
        self._entries: dict[str, KeystoreEntry] = {}

    def __repr__(self) -> str:
        return f"Keystore({self.keystore_format.name}, aliases={self.aliases()!r})"

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, alias: object) -> bool:
        return alias in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def aliases(self) -> list[str]:
        """Return all aliases in insertion order."""
        return list(self._entries)

    def items(self) -> list[tuple[str, KeystoreEntry]]:
        """Return a snapshot of ``(alias, entry)`` pairs."""
        return list(self._entries.items())

    def get_entry(self, alias: str) -> KeystoreEntry:
        """Return the entry stored under *alias*.

        Raises
        ------
        KeyError
            If the alias is unknown.
        """
        try:
            return self._entries[alias]
        except KeyError:
            raise KeyError(f"No entry with alias={alias!r} in keystore") from None

    def is_key_entry(self, alias: str) -> bool:
        """Return True if *alias* holds a private key."""
        return isinstance(self._entries.get(alias), PrivateKeyEntry)

    def is_certificate_entry(self, alias: str) -> bool:
        """Return True if *alias* holds a trusted certificate."""
        return isinstance(self._entries.get(alias), TrustedCertificateEntry)

    def get_certificate(self, alias: str) -> x509.Certificate | None:
        """Return the certificate of *alias*; for key entries the leaf certificate."""
        entry = self._entries.get(alias)
        if isinstance(entry, TrustedCertificateEntry):
            return entry.certificate
        if isinstance(entry, PrivateKeyEntry):
            return entry.certificate_chain[0]
        return None

    def get_certificate_chain(self, alias: str) -> tuple[x509.Certificate, ...] | None:
        """Return the certificate chain of a key entry, ``None`` for other aliases."""
        entry = self._entries.get(alias)
        if isinstance(entry, PrivateKeyEntry):
            return entry.certificate_chain
        return None

    def get_key_pair(self, alias: str, password: str | None) -> KeyPairEntry:
        """Unlock and return the key pair stored under *alias*.

        A key pair added with :meth:`set_key_pair` is held unencrypted until
        the keystore is saved, so it is returned whatever *password* is
        given. Keys read from a keystore file need their own password.

        Raises
        ------
        KeyError
            If the alias is unknown.
        KeystoreError
            If the alias is not a key entry or the password is wrong.
        """
        entry = self.get_entry(alias)
        if not isinstance(entry, PrivateKeyEntry):
            raise KeystoreError(f"Entry {alias!r} is not a private key entry")
        return entry.unlock(password)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_entry(self, alias: str, entry: KeystoreEntry) -> None:
        """Store *entry* under *alias*, replacing any existing entry."""
        if not alias:
            raise ValueError("An alias must be specified")
        self._entries[alias] = entry

    def set_key_pair(self, alias: str, key_pair: KeyPairEntry) -> None:
        """Store a key pair under *alias*.

        The private key stays unencrypted in memory and is only sealed, with
        the store password, when the keystore is saved.
        """
        self.set_entry(
            alias,
            PrivateKeyEntry(
                certificate_chain=key_pair.certificate_chain,
                sealed_key=ClearKey(key_pair.private_key),
            ),
        )

    def set_certificate(self, alias: str, certificate: x509.Certificate) -> None:
        """Store a trusted certificate under *alias*."""
        self.set_entry(alias, TrustedCertificateEntry(certificate))

    def delete(self, alias: str) -> None:
        """Remove the entry stored under *alias*.

        Raises
        ------
        KeyError
            If the alias is unknown.
        """
        if alias not in self._entries:
            raise KeyError(f"No entry with alias={alias!r} in keystore")
        del self._entries[alias]
