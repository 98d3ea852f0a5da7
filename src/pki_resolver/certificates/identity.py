"""Identity attributes of certificates and the predicates used to match them.

Distinguished names are rendered most-specific-first (``CN=...,O=...,C=...``)
as RFC 4514 prescribes, with the short attribute names used by common PKI
tooling. Attribute getters never raise; they return ``None`` when the
requested attribute is absent or the name cannot be parsed.
"""
from __future__ import annotations

import hmac
import re

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import NameOID, ObjectIdentifier

# Short names on top of the ones cryptography already knows (CN, L, ST, O,
# OU, C, STREET, DC, UID).
_ATTRIBUTE_NAMES: dict[ObjectIdentifier, str] = {
    NameOID.EMAIL_ADDRESS: "E",
    NameOID.SERIAL_NUMBER: "SERIALNUMBER",
    NameOID.TITLE: "T",
    NameOID.GIVEN_NAME: "GIVENNAME",
    NameOID.SURNAME: "SURNAME",
    NameOID.INITIALS: "INITIALS",
    NameOID.GENERATION_QUALIFIER: "GENERATION",
    NameOID.DN_QUALIFIER: "DN",
    NameOID.PSEUDONYM: "PSEUDONYM",
}
_ATTRIBUTE_OIDS: dict[str, ObjectIdentifier] = {
    name: oid for oid, name in _ATTRIBUTE_NAMES.items()
}

# Unescaped RDN and attribute separators with the blanks around them.
_SEPARATOR_SPACING = re.compile(r"\s*(?<!\\)([,+=])\s*")


# ------------------------------------------------------------------
# Attributes
# ------------------------------------------------------------------


def subject_common_name(certificate: x509.Certificate) -> str | None:
    """Return the CN of the subject, or ``None`` if it has none."""
    try:
        return _first_attribute(certificate.subject, NameOID.COMMON_NAME)
    except (AttributeError, ValueError):
        return None


def issuer_common_name(certificate: x509.Certificate) -> str | None:
    """Return the CN of the issuer, or ``None`` if it has none."""
    try:
        return _first_attribute(certificate.issuer, NameOID.COMMON_NAME)
    except (AttributeError, ValueError):
        return None


def subject_serial_number(certificate: x509.Certificate) -> str | None:
    """Return the ``serialNumber`` attribute of the subject DN.

    This is an identity attribute of the subject, often an organisational
    identifier, and unrelated to the serial number of the certificate
    itself.
    """
    try:
        return _first_attribute(certificate.subject, NameOID.SERIAL_NUMBER)
    except (AttributeError, ValueError):
        return None


def subject_name(certificate: x509.Certificate) -> str:
    """Return the subject DN, most specific RDN first."""
    return format_name(certificate.subject)


def issuer_name(certificate: x509.Certificate) -> str:
    """Return the issuer DN, most specific RDN first."""
    return format_name(certificate.issuer)


def format_name(name: x509.Name) -> str:
    """Render *name* as an RFC 4514 string."""
    return name.rfc4514_string(_ATTRIBUTE_NAMES)


def parse_name(text: str) -> x509.Name:
    """Parse an RFC 4514 string as produced by :func:`format_name`.

    Raises
    ------
    ValueError
        If *text* is not a valid distinguished name.
    """
    return x509.Name.from_rfc4514_string(text, _ATTRIBUTE_OIDS)


# ------------------------------------------------------------------
# Predicates
# ------------------------------------------------------------------


def has_subject_key_identifier(certificate: x509.Certificate, expected: bytes) -> bool:
    """Return True if the certificate's subject key identifier equals *expected*.

    The comparison is on the bare key identifier, i.e. the extension value
    without the tag and length octets that wrap it in its encoded form.
    """
    try:
        extension = certificate.extensions.get_extension_for_class(
            x509.SubjectKeyIdentifier
        )
    except x509.ExtensionNotFound:
        return False
    return hmac.compare_digest(extension.value.key_identifier, bytes(expected))


def has_issuer_and_serial(
    certificate: x509.Certificate,
    issuer: x509.Name | str,
    serial_number: int,
) -> bool:
    """Return True if the certificate has the given issuer and serial number.

    Parameters
    ----------
    certificate:
        The certificate to check.
    issuer:
        Expected issuer, as a name object or as a distinguished name string.
        Spaces around ``,``, ``+`` and ``=`` are allowed in the string, as in
        ``"CN=ca, O=Example"``. Names are compared RDN by RDN on their
        canonical form: values are case folded and runs of whitespace
        collapse to one space, so differences in case, spacing or the ASN.1
        string type of a value do not matter.
    serial_number:
        Expected certificate serial number.

    Raises
    ------
    ValueError
        If *issuer* is a string that is not a valid distinguished name.
    """
    if isinstance(issuer, str):
        issuer = parse_name(_SEPARATOR_SPACING.sub(r"\1", issuer.strip()))
    return (
        certificate.serial_number == serial_number
        and _canonical_name(certificate.issuer) == _canonical_name(issuer)
    )


def has_thumbprint(
    certificate: x509.Certificate,
    expected_hash: bytes,
    algorithm: hashes.HashAlgorithm,
) -> bool:
    """Return True if the digest of the encoded certificate equals *expected_hash*.

    Parameters
    ----------
    certificate:
        The certificate to check.
    expected_hash:
        The expected thumbprint.
    algorithm:
        Hash algorithm to compute the thumbprint with, e.g. ``hashes.SHA256()``.

    Returns
    -------
    bool
        False when the digests differ or the certificate cannot be encoded.
    """
    try:
        encoded = certificate.public_bytes(serialization.Encoding.DER)
    except ValueError:
        return False

    digest = hashes.Hash(algorithm)
    digest.update(encoded)
    return hmac.compare_digest(digest.finalize(), bytes(expected_hash))


# ------------------------------------------------------------------
# Internal
# ------------------------------------------------------------------


def _first_attribute(name: x509.Name, oid: ObjectIdentifier) -> str | None:
    attributes = name.get_attributes_for_oid(oid)
    if not attributes:
        return None
    value = attributes[0].value
    return value.decode("utf-8") if isinstance(value, bytes) else value


def _canonical_name(name: x509.Name) -> list[frozenset[tuple[ObjectIdentifier, str]]]:
    return [
        frozenset((attribute.oid, _fold(attribute.value)) for attribute in rdn)
        for rdn in name.rdns
    ]


def _fold(value: str | bytes) -> str:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return " ".join(value.casefold().split())
