"""pki-resolver: X.509 certificate and keystore resolution.

Public API
----------
The stable public surface is everything exported from this module and from
the ``certificates`` and ``keystores`` subpackages.

Quick start
-----------
::

    from pki_resolver import certificate_from_text, read_key_pair, subject_name

    cert = certificate_from_text(pem_text)
    print(subject_name(cert))

    key_pair = read_key_pair("signing.p12", "secret")
    print(len(key_pair.certificate_chain))
"""
from __future__ import annotations

__version__: str = "0.1.0"

from pki_resolver.errors import CertificateError, KeystoreError, PkiResolverError

# ------------------------------------------------------------------
# Certificates
# ------------------------------------------------------------------
from pki_resolver.certificates import (
    certificate_from_bytes,
    certificate_from_file,
    certificate_from_stream,
    certificate_from_text,
    certificates_from_file,
    certificates_from_stream,
    has_issuer_and_serial,
    has_subject_key_identifier,
    has_thumbprint,
    issuer_common_name,
    issuer_name,
    subject_common_name,
    subject_name,
    subject_serial_number,
    to_pem,
)

# ------------------------------------------------------------------
# Keystores
# ------------------------------------------------------------------
from pki_resolver.keystores import (
    KeyPairEntry,
    Keystore,
    KeystoreFormat,
    check,
    key_pair_alias,
    load,
    load_as,
    read_key_pair,
    save,
    save_key_pair_to_pkcs12,
)

__all__ = [
    "__version__",
    # errors
    "CertificateError",
    "KeystoreError",
    "PkiResolverError",
    # certificates
    "certificate_from_bytes",
    "certificate_from_file",
    "certificate_from_stream",
    "certificate_from_text",
    "certificates_from_file",
    "certificates_from_stream",
    "has_issuer_and_serial",
    "has_subject_key_identifier",
    "has_thumbprint",
    "issuer_common_name",
    "issuer_name",
    "subject_common_name",
    "subject_name",
    "subject_serial_number",
    "to_pem",
    # keystores
    "KeyPairEntry",
    "Keystore",
    "KeystoreFormat",
    "check",
    "key_pair_alias",
    "load",
    "load_as",
    "read_key_pair",
    "save",
    "save_key_pair_to_pkcs12",
]
