"""Certificate resolution for pki-resolver.

Decodes X.509 certificates and certificate chains from DER, PEM or bare
base64 input and answers identity questions about them.
"""
from __future__ import annotations

from pki_resolver.certificates.decoder import CertificateDecoder, get_decoder
from pki_resolver.certificates.identity import (
    format_name,
    has_issuer_and_serial,
    has_subject_key_identifier,
    has_thumbprint,
    issuer_common_name,
    issuer_name,
    parse_name,
    subject_common_name,
    subject_name,
    subject_serial_number,
)
from pki_resolver.certificates.resolver import (
    PEM_END_BOUNDARY,
    PEM_START_BOUNDARY,
    certificate_from_bytes,
    certificate_from_file,
    certificate_from_stream,
    certificate_from_text,
    certificates_from_file,
    certificates_from_stream,
    to_pem,
)

__all__ = [
    "CertificateDecoder",
    "PEM_END_BOUNDARY",
    "PEM_START_BOUNDARY",
    "certificate_from_bytes",
    "certificate_from_file",
    "certificate_from_stream",
    "certificate_from_text",
    "certificates_from_file",
    "certificates_from_stream",
    "format_name",
    "get_decoder",
    "has_issuer_and_serial",
    "has_subject_key_identifier",
    "has_thumbprint",
    "issuer_common_name",
    "issuer_name",
    "parse_name",
    "subject_common_name",
    "subject_name",
    "subject_serial_number",
    "to_pem",
]
