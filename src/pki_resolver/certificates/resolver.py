"""Certificate resolution from bytes, text, files and streams.

Every function funnels into the shared :class:`CertificateDecoder`, so DER
and PEM input are accepted wherever bytes are accepted. Text input is more
forgiving: comment headers before a PEM block and trailing noise after it
are stripped, and bare base64 (with or without line breaks) is accepted.

Empty input is not an error. ``certificate_from_bytes`` and
``certificate_from_text`` return ``None`` for ``None``, empty or blank
input so callers can test for a certificate without catching anything;
malformed non-empty input always raises :class:`CertificateError`.
"""
from __future__ import annotations

import base64
import binascii
import io
import os
import re
from typing import BinaryIO

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from pki_resolver.certificates.decoder import get_decoder
from pki_resolver.errors import CertificateError

PEM_START_BOUNDARY = "-----BEGIN CERTIFICATE-----"
PEM_END_BOUNDARY = "-----END CERTIFICATE-----"

_WHITESPACE_PATTERN = re.compile(r"\s+")


# ------------------------------------------------------------------
# Decoding
# ------------------------------------------------------------------


def certificate_from_bytes(data: bytes | None) -> x509.Certificate | None:
    """Decode a DER or PEM encoded certificate.

    Parameters
    ----------
    data:
        The encoded certificate. May be ``None`` or empty.

    Returns
    -------
    x509.Certificate | None
        The certificate, or ``None`` when *data* is ``None`` or empty.

    Raises
    ------
    CertificateError
        If *data* is not empty but does not hold a valid certificate.
    """
    if not data:
        return None
    return get_decoder().decode(io.BytesIO(data))


def certificate_from_text(text: str | None) -> x509.Certificate | None:
    """Decode a base64 encoded certificate which may be PEM armored.

    When the text contains a PEM start boundary, only the lines between it
    and the end boundary (or the end of the text if that is missing) are
    used, so prologue and epilogue text is ignored.

    Parameters
    ----------
    text:
        PEM text or bare base64. May be ``None`` or blank.

    Returns
    -------
    x509.Certificate | None
        The certificate, or ``None`` when *text* is ``None`` or blank.

    Raises
    ------
    CertificateError
        If the text is not valid base64 or the decoded bytes are not a
        certificate.
    """
    if text is None or not text.strip():
        return None

    start = text.find(PEM_START_BOUNDARY)
    if start >= 0:
        body_start = text.find("\n", start)
        end = text.find(PEM_END_BOUNDARY, start)
        if body_start < 0:
            encoded = ""
        else:
            encoded = text[body_start:end if end > body_start else len(text)]
    else:
        encoded = text

    try:
        der = base64.b64decode(_WHITESPACE_PATTERN.sub("", encoded), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CertificateError("String is not a valid base64 encoding") from exc

    if not der:
        raise CertificateError("String does not contain any certificate data")
    return certificate_from_bytes(der)


def certificate_from_stream(stream: BinaryIO) -> x509.Certificate:
    """Decode one certificate from *stream*.

    The stream is left open and positioned directly after the certificate.

    Raises
    ------
    ValueError
        If *stream* is ``None``.
    CertificateError
        If no valid certificate can be read from the stream.
    """
    if stream is None:
        raise ValueError("A stream must be specified")
    return get_decoder().decode(stream)


def certificate_from_file(path: str | os.PathLike[str]) -> x509.Certificate:
    """Read a DER or PEM encoded certificate from a file.

    Raises
    ------
    ValueError
        If *path* is ``None``.
    CertificateError
        If the file cannot be read or does not contain a valid certificate.
    """
    if path is None:
        raise ValueError("A path must be specified")
    try:
        with open(path, "rb") as stream:
            return certificate_from_stream(stream)
    except OSError as exc:
        raise CertificateError(f"Error accessing certificate file [{path}]") from exc


def certificates_from_stream(stream: BinaryIO) -> list[x509.Certificate]:
    """Decode all certificates from *stream*, in the order they appear.

    PEM blocks and DER certificates may be concatenated in any mix, which
    is how a leaf certificate and its intermediates are usually delivered.

    Raises
    ------
    ValueError
        If *stream* is ``None``.
    CertificateError
        If any part of the stream is not a valid certificate.
    """
    if stream is None:
        raise ValueError("A stream must be specified")
    return get_decoder().decode_all(stream)


def certificates_from_file(path: str | os.PathLike[str]) -> list[x509.Certificate]:
    """Read all certificates contained in a file."""
    if path is None:
        raise ValueError("A path must be specified")
    try:
        with open(path, "rb") as stream:
            return certificates_from_stream(stream)
    except OSError as exc:
        raise CertificateError(f"Error accessing certificate file [{path}]") from exc


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------


def to_pem(certificate: x509.Certificate | None) -> str | None:
    """Return the PEM armored form of *certificate*.

    The base64 body is wrapped at 64 characters. There is no newline after
    the end boundary, so a certificate decoded from PEM text produced the
    same way encodes back to identical text.
    """
    if certificate is None:
        return None
    return certificate.public_bytes(serialization.Encoding.PEM).decode("ascii").rstrip("\n")
