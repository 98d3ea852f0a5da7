"""Stream decoder for X.509 certificates in DER or PEM form.

A single :class:`CertificateDecoder` is shared by the whole process. It keeps
no state between calls, so it can be used from several threads without
locking; only its creation in :func:`get_decoder` is guarded.
"""
from __future__ import annotations

import logging
import threading
from typing import BinaryIO

from cryptography import x509

from pki_resolver.errors import CertificateError

logger = logging.getLogger(__name__)

_DER_SEQUENCE_TAG = 0x30
_PEM_BEGIN = b"-----BEGIN "
_PEM_END = b"-----END "
_WHITESPACE = b" \t\r\n\x0b\x0c"


class CertificateDecoder:
    """Reads certificates one at a time from a binary stream.

    DER input is recognised by its leading SEQUENCE tag and is read for
    exactly the number of bytes its length header announces. Anything else
    is treated as text: lines are skipped up to the first ``-----BEGIN``
    boundary and the block is read through the matching ``-----END`` line.
    Either way the stream is left positioned directly after the certificate,
    which is what allows chains to be read back-to-back.
    """

    def decode(self, stream: BinaryIO) -> x509.Certificate:
        """Decode the next certificate from *stream*.

        Raises
        ------
        CertificateError
            If the stream is exhausted or does not contain a valid
            certificate at its current position.
        """
        first = self._skip_whitespace(stream)
        if not first:
            raise CertificateError("No certificate data found in stream")
        return self._decode_from(first, stream)

    def decode_all(self, stream: BinaryIO) -> list[x509.Certificate]:
        """Decode certificates from *stream* until only whitespace remains."""
        certificates: list[x509.Certificate] = []
        while True:
            first = self._skip_whitespace(stream)
            if not first:
                break
            certificates.append(self._decode_from(first, stream))
        logger.debug("Decoded %d certificate(s) from stream", len(certificates))
        return certificates

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _decode_from(self, first: bytes, stream: BinaryIO) -> x509.Certificate:
        if first[0] == _DER_SEQUENCE_TAG:
            return self._decode_der(first, stream)
        return self._decode_pem(first, stream)

    def _decode_der(self, first: bytes, stream: BinaryIO) -> x509.Certificate:
        header = bytearray(first)
        length_octet = self._read_exactly(stream, 1)
        header += length_octet
        length = length_octet[0]
        if length & 0x80:
            count = length & 0x7F
            # indefinite (0) and absurd lengths are not valid DER certificates
            if count == 0 or count > 4:
                raise CertificateError(
                    f"Unsupported DER length encoding (0x{length:02x})"
                )
            length_octets = self._read_exactly(stream, count)
            header += length_octets
            length = int.from_bytes(length_octets, "big")

        body = self._read_exactly(stream, length)
        try:
            return x509.load_der_x509_certificate(bytes(header) + body)
        except ValueError as exc:
            raise CertificateError("Invalid DER encoded certificate") from exc

    def _decode_pem(self, first: bytes, stream: BinaryIO) -> x509.Certificate:
        line = first + stream.readline()
        while not line.lstrip().startswith(_PEM_BEGIN):
            line = stream.readline()
            if not line:
                raise CertificateError("No PEM encoded certificate found in stream")

        block = [line.strip()]
        while True:
            line = stream.readline()
            if not line:
                raise CertificateError("PEM block is not closed by an END boundary")
            line = line.strip()
            block.append(line)
            if line.startswith(_PEM_END):
                break

        try:
            return x509.load_pem_x509_certificate(b"\n".join(block) + b"\n")
        except ValueError as exc:
            raise CertificateError("Invalid PEM encoded certificate") from exc

    @staticmethod
    def _skip_whitespace(stream: BinaryIO) -> bytes:
        """Consume whitespace and return the first other byte, ``b""`` at end of stream."""
        while True:
            byte = stream.read(1)
            if not byte or byte not in _WHITESPACE:
                return byte or b""

    @staticmethod
    def _read_exactly(stream: BinaryIO, size: int) -> bytes:
        chunks: list[bytes] = []
        remaining = size
        while remaining > 0:
            chunk = stream.read(remaining)
            if not chunk:
                raise CertificateError(
                    f"Truncated DER certificate, {remaining} of {size} bytes missing"
                )
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)


_decoder: CertificateDecoder | None = None
_decoder_lock = threading.Lock()


def get_decoder() -> CertificateDecoder:
    """Return the process-wide decoder, creating it on first use."""
    global _decoder

    if _decoder is None:
        with _decoder_lock:
            if _decoder is None:
                _decoder = CertificateDecoder()
    return _decoder
