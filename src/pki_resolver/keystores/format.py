"""Keystore container formats and magic-number sniffing.

JKS and JCEKS files start with a fixed four byte magic number. PKCS#12 has
no such signature, so anything that is not recognised as JKS or JCEKS is
classified as PKCS#12 and left to the PKCS#12 loader to accept or reject.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import BinaryIO

logger = logging.getLogger(__name__)

MAGIC_NUMBER_LENGTH = 4

_DER_SEQUENCE_TAG = 0x30


class KeystoreFormat(Enum):
    """Supported keystore container formats.

    The value of each member is the store type name used by the JKS/JCEKS
    codec.
    """

    JKS = "jks"
    JCEKS = "jceks"
    PKCS12 = "pkcs12"

    @property
    def magic_number(self) -> bytes | None:
        """The leading bytes identifying this format, ``None`` if it has none."""
        return _MAGIC_NUMBERS.get(self)


_MAGIC_NUMBERS: dict[KeystoreFormat, bytes] = {
    KeystoreFormat.JKS: b"\xfe\xed\xfe\xed",
    KeystoreFormat.JCEKS: b"\xce\xce\xce\xce",
}


def format_of(data: bytes) -> KeystoreFormat:
    """Classify keystore content by its first four bytes.

    Parameters
    ----------
    data:
        The keystore content, or at least its first four bytes.

    Returns
    -------
    KeystoreFormat
        JKS or JCEKS when the magic number matches, PKCS12 otherwise.
    """
    magic = bytes(data[:MAGIC_NUMBER_LENGTH])
    for keystore_format, magic_number in _MAGIC_NUMBERS.items():
        if magic == magic_number:
            return keystore_format

    if not magic or magic[0] != _DER_SEQUENCE_TAG:
        logger.warning(
            "Keystore content does not start with a known magic number or a DER "
            "sequence; treating it as PKCS#12"
        )
    return KeystoreFormat.PKCS12


def detect_format(stream: BinaryIO) -> KeystoreFormat:
    """Detect the format of the keystore in *stream* without consuming it.

    Seekable streams are rewound to where they were; streams that support
    ``peek`` (e.g. :class:`io.BufferedReader`) are peeked.

    Raises
    ------
    ValueError
        If *stream* is ``None`` or can neither seek nor peek.
    OSError
        If reading from the stream fails.
    """
    if stream is None:
        raise ValueError("A stream must be specified")

    if stream.seekable():
        position = stream.tell()
        try:
            magic = stream.read(MAGIC_NUMBER_LENGTH)
        finally:
            stream.seek(position)
    elif hasattr(stream, "peek"):
        magic = stream.peek(MAGIC_NUMBER_LENGTH)[:MAGIC_NUMBER_LENGTH]
    else:
        raise ValueError("Stream must support seek or peek to detect the keystore format")

    keystore_format = format_of(magic or b"")
    logger.debug("Detected keystore format %s", keystore_format.name)
    return keystore_format
