"""Keystore loading, saving and key pair resolution.

Sources may be given as bytes, as a binary stream or as a filesystem path.
Streams are the authoritative form; bytes and paths are wrapped in a stream
(paths are opened and closed within the call). The keystore format is
detected from the magic number unless the caller states it.

A key pair can only be read from a keystore that holds exactly one private
key entry. All aliases are inspected before the key is unlocked, so a
keystore with several key pairs is rejected rather than yielding whichever
happens to come first.
"""
from __future__ import annotations

import io
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Union

from pki_resolver.certificates.identity import subject_common_name
from pki_resolver.errors import CertificateError, KeystoreError
from pki_resolver.keystores.codecs import DEFAULT_ALIAS, decode_keystore, encode_keystore
from pki_resolver.keystores.format import KeystoreFormat, detect_format
from pki_resolver.keystores.keystore import KeyPairEntry, Keystore

logger = logging.getLogger(__name__)

KeystoreSource = Union[bytes, BinaryIO, str, os.PathLike]
KeystoreDestination = Union[BinaryIO, str, os.PathLike]


# ------------------------------------------------------------------
# Loading
# ------------------------------------------------------------------


def load(source: KeystoreSource, password: str | None) -> Keystore:
    """Load a JKS, JCEKS or PKCS#12 keystore, detecting its format.

    Parameters
    ----------
    source:
        Keystore content as bytes, a binary stream or a path.
    password:
        Password protecting the keystore. ``None`` and ``""`` both mean an
        empty password.

    Returns
    -------
    Keystore
        The loaded keystore.

    Raises
    ------
    ValueError
        If *source* is ``None``.
    KeystoreError
        If the source cannot be read, the password is wrong or the content
        is not a valid keystore.
    """
    with _open_source(source) as stream:
        try:
            keystore_format = detect_format(stream)
            data = stream.read()
        except OSError as exc:
            raise KeystoreError("Can not read the keystore") from exc
    return decode_keystore(keystore_format, data, password)


def load_as(
    keystore_format: KeystoreFormat, source: KeystoreSource, password: str | None
) -> Keystore:
    """Load a keystore that must be of *keystore_format*.

    Raises
    ------
    ValueError
        If *keystore_format* or *source* is ``None``.
    KeystoreError
        If the content is not a keystore of the stated format, the password
        is wrong or the source cannot be read.
    """
    if keystore_format is None:
        raise ValueError("A keystore format must be specified")
    with _open_source(source) as stream:
        try:
            data = stream.read()
        except OSError as exc:
            raise KeystoreError("Can not read the keystore") from exc
    return decode_keystore(keystore_format, data, password)


# ------------------------------------------------------------------
# Saving
# ------------------------------------------------------------------


def save(keystore: Keystore, destination: KeystoreDestination, password: str | None) -> None:
    """Write *keystore* in its own format.

    The keystore is serialized completely before anything is written. A
    path destination is written to a temporary file next to it which then
    atomically replaces the destination, so a failed save never leaves a
    truncated keystore behind.

    Raises
    ------
    ValueError
        If *keystore* or *destination* is ``None``.
    KeystoreError
        If the keystore cannot be encoded or written.
    """
    if keystore is None:
        raise ValueError("A keystore must be specified")
    if destination is None:
        raise ValueError("A destination must be specified")

    data = encode_keystore(keystore, password)

    if isinstance(destination, (str, os.PathLike)):
        _replace_file(Path(destination), data)
    else:
        try:
            destination.write(data)
            destination.flush()
        except OSError as exc:
            raise KeystoreError("Can not write the keystore to output stream") from exc


def save_key_pair_to_pkcs12(
    key_pair: KeyPairEntry, destination: KeystoreDestination, password: str | None
) -> None:
    """Write a single key pair as a PKCS#12 keystore.

    The entry is stored under the common name of the leaf certificate, or
    under ``"1"`` when the certificate has no CN.

    Raises
    ------
    ValueError
        If *key_pair* or *destination* is ``None``.
    CertificateError
        If the key pair cannot be written.
    """
    if key_pair is None:
        raise ValueError("A key pair must be specified")

    keystore = Keystore(KeystoreFormat.PKCS12)
    keystore.set_key_pair(subject_common_name(key_pair.certificate) or DEFAULT_ALIAS, key_pair)
    try:
        save(keystore, destination, password)
    except KeystoreError as exc:
        raise CertificateError("Could not write the key pair to the destination") from exc


# ------------------------------------------------------------------
# Checks
# ------------------------------------------------------------------


def check(
    source: KeystoreSource,
    password: str | None,
    expected_format: KeystoreFormat | None = None,
) -> bool:
    """Return True if *source* can be loaded as a keystore with *password*.

    When *expected_format* is given, the detected format must also match
    it; a valid keystore of another format gives False. This function never
    raises.
    """
    if source is None:
        return False
    if isinstance(source, (str, os.PathLike)):
        path = Path(source)
        if not path.is_file() or not os.access(path, os.R_OK):
            return False

    try:
        with _open_source(source) as stream:
            keystore_format = detect_format(stream)
            if expected_format is not None and keystore_format is not expected_format:
                logger.debug(
                    "Keystore is %s, expected %s", keystore_format.name, expected_format.name
                )
                return False
            data = stream.read()
        decode_keystore(keystore_format, data, password)
        return True
    except (KeystoreError, OSError, ValueError) as exc:
        logger.debug("Keystore check failed: %s", exc)
        return False


# ------------------------------------------------------------------
# Key pairs
# ------------------------------------------------------------------


def read_key_pair(
    source: KeystoreSource,
    password: str | None,
    keystore_format: KeystoreFormat | None = None,
) -> KeyPairEntry:
    """Read the only key pair of a keystore.

    The key is unlocked with the keystore password.

    Parameters
    ----------
    source:
        Keystore content as bytes, a binary stream or a path.
    password:
        Password of both the keystore and its key entry.
    keystore_format:
        Format the keystore must have; detected when omitted.

    Raises
    ------
    CertificateError
        If the keystore cannot be loaded, holds no key pair or more than
        one, or the key cannot be unlocked with *password*.
    """
    keystore = _load_for_key_pair(source, password, keystore_format)
    alias = single_key_pair_alias(keystore)
    try:
        return keystore.get_key_pair(alias, password)
    except KeystoreError as exc:
        raise CertificateError("Cannot load key pair from specified keystore") from exc


def key_pair_alias(
    source: KeystoreSource,
    password: str | None,
    keystore_format: KeystoreFormat | None = None,
) -> str:
    """Return the alias of the only key pair of a keystore, without unlocking it.

    Raises
    ------
    CertificateError
        If the keystore cannot be loaded or does not hold exactly one key
        pair.
    """
    keystore = _load_for_key_pair(source, password, keystore_format)
    return single_key_pair_alias(keystore)


def single_key_pair_alias(keystore: Keystore) -> str:
    """Return the alias of the only private key entry in *keystore*.

    Raises
    ------
    CertificateError
        If the keystore holds no private key entry or more than one.
    """
    key_aliases = [alias for alias in keystore.aliases() if keystore.is_key_entry(alias)]
    if not key_aliases:
        raise CertificateError("No key pair in keystore")
    if len(key_aliases) > 1:
        raise CertificateError(
            f"More than one key pair in keystore: {', '.join(sorted(key_aliases))}"
        )
    logger.debug("Resolved key pair alias %r", key_aliases[0])
    return key_aliases[0]


# ------------------------------------------------------------------
# Internal
# ------------------------------------------------------------------


def _load_for_key_pair(
    source: KeystoreSource, password: str | None, keystore_format: KeystoreFormat | None
) -> Keystore:
    try:
        if keystore_format is None:
            return load(source, password)
        return load_as(keystore_format, source, password)
    except KeystoreError as exc:
        raise CertificateError("Cannot load key pair from specified keystore") from exc


@contextmanager
def _open_source(source: KeystoreSource) -> Iterator[BinaryIO]:
    """Yield a seekable or peekable stream over *source*."""
    if source is None:
        raise ValueError("A keystore source must be specified")

    if isinstance(source, (bytes, bytearray, memoryview)):
        yield io.BytesIO(bytes(source))
    elif isinstance(source, (str, os.PathLike)):
        try:
            stream = open(source, "rb")
        except OSError as exc:
            raise KeystoreError(f"Can not load the keystore [{source}]") from exc
        with stream:
            yield stream
    elif source.seekable() or hasattr(source, "peek"):
        yield source
    else:
        try:
            data = source.read()
        except OSError as exc:
            raise KeystoreError("Can not read the keystore from input stream") from exc
        yield io.BytesIO(data)


def _replace_file(path: Path, data: bytes) -> None:
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(data)
        os.replace(temp_path, path)
        logger.debug("Saved keystore to %s", path)
    except OSError as exc:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise KeystoreError(f"Can not save the keystore to file [{path}]") from exc
