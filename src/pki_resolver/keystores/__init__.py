"""Keystore resolution for pki-resolver.

Detects JKS, JCEKS and PKCS#12 containers, loads and saves them, and
extracts the key pair of keystores that hold exactly one.
"""
from __future__ import annotations

from pki_resolver.keystores.format import KeystoreFormat, detect_format, format_of
from pki_resolver.keystores.keystore import (
    KeyPairEntry,
    Keystore,
    PrivateKeyEntry,
    SecretKeyEntry,
    TrustedCertificateEntry,
)
from pki_resolver.keystores.resolver import (
    check,
    key_pair_alias,
    load,
    load_as,
    read_key_pair,
    save,
    save_key_pair_to_pkcs12,
    single_key_pair_alias,
)

__all__ = [
    "KeyPairEntry",
    "Keystore",
    "KeystoreFormat",
    "PrivateKeyEntry",
    "SecretKeyEntry",
    "TrustedCertificateEntry",
    "check",
    "detect_format",
    "format_of",
    "key_pair_alias",
    "load",
    "load_as",
    "read_key_pair",
    "save",
    "save_key_pair_to_pkcs12",
    "single_key_pair_alias",
]
