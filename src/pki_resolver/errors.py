"""Exception hierarchy for pki-resolver.

Argument errors (a required value passed as ``None``) are reported with the
built-in :class:`ValueError`. Everything that goes wrong because of the
material itself is reported with one of the classes below, always chaining
the low-level exception that caused it.
"""
from __future__ import annotations


class PkiResolverError(Exception):
    """Base exception for all pki-resolver errors."""


class CertificateError(PkiResolverError):
    """Input does not decode to a valid certificate or key pair."""


class KeystoreError(PkiResolverError):
    """Keystore cannot be read, written, or does not match expectations."""
