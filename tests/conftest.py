"""Shared PKI fixtures: the partya certificate, a test CA and certificates issued by it."""
from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import NameOID


# Certificate of partya from the Holodeck B2B examples, base64 with 64 character lines.
PARTYA_BASE64 = (
    "MIIFvjCCA6agAwIBAgICEAUwDQYJKoZIhvcNAQELBQAwZjELMAkGA1UEBhMCTkwx\n"
    "ETAPBgNVBAoMCENoYXNxdWlzMR0wGwYDVQQLDBRIb2xvZGVjayBCMkIgU3VwcG9y\n"
    "dDElMCMGA1UEAwwcY2EuZXhhbXBsZXMuaG9sb2RlY2stYjJiLm9yZzAeFw0yMDA3\n"
    "MjkxMTUwMTVaFw0yMTA4MDgxMTUwMTVaMGoxCzAJBgNVBAYTAk5MMREwDwYDVQQK\n"
    "DAhDaGFzcXVpczEdMBsGA1UECwwUSG9sb2RlY2sgQjJCIFN1cHBvcnQxKTAnBgNV\n"
    "BAMMIHBhcnR5YS5leGFtcGxlcy5ob2xvZGVjay1iMmIuY29tMIICIjANBgkqhkiG\n"
    "9w0BAQEFAAOCAg8AMIICCgKCAgEA4T98DsywFKLH6UYqV8N9P8gTbdCEPbb5Gm8n\n"
    "dnCWUwSFwVX4CCMwHHAIxxy2gdf4lb7XUzOD6WahQsdpM8Fwcj+SX2HJHtpt6JS6\n"
    "Cu9QlPxp5MXW0gWyYv7+RLE2Xj+KM2++b/stBC1I6kjUyevtGmea9ufOA3XEJ5jO\n"
    "iQ+afk34UAlN9Ta+qpwrtJKxRq6SIB8zaGlU0OsEVZPP2a1QpBVm/1axbG4XRp+Q\n"
    "F7mSh0PV1g2ICrE4xXPqqIWdiTKzTWl4xePnLCxdFQkXOjPxo+GAjNnNhXdtaZS+\n"
    "KUN2yLIw0Xay3I8HeLMGBHhAIOHBHvwng367RjO3zwbgvt5dcEKWVF57aOBoksGa\n"
    "fEfqhN6KNqZM9d8/Aq46GiqHw/2JtEHledKRW8+9S0ri9yAo7vr2RiHQt74Ey+K+\n"
    "+NxpHMmAEmnTwK1ki40Lmeih3oKRucUOOWF62K4T++u7X71xkznIeEGxLznSqnPD\n"
    "8mwowHN3StQFiMn+Xt66m+a+K3F3NlWYkzeZRPrEA0Wqv6K+z0MbB3JYv1CXuhb5\n"
    "kYEGEqsau395/yrn/MbU8+iWU7fNASlHBktwMXHm9NKcuLqiF8TuamZ/5XVBuPIe\n"
    "XwuTcdoOh2wxoH9hZDwerkBHJUOgLiUG4Rh6H332uBljkIESqe1eDEWbPNlHlTpt\n"
    "Kxjb5YcCAwEAAaNyMHAwCQYDVR0TBAIwADAOBgNVHQ8BAf8EBAMCBeAwEwYDVR0l\n"
    "BAwwCgYIKwYBBQUHAwIwHQYDVR0OBBYEFAPf9TzA6vwmsJlWTQY068Zjcks+MB8G\n"
    "A1UdIwQYMBaAFGogotBTFmhJkji5a7pAr+ggs75/MA0GCSqGSIb3DQEBCwUAA4IC\n"
    "AQAAdZR/Z4GT6wWwN4RjLF/f8ijlGACHEWcWhv2KhcnRp2wHvL2plRBGQ31N7q5R\n"
    "9N0ZOQnSYA3ZVcRmrqNkGWKcXqNdaU1Cs9XPwULbUjU9rN6tBsv7fgx+bla5Ihza\n"
    "z6xzed+3qj71P2mZP6DAyoFNVs55V0/86hpJ6VV/bVuMX24harNtTf9IwJBLw4v/\n"
    "0+b9w1vET2YYv+NQv649jvD72N5UBjXhLImP2xXVf6O10hZ1mUOZG73RzBBRuDYW\n"
    "xX9gAHum/B1Xr6xTVfdfYM7TQHCNlBaZ9ta0viKfunoYSdnIxmWxyAch6qVGb/La\n"
    "9KfL5hcyAHPk/m/wvBTw61YzzxxbRbExAnpKBHog2n4Sbzd8ehVrjEASYrNl18d8\n"
    "jvk0GcYHkU/P7r8g/p3eVISmjiCflbiTi8/rYo4XuvGWMBR7Mu6OEkBvhJdm0Xti\n"
    "s9+7JdJQ/gR3OEnWXokNQKaw/wMBahsHWkavfvOvSya2gn8IOSvhwwIesmxRIZO/\n"
    "8qZB5T3/GZrFCQjRp8R9QUgczc8IRG8VHWvMxMQpBXoi/B4otPr1GeVOJ3mNo05w\n"
    "smTS+lMXeWUtHerJj7PNf3qNqF7cfxKv4ynAl/qDE9U76keJorX4YXqUcB0+nPov\n"
    "LXcT5cmBULZeMLWJKttYX+VqVEImUsOrUPGCLJZWpYj5kQ==\n"
)


@dataclass
class IssuedCertificate:
    key: RSAPrivateKey
    certificate: x509.Certificate


def _name(common_name: str | None, serial_number: str | None = None) -> x509.Name:
    attributes = [
        x509.NameAttribute(NameOID.COUNTRY_NAME, "NL"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Chasquis"),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "Testing"),
    ]
    if serial_number is not None:
        attributes.append(x509.NameAttribute(NameOID.SERIAL_NUMBER, serial_number))
    if common_name is not None:
        attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    return x509.Name(attributes)


def _build(
    subject: x509.Name,
    issuer: x509.Name,
    key: RSAPrivateKey,
    signing_key: RSAPrivateKey,
    ca: bool,
) -> x509.Certificate:
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(key.public_key()),
            critical=False,
        )
        .sign(signing_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def ca() -> IssuedCertificate:
    """A self-signed CA shared by the whole session (expensive to create)."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = _name("ca.examples.test")
    return IssuedCertificate(key=key, certificate=_build(name, name, key, key, ca=True))


@pytest.fixture(scope="session")
def issue(ca: IssuedCertificate) -> Callable[..., IssuedCertificate]:
    """Factory issuing end-entity certificates signed by the session CA."""

    def _issue(
        common_name: str | None, serial_number: str | None = None
    ) -> IssuedCertificate:
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        certificate = _build(
            _name(common_name, serial_number),
            ca.certificate.subject,
            key,
            ca.key,
            ca=False,
        )
        return IssuedCertificate(key=key, certificate=certificate)

    return _issue


@pytest.fixture(scope="session")
def partyc(issue: Callable[..., IssuedCertificate]) -> IssuedCertificate:
    return issue("partyc.examples.test", serial_number="000102637-T")


@pytest.fixture(scope="session")
def partyd(issue: Callable[..., IssuedCertificate]) -> IssuedCertificate:
    return issue("partyd.examples.test")


@pytest.fixture(scope="session")
def partya_base64() -> str:
    return PARTYA_BASE64


@pytest.fixture(scope="session")
def partya_pem() -> str:
    return f"-----BEGIN CERTIFICATE-----\n{PARTYA_BASE64}-----END CERTIFICATE-----"


@pytest.fixture(scope="session")
def partya(partya_pem: str) -> x509.Certificate:
    return x509.load_pem_x509_certificate(partya_pem.encode("ascii"))
