import datetime
import re
from pathlib import Path
from typing import Optional
from typing import Union

import OpenSSL
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509 import NameOID

from tlsgate import exceptions

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]

_pem_block = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----\r?\n(?P<body>.*?)-----END (?P=label)-----",
    re.DOTALL,
)

# PEM labels we accept for the private key: PKCS#1 ("traditional") RSA and PKCS#8.
_KEY_LABELS = (b"RSA PRIVATE KEY", b"PRIVATE KEY")


class Cert:
    """Representation of a (TLS) certificate."""

    _cert: x509.Certificate

    def __init__(self, cert: x509.Certificate):
        assert isinstance(cert, x509.Certificate)
        self._cert = cert

    def __eq__(self, other):
        return self.fingerprint() == other.fingerprint()

    def __repr__(self):
        return f"<Cert(cn={self.cn!r}, altnames={self.altnames!r})>"

    def __hash__(self):
        return self._cert.__hash__()

    @classmethod
    def from_pem(cls, data: bytes) -> "Cert":
        cert = x509.load_pem_x509_certificate(data)
        return cls(cert)

    def to_pem(self) -> bytes:
        return self._cert.public_bytes(serialization.Encoding.PEM)

    def to_der(self) -> bytes:
        return self._cert.public_bytes(serialization.Encoding.DER)

    def to_pyopenssl(self) -> OpenSSL.crypto.X509:
        return OpenSSL.crypto.X509.from_cryptography(self._cert)

    def to_cryptography(self) -> x509.Certificate:
        return self._cert

    def fingerprint(self) -> bytes:
        return self._cert.fingerprint(hashes.SHA256())

    @property
    def notafter(self) -> datetime.datetime:
        return self._cert.not_valid_after_utc

    def has_expired(self) -> bool:
        return datetime.datetime.now(datetime.timezone.utc) > self.notafter

    @property
    def cn(self) -> Optional[str]:
        attrs = self._cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        if attrs:
            return attrs[0].value  # type: ignore
        return None

    @property
    def altnames(self) -> list[str]:
        """
        Get all SubjectAlternativeName DNS altnames.
        """
        try:
            ext = self._cert.extensions.get_extension_for_class(
                x509.SubjectAlternativeName
            ).value
        except x509.ExtensionNotFound:
            return []
        else:
            return ext.get_values_for_type(x509.DNSName) + [
                str(x) for x in ext.get_values_for_type(x509.IPAddress)
            ]


def load_cert_chain(path: Path) -> list[Cert]:
    """
    Load an ordered certificate chain from a PEM file, leaf certificate first.

    *Raises:*
     - ConfigError, if the file cannot be read or contains no certificate.
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise exceptions.ConfigError(f"Cannot open certificate file {path}: {e}") from e
    try:
        chain = x509.load_pem_x509_certificates(raw)
    except ValueError as e:
        raise exceptions.ConfigError(f"Cannot parse certificate file {path}: {e}") from e
    return [Cert(c) for c in chain]


def load_private_key(path: Path) -> PrivateKey:
    """
    Load the first RSA or PKCS8 private key from a PEM file.
    Other PEM blocks (certificates, EC parameters, ...) are skipped.

    *Raises:*
     - ConfigError, if the file cannot be read, the key is encrypted,
       cannot be parsed, or no key is present.
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise exceptions.ConfigError(f"Cannot open private key file {path}: {e}") from e

    for m in _pem_block.finditer(raw):
        label = m.group("label")
        if label == b"ENCRYPTED PRIVATE KEY" or (
            label in _KEY_LABELS and b"Proc-Type: 4,ENCRYPTED" in m.group("body")
        ):
            raise exceptions.ConfigError(
                f"Private key in {path} is encrypted, which is not supported."
            )
        if label not in _KEY_LABELS:
            continue
        try:
            key = serialization.load_pem_private_key(m.group(0), password=None)
        except (ValueError, TypeError) as e:
            raise exceptions.ConfigError(
                f"Cannot parse private key in {path}: {e}"
            ) from e
        if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
            raise exceptions.ConfigError(
                f"Unsupported private key type in {path}: {type(key).__name__}"
            )
        return key

    raise exceptions.ConfigError(
        f"No keys found in {path} (encrypted keys not supported)."
    )
