"""PEM encoding for certificates, private keys and trust-anchor sets.

Certificates are public and safe to hand to any peer. Private key blocks are
secret and only ever loaded by the owning endpoint's transport layer.
"""

import hashlib
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from authority.ca.errors import EncodingError
from authority.domain.models import IssuedCertificate

logger = logging.getLogger(__name__)


def encode_certificate(certificate: x509.Certificate) -> bytes:
    """Encode a certificate as a PEM CERTIFICATE block."""
    try:
        return certificate.public_bytes(serialization.Encoding.PEM)
    except Exception as e:
        raise EncodingError(f"Failed to encode certificate: {e}") from e


def encode_private_key(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    """Encode a private key as an unencrypted PKCS#8 PEM block."""
    try:
        return private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    except Exception as e:
        raise EncodingError(f"Failed to encode private key: {e}") from e


def decode_certificate(pem: bytes) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(pem)
    except Exception as e:
        raise EncodingError(f"Failed to decode certificate: {e}") from e


def decode_private_key(pem: bytes) -> ec.EllipticCurvePrivateKey:
    try:
        private_key = serialization.load_pem_private_key(pem, password=None)
    except Exception as e:
        raise EncodingError(f"Failed to decode private key: {e}") from e

    if not isinstance(private_key, ec.EllipticCurvePrivateKey):
        raise EncodingError(
            f"Expected an EC private key, got {type(private_key).__name__}"
        )
    return private_key


def encode_trust_anchors(certificates: Iterable[x509.Certificate]) -> bytes:
    """Concatenate root certificates into one PEM text."""
    return b"".join(encode_certificate(cert) for cert in certificates)


def decode_trust_anchors(pem: bytes) -> tuple[x509.Certificate, ...]:
    try:
        return tuple(x509.load_pem_x509_certificates(pem))
    except Exception as e:
        raise EncodingError(f"Failed to decode trust anchors: {e}") from e


def compute_thumbprint(certificate: x509.Certificate) -> str:
    """Compute SHA-256 thumbprint of a certificate.

    Returns:
        Lowercase hexadecimal SHA-256 thumbprint.
    """
    der_bytes = certificate.public_bytes(serialization.Encoding.DER)
    return hashlib.sha256(der_bytes).hexdigest().lower()


def _public_key_der(key: ec.EllipticCurvePublicKey) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def keys_match(certificate: x509.Certificate, private_key: ec.EllipticCurvePrivateKey) -> bool:
    """True if the certificate's public key is the public half of private_key."""
    cert_key = certificate.public_key()
    if not isinstance(cert_key, ec.EllipticCurvePublicKey):
        return False
    return _public_key_der(cert_key) == _public_key_der(private_key.public_key())


@dataclass(frozen=True)
class CredentialBundle:
    """Certificate and private key of one endpoint, as two PEM blocks."""

    certificate_pem: bytes
    private_key_pem: bytes = field(repr=False)

    @classmethod
    def from_issued(cls, issued: IssuedCertificate) -> "CredentialBundle":
        return cls(
            certificate_pem=encode_certificate(issued.certificate),
            private_key_pem=encode_private_key(issued.private_key),
        )

    def load(self) -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
        """Decode both blocks and check they belong together.

        Raises:
            EncodingError: If either block is invalid or the keys do not match.
        """
        certificate = decode_certificate(self.certificate_pem)
        private_key = decode_private_key(self.private_key_pem)
        if not keys_match(certificate, private_key):
            logger.error(
                "credential_key_mismatch",
                extra={"serial": format(certificate.serial_number, "x")},
            )
            raise EncodingError("Certificate public key does not match the private key")
        return certificate, private_key


@dataclass(frozen=True)
class TrustAnchorSet:
    """Root certificates a verifier accepts as chain termini."""

    certificates: tuple[x509.Certificate, ...] = ()

    @classmethod
    def from_pem(cls, pem: bytes) -> "TrustAnchorSet":
        return cls(certificates=decode_trust_anchors(pem))

    @property
    def pem(self) -> bytes:
        return encode_trust_anchors(self.certificates)

    def __len__(self) -> int:
        return len(self.certificates)

    def __iter__(self):
        return iter(self.certificates)
