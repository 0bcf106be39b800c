from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .roles import CertificateRole


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ValidityWindow:
    """Half-open validity interval [not_before, not_after)."""

    not_before: datetime
    not_after: datetime

    @classmethod
    def starting_now(cls, duration: timedelta) -> "ValidityWindow":
        now = utc_now()
        return cls(not_before=now, not_after=now + duration)

    @property
    def is_timezone_aware(self) -> bool:
        return self.not_before.tzinfo is not None and self.not_after.tzinfo is not None


@dataclass(frozen=True)
class IssuedCertificate:
    """A signed certificate together with the private key generated for it.

    Immutable once signed. For the root, the private key is the signing key
    handed by reference to each leaf issuance.
    """

    role: CertificateRole
    certificate: x509.Certificate
    private_key: ec.EllipticCurvePrivateKey = field(repr=False)

    @property
    def serial_number(self) -> int:
        return self.certificate.serial_number

    @property
    def subject(self) -> x509.Name:
        return self.certificate.subject

    @property
    def certificate_der(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.DER)

    @property
    def is_self_signed(self) -> bool:
        return self.certificate.subject == self.certificate.issuer
