"""Key pair generation for every identity in the hierarchy."""

import logging
from dataclasses import dataclass, field

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from opentelemetry import trace

from authority.ca.errors import KeyGenerationError
from authority.metrics import authority_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# NIST P-256, 128-bit security
CURVE = ec.SECP256R1()


@dataclass(frozen=True)
class KeyPair:
    """EC private key and its public component."""

    private_key: ec.EllipticCurvePrivateKey = field(repr=False)
    public_key: ec.EllipticCurvePublicKey

    def public_key_der(self) -> bytes:
        """SubjectPublicKeyInfo DER of the public key."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )


def generate_keypair() -> KeyPair:
    """Generate a fresh P-256 key pair from the OS CSPRNG.

    Raises:
        KeyGenerationError: If the key cannot be generated. Not retried.
    """
    with tracer.start_as_current_span("generate_keypair") as span:
        span.set_attribute("curve", CURVE.name)
        try:
            private_key = ec.generate_private_key(CURVE)
        except Exception as e:
            logger.error("key_generation_failed", extra={"curve": CURVE.name, "error": str(e)})
            raise KeyGenerationError(f"Failed to generate {CURVE.name} key pair: {e}") from e

        authority_metrics.record_key_generated()
        return KeyPair(private_key=private_key, public_key=private_key.public_key())
