"""Chain validation of leaf certificates against a trust-anchor set.

Only direct chains are supported: a leaf is valid when a trust anchor
signed it. There are no intermediates in this hierarchy.
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from cryptography import x509
from opentelemetry import trace

from authority.ca.errors import TrustValidationError
from authority.domain.models import utc_now
from authority.metrics import authority_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def can_sign_certificates(certificate: x509.Certificate) -> bool:
    """True if the certificate is a CA allowed to sign other certificates."""
    try:
        constraints = certificate.extensions.get_extension_for_class(x509.BasicConstraints)
        key_usage = certificate.extensions.get_extension_for_class(x509.KeyUsage)
    except x509.ExtensionNotFound:
        return False
    return constraints.value.ca and key_usage.value.key_cert_sign


def _is_ca(certificate: x509.Certificate) -> bool:
    try:
        constraints = certificate.extensions.get_extension_for_class(x509.BasicConstraints)
    except x509.ExtensionNotFound:
        return False
    return constraints.value.ca


def require_signing_capability(certificate: x509.Certificate) -> None:
    """Raise TrustValidationError unless the certificate may sign certificates."""
    if not can_sign_certificates(certificate):
        raise TrustValidationError(
            f"Certificate {certificate.subject.rfc4514_string()} is not allowed to sign certificates"
        )


def _check_validity(certificate: x509.Certificate, at: datetime) -> None:
    if not certificate.not_valid_before_utc <= at < certificate.not_valid_after_utc:
        raise TrustValidationError(
            f"Certificate {certificate.subject.rfc4514_string()} is not valid at {at.isoformat()}"
        )


def _check_purpose(leaf: x509.Certificate, purpose: x509.ObjectIdentifier) -> None:
    try:
        eku = leaf.extensions.get_extension_for_class(x509.ExtendedKeyUsage)
    except x509.ExtensionNotFound as e:
        raise TrustValidationError("Leaf certificate has no extended key usage") from e
    if purpose not in eku.value:
        raise TrustValidationError(
            f"Leaf certificate is not authorized for {purpose.dotted_string}"
        )


def _find_signer(
    leaf: x509.Certificate, trust_anchors: Iterable[x509.Certificate]
) -> x509.Certificate:
    for anchor in trust_anchors:
        if anchor.subject != leaf.issuer:
            continue
        try:
            leaf.verify_directly_issued_by(anchor)
        except Exception as e:
            logger.debug(
                "trust_anchor_signature_mismatch",
                extra={"anchor": anchor.subject.rfc4514_string(), "error": str(e)},
            )
            continue
        return anchor
    raise TrustValidationError(
        f"No trust anchor signed certificate issued by {leaf.issuer.rfc4514_string()}"
    )


def verify_chain(
    leaf: x509.Certificate,
    trust_anchors: Iterable[x509.Certificate],
    purpose: x509.ObjectIdentifier,
    at: datetime | None = None,
) -> x509.Certificate:
    """Verify that a trust anchor issued the leaf for the given purpose.

    Args:
        leaf: The end-entity certificate to verify.
        trust_anchors: Root certificates accepted as chain termini.
        purpose: Extended key usage the leaf must carry.
        at: Timezone-aware verification time (defaults to now).

    Returns:
        The trust anchor that signed the leaf.

    Raises:
        TrustValidationError: If any check fails.
    """
    with tracer.start_as_current_span("verify_chain") as span:
        span.set_attribute("purpose", purpose.dotted_string)
        at = at or utc_now()

        try:
            if at.tzinfo is None:
                raise TrustValidationError("Verification time must be timezone aware")
            anchor = _find_signer(leaf, trust_anchors)
            require_signing_capability(anchor)
            if _is_ca(leaf):
                raise TrustValidationError("Leaf certificate must not be a CA")
            _check_validity(anchor, at)
            _check_validity(leaf, at)
            _check_purpose(leaf, purpose)
        except TrustValidationError as e:
            authority_metrics.record_chain_verification("invalid")
            logger.warning(
                "chain_verification_failed",
                extra={"subject": leaf.subject.rfc4514_string(), "error": str(e)},
            )
            raise

        authority_metrics.record_chain_verification("valid")
        return anchor
