"""Trust bootstrap: issue the hierarchy and hand it to the transport layer."""

import logging
from datetime import timedelta
from typing import NamedTuple

from opentelemetry import trace

from common.config import settings

from authority.ca.certificate_issuer import CertificateIssuer
from authority.ca.encoding import CredentialBundle, TrustAnchorSet
from authority.ca.errors import AuthorityError
from authority.domain.models import ValidityWindow
from authority.metrics import authority_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TrustBootstrapResult(NamedTuple):
    """Everything the transport layer needs, and nothing more.

    The root private key is not part of the result.
    """

    trust_anchors: TrustAnchorSet
    server_credential: CredentialBundle
    client_credential: CredentialBundle


def default_validity() -> ValidityWindow:
    return ValidityWindow.starting_now(timedelta(seconds=settings.CERT_VALIDITY_SECONDS))


def bootstrap_trust(
    validity: ValidityWindow | None = None,
    issuer: CertificateIssuer | None = None,
) -> TrustBootstrapResult:
    """Issue root, server leaf and client leaf, in that order.

    Fails fast: any issuance error aborts the bootstrap and is re-raised,
    so a partially trusted hierarchy is never returned.

    Args:
        validity: Validity window applied to all three certificates.
            Defaults to CERT_VALIDITY_SECONDS starting now.
        issuer: Issuer to use. Defaults to one configured with SERIAL_STRATEGY.

    Returns:
        TrustBootstrapResult(trust_anchors, server_credential, client_credential).
    """
    with tracer.start_as_current_span("bootstrap_trust") as span:
        validity = validity or default_validity()
        issuer = issuer or CertificateIssuer(serial_strategy=settings.SERIAL_STRATEGY)

        try:
            root = issuer.issue_root(settings.ROOT_COMMON_NAME, validity)
            server = issuer.issue_server_leaf(
                root,
                validity,
                common_name=settings.SERVER_COMMON_NAME,
                hostnames=settings.server_hostnames,
            )
            client = issuer.issue_client_leaf(
                root,
                validity,
                common_name=settings.CLIENT_COMMON_NAME,
            )

            result = TrustBootstrapResult(
                trust_anchors=TrustAnchorSet(certificates=(root.certificate,)),
                server_credential=CredentialBundle.from_issued(server),
                client_credential=CredentialBundle.from_issued(client),
            )
        except AuthorityError as e:
            span.set_attribute("failed", True)
            logger.error("trust_bootstrap_failed", extra={"error": str(e)})
            raise

        authority_metrics.record_bootstrap_completed()

        logger.info(
            "trust_bootstrap_completed",
            extra={
                "root": root.subject.rfc4514_string(),
                "server": server.subject.rfc4514_string(),
                "client": client.subject.rfc4514_string(),
                "not_after": validity.not_after.isoformat(),
            },
        )

        return result
