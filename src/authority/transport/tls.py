"""SSL contexts for the mutually authenticated channel.

The handshake itself is the standard library's (OpenSSL). This module only
feeds it a credential bundle and a trust-anchor set, and checks the peer
identity once a server-side connection is up.
"""

import logging
import ssl
import tempfile
from pathlib import Path

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID

from authority.ca.encoding import CredentialBundle, TrustAnchorSet

logger = logging.getLogger(__name__)


class TransportConfigurationError(Exception):
    """Raised when credentials or trust anchors cannot be loaded into a context."""

    pass


class PeerAuthenticationError(Exception):
    """Raised when the connected peer is not an authorized client."""

    pass


def _load_credential(context: ssl.SSLContext, credential: CredentialBundle) -> None:
    """Load a credential bundle into the context.

    SSLContext only reads cert chains from paths, so the two PEM blocks go
    through a private temporary directory that is removed once loaded.
    """
    with tempfile.TemporaryDirectory(prefix="mtls-") as workdir:
        cert_path = Path(workdir) / "cert.pem"
        key_path = Path(workdir) / "key.pem"
        cert_path.write_bytes(credential.certificate_pem)
        key_path.write_bytes(credential.private_key_pem)
        key_path.chmod(0o600)
        try:
            context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
        except ssl.SSLError as e:
            raise TransportConfigurationError(f"Failed to load credential: {e}") from e


def _load_trust_anchors(context: ssl.SSLContext, trust_anchors: TrustAnchorSet) -> None:
    if not len(trust_anchors):
        raise TransportConfigurationError("Trust anchor set is empty")
    try:
        context.load_verify_locations(cadata=trust_anchors.pem.decode("ascii"))
    except ssl.SSLError as e:
        raise TransportConfigurationError(f"Failed to load trust anchors: {e}") from e


def create_server_context(
    credential: CredentialBundle, trust_anchors: TrustAnchorSet
) -> ssl.SSLContext:
    """Listener context: present the server certificate, require a client one.

    Only the given trust anchors are trusted, never the system store.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.verify_mode = ssl.CERT_REQUIRED

    _load_credential(context, credential)
    _load_trust_anchors(context, trust_anchors)

    logger.info("server_ssl_context_configured", extra={"anchors": len(trust_anchors)})
    return context


def create_client_context(
    credential: CredentialBundle, trust_anchors: TrustAnchorSet
) -> ssl.SSLContext:
    """Outbound context: present the client certificate, verify server and hostname."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.verify_mode = ssl.CERT_REQUIRED
    context.check_hostname = True

    _load_credential(context, credential)
    _load_trust_anchors(context, trust_anchors)

    logger.info("client_ssl_context_configured", extra={"anchors": len(trust_anchors)})
    return context


def verified_peer_certificate(tls_socket: ssl.SSLSocket) -> x509.Certificate:
    """Return the verified client certificate of a server-side connection.

    OpenSSL has already checked the chain. This additionally requires the
    certificate to be authorized for client authentication.

    Raises:
        PeerAuthenticationError: If there is no peer certificate or it lacks
            the clientAuth extended key usage.
    """
    der = tls_socket.getpeercert(binary_form=True)
    if not der:
        raise PeerAuthenticationError("Peer presented no certificate")

    certificate = x509.load_der_x509_certificate(der)
    try:
        eku = certificate.extensions.get_extension_for_class(x509.ExtendedKeyUsage)
    except x509.ExtensionNotFound as e:
        raise PeerAuthenticationError("Peer certificate has no extended key usage") from e

    if ExtendedKeyUsageOID.CLIENT_AUTH not in eku.value:
        raise PeerAuthenticationError("Peer certificate is not authorized for client authentication")

    logger.info(
        "peer_authenticated",
        extra={"subject": certificate.subject.rfc4514_string()},
    )
    return certificate
