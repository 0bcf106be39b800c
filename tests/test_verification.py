"""Tests for chain verification against the trust-anchor set."""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import ExtendedKeyUsageOID

from authority.ca.certificate_issuer import CertificateIssuer
from authority.ca.encoding import TrustAnchorSet
from authority.ca.errors import TrustValidationError
from authority.ca.verification import (
    can_sign_certificates,
    require_signing_capability,
    verify_chain,
)

SERVER_AUTH = ExtendedKeyUsageOID.SERVER_AUTH
CLIENT_AUTH = ExtendedKeyUsageOID.CLIENT_AUTH


def _tamper_signature(certificate: x509.Certificate) -> x509.Certificate:
    """Flip the last byte of the DER encoding, which lies in the signature."""
    der = bytearray(certificate.public_bytes(serialization.Encoding.DER))
    der[-1] ^= 0x01
    return x509.load_der_x509_certificate(bytes(der))


class TestSigningCapability:
    """Tests for the CA-sign capability check."""

    def test_root_can_sign(self, root):
        assert can_sign_certificates(root.certificate)
        require_signing_capability(root.certificate)

    def test_leaves_cannot_sign(self, server_leaf, client_leaf):
        for leaf in (server_leaf, client_leaf):
            assert not can_sign_certificates(leaf.certificate)
            with pytest.raises(TrustValidationError, match="not allowed to sign"):
                require_signing_capability(leaf.certificate)


class TestVerifyChain:
    """Tests for verify_chain."""

    def test_server_leaf_verifies_against_root(self, server_leaf, trust_anchors, root):
        anchor = verify_chain(server_leaf.certificate, trust_anchors, SERVER_AUTH)
        assert anchor == root.certificate

    def test_client_leaf_verifies_against_root(self, client_leaf, trust_anchors, root):
        anchor = verify_chain(client_leaf.certificate, trust_anchors, CLIENT_AUTH)
        assert anchor == root.certificate

    def test_empty_trust_anchor_set_fails(self, server_leaf, client_leaf):
        for leaf, purpose in ((server_leaf, SERVER_AUTH), (client_leaf, CLIENT_AUTH)):
            with pytest.raises(TrustValidationError, match="No trust anchor"):
                verify_chain(leaf.certificate, TrustAnchorSet(), purpose)

    def test_role_swapped_purpose_fails(self, server_leaf, client_leaf, trust_anchors):
        """Test that a server leaf cannot pass as a client and vice versa."""
        with pytest.raises(TrustValidationError, match="not authorized"):
            verify_chain(server_leaf.certificate, trust_anchors, CLIENT_AUTH)
        with pytest.raises(TrustValidationError, match="not authorized"):
            verify_chain(client_leaf.certificate, trust_anchors, SERVER_AUTH)

    def test_tampered_signature_fails(self, server_leaf, trust_anchors):
        tampered = _tamper_signature(server_leaf.certificate)

        with pytest.raises(TrustValidationError):
            verify_chain(tampered, trust_anchors, SERVER_AUTH)

    def test_foreign_root_fails(self, server_leaf, validity):
        """Test that a root with the same name but a different key is not accepted."""
        impostor = CertificateIssuer().issue_root("my-ca", validity)
        anchors = TrustAnchorSet(certificates=(impostor.certificate,))

        with pytest.raises(TrustValidationError, match="No trust anchor"):
            verify_chain(server_leaf.certificate, anchors, SERVER_AUTH)

    def test_root_as_leaf_fails(self, root, trust_anchors):
        with pytest.raises(TrustValidationError, match="must not be a CA"):
            verify_chain(root.certificate, trust_anchors, SERVER_AUTH)

    def test_expired_leaf_fails(self, server_leaf, trust_anchors, validity):
        later = validity.not_after + timedelta(seconds=1)

        with pytest.raises(TrustValidationError, match="not valid at"):
            verify_chain(server_leaf.certificate, trust_anchors, SERVER_AUTH, at=later)

    def test_not_yet_valid_leaf_fails(self, server_leaf, trust_anchors, validity):
        earlier = validity.not_before - timedelta(minutes=5)

        with pytest.raises(TrustValidationError, match="not valid at"):
            verify_chain(server_leaf.certificate, trust_anchors, SERVER_AUTH, at=earlier)

    def test_records_verification_metrics(self, server_leaf, trust_anchors):
        with patch("authority.ca.verification.authority_metrics") as mock_metrics:
            verify_chain(server_leaf.certificate, trust_anchors, SERVER_AUTH)
            with pytest.raises(TrustValidationError):
                verify_chain(server_leaf.certificate, TrustAnchorSet(), SERVER_AUTH)

        mock_metrics.record_chain_verification.assert_any_call("valid")
        mock_metrics.record_chain_verification.assert_any_call("invalid")

    def test_naive_verification_time_is_rejected(self, server_leaf, trust_anchors):
        with patch("authority.ca.verification.authority_metrics") as mock_metrics:
            with pytest.raises(TrustValidationError, match="timezone aware"):
                verify_chain(
                    server_leaf.certificate, trust_anchors, SERVER_AUTH, at=datetime(2030, 1, 1)
                )

        mock_metrics.record_chain_verification.assert_called_once_with("invalid")
