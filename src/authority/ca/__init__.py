"""Certificate Authority module for the mTLS trust hierarchy.

This module provides:
- EC P-256 key pair generation
- X.509 issuance of the root, server-leaf and client-leaf certificates
- PEM encoding of certificates, keys, credential bundles and trust anchors
- Chain verification against a trust-anchor set
"""

from authority.ca.certificate_issuer import CertificateIssuer
from authority.ca.encoding import CredentialBundle, TrustAnchorSet
from authority.ca.keys import KeyPair, generate_keypair
from authority.ca.verification import verify_chain

__all__ = [
    "CertificateIssuer",
    "CredentialBundle",
    "KeyPair",
    "TrustAnchorSet",
    "generate_keypair",
    "verify_chain",
]
