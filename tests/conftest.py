from datetime import timedelta

import pytest

from authority.ca.certificate_issuer import CertificateIssuer
from authority.ca.encoding import TrustAnchorSet
from authority.domain.models import ValidityWindow


@pytest.fixture
def validity() -> ValidityWindow:
    return ValidityWindow.starting_now(timedelta(hours=1))


@pytest.fixture
def issuer() -> CertificateIssuer:
    return CertificateIssuer()


@pytest.fixture
def root(issuer, validity):
    return issuer.issue_root("my-ca", validity)


@pytest.fixture
def server_leaf(issuer, root, validity):
    return issuer.issue_server_leaf(root, validity)


@pytest.fixture
def client_leaf(issuer, root, server_leaf, validity):
    # Depends on server_leaf so sequential serials come out as 1, 2, 3
    return issuer.issue_client_leaf(root, validity)


@pytest.fixture
def trust_anchors(root) -> TrustAnchorSet:
    return TrustAnchorSet(certificates=(root.certificate,))
