"""Certificate roles and the template policy each one selects.

The three issuance flows differ only in the policy below, so they are kept
side by side here rather than spread across separate code paths.
"""

from dataclasses import dataclass
from enum import StrEnum

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID


class CertificateRole(StrEnum):
    ROOT = "root"
    SERVER_LEAF = "server-leaf"
    CLIENT_LEAF = "client-leaf"


@dataclass(frozen=True)
class TemplatePolicy:
    """Extensions applied to a certificate template for one role."""

    is_ca: bool
    key_encipherment: bool
    digital_signature: bool
    key_cert_sign: bool
    extended_key_usage: tuple[x509.ObjectIdentifier, ...]
    requires_hostnames: bool
    default_common_name: str
    path_length: int | None = None

    def key_usage(self) -> x509.KeyUsage:
        return x509.KeyUsage(
            digital_signature=self.digital_signature,
            key_encipherment=self.key_encipherment,
            key_cert_sign=self.key_cert_sign,
            crl_sign=False,
            content_commitment=False,
            data_encipherment=False,
            key_agreement=False,
            encipher_only=False,
            decipher_only=False,
        )


POLICIES: dict[CertificateRole, TemplatePolicy] = {
    CertificateRole.ROOT: TemplatePolicy(
        is_ca=True,
        key_encipherment=True,
        digital_signature=True,
        key_cert_sign=True,
        extended_key_usage=(),
        requires_hostnames=False,
        default_common_name="my-ca",
        path_length=0,
    ),
    CertificateRole.SERVER_LEAF: TemplatePolicy(
        is_ca=False,
        key_encipherment=True,
        digital_signature=True,
        key_cert_sign=False,
        extended_key_usage=(ExtendedKeyUsageOID.SERVER_AUTH,),
        requires_hostnames=True,
        default_common_name="my-server",
    ),
    CertificateRole.CLIENT_LEAF: TemplatePolicy(
        is_ca=False,
        key_encipherment=True,
        digital_signature=True,
        key_cert_sign=False,
        extended_key_usage=(ExtendedKeyUsageOID.CLIENT_AUTH,),
        requires_hostnames=False,
        default_common_name="my-client",
    ),
}


def policy_for(role: CertificateRole) -> TemplatePolicy:
    return POLICIES[role]
