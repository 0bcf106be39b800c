"""X.509 issuance for the root authority and its two leaf identities.

Generates a fresh key pair per certificate and signs:
- the root with its own key (self-signed, CA)
- the server and client leaves with the root key (not CA, role-exclusive EKU)
"""

import logging
import time

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from opentelemetry import trace

from authority.ca.encoding import compute_thumbprint, keys_match
from authority.ca.errors import ChainParseError, KeyGenerationError, SigningError
from authority.ca.keys import CURVE, KeyPair, generate_keypair
from authority.domain.models import IssuedCertificate, ValidityWindow
from authority.domain.roles import CertificateRole, policy_for
from authority.metrics import authority_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CertificateIssuer:
    """Issues the root, server-leaf and client-leaf certificates.

    Serial numbers are allocated per issuer. With the "sequential" strategy
    they count up from 1 in issuance order, so a bootstrap yields
    root=1, server=2, client=3. With "random" they come from
    x509.random_serial_number().
    """

    SERIAL_STRATEGIES = ("sequential", "random")

    def __init__(self, serial_strategy: str = "sequential") -> None:
        if serial_strategy not in self.SERIAL_STRATEGIES:
            raise ValueError(
                f"Unknown serial strategy {serial_strategy!r}, "
                f"expected one of {self.SERIAL_STRATEGIES}"
            )
        self._serial_strategy = serial_strategy
        self._next_serial = 1

    def issue_root(
        self,
        identity_name: str | None,
        validity: ValidityWindow,
    ) -> IssuedCertificate:
        """Issue a self-signed root CA certificate.

        Args:
            identity_name: Common name of the root. Defaults to the role's name.
            validity: Validity window of the root certificate.

        Raises:
            KeyGenerationError: If the key pair cannot be generated.
            SigningError: If the template is invalid or signing fails.
        """
        return self._issue(
            role=CertificateRole.ROOT,
            common_name=identity_name,
            validity=validity,
            authority=None,
        )

    def issue_server_leaf(
        self,
        authority: IssuedCertificate,
        validity: ValidityWindow,
        common_name: str | None = None,
        hostnames: tuple[str, ...] = ("localhost",),
    ) -> IssuedCertificate:
        """Issue a server certificate signed by the root.

        Args:
            authority: The root certificate and its private key.
            validity: Validity window of the leaf.
            common_name: Subject CN. Defaults to the role's name.
            hostnames: DNS names bound in the subject alternative name.

        Raises:
            ChainParseError: If the authority cannot act as a signer.
            KeyGenerationError: If the key pair cannot be generated.
            SigningError: If the template is invalid or signing fails.
        """
        return self._issue(
            role=CertificateRole.SERVER_LEAF,
            common_name=common_name,
            validity=validity,
            authority=authority,
            hostnames=hostnames,
        )

    def issue_client_leaf(
        self,
        authority: IssuedCertificate,
        validity: ValidityWindow,
        common_name: str | None = None,
    ) -> IssuedCertificate:
        """Issue a client certificate signed by the root. No hostname binding."""
        return self._issue(
            role=CertificateRole.CLIENT_LEAF,
            common_name=common_name,
            validity=validity,
            authority=authority,
        )

    def _issue(
        self,
        role: CertificateRole,
        common_name: str | None,
        validity: ValidityWindow,
        authority: IssuedCertificate | None,
        hostnames: tuple[str, ...] = (),
    ) -> IssuedCertificate:
        with tracer.start_as_current_span("CertificateIssuer.issue") as span:
            span.set_attribute("role", role.value)
            start_time = time.time()

            policy = policy_for(role)
            common_name = common_name if common_name is not None else policy.default_common_name

            try:
                subject = self._build_name(common_name)
                self._check_validity(validity)
                if policy.requires_hostnames and not hostnames:
                    raise SigningError(f"A {role.value} certificate needs at least one hostname")
                if any(not isinstance(h, str) or not h.strip() for h in hostnames):
                    raise SigningError(f"Hostnames must be non-empty strings: {hostnames!r}")

                # Leaves are signed by the authority; the root signs itself
                if authority is not None:
                    signer_certificate = self._load_signer(authority)
                    signing_key = self._signing_key(authority)
                    issuer_name = signer_certificate.subject
                    issuer_public_key = signer_certificate.public_key()

                key_pair = generate_keypair()
                if authority is None:
                    signing_key = key_pair.private_key
                    issuer_name = subject
                    issuer_public_key = None

                serial_number = self._allocate_serial()
                serial_str = format(serial_number, "x")
                span.set_attribute("serial", serial_str)

                builder = self._build_template(
                    role=role,
                    subject=subject,
                    issuer_name=issuer_name,
                    key_pair=key_pair,
                    serial_number=serial_number,
                    validity=validity,
                    hostnames=hostnames,
                    issuer_public_key=issuer_public_key,
                )

                try:
                    certificate = builder.sign(signing_key, hashes.SHA256())
                except Exception as e:
                    raise SigningError(f"Failed to sign {role.value} certificate: {e}") from e

            except (ChainParseError, KeyGenerationError, SigningError) as e:
                authority_metrics.record_issuance_failed(role.value)
                logger.error(
                    "certificate_issuance_failed",
                    extra={"role": role.value, "common_name": common_name, "error": str(e)},
                )
                raise

            issuance_time = time.time() - start_time
            authority_metrics.record_certificate_issued(role.value, issuance_time)

            logger.info(
                "certificate_issued",
                extra={
                    "role": role.value,
                    "common_name": common_name,
                    "serial": serial_str,
                    "thumbprint": compute_thumbprint(certificate),
                    "not_after": validity.not_after.isoformat(),
                    "duration_seconds": issuance_time,
                },
            )

            return IssuedCertificate(
                role=role,
                certificate=certificate,
                private_key=key_pair.private_key,
            )

    def _build_template(
        self,
        role: CertificateRole,
        subject: x509.Name,
        issuer_name: x509.Name,
        key_pair: KeyPair,
        serial_number: int,
        validity: ValidityWindow,
        hostnames: tuple[str, ...],
        issuer_public_key,
    ) -> x509.CertificateBuilder:
        policy = policy_for(role)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer_name)
            .public_key(key_pair.public_key)
            .serial_number(serial_number)
            .not_valid_before(validity.not_before)
            .not_valid_after(validity.not_after)
            .add_extension(
                x509.BasicConstraints(ca=policy.is_ca, path_length=policy.path_length),
                critical=True,
            )
            .add_extension(policy.key_usage(), critical=True)
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(key_pair.public_key),
                critical=False,
            )
        )

        if policy.extended_key_usage:
            builder = builder.add_extension(
                x509.ExtendedKeyUsage(list(policy.extended_key_usage)),
                critical=False,
            )

        if hostnames:
            try:
                san = x509.SubjectAlternativeName([x509.DNSName(name) for name in hostnames])
            except (TypeError, ValueError) as e:
                raise SigningError(f"Invalid hostname in {hostnames!r}: {e}") from e
            builder = builder.add_extension(san, critical=False)

        if issuer_public_key is not None:
            builder = builder.add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_public_key),
                critical=False,
            )

        return builder

    def _allocate_serial(self) -> int:
        if self._serial_strategy == "random":
            return x509.random_serial_number()
        serial_number = self._next_serial
        self._next_serial += 1
        return serial_number

    @staticmethod
    def _build_name(common_name: str) -> x509.Name:
        if not isinstance(common_name, str) or not common_name.strip():
            raise SigningError("Identity name must be a non-empty string")
        try:
            return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        except ValueError as e:
            raise SigningError(f"Invalid identity name {common_name!r}: {e}") from e

    @staticmethod
    def _check_validity(validity: ValidityWindow) -> None:
        if not isinstance(validity, ValidityWindow):
            raise SigningError(f"Expected a ValidityWindow, got {type(validity).__name__}")
        if not validity.is_timezone_aware:
            raise SigningError("Validity window must be timezone aware")
        if validity.not_after <= validity.not_before:
            raise SigningError("Validity window must end after it starts")

    @staticmethod
    def _load_signer(authority: IssuedCertificate) -> x509.Certificate:
        """Re-read the authority certificate and check it may sign leaves.

        Raises:
            ChainParseError: If the authority is corrupted or not a CA.
        """
        try:
            certificate = x509.load_der_x509_certificate(authority.certificate_der)
            constraints = certificate.extensions.get_extension_for_class(x509.BasicConstraints)
            key_usage = certificate.extensions.get_extension_for_class(x509.KeyUsage)
        except x509.ExtensionNotFound as e:
            raise ChainParseError(f"Authority certificate lacks a CA extension: {e}") from e
        except Exception as e:
            raise ChainParseError(f"Authority certificate cannot be parsed: {e}") from e

        if not constraints.value.ca:
            raise ChainParseError("Authority certificate is not a CA")
        if not key_usage.value.key_cert_sign:
            raise ChainParseError("Authority certificate may not sign certificates")
        if certificate.subject != certificate.issuer:
            raise ChainParseError("Authority certificate is not a self-signed root")

        return certificate

    @staticmethod
    def _signing_key(authority: IssuedCertificate) -> ec.EllipticCurvePrivateKey:
        """Validate the authority private key without copying it."""
        private_key = authority.private_key
        if not isinstance(private_key, ec.EllipticCurvePrivateKey):
            raise ChainParseError(
                f"Authority private key is unusable: {type(private_key).__name__}"
            )
        if private_key.curve.name != CURVE.name:
            raise SigningError(f"Unsupported authority curve {private_key.curve.name}")
        if not keys_match(authority.certificate, private_key):
            raise ChainParseError("Authority private key does not match its certificate")
        return private_key
