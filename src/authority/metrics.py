"""OpenTelemetry metrics for the authority module."""

from collections.abc import Iterator

from opentelemetry import metrics

# Get meter for authority module
meter = metrics.get_meter("authority")

# Key generation counter
keys_generated_total = meter.create_counter(
    name="authority_keys_generated_total",
    description="Total key pairs generated",
    unit="1",
)

# Certificate issuance counters
certificates_issued_total = meter.create_counter(
    name="authority_certificates_issued_total",
    description="Total certificates issued by role",
    unit="1",
)

certificate_issuance_failures_total = meter.create_counter(
    name="authority_certificate_issuance_failures_total",
    description="Total failed certificate issuances by role",
    unit="1",
)

certificate_issuance_duration = meter.create_histogram(
    name="authority_certificate_issuance_duration_seconds",
    description="Certificate issuance duration in seconds",
    unit="s",
)

# Chain verification counter
chain_verifications_total = meter.create_counter(
    name="authority_chain_verifications_total",
    description="Total chain verifications",
    unit="1",
)

# Bootstrap gauge - use a callback to report current state
_bootstrap_completed = False


def _get_bootstrap_completed(
    options: metrics.CallbackOptions,
) -> Iterator[metrics.Observation]:
    """Callback to report bootstrap status."""
    yield metrics.Observation(1 if _bootstrap_completed else 0, {})


bootstrap_completed_gauge = meter.create_observable_gauge(
    name="authority_trust_bootstrap_completed",
    description="Trust bootstrap ran successfully (1=yes, 0=no)",
    unit="1",
    callbacks=[_get_bootstrap_completed],
)


class AuthorityMetrics:
    """Facade for authority metrics with proper labels."""

    def record_key_generated(self) -> None:
        keys_generated_total.add(1)

    def record_certificate_issued(self, role: str, duration_seconds: float) -> None:
        """Record certificate issuance. Labels: role=root|server-leaf|client-leaf"""
        certificates_issued_total.add(1, {"role": role})
        certificate_issuance_duration.record(duration_seconds, {"role": role})

    def record_issuance_failed(self, role: str) -> None:
        certificate_issuance_failures_total.add(1, {"role": role})

    def record_chain_verification(self, result: str) -> None:
        """Record chain verification. Labels: result=valid|invalid"""
        chain_verifications_total.add(1, {"result": result})

    def record_bootstrap_completed(self) -> None:
        """Mark bootstrap as completed."""
        global _bootstrap_completed
        _bootstrap_completed = True


# Singleton instance
authority_metrics = AuthorityMetrics()
