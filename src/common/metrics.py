from opentelemetry import metrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource

from common.config import settings


def setup_metrics(app_name: str) -> None:
    """Configure OpenTelemetry metrics.

    The Prometheus reader feeds the default prometheus_client registry that
    main.py serves at /metrics. Console export is opt-in through
    METRICS_CONSOLE_EXPORT.
    """
    resource = Resource.create(
        {"service.name": app_name, "deployment.environment": settings.APP_ENV}
    )

    readers: list[MetricReader] = [PrometheusMetricReader()]
    if settings.METRICS_CONSOLE_EXPORT:
        readers.append(
            PeriodicExportingMetricReader(
                ConsoleMetricExporter(),
                export_interval_millis=settings.METRICS_EXPORT_INTERVAL_MS,
            )
        )

    provider = MeterProvider(resource=resource, metric_readers=readers)

    metrics.set_meter_provider(provider)
