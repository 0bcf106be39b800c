import logging
import socket
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

import main
from common.config import Settings
from common.logging import setup_logging
from common.metrics import setup_metrics
from main import app


@pytest.fixture
def fresh_trust(monkeypatch):
    """Start every app test without a bootstrapped hierarchy."""
    monkeypatch.setattr(main, "_trust", None)


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_setup_logging():
    """Test that setup_logging configures OTel provider."""
    with patch("common.logging.set_logger_provider") as mock_set_provider, \
         patch("common.logging.LoggerProvider") as mock_provider_cls, \
         patch("common.logging.BatchLogRecordProcessor"), \
         patch("common.logging.ConsoleLogRecordExporter"), \
         patch("common.logging.LoggingHandler"), \
         patch("common.logging.logging.getLogger"):

        setup_logging()

        mock_provider_cls.assert_called_once()
        mock_set_provider.assert_called_once()


def test_setup_metrics():
    """Test that setup_metrics configures OTel meter provider."""
    with patch("common.metrics.MeterProvider") as mock_provider_cls, \
         patch("common.metrics.metrics.set_meter_provider") as mock_set_provider, \
         patch("common.metrics.PrometheusMetricReader") as mock_prometheus_cls, \
         patch("common.metrics.PeriodicExportingMetricReader") as mock_periodic_cls, \
         patch("common.metrics.settings") as mock_settings:
        mock_settings.APP_ENV = "test"
        mock_settings.METRICS_CONSOLE_EXPORT = False

        setup_metrics("test-app")

        mock_prometheus_cls.assert_called_once()
        mock_periodic_cls.assert_not_called()
        readers = mock_provider_cls.call_args.kwargs["metric_readers"]
        assert readers == [mock_prometheus_cls.return_value]
        mock_set_provider.assert_called_once_with(mock_provider_cls.return_value)


def test_setup_metrics_console_export():
    """Test that console export adds a periodic reader at the configured interval."""
    with patch("common.metrics.MeterProvider") as mock_provider_cls, \
         patch("common.metrics.metrics.set_meter_provider"), \
         patch("common.metrics.PrometheusMetricReader"), \
         patch("common.metrics.PeriodicExportingMetricReader") as mock_periodic_cls, \
         patch("common.metrics.ConsoleMetricExporter"), \
         patch("common.metrics.settings") as mock_settings:
        mock_settings.APP_ENV = "test"
        mock_settings.METRICS_CONSOLE_EXPORT = True
        mock_settings.METRICS_EXPORT_INTERVAL_MS = 5000

        setup_metrics("test-app")

        assert mock_periodic_cls.call_args.kwargs["export_interval_millis"] == 5000
        readers = mock_provider_cls.call_args.kwargs["metric_readers"]
        assert mock_periodic_cls.return_value in readers


def test_settings_defaults():
    settings = Settings(_env_file=None)

    assert settings.CERT_VALIDITY_SECONDS == 3600
    assert settings.SERIAL_STRATEGY == "sequential"
    assert settings.server_hostnames == ("localhost",)


def test_settings_split_hostnames():
    settings = Settings(_env_file=None, SERVER_HOSTNAMES="localhost, api.internal ,")
    assert settings.server_hostnames == ("localhost", "api.internal")


def test_get_trust_before_bootstrap_raises(fresh_trust):
    with pytest.raises(RuntimeError, match="not bootstrapped"):
        main.get_trust()


def test_app_startup_bootstraps_trust(fresh_trust):
    """Test that lifespan startup issues the hierarchy and serves the routes."""
    with patch("main.setup_observability") as mock_setup:
        with TestClient(app) as local_client:
            health = local_client.get("/health")
            index = local_client.get("/")
            anchors = local_client.get("/trust-anchors")

    mock_setup.assert_called_once()
    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert "service" in health.json()
    assert index.json() == {"message": "You're using HTTPS"}
    assert anchors.status_code == 200
    assert anchors.content == main.get_trust().trust_anchors.pem
    assert b"PRIVATE KEY" not in anchors.content


def test_run_demo_over_mutual_tls(fresh_trust, monkeypatch, caplog):
    """Test the demo: uvicorn over mutual TLS, called by an httpx client."""
    monkeypatch.setattr(main.settings, "DEMO_PORT", _free_port())

    with patch("main.setup_observability"), caplog.at_level(logging.INFO, logger="main"):
        body = main.run_demo()

    assert "You're using HTTPS" in body
    [record] = [r for r in caplog.records if r.getMessage() == "demo_response"]
    assert record.status_code == 200
    assert record.body == body


def test_settings_reject_unknown_serial_strategy():
    with pytest.raises(ValidationError, match="SERIAL_STRATEGY"):
        Settings(_env_file=None, SERIAL_STRATEGY="uuid")


def test_metrics_endpoint_serves_prometheus_exposition(fresh_trust):
    with patch("main.setup_observability"):
        with TestClient(app) as local_client:
            response = local_client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
