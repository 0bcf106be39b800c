import logging
import ssl
import tempfile
import threading
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import uvicorn
from authority.services.bootstrap import TrustBootstrapResult, bootstrap_trust
from authority.transport.tls import create_client_context
from fastapi import FastAPI, Response
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from common.config import settings
from common.logging import setup_logging
from common.metrics import setup_metrics

logger = logging.getLogger(__name__)

# Global trust hierarchy, issued once per process
_trust: TrustBootstrapResult | None = None


def get_trust() -> TrustBootstrapResult:
    """Get the bootstrapped trust hierarchy."""
    if _trust is None:
        raise RuntimeError("Trust hierarchy not bootstrapped")
    return _trust


def setup_tracing() -> None:
    resource = Resource.create({"service.name": settings.APP_NAME})
    provider = TracerProvider(resource=resource)

    processor = BatchSpanProcessor(ConsoleSpanExporter())
    provider.add_span_processor(processor)

    trace.set_tracer_provider(provider)


def setup_observability() -> None:
    setup_logging()
    setup_tracing()
    setup_metrics(settings.APP_NAME)

    LoggingInstrumentor().instrument(set_logging_format=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    global _trust

    # Startup: reuse a hierarchy handed in by run_demo, otherwise issue one
    if _trust is None:
        setup_observability()
        _trust = bootstrap_trust()

    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

FastAPIInstrumentor.instrument_app(app)


@app.get("/")
async def index() -> dict[str, str]:
    return {"message": "You're using HTTPS"}


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok", "service": settings.APP_NAME}


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    """Prometheus exposition of the OTel meters."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/trust-anchors")
async def trust_anchors() -> Response:
    """Root certificates in PEM. Public material, safe to hand to any peer."""
    return Response(
        content=get_trust().trust_anchors.pem,
        media_type="application/x-pem-file",
    )


def run_demo() -> str:
    """Serve the app over mutual TLS and call it once with the client credential.

    Returns:
        The response body received by the client.
    """
    global _trust

    setup_observability()
    _trust = bootstrap_trust()

    server_credential = _trust.server_credential

    # uvicorn loads TLS material from paths only
    with tempfile.TemporaryDirectory(prefix="mtls-demo-") as workdir:
        cert_path = Path(workdir) / "server.pem"
        key_path = Path(workdir) / "server.key"
        ca_path = Path(workdir) / "ca.pem"
        cert_path.write_bytes(server_credential.certificate_pem)
        key_path.write_bytes(server_credential.private_key_pem)
        key_path.chmod(0o600)
        ca_path.write_bytes(_trust.trust_anchors.pem)

        config = uvicorn.Config(
            app,
            host=settings.DEMO_HOST,
            port=settings.DEMO_PORT,
            ssl_certfile=str(cert_path),
            ssl_keyfile=str(key_path),
            ssl_ca_certs=str(ca_path),
            ssl_cert_reqs=ssl.CERT_REQUIRED,
            log_level=settings.LOG_LEVEL.lower(),
        )
        server = uvicorn.Server(config)
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()

        try:
            while not server.started:
                if not thread.is_alive():
                    raise RuntimeError("Demo server failed to start")
                time.sleep(0.05)

            client_context = create_client_context(_trust.client_credential, _trust.trust_anchors)
            with httpx.Client(verify=client_context) as client:
                response = client.get(f"https://{settings.DEMO_HOST}:{settings.DEMO_PORT}/")
                response.raise_for_status()
        finally:
            server.should_exit = True
            thread.join()

    logger.info(
        "demo_response",
        extra={"status_code": response.status_code, "body": response.text},
    )
    return response.text


if __name__ == "__main__":
    run_demo()
