"""
PgBouncer exporter service.

- FastAPI app serving the Prometheus text format on the telemetry path
- One scrape of the PgBouncer admin console per metrics request
- Health endpoint reporting the state of the last scrape
- Optional OpenTelemetry tracing
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import HTMLResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from pydantic import BaseModel

from .collector.exporter import PgBouncerCollector
from .collector.mapping import build_metric_map
from .collector.metric_map import METRIC_KV_MAPS, METRIC_ROW_MAPS
from .collector.query import QueryExecutor
from .config import Settings, get_settings
from .instrumentation import configure_logging, configure_otel
from .services.pgbouncer_client import PgBouncerClient

logger = logging.getLogger("pgbouncer_exporter")

LANDING_PAGE = """<html>
<head><title>PgBouncer Exporter</title></head>
<body>
<h1>PgBouncer Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    app: str
    namespace: str
    up: bool
    scrapes_total: int
    last_scrape_error: float


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_collector(settings: Settings, executor: Optional[QueryExecutor] = None) -> PgBouncerCollector:
    """
    Build the collector for ``settings``.

    An invalid connection string is a start-up failure and propagates.
    """
    if executor is None:
        executor = PgBouncerClient(settings.connection_string, pool_timeout=settings.pool_timeout)
    mappings = build_metric_map(settings.namespace, METRIC_ROW_MAPS, METRIC_KV_MAPS)
    return PgBouncerCollector(executor, mappings, namespace=settings.namespace)


def create_app(settings: Optional[Settings] = None, executor: Optional[QueryExecutor] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    collector = build_collector(settings, executor)
    registry = CollectorRegistry()
    # Registration describes the collector, which runs a first scrape
    registry.register(collector)

    app = FastAPI(
        title="PgBouncer Exporter",
        description="Exports PgBouncer admin console statistics as Prometheus metrics.",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.collector = collector
    app.state.registry = registry

    configure_otel(app, settings)

    def metrics(request: Request) -> Response:
        data = generate_latest(request.app.state.registry)
        return Response(data, media_type=CONTENT_TYPE_LATEST)

    app.add_api_route(settings.telemetry_path, metrics, methods=["GET"], tags=["metrics"])

    @app.get("/healthz", response_model=HealthResponse, tags=["internal"])
    def healthz(request: Request) -> HealthResponse:
        health = request.app.state.collector.health
        return HealthResponse(
            status="ok" if health.up else "degraded",
            app=settings.app_name,
            namespace=settings.namespace,
            up=health.up,
            scrapes_total=health.scrapes_total,
            last_scrape_error=health.last_error,
        )

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    def index() -> str:
        return LANDING_PAGE.format(path=settings.telemetry_path)

    logger.info(
        "Starting %s, namespace=%s, telemetry path=%s",
        settings.app_name,
        settings.namespace,
        settings.telemetry_path,
    )
    return app


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "apps.pgbouncer_exporter.app:create_app",
        host=_settings.host,
        port=_settings.port,
        reload=False,  # Disable reload to avoid double collector registration
        factory=True,
    )
