import os
from dataclasses import dataclass
from typing import Optional


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


@dataclass(frozen=True)
class Settings:
    """
    PgBouncer exporter configuration, backed by environment variables.

      - PGBOUNCER_EXPORTER_CONNECTION_STRING: admin console DSN
      - PGBOUNCER_EXPORTER_NAMESPACE: prefix of every exported metric
      - PGBOUNCER_EXPORTER_HOST / PORT: listen address
      - PGBOUNCER_EXPORTER_TELEMETRY_PATH: path serving the metrics
      - PGBOUNCER_EXPORTER_POOL_TIMEOUT: seconds to wait for the pooled connection
      - OTEL_EXPORTER_OTLP_ENDPOINT: tracing is only configured when set
    """

    app_name: str = "pgbouncer-exporter"
    environment: str = os.getenv("PGBOUNCER_EXPORTER_ENV", "dev")
    log_level: str = os.getenv("PGBOUNCER_EXPORTER_LOG_LEVEL", "INFO")

    connection_string: str = os.getenv(
        "PGBOUNCER_EXPORTER_CONNECTION_STRING",
        "postgres://postgres:@localhost:6543/pgbouncer?sslmode=disable",
    )
    namespace: str = os.getenv("PGBOUNCER_EXPORTER_NAMESPACE", "pgbouncer")

    host: str = os.getenv("PGBOUNCER_EXPORTER_HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "9127"))
    telemetry_path: str = os.getenv("PGBOUNCER_EXPORTER_TELEMETRY_PATH", "/metrics")

    pool_timeout: float = _env_float("PGBOUNCER_EXPORTER_POOL_TIMEOUT", "5.0")

    otlp_endpoint: Optional[str] = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or None

    def __post_init__(self) -> None:
        if not self.telemetry_path.startswith("/"):
            object.__setattr__(self, "telemetry_path", "/" + self.telemetry_path)
        if self.telemetry_path == "/":
            raise ValueError("PGBOUNCER_EXPORTER_TELEMETRY_PATH cannot be '/'")


def get_settings() -> Settings:
    return Settings()
