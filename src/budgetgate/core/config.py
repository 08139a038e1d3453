"""
Application configuration management.
Loads settings from environment variables (via .env if present).
"""

import os

from dotenv import load_dotenv

# Load .env once at import time (real OS env still wins if set)
load_dotenv(override=False)


class Settings:
    VERSION: str = "0.3.0"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_KEY: str = os.getenv("API_KEY", "dev-key-12345")
    AUTH_ENABLED: bool = os.getenv("AUTH_ENABLED", "false").lower() == "true"
    RATE_LIMIT: str = os.getenv("RATE_LIMIT", "100/minute")
    CORS_ALLOW_ORIGINS: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    # Metrics configuration
    METRICS_ENABLED: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    METRICS_NAMESPACE: str = os.getenv("METRICS_NAMESPACE", "budgetgate")
    METRICS_BUCKETS: str = os.getenv("METRICS_BUCKETS", "0.005,0.01,0.025,0.05,0.1,0.25,0.5,1,2,5")

    # Tracing
    TRACING_ENABLED: bool = os.getenv("TRACING_ENABLED", "false").lower() == "true"
    OTEL_EXPORTER_OTLP_ENDPOINT: str = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")

    # SLO definitions and SLI backend
    SLO_DEFINITIONS_PATH: str = os.getenv("SLO_DEFINITIONS_PATH", "")
    SLI_BACKEND: str = os.getenv("SLI_BACKEND", "memory")
    SLI_EVENTS_PATH: str = os.getenv("SLI_EVENTS_PATH", "")
    PROMETHEUS_URL: str = os.getenv("PROMETHEUS_URL", "http://prometheus:9090")

    # Evaluation timing
    SLI_QUERY_TIMEOUT_S: float = float(os.getenv("SLI_QUERY_TIMEOUT_S", "5"))
    EVALUATION_DEADLINE_S: float = float(os.getenv("EVALUATION_DEADLINE_S", "20"))
    EVALUATION_INTERVAL_S: float = float(os.getenv("EVALUATION_INTERVAL_S", "60"))
    SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "false").lower() == "true"

    # Classification
    ATTENTION_REMAINING_RATIO: float = float(os.getenv("ATTENTION_REMAINING_RATIO", "0.5"))

    # Alert delivery
    ALERT_WEBHOOK_URL: str = os.getenv("ALERT_WEBHOOK_URL", "")
    ALERT_WEBHOOK_TIMEOUT_S: float = float(os.getenv("ALERT_WEBHOOK_TIMEOUT_S", "5"))

    # ---- Convenience helpers ----
    @property
    def prometheus_enabled(self) -> bool:
        """True when SLIs are read from a Prometheus server."""
        return self.SLI_BACKEND.lower() == "prometheus"

    @property
    def cors_origins(self) -> list:
        return [o.strip() for o in self.CORS_ALLOW_ORIGINS.split(",") if o.strip()]


settings = Settings()
