"""
Core Module - Configuration.

============================================================
PURPOSE
============================================================
All runtime configuration for the integration engine.

Values come from the environment (optionally a .env file loaded
through python-dotenv). Per-connector and per-subscription retry
policies live on their own rows; the values here are engine-wide.

============================================================
"""

import os
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv

from core.exceptions import InvalidConfigError


logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================
# DATABASE CONFIGURATION
# ============================================================

@dataclass
class DatabaseConfig:
    """Async database connection settings."""

    url: str = "sqlite+aiosqlite:///./integration.db"
    """SQLAlchemy async URL."""

    echo: bool = False
    """Log SQL statements."""

    pool_pre_ping: bool = True
    """Validate connections before use."""


# ============================================================
# HTTP CONFIGURATION
# ============================================================

@dataclass
class HttpConfig:
    """Outbound HTTP client settings."""

    timeout_seconds: float = 30.0
    """Total timeout per request. The only hard timeout in the engine."""

    user_agent: str = "integration-engine/1.0"
    """User-Agent header for outbound calls."""

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise InvalidConfigError("timeout_seconds", self.timeout_seconds, "must be positive")


# ============================================================
# EXECUTION CONFIGURATION
# ============================================================

@dataclass
class ExecutionConfig:
    """Execution Engine settings."""

    default_log_limit: int = 100
    """Default page size for connector log queries."""

    summary_max_chars: int = 2000
    """Request/response summaries are truncated to this length."""


# ============================================================
# MAPPING CONFIGURATION
# ============================================================

@dataclass
class MappingConfig:
    """Canonical mapping settings."""

    fte_standard_hours: Decimal = Decimal("40")
    """Default divisor for the fte transformation."""

    def __post_init__(self) -> None:
        if self.fte_standard_hours <= 0:
            raise InvalidConfigError(
                "fte_standard_hours", self.fte_standard_hours, "must be positive"
            )


# ============================================================
# WEBHOOK CONFIGURATION
# ============================================================

@dataclass
class WebhookConfig:
    """Webhook delivery settings."""

    degradation_threshold: int = 5
    """Consecutive failed deliveries before an Active subscription degrades."""

    worker_count: int = 4
    """Delivery queue worker tasks."""

    sweep_interval_seconds: float = 30.0
    """Period of the retry sweeper."""

    sweep_batch_size: int = 100
    """Max deliveries re-enqueued per sweep."""

    response_body_max_chars: int = 1000
    """Subscriber response bodies are truncated to this length."""

    stale_attempt_seconds: float = 120.0
    """InProgress attempts older than this are reclaimed by the sweep. Keep above the HTTP timeout."""

    def __post_init__(self) -> None:
        if self.degradation_threshold < 1:
            raise InvalidConfigError(
                "degradation_threshold", self.degradation_threshold, "must be >= 1"
            )
        if self.worker_count < 1:
            raise InvalidConfigError("worker_count", self.worker_count, "must be >= 1")
        if self.sweep_interval_seconds <= 0:
            raise InvalidConfigError(
                "sweep_interval_seconds", self.sweep_interval_seconds, "must be positive"
            )
        if self.stale_attempt_seconds <= 0:
            raise InvalidConfigError(
                "stale_attempt_seconds", self.stale_attempt_seconds, "must be positive"
            )


# ============================================================
# SYNC CONFIGURATION
# ============================================================

@dataclass
class SyncConfig:
    """Domain sync settings."""

    hr_resource: str = "employees"
    finance_resource: str = "financial-data"
    health_resource: str = "health"


# ============================================================
# ROOT CONFIGURATION
# ============================================================

@dataclass
class IntegrationConfig:
    """Root configuration object passed to services."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    mapping: MappingConfig = field(default_factory=MappingConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "IntegrationConfig":
        """
        Build configuration from environment variables.

        Args:
            dotenv_path: Optional .env file; defaults to python-dotenv lookup

        Raises:
            InvalidConfigError: If a variable cannot be parsed
        """
        load_dotenv(dotenv_path)

        config = cls(
            database=DatabaseConfig(
                url=os.getenv("INTEGRATION_DATABASE_URL", DatabaseConfig.url),
                echo=_env("INTEGRATION_DATABASE_ECHO", _parse_bool, False),
            ),
            http=HttpConfig(
                timeout_seconds=_env("INTEGRATION_HTTP_TIMEOUT_SECONDS", float, 30.0),
            ),
            mapping=MappingConfig(
                fte_standard_hours=_env("FTE_STANDARD_HOURS", _parse_decimal, Decimal("40")),
            ),
            webhook=WebhookConfig(
                degradation_threshold=_env("WEBHOOK_DEGRADATION_THRESHOLD", int, 5),
                worker_count=_env("WEBHOOK_WORKER_COUNT", int, 4),
                sweep_interval_seconds=_env("WEBHOOK_SWEEP_INTERVAL_SECONDS", float, 30.0),
                sweep_batch_size=_env("WEBHOOK_SWEEP_BATCH_SIZE", int, 100),
                stale_attempt_seconds=_env("WEBHOOK_STALE_ATTEMPT_SECONDS", float, 120.0),
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

        logger.debug(f"Loaded integration config (db={config.database.url.split('@')[-1]})")
        return config


# ============================================================
# ENV PARSING HELPERS
# ============================================================

def _env(name: str, parse: Callable[[str], T], default: T) -> T:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse(raw.strip())
    except (ValueError, InvalidOperation) as e:
        raise InvalidConfigError(name, raw, f"cannot parse ({e})") from e


def _parse_bool(raw: str) -> bool:
    value = raw.lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {raw}")


def _parse_decimal(raw: str) -> Decimal:
    return Decimal(raw)
