"""
Core Module.

Clock abstraction, exception taxonomy, configuration and logging
setup shared by every integration package.
"""

# ============================================================
# CLOCK
# ============================================================
from core.clock import (
    ClockProtocol,
    SystemClock,
    MockClock,
    ensure_utc,
    elapsed_ms,
)

# ============================================================
# CONFIGURATION
# ============================================================
from core.config import (
    DatabaseConfig,
    HttpConfig,
    ExecutionConfig,
    MappingConfig,
    WebhookConfig,
    SyncConfig,
    IntegrationConfig,
)

# ============================================================
# EXCEPTIONS
# ============================================================
from core.exceptions import (
    Severity,
    ErrorClassification,
    IntegrationException,
    ConfigurationError,
    InvalidConfigError,
    ConnectorNotFoundError,
    ConnectorTypeMismatchError,
    ConnectorDisabledError,
    NoActiveSchemaError,
    NoMappingsConfiguredError,
    SchemaVersionExistsError,
    UnknownTransformationError,
    SubscriptionNotFoundError,
    InvalidEventTypeError,
    InvalidStateTransitionError,
    DataError,
    MissingRequiredFieldsError,
    ResponseParseError,
    TransientExecutionError,
    ApprovedDataProtectedError,
)

from core.logging_setup import configure_logging


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ensure_utc",
    "elapsed_ms",
    "DatabaseConfig",
    "HttpConfig",
    "ExecutionConfig",
    "MappingConfig",
    "WebhookConfig",
    "SyncConfig",
    "IntegrationConfig",
    "Severity",
    "ErrorClassification",
    "IntegrationException",
    "ConfigurationError",
    "InvalidConfigError",
    "ConnectorNotFoundError",
    "ConnectorTypeMismatchError",
    "ConnectorDisabledError",
    "NoActiveSchemaError",
    "NoMappingsConfiguredError",
    "SchemaVersionExistsError",
    "UnknownTransformationError",
    "SubscriptionNotFoundError",
    "InvalidEventTypeError",
    "InvalidStateTransitionError",
    "DataError",
    "MissingRequiredFieldsError",
    "ResponseParseError",
    "TransientExecutionError",
    "ApprovedDataProtectedError",
    "configure_logging",
]
