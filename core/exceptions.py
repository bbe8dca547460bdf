"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the integration engine.

- Provides clear exception hierarchy
- Separates configuration, transient, data and policy failures
- Includes context for debugging and audit rows

============================================================
EXCEPTION HIERARCHY
============================================================
IntegrationException (base)
├── ConfigurationError
│   ├── InvalidConfigError
│   ├── ConnectorNotFoundError
│   ├── ConnectorTypeMismatchError
│   ├── ConnectorDisabledError
│   ├── NoActiveSchemaError
│   ├── NoMappingsConfiguredError
│   ├── SchemaVersionExistsError
│   ├── UnknownTransformationError
│   ├── SubscriptionNotFoundError
│   ├── InvalidEventTypeError
│   └── InvalidStateTransitionError
├── DataError
│   ├── MissingRequiredFieldsError
│   └── ResponseParseError
├── TransientExecutionError
└── ApprovedDataProtectedError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, may impact operations."""

    CRITICAL = "critical"
    """Critical issue, requires immediate action."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error can be recovered from automatically."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class IntegrationException(Exception):
    """
    Base exception for all integration engine errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - classification: for retry decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_retryable(self) -> bool:
        """Check if a retry may succeed."""
        return self.classification == ErrorClassification.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(IntegrationException):
    """
    Connector, mapping, schema or subscription misconfiguration.

    Raised before any network or state-mutating call. Never retried.
    """

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            context={"config_key": key, "actual_value": str(value)[:100], "reason": reason},
        )
        self.key = key


class ConnectorNotFoundError(ConfigurationError):
    """Connector id does not exist in the registry."""

    def __init__(self, connector_id: int):
        super().__init__(
            message=f"Connector with ID {connector_id} not found",
            context={"connector_id": connector_id},
        )
        self.connector_id = connector_id


class ConnectorTypeMismatchError(ConfigurationError):
    """Connector exists but belongs to another domain."""

    def __init__(self, connector_id: int, expected: str, actual: str):
        article = "an" if expected[:1].upper() in "AEIOUH" else "a"
        super().__init__(
            message=f"Connector is not {article} {expected} connector (type: {actual})",
            context={"connector_id": connector_id, "expected": expected, "actual": actual},
        )


class ConnectorDisabledError(ConfigurationError):
    """Connector is not enabled."""

    def __init__(self, connector_id: int, status: str):
        super().__init__(
            message=f"Connector is not enabled (status: {status})",
            context={"connector_id": connector_id, "status": status},
        )


class NoActiveSchemaError(ConfigurationError):
    """No active, non-deprecated schema version exists for an entity type."""

    def __init__(self, entity_type: str):
        super().__init__(
            message=f"No active schema version found for entity type {entity_type}",
            context={"entity_type": entity_type},
        )


class NoMappingsConfiguredError(ConfigurationError):
    """No active mappings for (connector, entity type, version)."""

    def __init__(self, connector_id: int, entity_type: str, version: int):
        super().__init__(
            message=(
                f"No mappings configured for connector {connector_id} "
                f"and entity type {entity_type} version {version}"
            ),
            context={
                "connector_id": connector_id,
                "entity_type": entity_type,
                "version": version,
            },
        )


class SchemaVersionExistsError(ConfigurationError):
    """(entity type, version) pair already registered."""

    def __init__(self, entity_type: str, version: int):
        super().__init__(
            message=f"Version {version} already exists for entity type {entity_type}",
            context={"entity_type": entity_type, "version": version},
        )


class UnknownTransformationError(ConfigurationError):
    """Transformation kind outside the closed set."""

    def __init__(self, transformation: str, allowed: Iterable[str]):
        allowed = sorted(allowed)
        super().__init__(
            message=(
                f"Unknown transformation type '{transformation}'. "
                f"Allowed: {', '.join(allowed)}"
            ),
            context={"transformation": transformation, "allowed": allowed},
        )


class SubscriptionNotFoundError(ConfigurationError):
    """Webhook subscription id does not exist."""

    def __init__(self, subscription_id: int):
        super().__init__(
            message=f"Webhook subscription with ID {subscription_id} not found",
            context={"subscription_id": subscription_id},
        )


class InvalidEventTypeError(ConfigurationError):
    """Event type outside the closed webhook event set."""

    def __init__(self, event_type: str):
        super().__init__(
            message=f"Invalid event type: {event_type}",
            context={"event_type": event_type},
        )


class InvalidStateTransitionError(ConfigurationError):
    """Requested lifecycle transition is not allowed."""

    def __init__(self, entity: str, from_state: str, to_state: str):
        super().__init__(
            message=f"Invalid {entity} transition: {from_state} -> {to_state}",
            context={"entity": entity, "from_state": from_state, "to_state": to_state},
        )
        self.from_state = from_state
        self.to_state = to_state


# ============================================================
# DATA ERRORS
# ============================================================

class DataError(IntegrationException):
    """
    Base class for data errors.

    Recorded per affected item; never aborts the surrounding batch.
    """

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.RECOVERABLE


class MissingRequiredFieldsError(DataError):
    """One or more required external fields are absent and have no default."""

    def __init__(self, missing_fields: List[str]):
        super().__init__(
            message=f"Required external fields missing: {', '.join(missing_fields)}",
            context={"missing_fields": list(missing_fields)},
        )
        self.missing_fields = list(missing_fields)


class ResponseParseError(DataError):
    """External response body could not be parsed."""

    def __init__(self, message: str, body_preview: Optional[str] = None):
        context = {}
        if body_preview is not None:
            context["body_preview"] = body_preview[:200]
        super().__init__(message, context=context)


# ============================================================
# EXECUTION ERRORS
# ============================================================

class TransientExecutionError(IntegrationException):
    """
    Network or HTTP failure during an outbound call.

    Retried per connector/subscription policy.
    """

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if status_code is not None:
            context["status_code"] = status_code
        if endpoint:
            context["endpoint"] = endpoint

        super().__init__(message, context=context, **kwargs)
        self.status_code = status_code


# ============================================================
# POLICY ERRORS
# ============================================================

class ApprovedDataProtectedError(IntegrationException):
    """Attempted to modify approved data without an explicit admin override."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(self, entity: str, entity_id: int):
        super().__init__(
            message=f"{entity} {entity_id} is approved; admin override required",
            context={"entity": entity, "entity_id": entity_id},
        )
