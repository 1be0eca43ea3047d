"""Structured error types for the extraction orchestrator.

Two layers:
- ExtractionError / PipelineErrors: recorded diagnostics, kept on the run.
- OrchestratorError subclasses: raised to stop a unit or a run. Each carries
  the ExtractionError describing it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for extraction errors."""
    WARNING = "warning"   # Recorded, work continued
    ERROR = "error"       # Unit failed, run continued or retried
    CRITICAL = "critical" # Run halted


class ErrorCategory(Enum):
    """Categories of extraction errors."""
    LLM_API = "llm_api"             # Router/provider errors
    LLM_PARSE = "llm_parse"         # Unusable LLM response
    CONFIGURATION = "configuration" # Missing schema or invalid setup
    PLANNING = "planning"           # Plan could not be built
    VALIDATION = "validation"       # Response failed validation
    RESOURCE = "resource"           # Rate limit, missing record
    UNKNOWN = "unknown"


@dataclass
class ExtractionError:
    """Structured extraction error with context."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    phase: str                      # Operation or pass where it occurred
    object_type: str | None = None
    artifact_id: int | None = None
    level: int | None = None
    original_error: Exception | None = None
    retry_count: int = 0
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.severity.value.upper()}] {self.category.value}: {self.message}"]
        if self.object_type:
            parts.append(f"object_type={self.object_type}")
        if self.level is not None:
            parts.append(f"level={self.level}")
        if self.phase:
            parts.append(f"phase={self.phase}")
        if self.retry_count > 0:
            parts.append(f"retries={self.retry_count}")
        return " | ".join(parts)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "phase": self.phase,
            "object_type": self.object_type,
            "artifact_id": self.artifact_id,
            "level": self.level,
            "retry_count": self.retry_count,
            "context": self.context,
        }


@dataclass
class PipelineErrors:
    """Errors and warnings collected over one run."""

    errors: list[ExtractionError] = field(default_factory=list)
    warnings: list[ExtractionError] = field(default_factory=list)
    failed_object_types: list[str] = field(default_factory=list)

    def add(self, error: ExtractionError):
        if error.severity == ErrorSeverity.WARNING:
            self.warnings.append(error)
        else:
            self.errors.append(error)
            if error.object_type and error.object_type not in self.failed_object_types:
                self.failed_object_types.append(error.object_type)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def summary(self) -> dict:
        by_category: dict[str, int] = {}
        for error in self.errors:
            by_category[error.category.value] = by_category.get(error.category.value, 0) + 1

        return {
            "total_errors": self.error_count,
            "total_warnings": self.warning_count,
            "failed_object_types": len(self.failed_object_types),
            "errors_by_category": by_category,
        }

    def to_dict(self) -> dict:
        return {
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "failed_object_types": self.failed_object_types,
            "summary": self.summary(),
        }


# Raised errors

class OrchestratorError(Exception):
    """Base class for errors that stop a unit or a run."""

    def __init__(self, error: ExtractionError):
        super().__init__(error.message)
        self.error = error


class ConfigurationError(OrchestratorError):
    """The run cannot start (e.g. the plan owner has no schema). Never retried."""


class PlanningError(OrchestratorError):
    """The planner could not produce a usable plan. Fails the run."""


class UnitFailedError(OrchestratorError):
    """A single work unit failed. The job runtime decides whether to retry."""


class StaleStateError(Exception):
    """A run state write lost an optimistic concurrency check."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Run state version changed: expected {expected}, found {actual}")
        self.expected = expected
        self.actual = actual


# Factory functions for common error types

def llm_api_error(
    message: str,
    phase: str,
    object_type: str | None = None,
    original: Exception | None = None,
    retry_count: int = 0,
    severity: ErrorSeverity = ErrorSeverity.ERROR,
) -> ExtractionError:
    """Create an LLM API error. Best-effort passes record it as a warning."""
    return ExtractionError(
        category=ErrorCategory.LLM_API,
        severity=severity,
        message=message,
        phase=phase,
        object_type=object_type,
        original_error=original,
        retry_count=retry_count,
    )


def llm_parse_error(
    message: str,
    phase: str,
    artifact_id: int | None = None,
    raw_response: str | None = None,
) -> ExtractionError:
    """Create an LLM parse error. Recorded as a warning: callers discard the response."""
    return ExtractionError(
        category=ErrorCategory.LLM_PARSE,
        severity=ErrorSeverity.WARNING,
        message=message,
        phase=phase,
        artifact_id=artifact_id,
        context={"raw_response": raw_response[:500] if raw_response else None},
    )


def configuration_error(message: str, phase: str = "Default") -> ExtractionError:
    """Create a configuration error. Critical: the run never starts."""
    return ExtractionError(
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        message=message,
        phase=phase,
    )


def planning_error(
    message: str,
    phase: str,
    object_type: str | None = None,
    missing_fields: list[str] | None = None,
) -> ExtractionError:
    """Create a planning error."""
    return ExtractionError(
        category=ErrorCategory.PLANNING,
        severity=ErrorSeverity.CRITICAL,
        message=message,
        phase=phase,
        object_type=object_type,
        context={"missing_fields": missing_fields} if missing_fields else {},
    )


def validation_error(
    message: str,
    phase: str,
    object_type: str | None = None,
    field_name: str | None = None,
) -> ExtractionError:
    """Create a validation error."""
    return ExtractionError(
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.WARNING,
        message=message,
        phase=phase,
        object_type=object_type,
        context={"field": field_name} if field_name else {},
    )


def resource_error(
    message: str,
    phase: str,
    object_type: str | None = None,
) -> ExtractionError:
    """Create a resource error (missing record, rate limit, etc)."""
    return ExtractionError(
        category=ErrorCategory.RESOURCE,
        severity=ErrorSeverity.ERROR,
        message=message,
        phase=phase,
        object_type=object_type,
    )
