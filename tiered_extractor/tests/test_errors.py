"""Tests for tiered_extractor.core.errors module.

Tests the error handling infrastructure:
- ExtractionError dataclass
- PipelineErrors accumulator
- Raised OrchestratorError subclasses
- Error factory functions
"""

import pytest

from tiered_extractor.core.errors import (
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    ExtractionError,
    OrchestratorError,
    PipelineErrors,
    PlanningError,
    StaleStateError,
    UnitFailedError,
    configuration_error,
    llm_api_error,
    llm_parse_error,
    planning_error,
    resource_error,
    validation_error,
)


# =============================================================================
# ExtractionError tests
# =============================================================================


class TestExtractionError:
    """Tests for ExtractionError dataclass."""

    def test_str_includes_context(self):
        error = ExtractionError(
            category=ErrorCategory.LLM_API,
            severity=ErrorSeverity.ERROR,
            message="Rate limited",
            phase="ResolveObjects",
            object_type="Demand",
            level=1,
            retry_count=2,
        )
        assert str(error) == "[ERROR] llm_api: Rate limited | object_type=Demand | level=1 | phase=ResolveObjects | retries=2"

    def test_str_minimal(self):
        error = ExtractionError(ErrorCategory.UNKNOWN, ErrorSeverity.WARNING, "odd", phase="")
        assert str(error) == "[WARNING] unknown: odd"

    def test_to_dict(self):
        error = ExtractionError(
            category=ErrorCategory.PLANNING,
            severity=ErrorSeverity.CRITICAL,
            message="No identity",
            phase="PlanIdentify",
            artifact_id=3,
            context={"missing_fields": ["amount"]},
        )
        data = error.to_dict()
        assert data["category"] == "planning"
        assert data["severity"] == "critical"
        assert data["artifact_id"] == 3
        assert data["context"] == {"missing_fields": ["amount"]}
        assert "original_error" not in data


# =============================================================================
# PipelineErrors tests
# =============================================================================


class TestPipelineErrors:
    """Tests for PipelineErrors accumulator."""

    def test_warnings_and_errors_separated(self):
        errors = PipelineErrors()
        errors.add(llm_parse_error("bad json", "Classify"))
        errors.add(llm_api_error("timeout", "ResolveObjects", object_type="Demand"))
        assert errors.warning_count == 1
        assert errors.error_count == 1

    def test_failed_object_types_recorded_once(self):
        errors = PipelineErrors()
        errors.add(llm_api_error("a", "ResolveObjects", object_type="Demand"))
        errors.add(resource_error("b", "ExtractRemaining", object_type="Demand"))
        assert errors.failed_object_types == ["Demand"]

    def test_warnings_do_not_fail_object_types(self):
        errors = PipelineErrors()
        errors.add(validation_error("bad field", "ExtractGroup", object_type="Demand", field_name="amount"))
        assert errors.failed_object_types == []

    def test_summary(self):
        errors = PipelineErrors()
        errors.add(llm_api_error("a", "Classify"))
        errors.add(llm_api_error("b", "Classify"))
        errors.add(resource_error("Artifact 9 not found", "Classify"))
        summary = errors.summary()
        assert summary["total_errors"] == 3
        assert summary["errors_by_category"] == {"llm_api": 2, "resource": 1}

    def test_to_dict(self):
        errors = PipelineErrors()
        errors.add(configuration_error("No schema"))
        data = errors.to_dict()
        assert data["errors"][0]["category"] == "configuration"
        assert data["warnings"] == []
        assert data["summary"]["total_errors"] == 1


# =============================================================================
# Raised errors tests
# =============================================================================


class TestRaisedErrors:
    """Tests for OrchestratorError subclasses."""

    @pytest.mark.parametrize("cls", [ConfigurationError, PlanningError, UnitFailedError])
    def test_carries_error_and_message(self, cls):
        detail = configuration_error("No schema")
        raised = cls(detail)
        assert isinstance(raised, OrchestratorError)
        assert raised.error is detail
        assert str(raised) == "No schema"

    def test_stale_state_error(self):
        error = StaleStateError(expected=3, actual=5)
        assert error.expected == 3
        assert error.actual == 5
        assert "expected 3, found 5" in str(error)


# =============================================================================
# Factory tests
# =============================================================================


class TestFactories:
    """Tests for error factory functions."""

    def test_llm_api_error_severity_override(self):
        error = llm_api_error("down", "Correction", severity=ErrorSeverity.WARNING)
        assert error.severity == ErrorSeverity.WARNING
        assert error.category == ErrorCategory.LLM_API

    def test_llm_parse_error_truncates_raw_response(self):
        error = llm_parse_error("bad", "Classify", artifact_id=2, raw_response="x" * 600)
        assert len(error.context["raw_response"]) == 500
        assert error.severity == ErrorSeverity.WARNING

    def test_configuration_error_is_critical(self):
        error = configuration_error("No schema")
        assert error.severity == ErrorSeverity.CRITICAL
        assert error.phase == "Default"

    def test_planning_error_missing_fields(self):
        error = planning_error("Unplaced fields", "PlanRemaining", object_type="Demand", missing_fields=["amount"])
        assert error.context == {"missing_fields": ["amount"]}
        assert error.category == ErrorCategory.PLANNING
