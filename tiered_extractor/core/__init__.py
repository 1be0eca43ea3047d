"""Core utilities for the extraction orchestrator."""

from tiered_extractor.core.config import (
    LLM_PROVIDER,
    API_KEY_ENV_VAR,
    API_KEY_ENV_VARS,
    DEFAULT_MODELS,
    SMART_MODEL,
    FAST_MODEL,
    PlanningConfig,
    ClassificationConfig,
    CategoryConfig,
    SkimConfig,
    ProcessConfig,
    ResolutionConfig,
    VerificationConfig,
    LLMConfig,
    RuntimeConfig,
)
from tiered_extractor.core.llm_client import LLMClient, LLMResponse
from tiered_extractor.core.pipeline_logger import PipelineLogger, get_logger, reset_logger
from tiered_extractor.core.cost_tracker import CostTracker, CallUsage
from tiered_extractor.core.errors import (
    ErrorSeverity,
    ErrorCategory,
    ExtractionError,
    PipelineErrors,
    OrchestratorError,
    ConfigurationError,
    PlanningError,
    UnitFailedError,
    StaleStateError,
    llm_api_error,
    llm_parse_error,
    configuration_error,
    planning_error,
    validation_error,
    resource_error,
)
from tiered_extractor.core.value_helpers import (
    comparable_value,
    replace_label,
    format_name_value,
    resolve_object_name,
)
from tiered_extractor.core.category_matcher import (
    resolve_category_groups,
    artifact_category,
    group_artifacts_by_category,
)
from tiered_extractor.core.artifact_splitter import (
    SPLIT_DEFAULT,
    SPLIT_BY_NODE,
    SPLIT_BY_ARTIFACT,
    SPLIT_BY_TOP_LEVEL,
    split,
    find_top_level_ancestor,
)
from tiered_extractor.core.schema_tools import (
    snake_case,
    title_case,
    extract_object_types,
    build_fragment_selector,
    leaf_key,
    nesting_keys,
    selector_fields,
    selector_parent_type,
    is_leaf_array,
    leaf_json_schema,
)
from tiered_extractor.core.classification_schema import (
    identity_group_key,
    remaining_group_key,
    group_key,
    build_classification_schema,
    schema_fingerprint,
)
from tiered_extractor.core.plan_cache import plan_cache_key, get_cached_plan, store_plan
from tiered_extractor.core.unit_helpers import resolve_search_mode, build_process_name
from tiered_extractor.core.state_tracker import RunStateStore
from tiered_extractor.core.repository import Repository, InMemoryRepository
from tiered_extractor.core.job_runtime import JobRuntime, InMemoryJobRuntime
from tiered_extractor.core.rollup import build_rollup

__all__ = [
    # Config
    "LLM_PROVIDER",
    "API_KEY_ENV_VAR",
    "API_KEY_ENV_VARS",
    "DEFAULT_MODELS",
    "SMART_MODEL",
    "FAST_MODEL",
    "PlanningConfig",
    "ClassificationConfig",
    "CategoryConfig",
    "SkimConfig",
    "ProcessConfig",
    "ResolutionConfig",
    "VerificationConfig",
    "LLMConfig",
    "RuntimeConfig",
    # LLM
    "LLMClient",
    "LLMResponse",
    "CostTracker",
    "CallUsage",
    # Logging
    "PipelineLogger",
    "get_logger",
    "reset_logger",
    # Errors
    "ErrorSeverity",
    "ErrorCategory",
    "ExtractionError",
    "PipelineErrors",
    "OrchestratorError",
    "ConfigurationError",
    "PlanningError",
    "UnitFailedError",
    "StaleStateError",
    "llm_api_error",
    "llm_parse_error",
    "configuration_error",
    "planning_error",
    "validation_error",
    "resource_error",
    # Values and grouping
    "comparable_value",
    "replace_label",
    "format_name_value",
    "resolve_object_name",
    "resolve_category_groups",
    "artifact_category",
    "group_artifacts_by_category",
    "SPLIT_DEFAULT",
    "SPLIT_BY_NODE",
    "SPLIT_BY_ARTIFACT",
    "SPLIT_BY_TOP_LEVEL",
    "split",
    "find_top_level_ancestor",
    # Schema
    "snake_case",
    "title_case",
    "extract_object_types",
    "build_fragment_selector",
    "leaf_key",
    "nesting_keys",
    "selector_fields",
    "selector_parent_type",
    "is_leaf_array",
    "leaf_json_schema",
    "identity_group_key",
    "remaining_group_key",
    "group_key",
    "build_classification_schema",
    "schema_fingerprint",
    "plan_cache_key",
    "get_cached_plan",
    "store_plan",
    "resolve_search_mode",
    "build_process_name",
    "build_rollup",
    # Runtime
    "RunStateStore",
    "Repository",
    "InMemoryRepository",
    "JobRuntime",
    "InMemoryJobRuntime",
]
