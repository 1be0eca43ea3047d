"""Centralized configuration for the hierarchical extraction orchestrator.

Every tunable number the orchestrator, planner and correction passes rely on
lives here, documented next to its value. Each constant says what it controls
and where it is read.
"""

import os
from typing import Final


# =============================================================================
# LLM Provider Configuration
# =============================================================================
#
# Select a provider with the LLM_PROVIDER environment variable:
#   - "openrouter" (default): OpenRouter API gateway
#   - "azure": Azure OpenAI Service
#
# Azure additionally needs AZURE_API_KEY, AZURE_API_BASE and
# AZURE_API_VERSION. Deployment names can be overridden with
# AZURE_DEPLOYMENT_GPT_4O / AZURE_DEPLOYMENT_GPT_4O_MINI.
#
# =============================================================================

LLM_PROVIDER: Final[str] = os.environ.get("LLM_PROVIDER", "openrouter")
"""LLM provider to use. Set via LLM_PROVIDER env var."""

API_KEY_ENV_VARS: Final[dict[str, str]] = {
    "openrouter": "OPENROUTER_API_KEY",
    "azure": "AZURE_API_KEY",
}

API_KEY_ENV_VAR: Final[str] = API_KEY_ENV_VARS.get(LLM_PROVIDER, "OPENROUTER_API_KEY")
"""Environment variable holding the API key for the active provider."""


def _get_model_name(base_model: str) -> str:
    """Convert a base model name ("gpt-4o") to the provider-specific identifier."""
    if LLM_PROVIDER == "azure":
        deployment_env = f"AZURE_DEPLOYMENT_{base_model.upper().replace('-', '_')}"
        return f"azure/{os.environ.get(deployment_env, base_model)}"
    return f"openrouter/openai/{base_model}"


SMART_MODEL: Final[str] = _get_model_name("gpt-4o")
"""Model for planning, where field grouping quality shapes every later call."""

FAST_MODEL: Final[str] = _get_model_name("gpt-4o-mini")
"""Model for per-page and per-object work (classification, extraction, corrections)."""

DEFAULT_MODELS: Final[dict[str, str]] = {
    "planner": FAST_MODEL,
    "classifier": FAST_MODEL,
    "resolver": FAST_MODEL,
    "extractor": FAST_MODEL,
    "deduplicator": FAST_MODEL,
    "verifier": FAST_MODEL,
}
"""Default model per agent.

Classification runs once per page and extraction once per object and group,
so a single run easily makes hundreds of calls. Everything defaults to the
fast model; pass --smart-model to upgrade planning.
"""


# Planning

class PlanningConfig:
    """Constants for the Plan Builder."""

    GROUP_MAX_POINTS: Final[int] = 10
    """Maximum number of fields the planner may place in one remaining group.

    Larger groups mean fewer extraction calls per object but longer, less
    reliable responses. Part of the plan cache key.
    """

    MAX_FIELD_GROUPING_ATTEMPTS: Final[int] = 3
    """Attempts the planner gets to cover every remaining field.

    Each follow-up attempt lists the fields still missing. After the last
    attempt an uncovered field fails the planning unit.
    """

    DEFAULT_GLOBAL_SEARCH_MODE: Final[str] = "intelligent"
    """Global search mode when the caller does not choose one.

    "intelligent" defers to each group's own mode, "skim_only" and
    "exhaustive_only" override every group.
    """

    DEFAULT_GROUP_SEARCH_MODE: Final[str] = "skim"
    """Search mode for a group whose plan entry carries none."""

    PLAN_SCHEMA_SHAPE_VERSION: Final[int] = 1
    """Version of the compiled plan layout, mixed into the plan cache key.

    Bump whenever ExtractionPlan, IdentityGroup or RemainingGroup change shape
    so stale cached plans are never read back into the new models.
    """


# Classification

class ClassificationConfig:
    """Constants for the classification schema and executor."""

    IDENTITY_KEY_SUFFIX: Final[str] = "Identification"
    """Suffix appended to the object type before snake-casing an identity group key.

    "Demand" becomes "demand_identification".
    """

    IDENTITY_DESCRIPTION: Final[str] = "Pages relevant for identifying {object_type} objects"
    """Description of an identity group's boolean property."""

    MAX_PAGE_CHARS: Final[int] = 12000
    """Maximum characters of page text sent with a classification call."""


class CategoryConfig:
    """Constants for the sequential Category Matcher."""

    EXCLUDE_SENTINEL: Final[str] = "__exclude"
    """Category value marking an item as a hard separator."""


# Resolution

class ResolutionConfig:
    """Constants for object resolution."""

    NAME_MATCH_THRESHOLD: Final[int] = 90
    """rapidfuzz token_sort_ratio (0..100) above which a new object is logged as a near match of an existing one."""


# Extraction

class SkimConfig:
    """Skim-mode extraction: read classified pages in small batches, stop early."""

    BATCH_SIZE: Final[int] = 5
    """Pages per skim batch."""

    CONFIDENCE_THRESHOLD: Final[int] = 3
    """Minimum confidence (1..5 scale) a field needs before skimming can stop."""


class ProcessConfig:
    """Constants for work unit bookkeeping."""

    MAX_NAME_LENGTH: Final[int] = 255
    """Maximum length of a work unit's display name. Longer field lists are cut with "..."."""


# Correction passes

class VerificationConfig:
    """Constants for the sequence-aware verification pass."""

    PREVIOUS_NEIGHBORS: Final[int] = 2
    """Pages before the focus that are compared and sent as context."""

    NEXT_NEIGHBORS: Final[int] = 1
    """Pages after the focus that are compared and sent as context."""

    MAX_DEPTH: Final[int] = 3
    """Maximum generation of recursive verification units.

    Generation 0 units come from outlier detection. A correction on a context
    page schedules generation + 1. Units beyond this depth are dropped.
    """

    MAX_UNITS: Final[int] = 200
    """Hard cap on verification units processed in one pass."""


# LLM Call Configuration

class LLMConfig:
    """Default parameters for LLM API calls."""

    TEMPERATURE: Final[float] = 0.0
    """Sampling temperature. 0.0 keeps classifications reproducible across retries."""

    RESPONSE_FORMAT: Final[dict[str, str]] = {"type": "json_object"}
    """Response format enforcing JSON output."""


class RuntimeConfig:
    """Constants for the in-process job runtime."""

    UNIT_ATTEMPTS: Final[int] = 3
    """Attempts per work unit before it is marked failed."""

    MAX_CONCURRENT: Final[int] = 5
    """Default number of units executing at once."""
