"""Agents: async functions wrapping one kind of LLM call each."""

from tiered_extractor.agents.planner_agent import (
    plan_identity,
    plan_remaining,
    apply_identity_response,
    merge_field_groups,
    compile_plan,
)
from tiered_extractor.agents.classifier_agent import (
    classify_artifact,
    classification_cache_key,
    normalize_flags,
    merge_classification,
    artifacts_for_category,
)
from tiered_extractor.agents.resolver_agent import resolve_objects, find_or_create_object
from tiered_extractor.agents.field_extractor_agent import (
    FieldExtractionResult,
    extract_exhaustive,
    extract_skim,
    merge_object_data,
)
from tiered_extractor.agents.category_agent import SmoothingResult, auto_fill_groups, match_group, smooth_categories
from tiered_extractor.agents.deduplication_agent import extract_labels, collect_labels, deduplicate
from tiered_extractor.agents.verification_agent import (
    find_verification_foci,
    context_window,
    verify,
    verify_all,
)

__all__ = [
    # Planning
    "plan_identity",
    "plan_remaining",
    "apply_identity_response",
    "merge_field_groups",
    "compile_plan",
    # Classification
    "classify_artifact",
    "classification_cache_key",
    "normalize_flags",
    "merge_classification",
    "artifacts_for_category",
    # Extraction
    "resolve_objects",
    "find_or_create_object",
    "FieldExtractionResult",
    "extract_exhaustive",
    "extract_skim",
    "merge_object_data",
    # Corrections
    "SmoothingResult",
    "auto_fill_groups",
    "match_group",
    "smooth_categories",
    "extract_labels",
    "collect_labels",
    "deduplicate",
    "find_verification_foci",
    "context_window",
    "verify",
    "verify_all",
]
