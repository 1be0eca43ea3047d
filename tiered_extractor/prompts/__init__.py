"""Prompt templates for the extraction agents."""

from tiered_extractor.prompts.planner_prompt import (
    IDENTITY_SYSTEM_PROMPT,
    REMAINING_SYSTEM_PROMPT,
    build_identity_prompt,
    build_remaining_prompt,
    build_remaining_followup_prompt,
)
from tiered_extractor.prompts.classifier_prompt import (
    CLASSIFIER_SYSTEM_PROMPT,
    build_classifier_prompt,
)
from tiered_extractor.prompts.extraction_prompt import (
    RESOLVER_SYSTEM_PROMPT,
    EXTRACTOR_SYSTEM_PROMPT,
    format_pages,
    build_resolver_prompt,
    build_extraction_prompt,
)
from tiered_extractor.prompts.correction_prompt import (
    DEDUPLICATION_SYSTEM_PROMPT,
    VERIFICATION_SYSTEM_PROMPT,
    build_deduplication_prompt,
    build_verification_prompt,
    CATEGORY_SYSTEM_PROMPT,
    build_category_prompt,
)

__all__ = [
    # Planner
    "IDENTITY_SYSTEM_PROMPT",
    "REMAINING_SYSTEM_PROMPT",
    "build_identity_prompt",
    "build_remaining_prompt",
    "build_remaining_followup_prompt",
    # Classifier
    "CLASSIFIER_SYSTEM_PROMPT",
    "build_classifier_prompt",
    # Extraction
    "RESOLVER_SYSTEM_PROMPT",
    "EXTRACTOR_SYSTEM_PROMPT",
    "format_pages",
    "build_resolver_prompt",
    "build_extraction_prompt",
    # Corrections
    "DEDUPLICATION_SYSTEM_PROMPT",
    "VERIFICATION_SYSTEM_PROMPT",
    "build_deduplication_prompt",
    "build_verification_prompt",
    "CATEGORY_SYSTEM_PROMPT",
    "build_category_prompt",
]
