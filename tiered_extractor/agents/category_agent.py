"""Category smoothing agent: fills in pages missing a category label.

Some pages carry no value for a category property (a continuation page, a
blank separator). The Category Matcher splits the sequence into runs around
those gaps. Gaps bounded by the same category on both sides are filled
without an LLM call; the remaining runs go to the LLM, which assigns each
page in the run to one of the run's categories.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from tiered_extractor.core.category_matcher import artifact_category, group_artifacts_by_category
from tiered_extractor.core.config import DEFAULT_MODELS, CategoryConfig, ClassificationConfig
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.errors import ErrorSeverity, PipelineErrors, llm_api_error, validation_error
from tiered_extractor.core.llm_client import LLMClient
from tiered_extractor.agents.classifier_agent import merge_classification
from tiered_extractor.pydantic_models.artifact_models import Artifact
from tiered_extractor.prompts.correction_prompt import CATEGORY_SYSTEM_PROMPT, build_category_prompt

logger = logging.getLogger(__name__)


@dataclass
class SmoothingResult:
    """Outcome of one smoothing pass over a category property."""

    property: str
    groups_found: int = 0
    auto_filled: int = 0
    llm_assigned: int = 0
    groups_failed: int = 0


def allowed_categories(artifacts: list[Artifact], key: str) -> list[str]:
    """Distinct categories of a run, in order, excluding the exclude sentinel."""
    categories: dict[str, None] = {}
    for artifact in artifacts:
        category = artifact_category(artifact, key)
        if category and CategoryConfig.EXCLUDE_SENTINEL not in category:
            categories.setdefault(category, None)
    return list(categories)


def auto_fill_groups(groups: list[list[Artifact]], key: str) -> int:
    """Give uncategorised pages the category of both their neighbours when those agree.

    Returns:
        Number of pages filled.
    """
    filled = 0
    for group in groups:
        categories = allowed_categories(group, key)
        if not categories:
            continue
        current = categories[0]
        pending: list[Artifact] = []
        for artifact in group:
            category = artifact_category(artifact, key)
            if category is None:
                pending.append(artifact)
                continue
            if category == current:
                for page in pending:
                    merge_classification(page, {key: current})
                    filled += 1
            current = category
            pending = []
    return filled


def validate_assignment(content: Any, categories: list[str], positions: list[int]) -> dict[int, str]:
    """Map page position to category from a {"categories": [{"category", "pages"}]} reply.

    Raises:
        ValueError: With a message the LLM can act on when the reply is invalid.
    """
    if not isinstance(content, dict) or not isinstance(content.get("categories"), list):
        raise ValueError('Reply must be {"categories": [{"category": ..., "pages": [...]}]}')

    assignment: dict[int, str] = {}
    for entry in content["categories"]:
        if not isinstance(entry, dict):
            continue
        category = entry.get("category")
        if category not in categories:
            raise ValueError(f"Category {category!r} is not one of {categories}")
        for raw_page in entry.get("pages") or []:
            try:
                page = int(raw_page)
            except (TypeError, ValueError):
                raise ValueError(f"Page {raw_page!r} is not a page number")
            if page in assignment:
                raise ValueError(f"Page {page} was assigned to more than one category")
            assignment[page] = category

    missing = [p for p in positions if p not in assignment]
    if missing:
        raise ValueError(f"Pages {missing} were not assigned to any category")
    return {p: c for p, c in assignment.items() if p in positions}


async def match_group(
    group: list[Artifact],
    key: str,
    model: str = DEFAULT_MODELS["classifier"],
    cost_tracker: CostTracker | None = None,
    correction_attempts: int = 2,
) -> int:
    """Ask the LLM to assign every page of a run to one of its categories.

    Invalid replies are sent back with the validation message, up to
    `correction_attempts` times.

    Returns:
        Number of pages whose category changed.

    Raises:
        ValueError: If the reply is still invalid after the last attempt.
    """
    categories = allowed_categories(group, key)
    positions = [a.position for a in group]
    pages = [{"page": a.position, "content": a.text[:ClassificationConfig.MAX_PAGE_CHARS]} for a in group]

    client = LLMClient(cost_tracker=cost_tracker)
    messages = [
        {"role": "system", "content": CATEGORY_SYSTEM_PROMPT},
        {"role": "user", "content": build_category_prompt(categories, positions, json.dumps(pages, indent=2))},
    ]

    for attempt in range(correction_attempts + 1):
        response = await client.complete_with_history(messages, model=model, agent="category_matcher")
        try:
            assignment = validate_assignment(response.content, categories, positions)
            break
        except ValueError as e:
            if attempt == correction_attempts:
                raise
            logger.debug(f"Invalid category reply, retrying: {e}")
            messages.append({"role": "assistant", "content": response.raw_content})
            messages.append({"role": "user", "content": f"Invalid response: {e}. Answer again."})

    changed = 0
    for artifact in group:
        category = assignment[artifact.position]
        if artifact_category(artifact, key) != category:
            merge_classification(artifact, {key: category})
            changed += 1
    return changed


async def smooth_categories(
    artifacts: list[Artifact],
    key: str,
    model: str = DEFAULT_MODELS["classifier"],
    cost_tracker: CostTracker | None = None,
    errors: PipelineErrors | None = None,
) -> SmoothingResult:
    """Fill missing categories for `key` across a page sequence.

    Best effort: a run the LLM cannot assign is left as it is and recorded
    in `errors`.
    """
    result = SmoothingResult(property=key)
    groups = group_artifacts_by_category(artifacts, key)
    result.groups_found = len(groups)
    if not groups:
        return result

    result.auto_filled = auto_fill_groups(groups, key)
    if result.auto_filled:
        groups = group_artifacts_by_category(artifacts, key)

    for group in groups:
        try:
            result.llm_assigned += await match_group(group, key, model=model, cost_tracker=cost_tracker)
        except ValueError as e:
            result.groups_failed += 1
            if errors is not None:
                errors.add(validation_error(f"Category matching failed: {e}", phase="Category Matching", field_name=key))
        except Exception as e:
            result.groups_failed += 1
            logger.warning(f"Category matching call failed: {e}")
            if errors is not None:
                errors.add(llm_api_error(
                    f"Category matching call failed: {e}", phase="Category Matching", original=e, severity=ErrorSeverity.WARNING
                ))
    return result
