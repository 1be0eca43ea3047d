"""Field extractor agent: fills a remaining group's fields on one object.

Two search modes:
- exhaustive: one call over every page classified for the group.
- skim: pages in batches of SkimConfig.BATCH_SIZE; the LLM also rates its
  confidence per field (1..5) and reading stops as soon as every field has
  reached the threshold. Later batches only ask for fields still below it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from tiered_extractor.core.config import DEFAULT_MODELS, ClassificationConfig, SkimConfig
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.llm_client import LLMClient
from tiered_extractor.core.schema_tools import leaf_json_schema
from tiered_extractor.pydantic_models.artifact_models import Artifact, DomainObject
from tiered_extractor.pydantic_models.plan_models import RemainingGroup
from tiered_extractor.prompts.extraction_prompt import EXTRACTOR_SYSTEM_PROMPT, build_extraction_prompt, format_pages

logger = logging.getLogger(__name__)


@dataclass
class FieldExtractionResult:
    """Values found for a group, with skim confidences when available."""

    data: dict[str, Any] = field(default_factory=dict)
    confidence: dict[str, int] = field(default_factory=dict)
    pages_read: int = 0
    stopped_early: bool = False


async def extract_exhaustive(
    obj: DomainObject,
    group: RemainingGroup,
    pages: list[Artifact],
    schema: dict[str, Any],
    model: str = DEFAULT_MODELS["extractor"],
    cost_tracker: CostTracker | None = None,
) -> FieldExtractionResult:
    """Extract every field of the group in one call over all pages."""
    if not pages:
        return FieldExtractionResult()

    data, _ = await _extract_batch(obj, group, group.fields, pages, schema, False, model, cost_tracker)
    return FieldExtractionResult(data=data, pages_read=len(pages))


async def extract_skim(
    obj: DomainObject,
    group: RemainingGroup,
    pages: list[Artifact],
    schema: dict[str, Any],
    model: str = DEFAULT_MODELS["extractor"],
    cost_tracker: CostTracker | None = None,
    batch_size: int = SkimConfig.BATCH_SIZE,
    threshold: int = SkimConfig.CONFIDENCE_THRESHOLD,
) -> FieldExtractionResult:
    """Extract the group in small batches, stopping once every field is confident.

    A value from a later batch replaces an earlier one only with higher confidence.
    """
    result = FieldExtractionResult()

    for start in range(0, len(pages), batch_size):
        pending = [f for f in group.fields if result.confidence.get(f, 0) < threshold]
        if not pending:
            result.stopped_early = True
            break

        batch = pages[start:start + batch_size]
        data, confidence = await _extract_batch(obj, group, pending, batch, schema, True, model, cost_tracker)
        result.pages_read += len(batch)

        for field_name in pending:
            score = confidence.get(field_name, 0)
            value = data.get(field_name)
            if value is None:
                continue
            if field_name not in result.data or score > result.confidence.get(field_name, 0):
                result.data[field_name] = value
                result.confidence[field_name] = score

    if result.pages_read < len(pages):
        result.stopped_early = True
    logger.debug(
        f"Skim {group.name} on {obj.name}: read {result.pages_read}/{len(pages)} pages, "
        f"confidence={result.confidence}"
    )
    return result


def merge_object_data(obj: DomainObject, values: dict[str, Any]) -> bool:
    """Write non-null values into the object's data. Returns True if anything changed."""
    changed = False
    for key, value in values.items():
        if value is None or obj.data.get(key) == value:
            continue
        obj.data[key] = value
        changed = True
    return changed


async def _extract_batch(
    obj: DomainObject,
    group: RemainingGroup,
    fields: list[str],
    pages: list[Artifact],
    schema: dict[str, Any],
    include_confidence: bool,
    model: str,
    cost_tracker: CostTracker | None,
) -> tuple[dict[str, Any], dict[str, int]]:
    fields_schema = leaf_json_schema(group.fragment_selector, schema)
    fields_schema["properties"] = {
        k: v for k, v in fields_schema["properties"].items() if k in fields
    } or {f: {"type": "string"} for f in fields}

    client = LLMClient(cost_tracker=cost_tracker)
    response = await client.complete(
        system_prompt=EXTRACTOR_SYSTEM_PROMPT,
        user_prompt=build_extraction_prompt(
            group.name,
            obj.type,
            obj.name,
            obj.data,
            fields_schema,
            format_pages(pages, ClassificationConfig.MAX_PAGE_CHARS),
            include_confidence=include_confidence,
        ),
        model=model,
        agent="extractor",
    )

    content = response.content if isinstance(response.content, dict) else {}
    raw_data = content.get("data") if isinstance(content.get("data"), dict) else {}
    data = {k: v for k, v in raw_data.items() if k in fields}

    raw_confidence = content.get("confidence") if isinstance(content.get("confidence"), dict) else {}
    confidence: dict[str, int] = {}
    for key, score in raw_confidence.items():
        if key in fields and isinstance(score, (int, float)) and not isinstance(score, bool):
            confidence[key] = max(1, min(5, int(score)))
    return data, confidence
