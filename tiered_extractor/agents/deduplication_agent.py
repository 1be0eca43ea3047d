"""Deduplication agent: normalises label spellings across classified pages.

Label-style classification values (strings, or objects carrying an id or a
name) drift between pages: "Dan Newman" on one page, "Danny Newman" on the
next. One LLM call over the distinct labels returns a canonical mapping,
which is then written back without touching any other part of the values.
"""

import logging
from typing import Any, Iterable

from tiered_extractor.core.config import DEFAULT_MODELS
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.errors import ErrorSeverity, PipelineErrors, llm_api_error, llm_parse_error
from tiered_extractor.core.llm_client import LLMClient
from tiered_extractor.agents.classifier_agent import merge_classification
from tiered_extractor.pydantic_models.artifact_models import Artifact
from tiered_extractor.pydantic_models.correction_models import DeduplicationResult
from tiered_extractor.prompts.correction_prompt import DEDUPLICATION_SYSTEM_PROMPT, build_deduplication_prompt

logger = logging.getLogger(__name__)

_LABEL_KEYS = ("id", "name")


def object_label_key(value: dict[str, Any]) -> str | None:
    """Which sub-field labels an object: `id` if usable, else `name`."""
    for key in _LABEL_KEYS:
        candidate = value.get(key)
        if candidate is None or isinstance(candidate, (bool, dict, list)):
            continue
        if str(candidate).strip():
            return key
    return None


def extract_labels(value: Any) -> list[str]:
    """Labels carried by a classification value.

    Strings are labels, objects contribute their id (else name), lists are
    walked. Booleans, numbers and null carry no label.
    """
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, dict):
        key = object_label_key(value)
        return [str(value[key]).strip()] if key else []
    if isinstance(value, list):
        return [label for item in value for label in extract_labels(item)]
    return []


def rewrite_labels(value: Any, mappings: dict[str, str]) -> Any:
    """Return `value` with mapped labels replaced.

    Strings are replaced wholesale; objects only have their label sub-field
    rewritten; lists are rewritten item by item.
    """
    if isinstance(value, str):
        return mappings.get(value.strip(), value)
    if isinstance(value, dict):
        key = object_label_key(value)
        if key and str(value[key]).strip() in mappings:
            return {**value, key: mappings[str(value[key]).strip()]}
        return value
    if isinstance(value, list):
        return [rewrite_labels(item, mappings) for item in value]
    return value


def collect_labels(artifacts: Iterable[Artifact], properties: list[str] | None = None) -> list[str]:
    """Distinct labels over the given properties (all of them when None), in first-seen order."""
    labels: dict[str, None] = {}
    for artifact in artifacts:
        for key, value in artifact.classification.items():
            if properties is not None and key not in properties:
                continue
            for label in extract_labels(value):
                labels.setdefault(label, None)
    return list(labels)


def parse_mappings(content: Any, labels: list[str]) -> dict[str, str] | None:
    """Changed entries of a {"mappings": {...}} reply, or None if the reply is unusable."""
    if not isinstance(content, dict) or not isinstance(content.get("mappings"), dict):
        return None
    known = set(labels)
    mappings = {}
    for original, canonical in content["mappings"].items():
        if original not in known or not isinstance(canonical, str):
            continue
        canonical = canonical.strip()
        if canonical and canonical != original:
            mappings[original] = canonical
    return mappings


async def deduplicate(
    artifacts: list[Artifact],
    property: str | None = None,
    model: str = DEFAULT_MODELS["deduplicator"],
    cost_tracker: CostTracker | None = None,
    errors: PipelineErrors | None = None,
) -> DeduplicationResult:
    """Normalise labels of one property (or every property) across pages.

    Best effort: an API failure or unusable reply is recorded in `errors`
    and leaves the pages untouched.
    """
    properties = [property] if property else None
    labels = collect_labels(artifacts, properties)
    result = DeduplicationResult(labels=labels)
    if len(labels) < 2:
        return result

    client = LLMClient(cost_tracker=cost_tracker)
    try:
        response = await client.complete(
            system_prompt=DEDUPLICATION_SYSTEM_PROMPT,
            user_prompt=build_deduplication_prompt(labels),
            model=model,
            agent="deduplicator",
        )
    except Exception as e:
        logger.warning(f"Deduplication call failed: {e}")
        if errors is not None:
            errors.add(llm_api_error(
                f"Deduplication call failed: {e}", phase="Deduplication", original=e, severity=ErrorSeverity.WARNING
            ))
        return result

    mappings = parse_mappings(response.content, labels)
    if mappings is None:
        if errors is not None:
            errors.add(llm_parse_error("Unusable deduplication reply", phase="Deduplication", raw_response=response.raw_content))
        return result
    if not mappings:
        return result

    result.mappings_applied = mappings
    for artifact in artifacts:
        updates = {}
        for key, value in artifact.classification.items():
            if properties is not None and key not in properties:
                continue
            rewritten = rewrite_labels(value, mappings)
            if rewritten != value:
                updates[key] = rewritten
        if updates:
            merge_classification(artifact, updates)
            result.artifacts_updated += 1

    logger.info(f"Deduplication: {len(mappings)} labels normalised on {result.artifacts_updated} pages")
    return result
