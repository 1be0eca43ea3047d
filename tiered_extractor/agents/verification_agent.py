"""Verification agent: corrects page labels using neighbouring pages.

Pages are classified one at a time, so a page that merely continues the
previous section can end up with the wrong label. Verification looks for
outliers (a value that differs from every available neighbour), shows the
LLM a small window around each, and applies the corrections it proposes.

A correction on a context page (not the one in focus) may have knock-on
effects, so it schedules another window centred on that page, one
generation deeper. The work queue caps generations, total windows, and
visits each (page, property) centre at most once per pass.
"""

import heapq
import itertools
import logging
from typing import Any

from pydantic import ValidationError

from tiered_extractor.core.config import DEFAULT_MODELS, ClassificationConfig, VerificationConfig
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.errors import ErrorSeverity, PipelineErrors, llm_api_error, llm_parse_error
from tiered_extractor.core.llm_client import LLMClient
from tiered_extractor.core.value_helpers import comparable_value, replace_label
from tiered_extractor.agents.classifier_agent import merge_classification
from tiered_extractor.pydantic_models.artifact_models import Artifact
from tiered_extractor.pydantic_models.correction_models import (
    Correction,
    CorrectionResponse,
    VerificationFocus,
    VerificationResult,
    VerificationUnit,
)
from tiered_extractor.prompts.correction_prompt import VERIFICATION_SYSTEM_PROMPT, build_verification_prompt

logger = logging.getLogger(__name__)


def find_verification_foci(artifacts: list[Artifact], property: str) -> list[VerificationFocus]:
    """Pages whose value for `property` differs from every available neighbour.

    Neighbours are the previous PREVIOUS_NEIGHBORS and next NEXT_NEIGHBORS
    pages by position; neighbours without a value are ignored, and a page
    with no valued neighbour is never a focus.
    """
    ordered = sorted(artifacts, key=lambda a: a.position)
    values = [comparable_value(a.classification.get(property)) for a in ordered]
    foci = []

    for index, artifact in enumerate(ordered):
        value = values[index]
        if value is None:
            continue
        neighbours = [
            values[i]
            for i in range(index - VerificationConfig.PREVIOUS_NEIGHBORS, index + VerificationConfig.NEXT_NEIGHBORS + 1)
            if i != index and 0 <= i < len(ordered) and values[i] is not None
        ]
        if neighbours and all(n != value for n in neighbours):
            foci.append(VerificationFocus(artifact.id, property, value, artifact.position))
    return foci


def context_window(ordered: list[Artifact], index: int) -> list[Artifact]:
    """Previous pages, the page at `index`, then next pages, cut at the edges."""
    start = max(0, index - VerificationConfig.PREVIOUS_NEIGHBORS)
    return ordered[start:index + VerificationConfig.NEXT_NEIGHBORS + 1]


def corrected_value(current: Any, correction: Any) -> Any:
    """New value after a correction.

    An object keeps its structure and only has its name (else id) replaced.
    An object correction contributes its own name (else id) as the new label;
    one with neither replaces the value wholesale.
    """
    if isinstance(correction, dict):
        label = correction.get("name", correction.get("id"))
        if label is None:
            return correction
        correction = label
    return replace_label(current, correction, keys=("name", "id"))


def parse_corrections(content: Any, window_ids: set[int]) -> list[Correction] | None:
    """Valid corrections in a reply, or None if the reply is unusable.

    Entries with missing fields or addressing pages outside the window are dropped.
    """
    try:
        response = CorrectionResponse.model_validate(content)
    except ValidationError:
        return None
    corrections = []
    for entry in response.corrections:
        if not isinstance(entry, dict):
            continue
        try:
            correction = Correction.model_validate(entry)
        except ValidationError:
            continue
        if correction.artifact_id in window_ids:
            corrections.append(correction)
    return corrections


async def verify(
    artifacts: list[Artifact],
    property: str,
    property_rule: str = "",
    model: str = DEFAULT_MODELS["verifier"],
    cost_tracker: CostTracker | None = None,
    errors: PipelineErrors | None = None,
) -> VerificationResult:
    """Verify one property over a sequence of pages and apply corrections.

    Best effort: failed calls and unusable replies are recorded as warnings
    in `errors` and skipped.
    """
    ordered = sorted(artifacts, key=lambda a: a.position)
    index_of = {a.id: i for i, a in enumerate(ordered)}
    result = VerificationResult(property=property, foci=find_verification_foci(ordered, property))

    sequence = itertools.count()
    queue: list[VerificationUnit] = [
        VerificationUnit(0, next(sequence), focus.artifact_id, property) for focus in result.foci
    ]
    heapq.heapify(queue)
    visited: set[tuple[int, str]] = set()
    client = LLMClient(cost_tracker=cost_tracker)

    while queue and result.units_processed < VerificationConfig.MAX_UNITS:
        unit = heapq.heappop(queue)
        centre = (unit.artifact_id, unit.property)
        if centre in visited or unit.generation > VerificationConfig.MAX_DEPTH:
            continue
        visited.add(centre)
        result.units_processed += 1

        index = index_of[unit.artifact_id]
        window = context_window(ordered, index)
        entries = [
            {
                "position": page.position,
                "artifact_id": page.id,
                "value": page.classification.get(property),
                "content": page.text[:ClassificationConfig.MAX_PAGE_CHARS],
                "focus": page.id == unit.artifact_id,
            }
            for page in window
        ]

        try:
            response = await client.complete(
                system_prompt=VERIFICATION_SYSTEM_PROMPT,
                user_prompt=build_verification_prompt(property, property_rule, entries),
                model=model,
                agent="verifier",
            )
        except Exception as e:
            logger.warning(f"Verification call failed for page {unit.artifact_id}: {e}")
            if errors is not None:
                errors.add(llm_api_error(
                    f"Verification call failed: {e}", phase="Verification", original=e, severity=ErrorSeverity.WARNING
                ))
            continue

        corrections = parse_corrections(response.content, {page.id for page in window})
        if corrections is None:
            result.discarded_responses += 1
            if errors is not None:
                errors.add(llm_parse_error(
                    "Unusable verification reply", phase="Verification",
                    artifact_id=unit.artifact_id, raw_response=response.raw_content,
                ))
            continue

        for correction in corrections:
            page = ordered[index_of[correction.artifact_id]]
            current = page.classification.get(property)
            new_value = corrected_value(current, correction.corrected_value)
            if new_value == current:
                continue

            merge_classification(page, {property: new_value})
            result.corrections_applied += 1
            logger.debug(f"Corrected page {page.id} {property}: {current!r} -> {new_value!r} ({correction.reason})")

            if page.id != unit.artifact_id and unit.generation + 1 <= VerificationConfig.MAX_DEPTH:
                if (page.id, property) not in visited:
                    heapq.heappush(queue, VerificationUnit(unit.generation + 1, next(sequence), page.id, property))
                    result.recursive_units_scheduled += 1

    return result


def label_properties(artifacts: list[Artifact]) -> list[str]:
    """Classification properties holding label-style values on at least one page."""
    properties: dict[str, None] = {}
    for artifact in artifacts:
        for key, value in artifact.classification.items():
            if comparable_value(value) is not None:
                properties.setdefault(key, None)
    return list(properties)


async def verify_all(
    artifacts: list[Artifact],
    property_rules: dict[str, str] | None = None,
    model: str = DEFAULT_MODELS["verifier"],
    cost_tracker: CostTracker | None = None,
    errors: PipelineErrors | None = None,
) -> list[VerificationResult]:
    """Verify every label-style property, one property at a time."""
    property_rules = property_rules or {}
    results = []
    for property in label_properties(artifacts):
        results.append(await verify(
            artifacts,
            property,
            property_rule=property_rules.get(property, ""),
            model=model,
            cost_tracker=cost_tracker,
            errors=errors,
        ))
    return results
