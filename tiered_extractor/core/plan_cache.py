"""Plan cache stored on the plan owner.

A compiled plan is reused only when the cache key computed from the current
inputs equals the stored key, so editing the schema, the hints, the search
mode or the group size always triggers a fresh plan.
"""

import hashlib
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from tiered_extractor.core.classification_schema import canonical_json
from tiered_extractor.core.config import PlanningConfig
from tiered_extractor.pydantic_models.artifact_models import PlanOwner
from tiered_extractor.pydantic_models.plan_models import ExtractionPlan

PLAN_KEY = "extraction_plan"
CACHE_KEY_KEY = "extraction_plan_cache_key"
GENERATED_AT_KEY = "extraction_plan_generated_at"


def plan_cache_key(
    schema: dict[str, Any],
    hints: str | None,
    global_search_mode: str,
    group_max_points: int = PlanningConfig.GROUP_MAX_POINTS,
    version: int = PlanningConfig.PLAN_SCHEMA_SHAPE_VERSION,
) -> str:
    """sha256 over the canonical JSON of every input that shapes a plan."""
    payload = {
        "schema": schema,
        "hints": hints or "",
        "global_search_mode": global_search_mode,
        "group_max_points": group_max_points,
        "version": version,
    }
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def get_cached_plan(owner: PlanOwner, key: str) -> ExtractionPlan | None:
    """Return the owner's stored plan if it was built from the same inputs.

    A stored plan that no longer validates against the current models is
    treated as a miss.
    """
    if owner.meta.get(CACHE_KEY_KEY) != key:
        return None
    stored = owner.meta.get(PLAN_KEY)
    if not stored:
        return None
    try:
        return ExtractionPlan.model_validate(stored)
    except ValidationError:
        return None


def store_plan(owner: PlanOwner, plan: ExtractionPlan, key: str) -> None:
    owner.meta[PLAN_KEY] = plan.model_dump(mode="json")
    owner.meta[CACHE_KEY_KEY] = key
    owner.meta[GENERATED_AT_KEY] = datetime.now(timezone.utc).isoformat()
