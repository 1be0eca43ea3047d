"""Classification schema builder.

Turns a compiled plan into the boolean JSON schema the classifier fills in
for each page: one property per identity group and per remaining group.

    {"type": "object",
     "properties": {"demand_identification": {"type": "boolean", "description": "..."},
                    "billing_details": {"type": "boolean", "description": "..."}},
     "required": ["demand_identification", "billing_details"]}
"""

import hashlib
import json
from typing import Any

from tiered_extractor.core.config import ClassificationConfig
from tiered_extractor.core.schema_tools import snake_case
from tiered_extractor.pydantic_models.plan_models import ExtractionPlan, IdentityGroup, RemainingGroup


def identity_group_key(object_type: str) -> str:
    """"Demand" -> "demand_identification"."""
    return snake_case(f"{object_type} {ClassificationConfig.IDENTITY_KEY_SUFFIX}")


def remaining_group_key(group_name: str) -> str:
    return snake_case(group_name)


def group_key(group: IdentityGroup | RemainingGroup) -> str:
    """Classification property a group's pages are flagged under."""
    if isinstance(group, IdentityGroup):
        return identity_group_key(group.object_type)
    return remaining_group_key(group.name)


def build_classification_schema(plan: ExtractionPlan) -> dict[str, Any]:
    """Build the boolean classification schema for a plan.

    Pure and deterministic: levels in order, identities before remaining
    groups within a level. A key shared by two groups appears once (first
    description wins).
    """
    properties: dict[str, dict[str, Any]] = {}

    for level in plan.levels:
        for identity in level.identities:
            key = identity_group_key(identity.object_type)
            properties.setdefault(key, {
                "type": "boolean",
                "description": ClassificationConfig.IDENTITY_DESCRIPTION.format(object_type=identity.object_type),
            })
        for remaining in level.remaining:
            key = remaining_group_key(remaining.name)
            properties.setdefault(key, {
                "type": "boolean",
                "description": remaining.description or "",
            })

    return {
        "type": "object",
        "properties": properties,
        "required": list(properties.keys()),
    }


def canonical_json(value: Any) -> str:
    """JSON with sorted keys and no whitespace, for hashing."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def schema_fingerprint(schema: dict[str, Any]) -> str:
    """Content hash of a classification schema."""
    return hashlib.sha256(canonical_json(schema).encode("utf-8")).hexdigest()
