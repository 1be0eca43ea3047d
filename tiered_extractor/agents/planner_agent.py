"""Planner agent: turns a target schema into an extraction plan.

Planning happens per object type, in two steps that run as separate work
units so every object type is planned in parallel:

1. Identity: which fields tell two objects of the type apart, and which
   cheap fields to read in the same pass (skim fields).
2. Remaining: everything else, grouped into extraction groups of at most
   group_max_points fields. The LLM gets follow-up turns listing whatever
   fields its previous answer left out.

compile_plan() then assembles the per-type results into levels.
"""

from pydantic import ValidationError

from tiered_extractor.core.classification_schema import identity_group_key, remaining_group_key
from tiered_extractor.core.config import DEFAULT_MODELS, PlanningConfig
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.errors import PlanningError, planning_error
from tiered_extractor.core.llm_client import LLMClient
from tiered_extractor.core.schema_tools import build_fragment_selector
from tiered_extractor.pydantic_models.plan_models import (
    ExtractionPlan,
    FieldGroup,
    IdentityGroup,
    IdentityPlanResponse,
    Level,
    ObjectPlan,
    ObjectType,
    RemainingGroup,
    RemainingPlanResponse,
    SearchMode,
)
from tiered_extractor.prompts.planner_prompt import (
    IDENTITY_SYSTEM_PROMPT,
    REMAINING_SYSTEM_PROMPT,
    build_identity_prompt,
    build_remaining_followup_prompt,
    build_remaining_prompt,
)

_GROUP_MODES = {SearchMode.SKIM.value, SearchMode.EXHAUSTIVE.value}


async def plan_identity(
    object_type: ObjectType,
    group_max_points: int = PlanningConfig.GROUP_MAX_POINTS,
    hints: str | None = None,
    model: str = DEFAULT_MODELS["planner"],
    cost_tracker: CostTracker | None = None,
) -> ObjectPlan:
    """Choose identity and skim fields for one object type.

    Raises:
        PlanningError: If none of the proposed identity fields exist on the type.
    """
    client = LLMClient(cost_tracker=cost_tracker)
    response = await client.complete_structured(
        system_prompt=IDENTITY_SYSTEM_PROMPT,
        user_prompt=build_identity_prompt(object_type, group_max_points, hints),
        model=model,
        response_model=IdentityPlanResponse,
        agent="planner",
    )
    return apply_identity_response(object_type, response)


def apply_identity_response(object_type: ObjectType, response: IdentityPlanResponse) -> ObjectPlan:
    """Validate an identity response against the object's fields and derive the remaining fields."""
    available = object_type.simple_fields
    identity_fields = _unique([f for f in response.identity_fields if f in available])
    if not identity_fields:
        raise PlanningError(planning_error(
            f"No valid identity fields for {object_type.name}",
            phase="Plan: Identify",
            object_type=object_type.name,
            missing_fields=response.identity_fields,
        ))

    # Skim fields always include the identity fields
    skim_fields = _unique(identity_fields + [f for f in response.skim_fields if f in available])
    remaining_fields = [f for f in available if f not in skim_fields]

    identity = response.model_copy(update={"identity_fields": identity_fields, "skim_fields": skim_fields})
    return ObjectPlan(object_type=object_type, identity=identity, remaining_fields=remaining_fields)


async def plan_remaining(
    object_plan: ObjectPlan,
    group_max_points: int = PlanningConfig.GROUP_MAX_POINTS,
    hints: str | None = None,
    model: str = DEFAULT_MODELS["planner"],
    cost_tracker: CostTracker | None = None,
    max_attempts: int = PlanningConfig.MAX_FIELD_GROUPING_ATTEMPTS,
) -> ObjectPlan:
    """Group an object type's remaining fields into extraction groups.

    Raises:
        PlanningError: If fields are still uncovered after max_attempts turns.
    """
    object_type = object_plan.object_type
    expected = list(object_plan.remaining_fields)
    if not expected:
        return object_plan

    client = LLMClient(cost_tracker=cost_tracker)
    fields_info = {f: object_type.simple_fields.get(f, {}) for f in expected}
    messages = [
        {"role": "system", "content": REMAINING_SYSTEM_PROMPT},
        {"role": "user", "content": build_remaining_prompt(object_type, fields_info, group_max_points, hints)},
    ]

    groups: list[FieldGroup] = []
    missing = expected
    for attempt in range(1, max_attempts + 1):
        response = await client.complete_with_history(messages, model=model, agent="planner")
        groups = merge_field_groups(groups, parse_remaining_response(response.content), expected, group_max_points)
        covered = {f for group in groups for f in group.fields}
        missing = [f for f in expected if f not in covered]
        if not missing:
            break
        if attempt < max_attempts:
            messages.append({"role": "assistant", "content": response.raw_content})
            messages.append({
                "role": "user",
                "content": build_remaining_followup_prompt(
                    object_type,
                    {f: object_type.simple_fields.get(f, {}) for f in missing},
                    group_max_points,
                    attempt + 1,
                ),
            })

    if missing:
        raise PlanningError(planning_error(
            f"Field grouping for {object_type.name} left {len(missing)} fields uncovered",
            phase="Plan: Remaining",
            object_type=object_type.name,
            missing_fields=missing,
        ))

    return object_plan.model_copy(update={"extraction_groups": groups})


def parse_remaining_response(content) -> list[FieldGroup]:
    """Read extraction groups out of a raw reply. Unusable replies give no groups."""
    if not isinstance(content, dict):
        return []
    try:
        return RemainingPlanResponse.model_validate(content).extraction_groups
    except ValidationError:
        return []


def merge_field_groups(
    existing: list[FieldGroup],
    proposed: list[FieldGroup],
    expected: list[str],
    group_max_points: int,
) -> list[FieldGroup]:
    """Add proposed groups to the existing ones, keeping each field's first placement.

    Unknown fields are dropped, invalid search modes become exhaustive,
    oversized groups are split and groups left empty are discarded.
    """
    seen = {f for group in existing for f in group.fields}
    merged = list(existing)

    for group in proposed:
        fields = []
        for field_name in group.fields:
            if field_name in expected and field_name not in seen:
                seen.add(field_name)
                fields.append(field_name)
        if not fields:
            continue

        mode = group.search_mode if group.search_mode in _GROUP_MODES else SearchMode.EXHAUSTIVE.value
        chunks = [fields[i:i + group_max_points] for i in range(0, len(fields), group_max_points)]
        for index, chunk in enumerate(chunks):
            name = group.name if index == 0 else f"{group.name} {index + 1}"
            merged.append(FieldGroup(name=name, description=group.description, fields=chunk, search_mode=mode))

    return merged


def unique_group_name(name: str, type_name: str, used_keys: set[str]) -> str:
    """`name`, else prefixed with the type, else numbered, whose classification key is not in `used_keys`."""
    candidate = name
    if remaining_group_key(candidate) in used_keys:
        candidate = f"{type_name} {name}"
    base, counter = candidate, 2
    while remaining_group_key(candidate) in used_keys:
        candidate = f"{base} {counter}"
        counter += 1
    return candidate


def compile_plan(object_plans: list[ObjectPlan], schema: dict) -> ExtractionPlan:
    """Assemble per-type plans into levels, shallowest first.

    Array types always identify and extract exhaustively: every page may hold
    another instance.
    """
    if not object_plans:
        return ExtractionPlan()

    by_level: dict[int, tuple[list[IdentityGroup], list[RemainingGroup]]] = {}
    # Group names become classification keys, so they must be unique across types and identity groups
    used_keys = {identity_group_key(p.object_type.name) for p in object_plans if p.identity is not None}
    for plan in sorted(object_plans, key=lambda p: p.object_type.level):
        object_type = plan.object_type
        identities, remaining = by_level.setdefault(object_type.level, ([], []))

        if plan.identity is not None:
            identity_mode = SearchMode.EXHAUSTIVE if object_type.is_array else plan.identity.search_mode
            identities.append(IdentityGroup(
                object_type=object_type.name,
                identity_fields=plan.identity.identity_fields,
                skim_fields=plan.identity.skim_fields,
                search_mode=identity_mode,
                description=plan.identity.description or None,
                fragment_selector=build_fragment_selector(
                    object_type.path, plan.identity.skim_fields, schema, object_type.is_array
                ),
                parent_type=object_type.parent_type,
            ))

        for group in plan.extraction_groups:
            name = unique_group_name(group.name, object_type.name, used_keys)
            used_keys.add(remaining_group_key(name))
            mode = SearchMode.EXHAUSTIVE if object_type.is_array else SearchMode(
                group.search_mode if group.search_mode in _GROUP_MODES else SearchMode.EXHAUSTIVE.value
            )
            remaining.append(RemainingGroup(
                name=name,
                description=group.description or None,
                object_type=object_type.name,
                fields=group.fields,
                search_mode=mode,
                fragment_selector=build_fragment_selector(object_type.path, group.fields, schema, object_type.is_array),
                parent_type=object_type.parent_type,
            ))

    max_level = max(by_level)
    return ExtractionPlan(levels=[
        Level(level=index, identities=by_level.get(index, ([], []))[0], remaining=by_level.get(index, ([], []))[1])
        for index in range(max_level + 1)
    ])


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))
