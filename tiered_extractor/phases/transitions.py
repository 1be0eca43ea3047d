"""State machine transitions.

decide() is a pure function: given the run state, the batch that just
completed and what is known about the run, it returns the next run state
and the units to enqueue. The orchestrator applies the new state atomically
and only then submits the units, so a unit can never observe a state that
was not committed.

Level gating:

    Classify done        -> ResolveObjects(L0)
    ResolveObjects(L)    -> identity[L]; remaining units for L; resolution[L]
    Extract*(L)          -> extraction[L]
    all three flags on L -> ResolveObjects(L+1), or the run completes

A step that produces no units raises its flags at once and the cascade
continues, so every decision yields at most one batch.
"""

from dataclasses import dataclass, field

from tiered_extractor.agents.classifier_agent import artifacts_for_category
from tiered_extractor.agents.planner_agent import compile_plan
from tiered_extractor.core.classification_schema import (
    build_classification_schema,
    identity_group_key,
    remaining_group_key,
)
from tiered_extractor.core.unit_helpers import build_process_name, resolve_search_mode
from tiered_extractor.pydantic_models.artifact_models import Artifact
from tiered_extractor.pydantic_models.plan_models import (
    ExtractionPlan,
    GlobalSearchMode,
    ObjectPlan,
    ObjectType,
    SearchMode,
)
from tiered_extractor.pydantic_models.run_models import RunState, RunStatus
from tiered_extractor.pydantic_models.work_units import (
    Batch,
    ClassifyPayload,
    ExtractGroupPayload,
    ExtractRemainingPayload,
    Operation,
    PlanIdentifyPayload,
    PlanRemainingPayload,
    ResolveObjectsPayload,
    UnitPayload,
)

PLANNING_PHASE = "planning"

OPERATION_PHASES = {
    Operation.DEFAULT: "configuration",
    Operation.PLAN_IDENTIFY: PLANNING_PHASE,
    Operation.PLAN_REMAINING: PLANNING_PHASE,
    Operation.CLASSIFY: "classification",
    Operation.RESOLVE_OBJECTS: "resolution",
    Operation.EXTRACT_REMAINING: "extraction",
    Operation.EXTRACT_GROUP: "extraction",
}


@dataclass(frozen=True)
class PlannedUnit:
    """A unit to create once the decision is committed."""

    name: str
    payload: UnitPayload
    input_artifact_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class Decision:
    """Result of one transition."""

    state: RunState
    operation: Operation | None = None
    level: int | None = None
    units: tuple[PlannedUnit, ...] = ()
    compiled_plan: ExtractionPlan | None = None
    notes: tuple[str, ...] = ()


@dataclass(frozen=True)
class RunFacts:
    """Everything besides the run state that a transition may read.

    plan is the compiled (or cached) plan, None while planning.
    """

    plan: ExtractionPlan | None
    object_types: list[ObjectType]
    object_plans: dict[str, ObjectPlan]
    pages: list[Artifact]
    schema: dict
    global_search_mode: GlobalSearchMode = GlobalSearchMode.INTELLIGENT


@dataclass
class _Step:
    """Accumulates a decision while the cascade runs."""

    state: RunState
    notes: list[str] = field(default_factory=list)
    compiled_plan: ExtractionPlan | None = None

    def done(self, operation: Operation | None = None, level: int | None = None, units: list[PlannedUnit] | None = None) -> Decision:
        return Decision(
            state=self.state,
            operation=operation if units else None,
            level=level if units else None,
            units=tuple(units or ()),
            compiled_plan=self.compiled_plan,
            notes=tuple(self.notes),
        )


def plannable_types(object_types: list[ObjectType]) -> list[ObjectType]:
    """Object types with at least one simple field. Pure containers are not planned."""
    return [t for t in object_types if t.simple_fields]


def decide(state: RunState, batch: Batch, facts: RunFacts) -> Decision:
    """Next state and units after `batch` completed.

    The caller has already checked that the run is active, that the batch
    was not processed before and that all its units completed.
    """
    step = _Step(state=state.with_completed_batch(batch.id))

    match batch.operation:
        case Operation.DEFAULT:
            if facts.plan is not None:
                step.notes.append("plan cache hit")
                return _start_classification(step, facts.plan, facts)
            return _start_planning(step, facts)

        case Operation.PLAN_IDENTIFY:
            units = [
                PlannedUnit(
                    name=build_process_name("Plan Remaining", plan.object_type.level, name, plan.remaining_fields),
                    payload=PlanRemainingPayload(object_type=name),
                )
                for name, plan in facts.object_plans.items()
                if plan.remaining_fields
            ]
            if units:
                return step.done(Operation.PLAN_REMAINING, None, units)
            return _compile_and_classify(step, facts)

        case Operation.PLAN_REMAINING:
            return _compile_and_classify(step, facts)

        case Operation.CLASSIFY:
            return _start_level(step, 0, facts.plan, facts)

        case Operation.RESOLVE_OBJECTS:
            level = batch.level or 0
            step.state = step.state.with_progress(level, identity_complete=True)
            return _schedule_remaining(step, level, facts.plan, facts)

        case Operation.EXTRACT_REMAINING | Operation.EXTRACT_GROUP:
            level = batch.level or 0
            step.state = step.state.with_progress(level, extraction_complete=True)
            return _advance(step, level, facts.plan, facts)

    return step.done()


def _start_planning(step: _Step, facts: RunFacts) -> Decision:
    types = plannable_types(facts.object_types)
    if not types:
        step.state = step.state.failed(PLANNING_PHASE, "Schema has no fields to extract")
        return step.done()

    step.state = step.state.with_status(RunStatus.PLANNING)
    units = [
        PlannedUnit(
            name=build_process_name("Plan Identity", t.level, t.name, list(t.simple_fields)),
            payload=PlanIdentifyPayload(object_type=t.name),
        )
        for t in types
    ]
    return step.done(Operation.PLAN_IDENTIFY, None, units)


def _compile_and_classify(step: _Step, facts: RunFacts) -> Decision:
    plan = compile_plan(list(facts.object_plans.values()), facts.schema)
    if plan.is_empty or not plan.identity_groups():
        step.state = step.state.failed(PLANNING_PHASE, "Compiled plan has no identity groups")
        return step.done()

    step.compiled_plan = plan
    step.notes.append(f"compiled {len(plan.levels)} levels")
    return _start_classification(step, plan, facts)


def _start_classification(step: _Step, plan: ExtractionPlan, facts: RunFacts) -> Decision:
    step.state = step.state.model_copy(update={
        "classification_schema": build_classification_schema(plan),
    }).with_status(RunStatus.CLASSIFYING)

    units = [
        PlannedUnit(
            name=f"Classify: {page.name or page.position}",
            payload=ClassifyPayload(artifact_id=page.id),
            input_artifact_ids=(page.id,),
        )
        for page in sorted(facts.pages, key=lambda p: p.position)
    ]
    if units:
        return step.done(Operation.CLASSIFY, None, units)
    return _start_level(step, 0, plan, facts)


def _start_level(step: _Step, level: int, plan: ExtractionPlan | None, facts: RunFacts) -> Decision:
    """Create ResolveObjects units for a level, or cascade if there is nothing to resolve."""
    plan_level = plan.level(level) if plan else None
    if plan_level is None:
        step.state = step.state.with_status(RunStatus.COMPLETED)
        return step.done()

    step.state = step.state.model_copy(update={"current_level": level}).with_status(RunStatus.EXTRACTING)
    planned_types = {g.object_type for g in plan.identity_groups()}

    units = []
    for group in plan_level.identities:
        pages = artifacts_for_category(facts.pages, identity_group_key(group.object_type))
        if not pages:
            step.notes.append(f"no pages for {group.object_type}")
            continue

        parent_ids = step.state.parent_object_ids(level, group.parent_type) if level > 0 else []
        if group.parent_type in planned_types and not parent_ids:
            step.notes.append(f"no {group.parent_type} parents for {group.object_type}")
            continue

        units.append(PlannedUnit(
            name=build_process_name("Identity", level, group.object_type, group.skim_fields),
            payload=ResolveObjectsPayload(level=level, object_type=group.object_type, parent_object_ids=parent_ids),
            input_artifact_ids=tuple(p.id for p in pages),
        ))

    if units:
        return step.done(Operation.RESOLVE_OBJECTS, level, units)

    step.state = step.state.with_progress(level, identity_complete=True)
    return _schedule_remaining(step, level, plan, facts)


def _schedule_remaining(step: _Step, level: int, plan: ExtractionPlan | None, facts: RunFacts) -> Decision:
    """Create remaining-group units for a level and mark its resolution complete."""
    plan_level = plan.level(level) if plan else None
    step.state = step.state.with_progress(level, resolution_complete=True)

    units = []
    for group in plan_level.remaining if plan_level else []:
        pages = artifacts_for_category(facts.pages, remaining_group_key(group.name))
        object_ids = step.state.object_ids(group.object_type, level)
        if not pages or not object_ids:
            continue

        mode = resolve_search_mode(facts.global_search_mode, group.search_mode)
        for object_id in object_ids:
            if mode == SearchMode.SKIM:
                payload = ExtractGroupPayload(
                    level=level, group_name=group.name, object_type=group.object_type, object_id=object_id
                )
            else:
                payload = ExtractRemainingPayload(
                    level=level, group_name=group.name, object_type=group.object_type, object_id=object_id
                )
            units.append(PlannedUnit(
                name=build_process_name("Remaining", level, group.object_type, group.fields),
                payload=payload,
                input_artifact_ids=tuple(p.id for p in pages),
            ))

    if units:
        operation = (
            Operation.EXTRACT_REMAINING
            if any(u.payload.operation == Operation.EXTRACT_REMAINING for u in units)
            else Operation.EXTRACT_GROUP
        )
        return step.done(operation, level, units)

    step.state = step.state.with_progress(level, extraction_complete=True)
    return _advance(step, level, plan, facts)


def _advance(step: _Step, level: int, plan: ExtractionPlan | None, facts: RunFacts) -> Decision:
    """Move to the next level once every flag of this one is set."""
    if not step.state.is_level_complete(level):
        return step.done()
    if plan is None or plan.level(level + 1) is None:
        step.state = step.state.with_status(RunStatus.COMPLETED)
        return step.done()
    return _start_level(step, level + 1, plan, facts)
