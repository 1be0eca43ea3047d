"""Planning handlers: identity and remaining-field planning per object type."""

from tiered_extractor.agents.planner_agent import plan_identity, plan_remaining
from tiered_extractor.phases.phase_base import OperationHandler
from tiered_extractor.pydantic_models.work_units import PlanIdentifyPayload, PlanRemainingPayload, WorkUnit


class PlanIdentifyHandler(OperationHandler[PlanIdentifyPayload]):
    """Chooses identity and skim fields for one object type."""

    name = "Plan: Identify"

    async def handle(self, unit: WorkUnit, payload: PlanIdentifyPayload) -> None:
        object_type = self.context.object_type(payload.object_type)
        object_plan = await plan_identity(
            object_type,
            group_max_points=self.context.config.group_max_points,
            hints=self.context.owner.hints,
            model=self.context.config.planner_model,
            cost_tracker=self.context.cost_tracker,
        )
        self.context.data.object_plans[object_type.name] = object_plan
        self.log(
            f"{object_type.name}: identity {object_plan.identity.identity_fields}",
            level="debug",
            remaining=len(object_plan.remaining_fields),
        )


class PlanRemainingHandler(OperationHandler[PlanRemainingPayload]):
    """Groups one object type's remaining fields into extraction groups."""

    name = "Plan: Remaining"

    async def handle(self, unit: WorkUnit, payload: PlanRemainingPayload) -> None:
        object_plan = self.context.data.object_plans[payload.object_type]
        updated = await plan_remaining(
            object_plan,
            group_max_points=self.context.config.group_max_points,
            hints=self.context.owner.hints,
            model=self.context.config.planner_model,
            cost_tracker=self.context.cost_tracker,
        )
        self.context.data.object_plans[payload.object_type] = updated
        self.log(
            f"{payload.object_type}: {len(updated.extraction_groups)} groups",
            level="debug",
            groups=[g.name for g in updated.extraction_groups],
        )
