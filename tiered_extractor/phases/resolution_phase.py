"""Resolution handler: discovers the objects of one identity group at one level."""

from functools import reduce

from tiered_extractor.agents.resolver_agent import resolve_objects
from tiered_extractor.phases.phase_base import OperationHandler
from tiered_extractor.pydantic_models.run_models import RunState
from tiered_extractor.pydantic_models.work_units import ResolveObjectsPayload, WorkUnit


class ResolveObjectsHandler(OperationHandler[ResolveObjectsPayload]):
    """Creates (or reuses) DomainObjects and registers them in the run state.

    Only objects listed in the payload's parent_object_ids are eligible
    parents. Registration is idempotent, so a retried unit is harmless.
    """

    name = "Resolve Objects"

    async def handle(self, unit: WorkUnit, payload: ResolveObjectsPayload) -> None:
        group = self.context.identity_group(payload.level, payload.object_type)
        pages = self.context.unit_pages(unit)
        repository = self.context.repository
        parents = [p for p in (repository.get_object(i) for i in payload.parent_object_ids) if p is not None]

        objects = await resolve_objects(
            repository,
            group,
            payload.level,
            pages,
            parents,
            self.context.schema,
            model=self.context.config.resolver_model,
            cost_tracker=self.context.cost_tracker,
        )

        def register(state: RunState) -> RunState:
            return reduce(
                lambda s, obj: s.with_resolved_object(payload.object_type, payload.level, obj.id),
                objects,
                state,
            )

        await self.context.store.apply(register)
        self.log(
            f"L{payload.level} {payload.object_type}: {len(objects)} objects",
            pages=len(pages),
            names=[o.name for o in objects][:10],
        )
