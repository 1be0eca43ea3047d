"""Extraction orchestrator: an event-driven state machine over work units.

The orchestrator never runs a phase itself. It creates batches of work units,
hands them to a job runtime, and decides what comes next each time a batch
has fully completed:

    Default -> [Plan: Identify -> Plan: Remaining] -> Classify
            -> Resolve Objects(L0) -> Extract*(L0)
            -> Resolve Objects(L1) -> Extract*(L1) -> ... -> completed

The bracketed planning steps are skipped when the plan owner holds a cached
plan built from the same inputs. Level L+1 never starts before identity,
resolution and extraction of level L are all complete.

Each decision is computed by the pure transitions.decide() and applied to the
RunStateStore in one atomic step; units are created and submitted only after
the new state is committed. Completion callbacks may arrive more than once,
so a batch already recorded as processed is ignored.
"""

import uuid

from tiered_extractor.core.artifact_splitter import SPLIT_DEFAULT, split
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.errors import ConfigurationError, PipelineErrors, configuration_error
from tiered_extractor.core.job_runtime import InMemoryJobRuntime, JobRuntime
from tiered_extractor.core.pipeline_logger import PipelineLogger, get_logger
from tiered_extractor.core.plan_cache import get_cached_plan, plan_cache_key, store_plan
from tiered_extractor.core.repository import InMemoryRepository, Repository
from tiered_extractor.core.rollup import build_rollup
from tiered_extractor.core.schema_tools import extract_object_types
from tiered_extractor.core.state_tracker import RunStateStore
from tiered_extractor.phases import (
    OPERATION_PHASES,
    ClassifyHandler,
    Decision,
    ExtractGroupHandler,
    ExtractRemainingHandler,
    PlanIdentifyHandler,
    PlanRemainingHandler,
    ResolveObjectsHandler,
    RunConfig,
    RunContext,
    RunData,
    RunFacts,
    RunResources,
    decide,
)
from tiered_extractor.pydantic_models import (
    Artifact,
    Batch,
    ClassifyPayload,
    DefaultPayload,
    DomainObject,
    ExtractGroupPayload,
    ExtractRemainingPayload,
    Operation,
    PlanIdentifyPayload,
    PlanOwner,
    PlanRemainingPayload,
    ResolveObjectsPayload,
    RunState,
    RunStatus,
    UnitStatus,
    WorkUnit,
)


class ExtractionOrchestrator:
    """Drives one extraction run for a plan owner over a set of artifacts."""

    def __init__(
        self,
        owner: PlanOwner,
        artifacts: list[Artifact],
        repository: Repository | None = None,
        runtime: JobRuntime | None = None,
        config: RunConfig | None = None,
        logger: PipelineLogger | None = None,
        cost_tracker: CostTracker | None = None,
        run_id: str | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            owner: Plan owner holding the target schema and the plan cache.
            artifacts: Root artifacts. With config.page_levels set, their
                descendants at those depths are the pages; otherwise the
                roots themselves are.
            repository: Storage for owners, artifacts, objects and units.
                Defaults to an InMemoryRepository seeded with owner and artifacts.
            runtime: Job runtime executing units. Defaults to InMemoryJobRuntime.
            config: Run settings.
            logger: Pipeline logger. Defaults to the global logger.
            cost_tracker: LLM usage tracker shared by every handler.
            run_id: Identifier of the run. Generated if omitted.
        """
        self.owner = owner
        self.roots = artifacts
        self.config = config or RunConfig()
        self.repository = repository or InMemoryRepository(owners=[owner], artifacts=artifacts)
        self.runtime = runtime or InMemoryJobRuntime()
        self.logger = logger or get_logger(verbose=self.config.verbose)
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self._plan_key: str | None = None

        groups = split(SPLIT_DEFAULT, artifacts, levels=self.config.page_levels)
        pages = sorted(groups[0], key=lambda a: a.position) if groups else []
        for page in pages:
            if self.repository.get_artifact(page.id) is None:
                self.repository.save_artifact(page)

        resources = RunResources(
            repository=self.repository,
            runtime=self.runtime,
            logger=self.logger,
            cost_tracker=cost_tracker or CostTracker(),
        )
        self.store = RunStateStore(RunState(run_id=self.run_id))
        self.context = RunContext(
            owner=owner,
            pages=pages,
            store=self.store,
            resources=resources,
            config=self.config,
            data=RunData(),
        )

        self._plan_identify = PlanIdentifyHandler(self.context)
        self._plan_remaining = PlanRemainingHandler(self.context)
        self._classify = ClassifyHandler(self.context)
        self._resolve = ResolveObjectsHandler(self.context)
        self._extract_remaining = ExtractRemainingHandler(self.context)
        self._extract_group = ExtractGroupHandler(self.context)

        self.runtime.attach(self.execute, self.on_unit_finished)

    @property
    def state(self) -> RunState:
        return self.store.read()

    @property
    def cost_tracker(self) -> CostTracker:
        return self.context.cost_tracker

    # -- Lifecycle --

    async def start(self) -> RunState:
        """Validate the owner, look up the plan cache and enqueue the Default batch.

        Raises:
            ConfigurationError: If the plan owner has no target schema. No unit
                is created in that case.
        """
        if not self.owner.target_schema:
            error = configuration_error(f"Plan owner {self.owner.id} has no target schema")
            self.context.errors.add(error)
            self.logger.error(error.message, owner_id=self.owner.id)
            raise ConfigurationError(error)

        self.logger.start_run(self.run_id)
        self.context.data.object_types = extract_object_types(
            self.owner.target_schema, default_name=self.owner.name or "Root"
        )
        self._plan_key = plan_cache_key(
            self.owner.target_schema,
            self.owner.hints,
            self.config.global_search_mode.value,
            self.config.group_max_points,
        )

        cached = get_cached_plan(self.owner, self._plan_key)
        if cached is not None:
            self.context.plan = cached
            self.logger.milestone("Using cached plan", levels=len(cached.levels))

        self.logger.info(
            f"{len(self.context.pages)} pages, {len(self.context.data.object_types)} object types",
            search_mode=self.config.global_search_mode.value,
        )

        batch = self.repository.create_batch(self.run_id, Operation.DEFAULT)
        unit = self.repository.create_unit(batch, "Default", DefaultPayload())
        await self.runtime.submit(batch, [unit])
        return self.state

    async def run(self) -> RunState:
        """Start the run and wait until the runtime has nothing left to do."""
        await self.start()
        await self.runtime.drain()
        state = self.state
        if not state.status.is_terminal:
            self.logger.warning("Runtime drained before the run finished", status=state.status.value)
        return state

    async def cancel(self) -> RunState:
        """Stop the run. Pending units are aborted and later completions create nothing."""
        self.runtime.abort(self.run_id)
        before = self.state
        after = await self.store.apply(lambda s: s.with_status(RunStatus.CANCELLED))
        if after.status == RunStatus.CANCELLED and before.status != RunStatus.CANCELLED:
            self.logger.milestone("Run cancelled", level=after.current_level)
            self.logger.end_run(success=False, stats=self.get_stats())
        return after

    # -- Runtime callbacks --

    async def execute(self, unit: WorkUnit) -> None:
        """Route a unit to the handler for its payload type."""
        match unit.payload:
            case DefaultPayload():
                self.logger.debug("Entry unit", run_id=unit.run_id)
            case PlanIdentifyPayload() as payload:
                await self._plan_identify.execute(unit, payload)
            case PlanRemainingPayload() as payload:
                await self._plan_remaining.execute(unit, payload)
            case ClassifyPayload() as payload:
                await self._classify.execute(unit, payload)
            case ResolveObjectsPayload() as payload:
                await self._resolve.execute(unit, payload)
            case ExtractRemainingPayload() as payload:
                await self._extract_remaining.execute(unit, payload)
            case ExtractGroupPayload() as payload:
                await self._extract_group.execute(unit, payload)
            case _:
                raise ValueError(f"No handler for operation {unit.operation}")

    async def on_unit_finished(self, unit: WorkUnit, batch: Batch) -> None:
        """Called by the runtime whenever a unit reaches a final status."""
        self.repository.save_unit(unit)
        match unit.status:
            case UnitStatus.FAILED:
                phase = OPERATION_PHASES.get(unit.operation, unit.operation.value)
                await self._fail(phase, f"{unit.name} failed after {unit.attempts} attempts: {unit.error}")
            case UnitStatus.ABORTED:
                self.logger.debug(f"Unit {unit.id} aborted", name=unit.name)
            case UnitStatus.COMPLETED:
                await self.on_batch_complete(batch)

    async def on_batch_complete(self, batch: Batch) -> None:
        """Advance the state machine once every unit of `batch` has completed.

        Safe to call any number of times per batch: only the first call that
        sees the whole batch completed makes a decision.
        """
        state = self.state
        if state.status.is_terminal or self.runtime.is_aborted(self.run_id):
            return
        if state.has_completed_batch(batch.id):
            return
        units = self.repository.units_for_batch(batch.id)
        if not units or any(u.status != UnitStatus.COMPLETED for u in units):
            return

        decision: Decision | None = None
        facts = self._facts()

        def transition(current: RunState) -> RunState:
            nonlocal decision
            if current.status.is_terminal or current.has_completed_batch(batch.id):
                return current
            decision = decide(current, batch, facts)
            return decision.state

        await self.store.apply(transition)
        if decision is not None:
            await self._commit(batch, decision)

    # -- Internals --

    def _facts(self) -> RunFacts:
        pages = self.repository.list_artifacts([p.id for p in self.context.pages])
        return RunFacts(
            plan=self.context.plan,
            object_types=self.context.data.object_types,
            object_plans=dict(self.context.data.object_plans),
            pages=sorted(pages, key=lambda a: a.position),
            schema=self.context.schema,
            global_search_mode=self.config.global_search_mode,
        )

    async def _commit(self, completed: Batch, decision: Decision) -> None:
        """Act on a decision whose state is already committed."""
        state = decision.state
        for note in decision.notes:
            self.logger.debug(note, batch=completed.id)

        if decision.compiled_plan is not None:
            plan = decision.compiled_plan
            self.context.plan = plan
            store_plan(self.owner, plan, self._plan_key)
            self.repository.save_plan_owner(self.owner)
            self.logger.milestone(
                "Plan compiled",
                levels=len(plan.levels),
                identity_groups=len(plan.identity_groups()),
                remaining_groups=len(plan.remaining_groups()),
            )

        self.logger.end_phase()

        if decision.operation is None:
            if state.status == RunStatus.FAILED:
                self.logger.error(f"Run failed in {state.failed_phase}: {state.failure_reason}")
            if state.status.is_terminal:
                self.logger.end_run(success=state.status == RunStatus.COMPLETED, stats=self.get_stats())
            return

        batch = self.repository.create_batch(self.run_id, decision.operation, decision.level)
        units = [
            self.repository.create_unit(batch, planned.name, planned.payload, list(planned.input_artifact_ids))
            for planned in decision.units
        ]
        level = decision.level if decision.level is not None else state.current_level
        self.logger.transition(level, completed.operation.value, decision.operation.value, len(units))
        self.logger.start_phase(decision.operation.value, total=len(units), model=self._model_for(decision.operation))
        await self.runtime.submit(batch, units)

    async def _fail(self, phase: str, reason: str) -> None:
        before = self.state
        after = await self.store.apply(lambda s: s.failed(phase, reason))
        if after.status == RunStatus.FAILED and before.status != RunStatus.FAILED:
            self.runtime.abort(self.run_id)
            self.logger.error(f"Run failed in {phase}: {reason}")
            self.logger.end_run(success=False, stats=self.get_stats())

    def _model_for(self, operation: Operation) -> str:
        match operation:
            case Operation.PLAN_IDENTIFY | Operation.PLAN_REMAINING:
                return self.config.planner_model
            case Operation.CLASSIFY:
                return self.config.classifier_model
            case Operation.RESOLVE_OBJECTS:
                return self.config.resolver_model
            case Operation.EXTRACT_REMAINING | Operation.EXTRACT_GROUP:
                return self.config.extractor_model
        return ""

    # -- Results --

    def objects(self) -> list[DomainObject]:
        """Every object resolved so far, ordered by level then id."""
        return sorted(self.repository.list_objects(), key=lambda o: (o.level, o.id))

    def get_errors(self) -> PipelineErrors:
        return self.context.errors

    def get_stats(self) -> dict:
        """Run statistics for the end-of-run summary."""
        state = self.state
        by_type: dict[str, int] = {}
        for obj in self.repository.list_objects():
            by_type[obj.type] = by_type.get(obj.type, 0) + 1

        units = self.repository.units_for_run(self.run_id)
        unit_stats: dict[str, int] = {}
        for unit in units:
            unit_stats[unit.status.value] = unit_stats.get(unit.status.value, 0) + 1

        return {
            "status": state.status.value,
            "levels_completed": sum(1 for p in state.level_progress.values() if p.is_complete),
            "plan_levels": len(self.context.plan.levels) if self.context.plan else 0,
            "objects": by_type,
            "units": unit_stats,
            "llm_calls": self.cost_tracker.call_count,
            "cost_usd": round(self.cost_tracker.total_cost, 4),
            "errors": self.context.errors.summary(),
        }

    def to_output(self) -> dict:
        """JSON-serialisable snapshot: run state, plan, objects (flat and nested), errors and cost."""
        objects = self.objects()
        return {
            "run": self.state.model_dump(mode="json"),
            "plan": self.context.plan.model_dump(mode="json") if self.context.plan else None,
            "objects": [obj.model_dump(mode="json") for obj in objects],
            "rollup": build_rollup(objects, self.context.plan),
            "errors": self.context.errors.to_dict(),
            "cost": self.cost_tracker.to_dict(),
        }
