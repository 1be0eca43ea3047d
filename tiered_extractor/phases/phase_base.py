"""Base classes for operation handlers.

The run context is split into three parts so responsibilities are clear:
- **RunResources** (frozen): external dependencies created once:
  repository, job runtime, logger, cost tracker.
- **RunConfig** (frozen): user-chosen settings that never change mid-run:
  model names, global search mode, group size, skim tuning.
- **RunData** (mutable): what accumulates as units complete: object types,
  per-type planning results, the compiled plan, collected errors.

The authoritative progress of a run (level flags, resolved objects) lives
in the RunStateStore, not here: it only changes through atomic transitions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from tiered_extractor.core.config import DEFAULT_MODELS, PlanningConfig, SkimConfig
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.errors import (
    OrchestratorError,
    PipelineErrors,
    UnitFailedError,
    llm_api_error,
)
from tiered_extractor.core.job_runtime import JobRuntime
from tiered_extractor.core.pipeline_logger import PipelineLogger
from tiered_extractor.core.repository import Repository
from tiered_extractor.core.state_tracker import RunStateStore
from tiered_extractor.pydantic_models.artifact_models import Artifact, PlanOwner
from tiered_extractor.pydantic_models.plan_models import (
    ExtractionPlan,
    GlobalSearchMode,
    IdentityGroup,
    ObjectPlan,
    ObjectType,
    RemainingGroup,
)
from tiered_extractor.pydantic_models.work_units import WorkUnit


@dataclass(frozen=True)
class RunResources:
    """Shared resources, created once per run."""

    repository: Repository
    runtime: JobRuntime
    logger: PipelineLogger
    cost_tracker: CostTracker


@dataclass(frozen=True)
class RunConfig:
    """Settings fixed for the whole run.

    page_levels selects which depths of the artifact forest are pages
    (None: the given artifacts themselves).
    """

    planner_model: str = DEFAULT_MODELS["planner"]
    classifier_model: str = DEFAULT_MODELS["classifier"]
    resolver_model: str = DEFAULT_MODELS["resolver"]
    extractor_model: str = DEFAULT_MODELS["extractor"]
    deduplicator_model: str = DEFAULT_MODELS["deduplicator"]
    verifier_model: str = DEFAULT_MODELS["verifier"]
    global_search_mode: GlobalSearchMode = GlobalSearchMode(PlanningConfig.DEFAULT_GLOBAL_SEARCH_MODE)
    group_max_points: int = PlanningConfig.GROUP_MAX_POINTS
    skim_batch_size: int = SkimConfig.BATCH_SIZE
    confidence_threshold: int = SkimConfig.CONFIDENCE_THRESHOLD
    page_levels: tuple[int, ...] | None = None
    verbose: bool = False


@dataclass
class RunData:
    """Mutable data filled in while the run progresses.

    - object_types: Written at start, read by planning handlers and transitions
    - object_plans: Written by planning handlers, read by compile
    - plan: Written on compile (or cache hit), read by every later handler
    - errors: Accumulated by all handlers
    """

    object_types: list[ObjectType] = field(default_factory=list)
    object_plans: dict[str, ObjectPlan] = field(default_factory=dict)
    plan: ExtractionPlan | None = None
    errors: PipelineErrors = field(default_factory=PipelineErrors)


class RunContext:
    """What handlers receive: the plan owner, the pages and the three context parts."""

    def __init__(
        self,
        owner: PlanOwner,
        pages: list[Artifact],
        store: RunStateStore,
        resources: RunResources,
        config: RunConfig,
        data: RunData,
    ):
        self.owner = owner
        self.pages = pages
        self.store = store
        self.resources = resources
        self.config = config
        self.data = data

    # -- Resources --

    @property
    def repository(self) -> Repository:
        return self.resources.repository

    @property
    def runtime(self) -> JobRuntime:
        return self.resources.runtime

    @property
    def logger(self) -> PipelineLogger:
        return self.resources.logger

    @property
    def cost_tracker(self) -> CostTracker:
        return self.resources.cost_tracker

    # -- Data --

    @property
    def schema(self) -> dict[str, Any]:
        return self.owner.target_schema or {}

    @property
    def plan(self) -> ExtractionPlan | None:
        return self.data.plan

    @plan.setter
    def plan(self, value: ExtractionPlan | None) -> None:
        self.data.plan = value

    @property
    def errors(self) -> PipelineErrors:
        return self.data.errors

    def object_type(self, name: str) -> ObjectType:
        for object_type in self.data.object_types:
            if object_type.name == name:
                return object_type
        raise KeyError(f"Unknown object type: {name}")

    def identity_group(self, level: int, object_type: str) -> IdentityGroup:
        plan_level = self.plan.level(level) if self.plan else None
        for group in plan_level.identities if plan_level else []:
            if group.object_type == object_type:
                return group
        raise KeyError(f"No identity group for {object_type} at level {level}")

    def remaining_group(self, level: int, group_name: str) -> RemainingGroup:
        plan_level = self.plan.level(level) if self.plan else None
        for group in plan_level.remaining if plan_level else []:
            if group.name == group_name:
                return group
        raise KeyError(f"No remaining group {group_name!r} at level {level}")

    def unit_pages(self, unit: WorkUnit) -> list[Artifact]:
        """Input pages of a unit, in position order."""
        return sorted(self.repository.list_artifacts(unit.input_artifact_ids), key=lambda a: a.position)


P = TypeVar("P")


class OperationHandler(ABC, Generic[P]):
    """Base class for work unit handlers.

    Each handler:
    - Has a name for logging and for failure reports
    - Receives the RunContext
    - Runs one unit of its operation, given the unit's typed payload
    - Turns unexpected exceptions into UnitFailedError so the runtime can retry
    """

    name: str = "unnamed"

    def __init__(self, context: RunContext):
        self.context = context
        self.logger = context.logger

    @abstractmethod
    async def handle(self, unit: WorkUnit, payload: P) -> None:
        """Do the unit's work. Raise to fail the attempt."""

    async def execute(self, unit: WorkUnit, payload: P) -> None:
        try:
            await self.handle(unit, payload)
        except OrchestratorError as e:
            e.error.retry_count = unit.attempts
            self.context.errors.add(e.error)
            raise
        except Exception as e:
            error = llm_api_error(
                f"{self.name} unit {unit.id} failed: {e}",
                phase=self.name,
                original=e,
                retry_count=unit.attempts,
            )
            error.level = getattr(payload, "level", None)
            error.object_type = getattr(payload, "object_type", None)
            self.context.errors.add(error)
            raise UnitFailedError(error) from e

    def log(self, message: str, level: str = "info", **data):
        """Log a message with handler context."""
        if level == "debug":
            self.logger.debug(f"[{self.name}] {message}", **data)
        elif level == "warning":
            self.logger.warning(f"[{self.name}] {message}", **data)
        elif level == "error":
            self.logger.error(f"[{self.name}] {message}", **data)
        else:
            self.logger.info(f"[{self.name}] {message}", **data)
