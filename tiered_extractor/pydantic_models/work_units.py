"""Work units and batches.

A work unit's payload is a tagged union keyed by `operation`: each operation
carries its own typed fields, and the orchestrator routes units with a
`match` over the payload classes rather than by inspecting a loose meta dict.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from tiered_extractor.pydantic_models.plan_models import SearchMode


class Operation(str, Enum):
    """Operations a work unit can perform."""

    DEFAULT = "Default"
    PLAN_IDENTIFY = "Plan: Identify"
    PLAN_REMAINING = "Plan: Remaining"
    CLASSIFY = "Classify"
    RESOLVE_OBJECTS = "Resolve Objects"
    EXTRACT_IDENTITY = "Resolve Objects"  # alias: identity extraction creates the objects it finds
    EXTRACT_REMAINING = "Extract Remaining"
    EXTRACT_GROUP = "Extract Group"


class UnitStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


class DefaultPayload(BaseModel):
    """Entry unit: starts a run."""

    operation: Literal[Operation.DEFAULT] = Operation.DEFAULT


class PlanIdentifyPayload(BaseModel):
    operation: Literal[Operation.PLAN_IDENTIFY] = Operation.PLAN_IDENTIFY
    object_type: str


class PlanRemainingPayload(BaseModel):
    operation: Literal[Operation.PLAN_REMAINING] = Operation.PLAN_REMAINING
    object_type: str


class ClassifyPayload(BaseModel):
    operation: Literal[Operation.CLASSIFY] = Operation.CLASSIFY
    artifact_id: int


class ResolveObjectsPayload(BaseModel):
    """Discover objects of one identity group at one level.

    parent_object_ids are the objects resolved at level - 1 of the group's
    parent type; only they are eligible parents.
    """

    operation: Literal[Operation.RESOLVE_OBJECTS] = Operation.RESOLVE_OBJECTS
    level: int
    object_type: str
    parent_object_ids: list[int] = Field(default_factory=list)


class ExtractRemainingPayload(BaseModel):
    """Exhaustive extraction of one remaining group for one object."""

    operation: Literal[Operation.EXTRACT_REMAINING] = Operation.EXTRACT_REMAINING
    level: int
    group_name: str
    object_type: str
    object_id: int
    search_mode: SearchMode = SearchMode.EXHAUSTIVE


class ExtractGroupPayload(BaseModel):
    """Skim extraction of one remaining group for one object."""

    operation: Literal[Operation.EXTRACT_GROUP] = Operation.EXTRACT_GROUP
    level: int
    group_name: str
    object_type: str
    object_id: int
    search_mode: SearchMode = SearchMode.SKIM


UnitPayload = Annotated[
    Union[
        DefaultPayload,
        PlanIdentifyPayload,
        PlanRemainingPayload,
        ClassifyPayload,
        ResolveObjectsPayload,
        ExtractRemainingPayload,
        ExtractGroupPayload,
    ],
    Field(discriminator="operation"),
]


class WorkUnit(BaseModel):
    """One unit of asynchronous work ("process")."""

    id: int
    run_id: str
    batch_id: int
    name: str
    payload: UnitPayload
    input_artifact_ids: list[int] = Field(default_factory=list)
    output_artifact_ids: list[int] = Field(default_factory=list)
    status: UnitStatus = UnitStatus.PENDING
    attempts: int = 0
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def operation(self) -> Operation:
        return self.payload.operation

    @property
    def level(self) -> int | None:
        return getattr(self.payload, "level", None)


class Batch(BaseModel):
    """Sibling units created by one orchestrator decision."""

    id: int
    run_id: str
    operation: Operation
    level: int | None = None
    unit_ids: list[int] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
