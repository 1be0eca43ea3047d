"""Persistence interface and the in-memory implementation used by the CLI and tests.

The orchestrator never touches storage directly: plan owners, pages, domain
objects, work units and batches all go through a Repository.
"""

import itertools
from typing import Any, Protocol

from tiered_extractor.pydantic_models.artifact_models import Artifact, DomainObject, PlanOwner
from tiered_extractor.pydantic_models.work_units import Batch, Operation, UnitPayload, WorkUnit


class Repository(Protocol):
    def get_plan_owner(self, owner_id: int) -> PlanOwner | None: ...
    def save_plan_owner(self, owner: PlanOwner) -> None: ...

    def get_artifact(self, artifact_id: int) -> Artifact | None: ...
    def save_artifact(self, artifact: Artifact) -> None: ...
    def list_artifacts(self, artifact_ids: list[int] | None = None) -> list[Artifact]: ...

    def create_object(self, type: str, name: str, level: int, parent_id: int | None, data: dict[str, Any]) -> DomainObject: ...
    def get_object(self, object_id: int) -> DomainObject | None: ...
    def save_object(self, obj: DomainObject) -> None: ...
    def find_objects(self, type: str, parent_id: int | None = None, level: int | None = None) -> list[DomainObject]: ...
    def list_objects(self) -> list[DomainObject]: ...

    def create_batch(self, run_id: str, operation: Operation, level: int | None = None) -> Batch: ...
    def get_batch(self, batch_id: int) -> Batch | None: ...
    def create_unit(self, batch: Batch, name: str, payload: UnitPayload, input_artifact_ids: list[int] | None = None) -> WorkUnit: ...
    def get_unit(self, unit_id: int) -> WorkUnit | None: ...
    def save_unit(self, unit: WorkUnit) -> None: ...
    def units_for_batch(self, batch_id: int) -> list[WorkUnit]: ...
    def units_for_run(self, run_id: str) -> list[WorkUnit]: ...


class InMemoryRepository:
    """Dict-backed Repository. Ids are allocated from per-kind counters."""

    def __init__(self, owners: list[PlanOwner] | None = None, artifacts: list[Artifact] | None = None):
        self.owners: dict[int, PlanOwner] = {o.id: o for o in owners or []}
        self.artifacts: dict[int, Artifact] = {}
        self.objects: dict[int, DomainObject] = {}
        self.batches: dict[int, Batch] = {}
        self.units: dict[int, WorkUnit] = {}

        for artifact in artifacts or []:
            self._index_artifact(artifact)

        self._object_ids = itertools.count(1)
        self._batch_ids = itertools.count(1)
        self._unit_ids = itertools.count(1)

    def _index_artifact(self, artifact: Artifact) -> None:
        self.artifacts[artifact.id] = artifact
        for child in artifact.children:
            self._index_artifact(child)

    # Plan owners

    def get_plan_owner(self, owner_id: int) -> PlanOwner | None:
        return self.owners.get(owner_id)

    def save_plan_owner(self, owner: PlanOwner) -> None:
        self.owners[owner.id] = owner

    # Artifacts

    def get_artifact(self, artifact_id: int) -> Artifact | None:
        return self.artifacts.get(artifact_id)

    def save_artifact(self, artifact: Artifact) -> None:
        self.artifacts[artifact.id] = artifact

    def list_artifacts(self, artifact_ids: list[int] | None = None) -> list[Artifact]:
        if artifact_ids is None:
            return list(self.artifacts.values())
        return [self.artifacts[i] for i in artifact_ids if i in self.artifacts]

    # Domain objects

    def create_object(self, type: str, name: str, level: int, parent_id: int | None, data: dict[str, Any]) -> DomainObject:
        obj = DomainObject(id=next(self._object_ids), type=type, name=name, level=level, parent_id=parent_id, data=dict(data))
        self.objects[obj.id] = obj
        return obj

    def get_object(self, object_id: int) -> DomainObject | None:
        return self.objects.get(object_id)

    def save_object(self, obj: DomainObject) -> None:
        self.objects[obj.id] = obj

    def find_objects(self, type: str, parent_id: int | None = None, level: int | None = None) -> list[DomainObject]:
        return [
            obj for obj in self.objects.values()
            if obj.type == type
            and (parent_id is None or obj.parent_id == parent_id)
            and (level is None or obj.level == level)
        ]

    def list_objects(self) -> list[DomainObject]:
        return list(self.objects.values())

    # Batches and units

    def create_batch(self, run_id: str, operation: Operation, level: int | None = None) -> Batch:
        batch = Batch(id=next(self._batch_ids), run_id=run_id, operation=operation, level=level)
        self.batches[batch.id] = batch
        return batch

    def get_batch(self, batch_id: int) -> Batch | None:
        return self.batches.get(batch_id)

    def create_unit(self, batch: Batch, name: str, payload: UnitPayload, input_artifact_ids: list[int] | None = None) -> WorkUnit:
        unit = WorkUnit(
            id=next(self._unit_ids),
            run_id=batch.run_id,
            batch_id=batch.id,
            name=name,
            payload=payload,
            input_artifact_ids=list(input_artifact_ids or []),
        )
        self.units[unit.id] = unit
        batch.unit_ids.append(unit.id)
        return unit

    def get_unit(self, unit_id: int) -> WorkUnit | None:
        return self.units.get(unit_id)

    def save_unit(self, unit: WorkUnit) -> None:
        self.units[unit.id] = unit

    def units_for_batch(self, batch_id: int) -> list[WorkUnit]:
        return [u for u in self.units.values() if u.batch_id == batch_id]

    def units_for_run(self, run_id: str) -> list[WorkUnit]:
        return [u for u in self.units.values() if u.run_id == run_id]
