"""Run State: the authoritative state of one extraction run.

RunState is an immutable value. Every change goes through a method that
returns a new state, so transitions are pure functions of (old state, input)
and the store can apply them atomically.

Invariants kept by these methods:
- LevelProgress flags only ever go from False to True.
- resolved_objects only grows.
- extraction_complete[L] is never set before identity_complete[L] and
  resolution_complete[L].
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RunStatus(str, Enum):
    PENDING = "pending"
    PLANNING = "planning"
    CLASSIFYING = "classifying"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


class LevelProgress(BaseModel):
    """Progress flags for one level. Monotonic."""

    model_config = ConfigDict(frozen=True)

    identity_complete: bool = False
    resolution_complete: bool = False
    extraction_complete: bool = False

    @property
    def is_complete(self) -> bool:
        return self.identity_complete and self.resolution_complete and self.extraction_complete

    def with_flags(self, **flags: bool) -> "LevelProgress":
        """Return a copy with the given flags raised. False values are ignored."""
        raised = {name: True for name, value in flags.items() if value}
        if not raised:
            return self
        updated = self.model_copy(update=raised)
        if updated.extraction_complete and not (updated.identity_complete and updated.resolution_complete):
            raise ValueError("extraction_complete requires identity_complete and resolution_complete")
        return updated


class RunState(BaseModel):
    """State of one run, owned by the orchestrator."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    version: int = 0
    status: RunStatus = RunStatus.PENDING
    current_level: int = 0
    level_progress: dict[int, LevelProgress] = Field(default_factory=dict)
    resolved_objects: dict[str, dict[int, list[int]]] = Field(default_factory=dict)
    classification_schema: dict[str, Any] | None = None
    completed_batch_ids: list[int] = Field(default_factory=list)
    failed_phase: str | None = None
    failure_reason: str | None = None

    def progress(self, level: int) -> LevelProgress:
        return self.level_progress.get(level, LevelProgress())

    def with_progress(self, level: int, **flags: bool) -> "RunState":
        """Raise progress flags for a level."""
        current = self.progress(level)
        updated = current.with_flags(**flags)
        if updated is current:
            return self
        return self.model_copy(update={"level_progress": {**self.level_progress, level: updated}})

    def with_resolved_object(self, object_type: str, level: int, object_id: int) -> "RunState":
        """Register a resolved object id. Registering twice is a no-op."""
        by_level = self.resolved_objects.get(object_type, {})
        ids = by_level.get(level, [])
        if object_id in ids:
            return self
        new_by_level = {**by_level, level: [*ids, object_id]}
        return self.model_copy(
            update={"resolved_objects": {**self.resolved_objects, object_type: new_by_level}}
        )

    def object_ids(self, object_type: str, level: int) -> list[int]:
        return list(self.resolved_objects.get(object_type, {}).get(level, []))

    def parent_object_ids(self, level: int, expected_parent_type: str | None = None) -> list[int]:
        """Objects resolved at level - 1, optionally only of one type.

        Level 0 has no parents. Order follows registration, without duplicates.
        """
        if level == 0:
            return []

        parent_ids: list[int] = []
        for object_type, by_level in self.resolved_objects.items():
            if expected_parent_type is not None and object_type != expected_parent_type:
                continue
            for object_id in by_level.get(level - 1, []):
                if object_id not in parent_ids:
                    parent_ids.append(object_id)
        return parent_ids

    def is_level_complete(self, level: int) -> bool:
        return self.progress(level).is_complete

    def has_completed_batch(self, batch_id: int) -> bool:
        return batch_id in self.completed_batch_ids

    def with_completed_batch(self, batch_id: int) -> "RunState":
        if batch_id in self.completed_batch_ids:
            return self
        return self.model_copy(update={"completed_batch_ids": [*self.completed_batch_ids, batch_id]})

    def with_status(self, status: RunStatus) -> "RunState":
        if self.status.is_terminal or status == self.status:
            return self
        return self.model_copy(update={"status": status})

    def failed(self, phase: str, reason: str) -> "RunState":
        """Mark the run failed. Progress and resolved objects are kept."""
        if self.status.is_terminal:
            return self
        return self.model_copy(
            update={"status": RunStatus.FAILED, "failed_phase": phase, "failure_reason": reason}
        )
