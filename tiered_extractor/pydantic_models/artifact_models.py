"""Pydantic models for pages, domain objects and plan owners."""

from typing import Any

from pydantic import BaseModel, Field


class Artifact(BaseModel):
    """A page or other content unit.

    Artifacts form a forest through parent_artifact_id; `children` holds the
    loaded child artifacts when the hierarchy is needed (splitting). Once
    classified, meta["classification"] maps group keys to values (booleans for
    plan groups, strings or objects for label-style properties).
    """

    id: int
    name: str = ""
    position: int = 0
    parent_artifact_id: int | None = None
    producer_id: int | None = Field(
        default=None,
        description="Work unit or definition that created this artifact",
    )
    text: str = ""
    meta: dict[str, Any] = Field(default_factory=dict)
    children: list["Artifact"] = Field(default_factory=list)

    @property
    def classification(self) -> dict[str, Any]:
        return self.meta.get("classification") or {}

    @property
    def is_classified(self) -> bool:
        return "classification" in self.meta


class DomainObject(BaseModel):
    """A resolved entity (e.g. a Demand or an Injury) found during extraction.

    Created by ResolveObjects and filled in by remaining-group extraction.
    Never deleted during a run.
    """

    id: int
    type: str
    name: str
    level: int = 0
    parent_id: int | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class PlanOwner(BaseModel):
    """Owner of the target schema and of the cached plan.

    meta holds the plan cache: extraction_plan, extraction_plan_cache_key and
    extraction_plan_generated_at.
    """

    id: int
    name: str = ""
    target_schema: dict[str, Any] | None = None
    hints: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
