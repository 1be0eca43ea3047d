"""Pydantic models for the extraction plan.

A plan is an ordered list of levels. Each level has identity groups (fields
that discover new objects of a type) and remaining groups (fields filled in
on objects already discovered). Plans are frozen once compiled and cached on
the plan owner keyed by a content hash.

The *PlanResponse models are the planner LLM's response shapes, used with
complete_structured().
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SearchMode(str, Enum):
    """How many pages an extraction call examines for a group."""

    SKIM = "skim"                # Small batches, stop once every field is confident
    EXHAUSTIVE = "exhaustive"    # Every classified page in one pass
    INTELLIGENT = "intelligent"  # Let the plan decide per group


class GlobalSearchMode(str, Enum):
    """Run-wide override of per-group search modes."""

    INTELLIGENT = "intelligent"
    SKIM_ONLY = "skim_only"
    EXHAUSTIVE_ONLY = "exhaustive_only"


class ObjectType(BaseModel):
    """An object type found in the target schema.

    Attributes:
        name: Title of the object type ("Demand", "Injury").
        path: Dot path from the schema root ("" for the root object).
        level: Nesting depth, 0 for the root.
        parent_type: Name of the enclosing object type.
        is_array: True when the schema holds a list of these objects.
        simple_fields: Scalar (or scalar-array) fields keyed by property name,
            each with "title" and "description".
    """

    name: str
    path: str = ""
    level: int = 0
    parent_type: str | None = None
    is_array: bool = False
    simple_fields: dict[str, dict[str, Any]] = Field(default_factory=dict)


class IdentityGroup(BaseModel):
    """Fields that identify (discover or match) objects of one type."""

    model_config = ConfigDict(frozen=True)

    object_type: str = Field(description="Object type this group discovers")
    identity_fields: list[str] = Field(description="Fields that make two objects the same object")
    skim_fields: list[str] = Field(
        default_factory=list,
        description="Identity fields plus cheap fields read in the same call",
    )
    search_mode: SearchMode = SearchMode.SKIM
    description: str | None = None
    fragment_selector: dict[str, Any] = Field(default_factory=dict)
    parent_type: str | None = None


class RemainingGroup(BaseModel):
    """Fields filled in on already-resolved objects. Never creates objects."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Human-readable group name, e.g. 'Billing Details'")
    description: str | None = None
    object_type: str
    fields: list[str] = Field(default_factory=list)
    search_mode: SearchMode = SearchMode.EXHAUSTIVE
    fragment_selector: dict[str, Any] = Field(default_factory=dict)
    parent_type: str | None = None


class Level(BaseModel):
    """One depth of the plan."""

    model_config = ConfigDict(frozen=True)

    level: int
    identities: list[IdentityGroup] = Field(default_factory=list)
    remaining: list[RemainingGroup] = Field(default_factory=list)


class ExtractionPlan(BaseModel):
    """Compiled plan: levels in ascending order of depth."""

    model_config = ConfigDict(frozen=True)

    levels: list[Level] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.levels

    @property
    def max_level(self) -> int:
        """Index of the last level (0 for an empty plan)."""
        return max(len(self.levels) - 1, 0)

    def level(self, index: int) -> Level | None:
        """Level at position `index`, or None past the end."""
        if 0 <= index < len(self.levels):
            return self.levels[index]
        return None

    def identity_groups(self) -> list[IdentityGroup]:
        return [group for level in self.levels for group in level.identities]

    def remaining_groups(self) -> list[RemainingGroup]:
        return [group for level in self.levels for group in level.remaining]


# Planner LLM responses

class IdentityPlanResponse(BaseModel):
    """Planner response for one object type's identity group."""

    identity_fields: list[str] = Field(
        description="Minimal set of fields that uniquely identify one object"
    )
    skim_fields: list[str] = Field(
        default_factory=list,
        description="Fields cheap to read alongside the identity fields (must include them)",
    )
    search_mode: SearchMode = Field(
        default=SearchMode.SKIM,
        description="'skim' if identity info sits on a few pages, 'exhaustive' if scattered",
    )
    description: str = Field(default="", description="What pages identifying this object look like")
    reasoning: str = Field(default="", description="Why these fields identify the object")


class FieldGroup(BaseModel):
    """One group of remaining fields proposed by the planner."""

    name: str
    description: str = ""
    fields: list[str] = Field(default_factory=list)
    search_mode: str = "exhaustive"


class RemainingPlanResponse(BaseModel):
    """Planner response grouping an object type's remaining fields."""

    extraction_groups: list[FieldGroup] = Field(default_factory=list)


class ObjectPlan(BaseModel):
    """Planning result for one object type, before compilation into levels."""

    object_type: ObjectType
    identity: IdentityPlanResponse | None = None
    remaining_fields: list[str] = Field(default_factory=list)
    extraction_groups: list[FieldGroup] = Field(default_factory=list)
