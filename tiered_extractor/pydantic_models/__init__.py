"""Pydantic models for plans, artifacts, run state and work units."""

from tiered_extractor.pydantic_models.plan_models import (
    SearchMode,
    GlobalSearchMode,
    ObjectType,
    IdentityGroup,
    RemainingGroup,
    Level,
    ExtractionPlan,
    IdentityPlanResponse,
    FieldGroup,
    RemainingPlanResponse,
    ObjectPlan,
)
from tiered_extractor.pydantic_models.artifact_models import (
    Artifact,
    DomainObject,
    PlanOwner,
)
from tiered_extractor.pydantic_models.run_models import (
    RunStatus,
    LevelProgress,
    RunState,
)
from tiered_extractor.pydantic_models.work_units import (
    Operation,
    UnitStatus,
    DefaultPayload,
    PlanIdentifyPayload,
    PlanRemainingPayload,
    ClassifyPayload,
    ResolveObjectsPayload,
    ExtractRemainingPayload,
    ExtractGroupPayload,
    UnitPayload,
    WorkUnit,
    Batch,
)
from tiered_extractor.pydantic_models.correction_models import (
    Correction,
    CorrectionResponse,
    VerificationFocus,
    VerificationUnit,
    DeduplicationResult,
    VerificationResult,
)

__all__ = [
    # Plan
    "SearchMode",
    "GlobalSearchMode",
    "ObjectType",
    "IdentityGroup",
    "RemainingGroup",
    "Level",
    "ExtractionPlan",
    "IdentityPlanResponse",
    "FieldGroup",
    "RemainingPlanResponse",
    "ObjectPlan",
    # Artifacts and objects
    "Artifact",
    "DomainObject",
    "PlanOwner",
    # Run state
    "RunStatus",
    "LevelProgress",
    "RunState",
    # Work units
    "Operation",
    "UnitStatus",
    "DefaultPayload",
    "PlanIdentifyPayload",
    "PlanRemainingPayload",
    "ClassifyPayload",
    "ResolveObjectsPayload",
    "ExtractRemainingPayload",
    "ExtractGroupPayload",
    "UnitPayload",
    "WorkUnit",
    "Batch",
    # Corrections
    "Correction",
    "CorrectionResponse",
    "VerificationFocus",
    "VerificationUnit",
    "DeduplicationResult",
    "VerificationResult",
]
