"""Operation handlers, state machine transitions and the correction phase.

Each operation has its own handler class with:
- A name for logging and failure reports
- Typed payload input
- Error wrapping so the job runtime can retry
"""

from tiered_extractor.phases.phase_base import (
    OperationHandler,
    RunContext,
    RunResources,
    RunConfig,
    RunData,
)
from tiered_extractor.phases.planning_phase import PlanIdentifyHandler, PlanRemainingHandler
from tiered_extractor.phases.classification_phase import ClassifyHandler
from tiered_extractor.phases.resolution_phase import ResolveObjectsHandler
from tiered_extractor.phases.extraction_phase import ExtractRemainingHandler, ExtractGroupHandler
from tiered_extractor.phases.transitions import (
    OPERATION_PHASES,
    PlannedUnit,
    Decision,
    RunFacts,
    decide,
    plannable_types,
)
from tiered_extractor.phases.correction_phase import CorrectionPhase, CorrectionResult

__all__ = [
    # Base
    "OperationHandler",
    "RunContext",
    "RunResources",
    "RunConfig",
    "RunData",
    # Handlers
    "PlanIdentifyHandler",
    "PlanRemainingHandler",
    "ClassifyHandler",
    "ResolveObjectsHandler",
    "ExtractRemainingHandler",
    "ExtractGroupHandler",
    # Transitions
    "OPERATION_PHASES",
    "PlannedUnit",
    "Decision",
    "RunFacts",
    "decide",
    "plannable_types",
    # Corrections
    "CorrectionPhase",
    "CorrectionResult",
]
