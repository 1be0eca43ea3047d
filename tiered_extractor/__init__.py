"""Hierarchical Extraction Orchestrator.

Extracts nested objects described by a JSON schema from a set of pages,
one schema level at a time, as a state machine over asynchronous work units.

Architecture:
    core/             - Config, LLM client, logging, errors, state store, runtime
    prompts/          - LLM prompt templates
    agents/           - One async function per kind of LLM call
    pydantic_models/  - Plans, artifacts, run state and work units
    phases/           - Operation handlers, transitions and corrections

Usage:
    from tiered_extractor import ExtractionOrchestrator

    orchestrator = ExtractionOrchestrator(owner, pages)
    state = await orchestrator.run()

CLI:
    tiered-extract schema.json pages.json
"""

from tiered_extractor.orchestrator import ExtractionOrchestrator
from tiered_extractor.phases import CorrectionPhase, RunConfig
from tiered_extractor.pydantic_models import (
    Artifact,
    DomainObject,
    PlanOwner,
    ExtractionPlan,
    GlobalSearchMode,
    SearchMode,
    RunState,
    RunStatus,
)

__all__ = [
    # Main entry points
    "ExtractionOrchestrator",
    "CorrectionPhase",
    "RunConfig",
    # Models
    "Artifact",
    "DomainObject",
    "PlanOwner",
    "ExtractionPlan",
    "GlobalSearchMode",
    "SearchMode",
    "RunState",
    "RunStatus",
]
