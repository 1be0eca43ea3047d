"""Extraction handlers: fill remaining groups on resolved objects.

ExtractRemaining reads every classified page in one call (exhaustive).
ExtractGroup skims pages in batches and stops once every field is confident.
"""

from tiered_extractor.agents.field_extractor_agent import (
    FieldExtractionResult,
    extract_exhaustive,
    extract_skim,
    merge_object_data,
)
from tiered_extractor.core.errors import UnitFailedError, resource_error
from tiered_extractor.phases.phase_base import OperationHandler
from tiered_extractor.pydantic_models.artifact_models import DomainObject
from tiered_extractor.pydantic_models.work_units import ExtractGroupPayload, ExtractRemainingPayload, WorkUnit


class _ObjectExtractionHandler:
    """Loading and saving shared by both extraction handlers."""

    def _load_object(self, object_id: int) -> DomainObject:
        obj = self.context.repository.get_object(object_id)
        if obj is None:
            raise UnitFailedError(resource_error(f"Object {object_id} not found", phase=self.name))
        return obj

    def _save(self, obj: DomainObject, result: FieldExtractionResult) -> None:
        if merge_object_data(obj, result.data):
            self.context.repository.save_object(obj)


class ExtractRemainingHandler(_ObjectExtractionHandler, OperationHandler[ExtractRemainingPayload]):
    name = "Extract Remaining"

    async def handle(self, unit: WorkUnit, payload: ExtractRemainingPayload) -> None:
        group = self.context.remaining_group(payload.level, payload.group_name)
        obj = self._load_object(payload.object_id)
        pages = self.context.unit_pages(unit)

        result = await extract_exhaustive(
            obj,
            group,
            pages,
            self.context.schema,
            model=self.context.config.extractor_model,
            cost_tracker=self.context.cost_tracker,
        )
        self._save(obj, result)
        self.log(f"{obj.type} '{obj.name}' / {group.name}: {len(result.data)} fields", level="debug")


class ExtractGroupHandler(_ObjectExtractionHandler, OperationHandler[ExtractGroupPayload]):
    name = "Extract Group"

    async def handle(self, unit: WorkUnit, payload: ExtractGroupPayload) -> None:
        group = self.context.remaining_group(payload.level, payload.group_name)
        obj = self._load_object(payload.object_id)
        pages = self.context.unit_pages(unit)

        result = await extract_skim(
            obj,
            group,
            pages,
            self.context.schema,
            model=self.context.config.extractor_model,
            cost_tracker=self.context.cost_tracker,
            batch_size=self.context.config.skim_batch_size,
            threshold=self.context.config.confidence_threshold,
        )
        self._save(obj, result)
        self.log(
            f"{obj.type} '{obj.name}' / {group.name}: {len(result.data)} fields",
            level="debug",
            pages_read=result.pages_read,
            stopped_early=result.stopped_early,
        )
