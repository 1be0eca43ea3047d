"""Classification handler: flags each page against the plan's groups."""

from tiered_extractor.agents.classifier_agent import classification_cache_key, classify_artifact
from tiered_extractor.core.classification_schema import schema_fingerprint
from tiered_extractor.core.errors import UnitFailedError, resource_error
from tiered_extractor.phases.phase_base import OperationHandler
from tiered_extractor.pydantic_models.work_units import ClassifyPayload, WorkUnit


class ClassifyHandler(OperationHandler[ClassifyPayload]):
    name = "Classify"

    async def handle(self, unit: WorkUnit, payload: ClassifyPayload) -> None:
        artifact = self.context.repository.get_artifact(payload.artifact_id)
        if artifact is None:
            raise UnitFailedError(resource_error(f"Artifact {payload.artifact_id} not found", phase=self.name))

        boolean_schema = self.context.store.read().classification_schema or {}
        cache_key = classification_cache_key(self.context.owner.id, schema_fingerprint(boolean_schema))
        flags = await classify_artifact(
            artifact,
            boolean_schema,
            cache_key,
            model=self.context.config.classifier_model,
            cost_tracker=self.context.cost_tracker,
        )
        self.context.repository.save_artifact(artifact)
        self.log(
            f"Page {artifact.position}: {sum(flags.values())}/{len(flags)} groups",
            level="debug",
        )
