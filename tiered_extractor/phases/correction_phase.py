"""Correction phase: cleans page labels after classification.

Runs outside the state machine, once classification has finished, over each
top-level document separately so neighbouring pages always belong to the
same document:

1. Category smoothing (optional, per key): fills unlabelled runs of pages
2. Deduplication: collapses spelling variants of the same label
3. Verification: fixes outlier labels using neighbouring pages

Every pass is best effort. Failures are recorded as warnings and the pages
keep their previous labels.
"""

from dataclasses import dataclass, field

from tiered_extractor.agents.category_agent import SmoothingResult, smooth_categories
from tiered_extractor.agents.deduplication_agent import deduplicate
from tiered_extractor.agents.verification_agent import verify_all
from tiered_extractor.core.artifact_splitter import SPLIT_BY_TOP_LEVEL, SPLIT_DEFAULT, split
from tiered_extractor.core.config import DEFAULT_MODELS
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.errors import PipelineErrors
from tiered_extractor.core.pipeline_logger import PipelineLogger, get_logger
from tiered_extractor.core.repository import Repository
from tiered_extractor.pydantic_models.artifact_models import Artifact
from tiered_extractor.pydantic_models.correction_models import DeduplicationResult, VerificationResult


@dataclass
class CorrectionResult:
    """Outcome of all correction passes over a set of documents."""

    documents: int = 0
    smoothing: list[SmoothingResult] = field(default_factory=list)
    deduplication: list[DeduplicationResult] = field(default_factory=list)
    verification: list[VerificationResult] = field(default_factory=list)

    @property
    def corrections_applied(self) -> int:
        return sum(r.corrections_applied for r in self.verification)

    @property
    def labels_normalised(self) -> int:
        return sum(len(r.mappings_applied) for r in self.deduplication)

    def summary(self) -> dict:
        return {
            "documents": self.documents,
            "categories_filled": sum(r.auto_filled + r.llm_assigned for r in self.smoothing),
            "labels_normalised": self.labels_normalised,
            "verification_foci": sum(len(r.foci) for r in self.verification),
            "corrections_applied": self.corrections_applied,
        }


class CorrectionPhase:
    """Runs the correction passes over classified pages.

    Args:
        repository: Where corrected pages are saved back.
        smooth_keys: Classification keys to smooth before deduplication.
        deduplicate_labels: Run the deduplication pass.
        verify_labels: Run the verification pass.
        property_rules: Optional per-property rule text shown to the verifier.
        page_levels: Depths of the artifact forest that are pages.
    """

    name = "Correction"

    def __init__(
        self,
        repository: Repository,
        smooth_keys: list[str] | None = None,
        deduplicate_labels: bool = True,
        verify_labels: bool = True,
        property_rules: dict[str, str] | None = None,
        page_levels: tuple[int, ...] | None = None,
        classifier_model: str = DEFAULT_MODELS["classifier"],
        deduplicator_model: str = DEFAULT_MODELS["deduplicator"],
        verifier_model: str = DEFAULT_MODELS["verifier"],
        cost_tracker: CostTracker | None = None,
        errors: PipelineErrors | None = None,
        logger: PipelineLogger | None = None,
    ):
        self.repository = repository
        self.smooth_keys = smooth_keys or []
        self.deduplicate_labels = deduplicate_labels
        self.verify_labels = verify_labels
        self.property_rules = property_rules or {}
        self.page_levels = page_levels
        self.classifier_model = classifier_model
        self.deduplicator_model = deduplicator_model
        self.verifier_model = verifier_model
        self.cost_tracker = cost_tracker or CostTracker()
        self.errors = errors if errors is not None else PipelineErrors()
        self.logger = logger or get_logger()

    async def run(self, roots: list[Artifact]) -> CorrectionResult:
        """Correct the pages under `roots`, one top-level document at a time.

        Without page_levels the roots themselves are the pages of a single
        document.
        """
        mode = SPLIT_BY_TOP_LEVEL if self.page_levels else SPLIT_DEFAULT
        documents = split(mode, roots, levels=self.page_levels)
        result = CorrectionResult(documents=len(documents))
        self.logger.start_phase(self.name, total=len(documents), model=self.verifier_model)

        for pages in documents:
            if not pages:
                continue
            await self._correct_document(pages, result)
            for page in pages:
                self.repository.save_artifact(page)

        self.logger.phase_result(self.name, "done", **result.summary())
        self.logger.end_phase()
        return result

    async def _correct_document(self, pages: list[Artifact], result: CorrectionResult) -> None:
        for key in self.smooth_keys:
            result.smoothing.append(await smooth_categories(
                pages,
                key,
                model=self.classifier_model,
                cost_tracker=self.cost_tracker,
                errors=self.errors,
            ))

        if self.deduplicate_labels:
            result.deduplication.append(await deduplicate(
                pages,
                model=self.deduplicator_model,
                cost_tracker=self.cost_tracker,
                errors=self.errors,
            ))

        if self.verify_labels:
            result.verification.extend(await verify_all(
                pages,
                property_rules=self.property_rules,
                model=self.verifier_model,
                cost_tracker=self.cost_tracker,
                errors=self.errors,
            ))
