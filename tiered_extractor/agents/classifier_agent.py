"""Classifier agent: flags which plan groups each page is relevant to.

One LLM call per page against the boolean classification schema. Results
merge into the page's meta["classification"] and are cached per
(plan owner, schema fingerprint), so re-running a plan over the same pages
costs nothing.
"""

from typing import Any, Iterable

from tiered_extractor.core.config import DEFAULT_MODELS, ClassificationConfig
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.llm_client import LLMClient
from tiered_extractor.pydantic_models.artifact_models import Artifact
from tiered_extractor.prompts.classifier_prompt import CLASSIFIER_SYSTEM_PROMPT, build_classifier_prompt

CLASSIFICATION_KEY = "classification"
CACHE_KEY = "classification_cache"


def classification_cache_key(plan_owner_id: int, fingerprint: str) -> str:
    return f"{plan_owner_id}:{fingerprint}"


async def classify_artifact(
    artifact: Artifact,
    boolean_schema: dict[str, Any],
    cache_key: str,
    model: str = DEFAULT_MODELS["classifier"],
    cost_tracker: CostTracker | None = None,
) -> dict[str, bool]:
    """Classify one page and merge the result into its meta.

    Returns:
        The flags for this schema (cached or fresh).

    Raises:
        litellm exceptions: API errors, left for the job runtime to retry.
        ValueError: If the reply is not a JSON object. Nothing is cached, so
            the retried unit asks again.
    """
    cached = (artifact.meta.get(CACHE_KEY) or {}).get(cache_key)
    if cached is not None:
        flags = normalize_flags(cached, boolean_schema)
    else:
        client = LLMClient(cost_tracker=cost_tracker)
        response = await client.complete(
            system_prompt=CLASSIFIER_SYSTEM_PROMPT,
            user_prompt=build_classifier_prompt(
                artifact.name or str(artifact.position),
                artifact.text,
                boolean_schema,
                ClassificationConfig.MAX_PAGE_CHARS,
            ),
            model=model,
            agent="classifier",
        )
        if not isinstance(response.content, dict):
            raise ValueError(f"Classifier reply for {artifact.name or artifact.id} is not an object")
        flags = normalize_flags(response.content, boolean_schema)
        artifact.meta[CACHE_KEY] = {**(artifact.meta.get(CACHE_KEY) or {}), cache_key: flags}

    merge_classification(artifact, flags)
    return flags


def normalize_flags(content: Any, boolean_schema: dict[str, Any]) -> dict[str, bool]:
    """Keep exactly the schema's keys. Anything that is not literally true is False."""
    content = content if isinstance(content, dict) else {}
    return {key: content.get(key) is True for key in (boolean_schema.get("properties") or {})}


def merge_classification(artifact: Artifact, values: dict[str, Any]) -> None:
    """Merge values into meta["classification"]. Existing keys are never removed."""
    artifact.meta[CLASSIFICATION_KEY] = {**artifact.classification, **values}


def artifacts_for_category(artifacts: Iterable[Artifact], key: str) -> list[Artifact]:
    """Pages flagged True for a group key, in position order."""
    return sorted(
        (a for a in artifacts if a.classification.get(key) is True),
        key=lambda a: a.position,
    )

