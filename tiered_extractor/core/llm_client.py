"""LLM client shared by every agent.

One place for the boilerplate each agent would otherwise repeat: building
messages, calling the Router, recording token usage, and turning the reply
into JSON (with json_repair as a fallback for slightly broken output).

Three call shapes:
- complete(): system + user prompt, JSON dict back
- complete_with_history(): full message list, for follow-up turns
- complete_structured(): instructor-validated pydantic model back
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, TypeVar

from tiered_extractor.core.config import LLMConfig
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.llm_router import router

logger = logging.getLogger(__name__)

logging.getLogger("litellm").setLevel(logging.ERROR)
logging.getLogger("httpx").setLevel(logging.ERROR)

T = TypeVar("T")


@dataclass
class LLMResponse:
    """Parsed response from an LLM call.

    Attributes:
        content: Parsed JSON content. Usually a dict; json_repair may return
            another JSON type for badly broken output, so callers validate.
        raw_content: Raw string content from the LLM.
        model: Model identifier used for the call.
    """

    content: Any
    raw_content: str
    model: str


class LLMClient:
    """Client for LLM calls with cost tracking.

    Retry and fallback are handled by the litellm Router (core/llm_router.py).

    Usage:
        client = LLMClient(cost_tracker=tracker)
        response = await client.complete(
            system_prompt=CLASSIFIER_SYSTEM_PROMPT,
            user_prompt=build_classifier_prompt(page, schema),
            model=FAST_MODEL,
            agent="classifier",
        )
        flags = response.content
    """

    def __init__(self, cost_tracker: CostTracker | None = None) -> None:
        self.cost_tracker = cost_tracker

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        agent: str = "",
        temperature: float | None = None,
        response_format: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Make a single-turn completion call and parse the JSON reply.

        Raises:
            litellm exceptions: For API errors left after Router retries.
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return await self._call_llm(messages, model, agent, temperature, response_format)

    async def complete_with_history(
        self,
        messages: list[dict[str, str]],
        model: str,
        agent: str = "",
        temperature: float | None = None,
        response_format: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Make a call with a full conversation history.

        The planner uses this for follow-up turns that point out fields its
        previous answer left out.
        """
        return await self._call_llm(messages, model, agent, temperature, response_format)

    async def complete_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        response_model: type[T],
        agent: str = "",
        temperature: float | None = None,
        max_retries: int = 2,
    ) -> T:
        """Make a call that returns a validated pydantic model.

        Instructor validates the reply and, on failure, re-asks with the
        validation errors in the prompt up to max_retries times.
        """
        import instructor

        instructor_client = instructor.from_litellm(router.acompletion)

        result, raw_completion = (
            await instructor_client.chat.completions.create_with_completion(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_model=response_model,
                temperature=temperature if temperature is not None else LLMConfig.TEMPERATURE,
                max_retries=max_retries,
            )
        )

        if self.cost_tracker:
            self.cost_tracker.record(model, raw_completion.usage, agent=agent)

        return result

    async def _call_llm(
        self,
        messages: list[dict[str, str]],
        model: str,
        agent: str,
        temperature: float | None,
        response_format: dict[str, Any] | None,
    ) -> LLMResponse:
        response = await router.acompletion(
            model=model,
            messages=messages,
            response_format=response_format or LLMConfig.RESPONSE_FORMAT,
            temperature=temperature if temperature is not None else LLMConfig.TEMPERATURE,
        )

        if self.cost_tracker:
            self.cost_tracker.record(model, response.usage, agent=agent)

        raw_content = response.choices[0].message.content or ""
        try:
            content = json.loads(raw_content)
        except json.JSONDecodeError:
            from json_repair import repair_json
            logger.warning("JSON parse failed, attempting repair")
            content = repair_json(raw_content, return_objects=True)

        return LLMResponse(content=content, raw_content=raw_content, model=model)
