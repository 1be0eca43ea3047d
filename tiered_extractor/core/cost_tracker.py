"""Token and cost tracking for LLM calls.

Every agent records its calls here so a run can report what planning,
classification, extraction and the correction passes each cost.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# (input, output) USD per 1M tokens, used when litellm has no price for a model.
_FALLBACK_PRICING: dict[str, tuple[float, float]] = {
    "openai/gpt-4o": (2.50, 10.00),
    "openai/gpt-4o-mini": (0.15, 0.60),
    "openai/gpt-4-turbo": (10.00, 30.00),
}

_warned_models: set[str] = set()


def _normalize_model_name(model: str) -> str:
    """Strip routing prefixes ("openrouter/", "azure/") for price lookups."""
    for prefix in ("openrouter/", "azure/"):
        if model.startswith(prefix):
            return model[len(prefix):]
    return model


def _fallback_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    normalized = _normalize_model_name(model)
    if normalized in _FALLBACK_PRICING:
        input_rate, output_rate = _FALLBACK_PRICING[normalized]
        return (prompt_tokens * input_rate + completion_tokens * output_rate) / 1_000_000
    return 0.0


@dataclass
class CallUsage:
    """Usage for a single LLM call."""

    model: str
    prompt_tokens: int
    completion_tokens: int
    agent: str = ""  # planner, classifier, resolver, extractor, deduplicator, verifier

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def cost(self) -> float:
        """Cost in USD from litellm's price table, else the fallback table."""
        try:
            from litellm import completion_cost
            return completion_cost(
                model=_normalize_model_name(self.model),
                prompt_tokens=self.prompt_tokens,
                completion_tokens=self.completion_tokens,
            )
        except Exception:
            fallback = _fallback_cost(self.model, self.prompt_tokens, self.completion_tokens)
            if fallback > 0:
                return fallback
            if self.model not in _warned_models:
                _warned_models.add(self.model)
                logger.warning(f"No pricing available for model '{self.model}', cost will show as $0")
            return 0.0


@dataclass
class CostTracker:
    """Accumulates token usage and costs over a run."""

    calls: list[CallUsage] = field(default_factory=list)

    def record(self, model: str, usage: Any, agent: str = "") -> CallUsage:
        """Record usage from a LiteLLM response's usage object."""
        if usage is None:
            return CallUsage(model=model, prompt_tokens=0, completion_tokens=0, agent=agent)

        call = CallUsage(
            model=model,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            agent=agent,
        )
        self.calls.append(call)
        return call

    @property
    def total_prompt_tokens(self) -> int:
        return sum(c.prompt_tokens for c in self.calls)

    @property
    def total_completion_tokens(self) -> int:
        return sum(c.completion_tokens for c in self.calls)

    @property
    def total_tokens(self) -> int:
        return self.total_prompt_tokens + self.total_completion_tokens

    @property
    def total_cost(self) -> float:
        return sum(c.cost for c in self.calls)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def calls_for(self, agent: str) -> int:
        """Number of calls recorded for one agent."""
        return sum(1 for c in self.calls if c.agent == agent)

    def by_agent(self) -> dict[str, dict[str, Any]]:
        breakdown: dict[str, dict[str, Any]] = {}
        for call in self.calls:
            stats = breakdown.setdefault(
                call.agent or "unknown",
                {"calls": 0, "prompt_tokens": 0, "completion_tokens": 0, "cost": 0.0},
            )
            stats["calls"] += 1
            stats["prompt_tokens"] += call.prompt_tokens
            stats["completion_tokens"] += call.completion_tokens
            stats["cost"] += call.cost
        return breakdown

    def summary(self) -> str:
        """Formatted usage report for the CLI."""
        lines = [
            "=" * 50,
            "COST SUMMARY",
            "=" * 50,
            f"Total API calls: {self.call_count}",
            f"Total tokens: {self.total_tokens:,}",
            f"Total cost: ${self.total_cost:.4f}",
            "",
            "By agent:",
        ]
        for agent, stats in sorted(self.by_agent().items()):
            tokens = stats["prompt_tokens"] + stats["completion_tokens"]
            lines.append(f"  {agent}: {stats['calls']} calls, {tokens:,} tokens, ${stats['cost']:.4f}")
        lines.append("=" * 50)
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "total_calls": self.call_count,
            "total_tokens": self.total_tokens,
            "total_cost_usd": round(self.total_cost, 6),
            "by_agent": self.by_agent(),
        }
