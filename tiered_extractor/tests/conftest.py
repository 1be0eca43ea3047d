"""Pytest configuration and shared fixtures.

Provides reusable test fixtures for:
- Page (artifact) factories
- A two-level sample schema (Case -> Demands)
- A scripted LLM client that answers by agent name
- A fresh pipeline logger per test
"""

import json
from typing import Any, Callable

import pytest

from tiered_extractor.core.llm_client import LLMResponse
from tiered_extractor.core.pipeline_logger import reset_logger
from tiered_extractor.pydantic_models import Artifact, PlanOwner


# =============================================================================
# Logger
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_logger():
    """Each test gets its own global logger."""
    reset_logger()
    yield
    reset_logger()


# =============================================================================
# Pages
# =============================================================================


@pytest.fixture
def make_page():
    """Factory for pages with an optional classification."""
    def _make_page(
        artifact_id: int,
        text: str = "",
        classification: dict[str, Any] | None = None,
        position: int | None = None,
        parent_artifact_id: int | None = None,
        producer_id: int | None = None,
        children: list[Artifact] | None = None,
    ) -> Artifact:
        meta = {"classification": classification} if classification is not None else {}
        return Artifact(
            id=artifact_id,
            name=f"Page {artifact_id}",
            position=artifact_id if position is None else position,
            parent_artifact_id=parent_artifact_id,
            producer_id=producer_id,
            text=text or f"Content of page {artifact_id}",
            meta=meta,
            children=children or [],
        )

    return _make_page


@pytest.fixture
def labelled_pages(make_page):
    """Factory: one page per label under `key` (None leaves the key out)."""
    def _labelled(labels: list[Any], key: str = "section") -> list[Artifact]:
        pages = []
        for index, label in enumerate(labels, start=1):
            classification = {} if label is None else {key: label}
            pages.append(make_page(index, classification=classification))
        return pages

    return _labelled


# =============================================================================
# Schema
# =============================================================================


CASE_SCHEMA = {
    "title": "Case",
    "type": "object",
    "properties": {
        "case_number": {"type": "string", "description": "Court case number"},
        "court": {"type": "string"},
        "demands": {
            "type": "array",
            "items": {
                "title": "Demand",
                "type": "object",
                "properties": {
                    "demand_number": {"type": "string"},
                    "amount": {"type": "number", "description": "Demanded amount in USD"},
                    "due_date": {"type": "string", "format": "date"},
                },
            },
        },
    },
}


@pytest.fixture
def case_schema() -> dict:
    return json.loads(json.dumps(CASE_SCHEMA))


@pytest.fixture
def owner(case_schema) -> PlanOwner:
    return PlanOwner(id=7, name="Case", target_schema=case_schema)


@pytest.fixture
def case_pages(make_page) -> list[Artifact]:
    return [
        make_page(1, "Case No. 2023-17 before the Superior Court"),
        make_page(2, "Demand D-1 for $100 due 2024-01-01. Demand D-2 for $250 due 2024-02-01."),
    ]


# =============================================================================
# Scripted LLM
# =============================================================================


class ScriptedLLM:
    """Stands in for LLMClient in agent modules.

    `script` maps an agent name to a function taking the last user prompt
    and returning the JSON reply (a dict), or raising to simulate an API error.
    Every call is recorded in `calls` as (agent, prompt).
    """

    def __init__(self, script: dict[str, Callable[[str], Any]]):
        self.script = script
        self.calls: list[tuple[str, str]] = []

    def __call__(self, cost_tracker=None) -> "ScriptedLLM":
        return self

    def calls_for(self, agent: str) -> list[str]:
        return [prompt for name, prompt in self.calls if name == agent]

    def _reply(self, agent: str, prompt: str) -> Any:
        self.calls.append((agent, prompt))
        return self.script[agent](prompt)

    async def complete(self, system_prompt: str, user_prompt: str, model: str, agent: str = "", **kwargs) -> LLMResponse:
        content = self._reply(agent, user_prompt)
        return LLMResponse(content=content, raw_content=json.dumps(content), model=model)

    async def complete_with_history(self, messages: list[dict], model: str, agent: str = "", **kwargs) -> LLMResponse:
        content = self._reply(agent, messages[-1]["content"])
        return LLMResponse(content=content, raw_content=json.dumps(content), model=model)

    async def complete_structured(self, system_prompt: str, user_prompt: str, model: str, response_model, agent: str = "", **kwargs):
        return response_model.model_validate(self._reply(agent, user_prompt))


_AGENT_MODULES = (
    "tiered_extractor.agents.planner_agent",
    "tiered_extractor.agents.classifier_agent",
    "tiered_extractor.agents.resolver_agent",
    "tiered_extractor.agents.field_extractor_agent",
    "tiered_extractor.agents.deduplication_agent",
    "tiered_extractor.agents.verification_agent",
    "tiered_extractor.agents.category_agent",
)


@pytest.fixture
def scripted_llm(monkeypatch):
    """Factory installing a ScriptedLLM in place of LLMClient in every agent module."""
    def _install(script: dict[str, Callable[[str], Any]]) -> ScriptedLLM:
        llm = ScriptedLLM(script)
        for module in _AGENT_MODULES:
            monkeypatch.setattr(f"{module}.LLMClient", llm)
        return llm

    return _install


def case_script() -> dict[str, Callable[[str], Any]]:
    """Replies that extract one Case with two Demands from `case_pages`."""

    def planner(prompt: str) -> dict:
        if "Remaining Fields to Group" in prompt or "Follow-up" in prompt:
            return {"extraction_groups": [
                {"name": "Demand Details", "description": "Amounts and due dates", "fields": ["amount", "due_date"], "search_mode": "exhaustive"},
            ]}
        if "Name: Case" in prompt:
            return {"identity_fields": ["case_number"], "skim_fields": ["court"], "search_mode": "skim"}
        return {"identity_fields": ["demand_number"], "skim_fields": [], "search_mode": "exhaustive"}

    def classifier(prompt: str) -> dict:
        if "## Page: Page 1" in prompt:
            return {"case_identification": True}
        return {"demand_identification": True, "demand_details": True}

    def resolver(prompt: str) -> dict:
        if "## Object Type: Case" in prompt:
            return {"objects": [{"data": {"case_number": "2023-17", "court": "Superior Court"}}]}
        return {"objects": [
            {"parent_id": 1, "data": {"demand_number": "D-1"}},
            {"parent_id": 1, "data": {"demand_number": "D-2"}},
        ]}

    def extractor(prompt: str) -> dict:
        if '"D-1"' in prompt:
            return {"data": {"amount": 100, "due_date": "2024-01-01"}}
        return {"data": {"amount": 250, "due_date": "2024-02-01"}}

    return {"planner": planner, "classifier": classifier, "resolver": resolver, "extractor": extractor}


@pytest.fixture
def case_llm(scripted_llm) -> ScriptedLLM:
    return scripted_llm(case_script())


@pytest.fixture
def llm_script() -> dict[str, Callable[[str], Any]]:
    """The Case -> Demands script, for tests that replace one agent's replies."""
    return case_script()
