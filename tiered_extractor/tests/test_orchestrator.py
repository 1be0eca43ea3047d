"""Tests for tiered_extractor.orchestrator module.

Runs the state machine end to end with a scripted LLM:
- Full run over a two-level schema (Case -> Demands)
- Plan cache reuse across runs
- Configuration, planning and unit failures
- Cancellation
- Idempotent batch completion under repeated callbacks
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from tiered_extractor.core.errors import ConfigurationError
from tiered_extractor.core.job_runtime import InMemoryJobRuntime
from tiered_extractor.core.plan_cache import CACHE_KEY_KEY, PLAN_KEY
from tiered_extractor.core.repository import InMemoryRepository
from tiered_extractor.orchestrator import ExtractionOrchestrator
from tiered_extractor.phases import RunConfig
from tiered_extractor.pydantic_models import GlobalSearchMode, Operation, PlanOwner, RunStatus, UnitStatus


def _orchestrator(owner, pages, attempts=1, **config) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(
        owner=owner,
        artifacts=pages,
        runtime=InMemoryJobRuntime(attempts=attempts),
        config=RunConfig(**config),
        run_id="run-1",
    )


def _operations(orchestrator) -> list[tuple[Operation, int | None]]:
    batches = sorted(orchestrator.repository.batches.values(), key=lambda b: b.id)
    return [(b.operation, b.level) for b in batches]


# =============================================================================
# Full run tests
# =============================================================================


class TestFullRun:
    """End-to-end runs with a scripted LLM."""

    @pytest.mark.asyncio
    async def test_run_completes(self, owner, case_pages, case_llm):
        orchestrator = _orchestrator(owner, case_pages)

        state = await orchestrator.run()

        assert state.status == RunStatus.COMPLETED
        assert state.is_level_complete(0)
        assert state.is_level_complete(1)

    @pytest.mark.asyncio
    async def test_batches_follow_level_order(self, owner, case_pages, case_llm):
        orchestrator = _orchestrator(owner, case_pages)

        await orchestrator.run()

        assert _operations(orchestrator) == [
            (Operation.DEFAULT, None),
            (Operation.PLAN_IDENTIFY, None),
            (Operation.PLAN_REMAINING, None),
            (Operation.CLASSIFY, None),
            (Operation.RESOLVE_OBJECTS, 0),
            (Operation.RESOLVE_OBJECTS, 1),
            (Operation.EXTRACT_REMAINING, 1),
        ]

    @pytest.mark.asyncio
    async def test_objects_resolved_and_filled(self, owner, case_pages, case_llm):
        orchestrator = _orchestrator(owner, case_pages)

        await orchestrator.run()

        case, first, second = orchestrator.objects()
        assert (case.type, case.name, case.parent_id) == ("Case", "2023-17", None)
        assert case.data == {"case_number": "2023-17", "court": "Superior Court"}
        assert (first.name, first.parent_id, first.level) == ("D-1", case.id, 1)
        assert first.data == {"demand_number": "D-1", "amount": 100, "due_date": "2024-01-01"}
        assert second.data["amount"] == 250
        assert orchestrator.state.object_ids("Demand", 1) == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_pages_classified(self, owner, case_pages, case_llm):
        orchestrator = _orchestrator(owner, case_pages)

        await orchestrator.run()

        assert case_pages[0].classification == {
            "case_identification": True,
            "demand_identification": False,
            "demand_details": False,
        }
        assert case_pages[1].classification["demand_details"] is True

    @pytest.mark.asyncio
    async def test_resolver_only_sees_classified_pages(self, owner, case_pages, case_llm):
        await _orchestrator(owner, case_pages).run()

        case_prompt, demand_prompt = case_llm.calls_for("resolver")
        assert "2023-17" in case_prompt and "Demand D-1" not in case_prompt
        assert "Demand D-1" in demand_prompt and "Superior" not in demand_prompt

    @pytest.mark.asyncio
    async def test_plan_cached_on_owner(self, owner, case_pages, case_llm):
        await _orchestrator(owner, case_pages).run()

        assert owner.meta[CACHE_KEY_KEY]
        assert [len(level["identities"]) for level in owner.meta[PLAN_KEY]["levels"]] == [1, 1]

    @pytest.mark.asyncio
    async def test_second_run_reuses_cached_plan(self, owner, case_pages, make_page, case_llm):
        await _orchestrator(owner, case_pages).run()
        planner_calls = len(case_llm.calls_for("planner"))

        fresh_pages = [make_page(1, case_pages[0].text), make_page(2, case_pages[1].text)]
        second = _orchestrator(owner, fresh_pages)
        state = await second.run()

        assert state.status == RunStatus.COMPLETED
        assert len(case_llm.calls_for("planner")) == planner_calls
        assert (Operation.PLAN_IDENTIFY, None) not in _operations(second)
        assert len(second.objects()) == 3

    @pytest.mark.asyncio
    async def test_changed_hints_replan(self, owner, case_pages, make_page, case_llm):
        await _orchestrator(owner, case_pages).run()
        planner_calls = len(case_llm.calls_for("planner"))

        owner.hints = "Demands are numbered D-n"
        fresh_pages = [make_page(1, case_pages[0].text), make_page(2, case_pages[1].text)]
        await _orchestrator(owner, fresh_pages).run()

        assert len(case_llm.calls_for("planner")) > planner_calls

    @pytest.mark.asyncio
    async def test_skim_only_uses_extract_group(self, owner, case_pages, case_llm):
        orchestrator = _orchestrator(owner, case_pages, global_search_mode=GlobalSearchMode.SKIM_ONLY)

        state = await orchestrator.run()

        assert state.status == RunStatus.COMPLETED
        assert _operations(orchestrator)[-1] == (Operation.EXTRACT_GROUP, 1)

    @pytest.mark.asyncio
    async def test_no_pages_completes_without_objects(self, owner, case_llm):
        orchestrator = _orchestrator(owner, [])

        state = await orchestrator.run()

        assert state.status == RunStatus.COMPLETED
        assert orchestrator.objects() == []
        assert case_llm.calls_for("classifier") == []

    @pytest.mark.asyncio
    async def test_page_levels_select_children(self, owner, make_page, case_llm):
        document = make_page(100, children=[
            make_page(1, "Case No. 2023-17", parent_artifact_id=100),
            make_page(2, "Demand D-1 and D-2", parent_artifact_id=100),
        ])
        orchestrator = _orchestrator(owner, [document], page_levels=(1,))

        assert [p.id for p in orchestrator.context.pages] == [1, 2]
        await orchestrator.run()
        assert len(case_llm.calls_for("classifier")) == 2

    @pytest.mark.asyncio
    async def test_to_output(self, owner, case_pages, case_llm):
        orchestrator = _orchestrator(owner, case_pages)
        await orchestrator.run()

        output = orchestrator.to_output()

        assert output["run"]["status"] == "completed"
        assert len(output["plan"]["levels"]) == 2
        assert [o["name"] for o in output["objects"]] == ["2023-17", "D-1", "D-2"]
        case = output["rollup"]["object_types"]["Case"]["objects"][0]
        assert [d["name"] for d in case["children"]["Demand"]] == ["D-1", "D-2"]
        assert output["rollup"]["summary"]["by_type"] == {"Case": 1, "Demand": 2}
        assert output["errors"]["summary"]["total_errors"] == 0

    @pytest.mark.asyncio
    async def test_stats(self, owner, case_pages, case_llm):
        orchestrator = _orchestrator(owner, case_pages)
        await orchestrator.run()

        stats = orchestrator.get_stats()

        assert stats["objects"] == {"Case": 1, "Demand": 2}
        assert stats["levels_completed"] == 2
        assert stats["units"] == {"completed": len(orchestrator.repository.units)}


# =============================================================================
# Failure tests
# =============================================================================


class TestFailures:
    """Tests for configuration errors, failed units and failed planning."""

    @pytest.mark.asyncio
    async def test_missing_schema_raises_without_units(self, case_pages):
        orchestrator = _orchestrator(PlanOwner(id=1, name="Empty"), case_pages)

        with pytest.raises(ConfigurationError):
            await orchestrator.start()

        assert orchestrator.repository.units == {}
        assert orchestrator.get_errors().errors[0].category.value == "configuration"

    @pytest.mark.asyncio
    async def test_invalid_identity_fails_planning(self, owner, case_pages, scripted_llm, llm_script):
        script = llm_script
        script["planner"] = lambda prompt: {"identity_fields": ["not_a_field"]}
        scripted_llm(script)
        orchestrator = _orchestrator(owner, case_pages)

        state = await orchestrator.run()

        assert state.status == RunStatus.FAILED
        assert state.failed_phase == "planning"
        assert Operation.CLASSIFY not in [op for op, _ in _operations(orchestrator)]
        assert CACHE_KEY_KEY not in owner.meta

    @pytest.mark.asyncio
    async def test_failed_resolution_fails_run(self, owner, case_pages, scripted_llm, llm_script):
        script = llm_script

        def broken_resolver(prompt):
            raise RuntimeError("provider unavailable")

        script["resolver"] = broken_resolver
        scripted_llm(script)
        orchestrator = _orchestrator(owner, case_pages, attempts=2)

        state = await orchestrator.run()

        assert state.status == RunStatus.FAILED
        assert state.failed_phase == "resolution"
        assert "provider unavailable" in state.failure_reason
        failed = [u for u in orchestrator.repository.units.values() if u.status == UnitStatus.FAILED]
        assert len(failed) == 1 and failed[0].attempts == 2
        assert orchestrator.get_errors().error_count == 2

    @pytest.mark.asyncio
    async def test_failed_run_keeps_resolved_objects(self, owner, case_pages, scripted_llm, llm_script):
        script = llm_script

        def broken_extractor(prompt):
            raise RuntimeError("timeout")

        script["extractor"] = broken_extractor
        scripted_llm(script)
        orchestrator = _orchestrator(owner, case_pages)

        state = await orchestrator.run()

        assert state.status == RunStatus.FAILED
        assert state.failed_phase == "extraction"
        assert len(orchestrator.objects()) == 3
        assert state.object_ids("Demand", 1)

    @pytest.mark.asyncio
    async def test_retried_unit_recovers(self, owner, case_pages, scripted_llm, llm_script):
        script = llm_script
        calls = {"count": 0}
        resolver = script["resolver"]

        def flaky_resolver(prompt):
            calls["count"] += 1
            if calls["count"] == 1:
                raise RuntimeError("rate limited")
            return resolver(prompt)

        script["resolver"] = flaky_resolver
        scripted_llm(script)

        state = await _orchestrator(owner, case_pages, attempts=3).run()

        assert state.status == RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_malformed_classification_retried(self, owner, case_pages, scripted_llm, llm_script):
        script = llm_script
        classifier = script["classifier"]
        replies = {"count": 0}

        def garbled_once(prompt):
            if "## Page: Page 2" in prompt:
                replies["count"] += 1
                if replies["count"] == 1:
                    return "garbage"
            return classifier(prompt)

        script["classifier"] = garbled_once
        llm = scripted_llm(script)

        orchestrator = _orchestrator(owner, case_pages, attempts=2)
        state = await orchestrator.run()

        assert state.status == RunStatus.COMPLETED
        assert len([p for p in llm.calls_for("classifier") if "## Page: Page 2" in p]) == 2
        assert case_pages[1].classification["demand_details"] is True
        assert len(orchestrator.objects()) == 3


# =============================================================================
# Cancellation tests
# =============================================================================


class TestCancel:
    """Tests for cancel()."""

    @pytest.mark.asyncio
    async def test_cancel_before_units_run(self, owner, case_pages, case_llm):
        orchestrator = _orchestrator(owner, case_pages)

        await orchestrator.start()
        state = await orchestrator.cancel()
        await orchestrator.runtime.drain()

        assert state.status == RunStatus.CANCELLED
        assert orchestrator.state.status == RunStatus.CANCELLED
        assert _operations(orchestrator) == [(Operation.DEFAULT, None)]
        assert [u.status for u in orchestrator.repository.units.values()] == [UnitStatus.ABORTED]

    @pytest.mark.asyncio
    async def test_cancel_completed_run_is_noop(self, owner, case_pages, case_llm):
        orchestrator = _orchestrator(owner, case_pages)
        await orchestrator.run()

        state = await orchestrator.cancel()

        assert state.status == RunStatus.COMPLETED


# =============================================================================
# Idempotence tests
# =============================================================================


class TestBatchCompletion:
    """Tests for on_batch_complete under repeated and partial callbacks."""

    @pytest.fixture
    def runtime(self):
        runtime = MagicMock()
        runtime.submit = AsyncMock()
        runtime.is_aborted.return_value = False
        return runtime

    @pytest.fixture
    def orchestrator(self, owner, case_pages, runtime):
        return ExtractionOrchestrator(
            owner=owner,
            artifacts=case_pages,
            repository=InMemoryRepository(owners=[owner], artifacts=case_pages),
            runtime=runtime,
            run_id="run-1",
        )

    async def _complete_default(self, orchestrator):
        await orchestrator.start()
        batch = orchestrator.repository.get_batch(1)
        for unit in orchestrator.repository.units_for_batch(batch.id):
            unit.status = UnitStatus.COMPLETED
        return batch

    @pytest.mark.asyncio
    async def test_repeated_callbacks_decide_once(self, orchestrator, runtime):
        batch = await self._complete_default(orchestrator)

        await asyncio.gather(*(orchestrator.on_batch_complete(batch) for _ in range(5)))
        await orchestrator.on_batch_complete(batch)

        assert _operations(orchestrator) == [(Operation.DEFAULT, None), (Operation.PLAN_IDENTIFY, None)]
        assert runtime.submit.await_count == 2
        assert orchestrator.state.status == RunStatus.PLANNING

    @pytest.mark.asyncio
    async def test_partial_batch_waits(self, orchestrator):
        default = await self._complete_default(orchestrator)
        await orchestrator.on_batch_complete(default)

        planning = orchestrator.repository.get_batch(2)
        first, second = orchestrator.repository.units_for_batch(planning.id)
        first.status = UnitStatus.COMPLETED
        second.status = UnitStatus.RUNNING
        await orchestrator.on_batch_complete(planning)

        assert len(orchestrator.repository.batches) == 2
        assert not orchestrator.state.has_completed_batch(planning.id)

    @pytest.mark.asyncio
    async def test_aborted_run_ignores_completions(self, orchestrator, runtime):
        batch = await self._complete_default(orchestrator)
        runtime.is_aborted.return_value = True

        await orchestrator.on_batch_complete(batch)

        assert len(orchestrator.repository.batches) == 1

    @pytest.mark.asyncio
    async def test_units_submitted_after_commit(self, orchestrator, runtime):
        batch = await self._complete_default(orchestrator)
        seen_status = []

        async def submit(batch, units):
            seen_status.append(orchestrator.state.status)

        runtime.submit.side_effect = submit
        await orchestrator.on_batch_complete(batch)

        assert seen_status == [RunStatus.PLANNING]
