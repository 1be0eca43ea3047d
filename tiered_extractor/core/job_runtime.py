"""Job runtime: runs work units and reports completions back to the orchestrator.

The orchestrator only needs three things from a runtime: accept a batch of
units, tell whether a run was aborted, and call back whenever a unit
finishes. Delivery is at-least-once: a failed unit is retried, and the
completion callback may fire several times for the same batch.

InMemoryJobRuntime runs units as asyncio tasks under a semaphore, the same
way the extraction phases bound concurrent LLM calls.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Protocol

from tiered_extractor.core.config import RuntimeConfig
from tiered_extractor.pydantic_models.work_units import Batch, UnitStatus, WorkUnit

logger = logging.getLogger(__name__)

UnitExecutor = Callable[[WorkUnit], Awaitable[None]]
UnitFinished = Callable[[WorkUnit, Batch], Awaitable[None]]


class JobRuntime(Protocol):
    def attach(self, execute: UnitExecutor, on_unit_finished: UnitFinished) -> None: ...
    async def submit(self, batch: Batch, units: list[WorkUnit]) -> None: ...
    def abort(self, run_id: str) -> None: ...
    def is_aborted(self, run_id: str) -> bool: ...
    async def drain(self) -> None: ...


class InMemoryJobRuntime:
    """In-process runtime with bounded concurrency and per-unit retries.

    Args:
        max_concurrent: Units executing at once.
        attempts: Attempts per unit before it is marked failed.
    """

    def __init__(self, max_concurrent: int = RuntimeConfig.MAX_CONCURRENT, attempts: int = RuntimeConfig.UNIT_ATTEMPTS):
        self.attempts = max(attempts, 1)
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._execute: UnitExecutor | None = None
        self._on_unit_finished: UnitFinished | None = None
        self._tasks: set[asyncio.Task] = set()
        self._aborted: set[str] = set()

    def attach(self, execute: UnitExecutor, on_unit_finished: UnitFinished) -> None:
        self._execute = execute
        self._on_unit_finished = on_unit_finished

    async def submit(self, batch: Batch, units: list[WorkUnit]) -> None:
        """Schedule every unit of a batch. Returns without waiting for them."""
        if self._execute is None or self._on_unit_finished is None:
            raise RuntimeError("Runtime has no executor attached")
        for unit in units:
            task = asyncio.create_task(self._run_unit(unit, batch))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def abort(self, run_id: str) -> None:
        self._aborted.add(run_id)

    def is_aborted(self, run_id: str) -> bool:
        return run_id in self._aborted

    async def drain(self) -> None:
        """Wait until no unit is pending, including units scheduled by callbacks."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run_unit(self, unit: WorkUnit, batch: Batch) -> None:
        async with self._semaphore:
            if self.is_aborted(unit.run_id):
                unit.status = UnitStatus.ABORTED
            else:
                await self._execute_with_retries(unit)

        try:
            await self._on_unit_finished(unit, batch)
        except Exception as e:
            logger.error(f"Completion callback failed for unit {unit.id}: {e}", exc_info=True)

    async def _execute_with_retries(self, unit: WorkUnit) -> None:
        unit.started_at = datetime.now()
        while unit.attempts < self.attempts:
            unit.attempts += 1
            unit.status = UnitStatus.RUNNING
            try:
                await self._execute(unit)
            except Exception as e:
                unit.error = str(e)
                logger.warning(f"Unit {unit.id} ({unit.name}) attempt {unit.attempts}/{self.attempts} failed: {e}")
                if self.is_aborted(unit.run_id):
                    unit.status = UnitStatus.ABORTED
                    break
                continue

            unit.status = UnitStatus.COMPLETED
            unit.error = None
            break
        else:
            unit.status = UnitStatus.FAILED

        unit.completed_at = datetime.now()
