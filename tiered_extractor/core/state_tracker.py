"""Run state store.

Holds the authoritative RunState of one run behind an asyncio.Lock. Every
change is a pure function applied by apply(), which reads, computes, checks
the version and writes as one step, so two batch completions landing at the
same time can never both act on the same snapshot.
"""

import asyncio
from typing import Callable

from tiered_extractor.core.errors import StaleStateError
from tiered_extractor.pydantic_models.run_models import RunState


class RunStateStore:
    """Owner of one run's state."""

    def __init__(self, initial: RunState):
        self._state = initial
        self._lock = asyncio.Lock()

    def read(self) -> RunState:
        """Current snapshot. Snapshots are immutable."""
        return self._state

    async def apply(self, update: Callable[[RunState], RunState]) -> RunState:
        """Apply a pure update atomically and return the new state.

        The version is bumped only when the update changed something.
        """
        async with self._lock:
            before = self._state
            after = update(before)
            if after is before:
                return before
            return self._write(after, expected_version=before.version)

    async def compare_and_set(self, new_state: RunState, expected_version: int) -> RunState:
        """Write a state computed elsewhere, if nobody wrote since `expected_version`.

        Raises:
            StaleStateError: If the stored version moved on.
        """
        async with self._lock:
            return self._write(new_state, expected_version)

    def _write(self, new_state: RunState, expected_version: int) -> RunState:
        if self._state.version != expected_version:
            raise StaleStateError(expected_version, self._state.version)
        self._state = new_state.model_copy(update={"version": expected_version + 1})
        return self._state
