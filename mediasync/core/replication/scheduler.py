"""
Bounded task scheduler.

Runs Transfer Units with at most `limit` in flight, fail-fast without
preemption: once any unit fails, no new task is admitted, but units that
already started are allowed to finish. The scheduler only returns after
every dispatched unit has completed.

The moving parts are an admission gate (a counting semaphore), a
single-slot "first error" cell, and a join over the dispatched tasks.
Each run() call owns all three, so one scheduler can be reused safely.
"""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable, Optional, Union

from .errors import ConfigurationFailure, EnumerationFailure
from .models import TransferResult, TransferTask

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 20

TransferFn = Callable[[TransferTask], Awaitable[TransferResult]]
TaskSource = Union[AsyncIterable[TransferTask], Iterable[TransferTask]]


@dataclass
class ScheduleOutcome:
    """Counters and results of one scheduler run."""
    attempted: int = 0
    failed: int = 0
    first_error: Optional[str] = None
    enumeration_error: Optional[str] = None
    results: list[TransferResult] = field(default_factory=list)

    def record_failure(self, reason: str) -> None:
        self.failed += 1
        # first error wins; later ones are counted but not kept
        if self.first_error is None:
            self.first_error = reason


async def _iterate(tasks: TaskSource) -> AsyncIterator[TransferTask]:
    if hasattr(tasks, "__aiter__"):
        async for task in tasks:
            yield task
    else:
        for task in tasks:
            yield task


class BoundedTaskScheduler:
    """Dispatches transfers under a fixed concurrency ceiling."""

    def __init__(self, limit: int = DEFAULT_CONCURRENCY) -> None:
        if limit < 1:
            raise ConfigurationFailure(f"Concurrency limit must be at least 1, got {limit}")
        self._limit = limit

    @property
    def limit(self) -> int:
        return self._limit

    async def run(self, tasks: TaskSource, transfer: TransferFn) -> ScheduleOutcome:
        """
        Execute transfer() for every task pulled from tasks.

        Pulling stops as soon as a failure has been recorded. An
        EnumerationFailure raised by the task source also stops pulling and
        is recorded in the outcome as a failure instead of propagating.
        """
        gate = asyncio.Semaphore(self._limit)
        outcome = ScheduleOutcome()
        in_flight: list[asyncio.Task] = []
        dispatched: set[str] = set()

        async def run_one(task: TransferTask) -> None:
            try:
                try:
                    result = await transfer(task)
                except Exception as e:
                    result = TransferResult(task=task, error=f"{task.relative_path}: {e}")
                outcome.results.append(result)
                if not result.succeeded:
                    outcome.record_failure(result.error)
            finally:
                gate.release()

        try:
            async with aclosing(_iterate(tasks)) as source:
                async for task in source:
                    if outcome.first_error is not None:
                        break
                    if task.relative_path in dispatched:
                        continue

                    await gate.acquire()

                    # a unit may have failed while we waited for a slot
                    if outcome.first_error is not None:
                        gate.release()
                        break

                    dispatched.add(task.relative_path)
                    outcome.attempted += 1
                    in_flight.append(asyncio.create_task(run_one(task)))
        except EnumerationFailure as e:
            logger.warning(
                "Enumeration failed, draining in-flight transfers",
                extra={"source": e.source, "in_flight": len(in_flight), "error": e.reason}
            )
            outcome.enumeration_error = str(e)
            outcome.record_failure(str(e))
        finally:
            # closing the wrapper does not close the source it iterates
            if hasattr(tasks, "aclose"):
                await tasks.aclose()
            if in_flight:
                await asyncio.gather(*in_flight)

        logger.debug(
            "Scheduler run complete",
            extra={
                "attempted": outcome.attempted,
                "failed": outcome.failed,
                "limit": self._limit,
            }
        )

        return outcome
