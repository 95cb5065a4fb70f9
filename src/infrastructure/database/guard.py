# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Operation guard: timeout budget and error classification for database calls.

Every database call a handler makes goes through OperationGuard.run(). The
guard races the call against a timeout and turns any failure into a
DataLayerError tagged with its ErrorKind.

Timeout semantics:
    A call that exceeds its budget raises OperationTimeout immediately, but
    the call itself keeps running and is not cancelled. A timed-out write may
    therefore still be applied. The guard does not reconcile: it only logs
    the late outcome when the call eventually settles. Callers that need
    certainty must re-read the affected documents.

Example:
    guard = OperationGuard(default_timeout_ms=30000)

    course = await guard.run(models["Course"].find_by_id(course_id))
    count = await guard.run(lambda: models["Course"].count(), timeout_ms=500)
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, TypeVar, Union

from src.infrastructure.database.errors import OperationTimeout, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Union[Awaitable[T], Callable[[], Awaitable[T]]]


class OperationGuard:
    """Runs database calls under a timeout and the error taxonomy.

    Attributes:
        default_timeout_ms: Budget applied when run() receives no override.
    """

    def __init__(self, default_timeout_ms: int = 30000) -> None:
        if default_timeout_ms <= 0:
            raise ValueError("default_timeout_ms must be positive")
        self.default_timeout_ms = default_timeout_ms
        self._late_tasks: set[asyncio.Future[Any]] = set()

    @property
    def pending_late_operations(self) -> int:
        """Number of timed-out calls that have not settled yet."""
        return len(self._late_tasks)

    async def run(
        self,
        operation: Operation[T],
        timeout_ms: int | None = None,
        *,
        description: str | None = None,
    ) -> T:
        """Run one database call.

        Args:
            operation: Awaitable, or zero-argument callable returning one.
            timeout_ms: Budget override in milliseconds.
            description: Label used in timeout messages and logs.

        Returns:
            The call's result, unchanged.

        Raises:
            OperationTimeout: If the call did not settle within the budget.
            DataLayerError: The classified failure of the call.
        """
        budget_ms = timeout_ms if timeout_ms is not None else self.default_timeout_ms
        if budget_ms <= 0:
            raise ValueError("timeout_ms must be positive")

        if inspect.isawaitable(operation):
            awaitable = operation
        else:
            try:
                awaitable = operation()
            except Exception as e:
                raise classify_error(e, description) from e

        task = asyncio.ensure_future(awaitable)
        start = time.monotonic()
        try:
            done, _ = await asyncio.wait({task}, timeout=budget_ms / 1000)
        except asyncio.CancelledError:
            # The caller went away; the call itself keeps running
            if not task.done():
                self._track_late(task, description, start, "its caller was cancelled")
            raise

        if not done:
            self._track_late(task, description, start, "timing out")
            logger.warning(
                "%s exceeded %dms budget; leaving it running",
                description or "Database operation",
                budget_ms,
            )
            raise OperationTimeout(budget_ms, description)

        try:
            return task.result()
        except Exception as e:
            raise classify_error(e, description) from e

    def _track_late(
        self,
        task: asyncio.Future[Any],
        description: str | None,
        start: float,
        reason: str,
    ) -> None:
        self._late_tasks.add(task)

        def _on_settled(finished: asyncio.Future[Any]) -> None:
            self._late_tasks.discard(finished)
            label = description or "Database operation"
            elapsed = time.monotonic() - start

            if finished.cancelled():
                logger.warning("%s was cancelled after %s (%.3fs)", label, reason, elapsed)
                return

            error = finished.exception()
            if error is not None:
                logger.warning(
                    "%s failed after %s (%.3fs): %s", label, reason, elapsed, error
                )
            else:
                logger.warning(
                    "%s completed after %s (%.3fs); its effects may be applied",
                    label,
                    reason,
                    elapsed,
                )

        task.add_done_callback(_on_settled)
