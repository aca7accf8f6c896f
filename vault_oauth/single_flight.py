"""Single-flight coordination for token refresh

Several coroutines that need the same operation at the same time share one
execution: the first caller starts it as its own task, everyone (the first
caller included) awaits that task and receives the same result or exception.
Cancelling any caller leaves the shared execution running for the others.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """At most one in-flight execution; late arrivals join it"""

    def __init__(self, name: str = "operation"):
        self.name = name
        self._pending: Optional["asyncio.Task[T]"] = None

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run fn, or wait for the execution already in flight

        Args:
            fn: Zero-argument coroutine function performing the operation

        Returns:
            Result of the shared execution
        """
        task = self._pending
        if task is None:
            task = asyncio.ensure_future(fn())
            self._pending = task
            task.add_done_callback(self._finished)
        else:
            logger.debug(f"Joining in-flight {self.name}")

        # Shielded so a cancelled caller cannot cancel the shared execution
        return await asyncio.shield(task)

    def _finished(self, task: "asyncio.Task[T]") -> None:
        if self._pending is task:
            self._pending = None
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            # Every caller may have been cancelled; nobody else reads it
            logger.debug(f"{self.name} failed: {error}")
