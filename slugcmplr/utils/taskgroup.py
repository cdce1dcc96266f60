"""Fail-fast task group for concurrent pipeline units.

The first failing task sets a shared cancellation event. Sibling tasks that
have not started yet never run, and running tasks are expected to poll
`cancelled` between steps and stop starting new work. Nothing already in
flight is interrupted: the group always waits for every task to return
before surfacing the first error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class FailFastGroup:
    """Spawn tasks, await all, raise the first error.

    Groups may share one cancellation event so that nested fan-outs observe
    a failure anywhere in the enclosing operation.

    Example:
        >>> async def main():
        ...     async with FailFastGroup() as group:
        ...         group.spawn(write_env)
        ...         group.spawn(copy_source)
    """

    def __init__(self, cancelled: asyncio.Event | None = None) -> None:
        self.cancelled = cancelled or asyncio.Event()
        self._tasks: list[asyncio.Task[Any]] = []
        self._first_error: BaseException | None = None

    async def __aenter__(self) -> FailFastGroup:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            self.cancelled.set()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            return
        await self.wait()

    def spawn(self, fn: Callable[..., Awaitable[Any]], *args: Any, name: str | None = None) -> asyncio.Task[Any]:
        """Schedule fn(*args) as a member of the group.

        Returns:
            The created task; its result is available once the group exits
        """

        async def runner() -> Any:
            if self.cancelled.is_set():
                logger.debug(f"Skipping {name or fn} after earlier failure")
                return None
            try:
                return await fn(*args)
            except BaseException as e:
                if self._first_error is None:
                    self._first_error = e
                self.cancelled.set()
                raise

        task = asyncio.create_task(runner(), name=name)
        self._tasks.append(task)
        return task

    async def wait(self) -> None:
        """Wait for every spawned task, then raise the first error if any."""
        await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._first_error is not None:
            raise self._first_error
