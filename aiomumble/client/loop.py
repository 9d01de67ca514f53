"""Cooperative driver that keeps a connection processing."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import TYPE_CHECKING

from aiomumble.models.types import ConnectionState

if TYPE_CHECKING:
    from .interfaces import Connection

logger = logging.getLogger(__name__)

# Pause between processing steps when the connection reports no pending work.
IDLE_INTERVAL = 0.01


class SessionLoop:
    """
    Repeatedly advances a connection until it is disconnected.

    While a step reports more pending work the loop only yields to the event
    loop before stepping again, so a backlog is drained without delay. Once a
    step reports no pending work the loop sleeps for ``idle_interval``.

    An exception raised by a step ends the loop. It is logged together with the
    connection's host and state and becomes the result of ``run()``. There is
    no retry.
    """

    _connection: Connection
    _idle_interval: float
    _sleep: Callable[[float], Awaitable[None]]
    _task: asyncio.Task[BaseException | None] | None = None

    def __init__(
        self,
        connection: Connection,
        *,
        idle_interval: float = IDLE_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Create a loop for a connection.

        Args:
            connection: The connection to drive.
            idle_interval: Seconds to wait after a step with no pending work.
            sleep: Awaitable used for yielding and waiting.
        """
        self._connection = connection
        self._idle_interval = idle_interval
        self._sleep = sleep

    @property
    def running(self) -> bool:
        """Return True while the loop task is running."""
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[BaseException | None]:
        """Run the loop as a background task on the current event loop."""
        if self.running:
            raise RuntimeError("Session loop is already running")
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def wait(self) -> BaseException | None:
        """Wait for the background task to finish and return its result."""
        if self._task is None:
            return None
        return await self._task

    async def cancel(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task

    async def run(self) -> BaseException | None:
        """Drive the connection until it disconnects or a step fails."""
        connection = self._connection
        try:
            while connection.state is not ConnectionState.DISCONNECTED:
                if connection.process():
                    await self._sleep(0)
                else:
                    await self._sleep(self._idle_interval)
        except Exception as err:
            logger.exception(
                "Connection to %s (%s) raised an exception",
                connection.host,
                connection.state.value,
            )
            return err
        logger.debug("Session loop for %s finished", connection.host)
        return None
