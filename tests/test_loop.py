from __future__ import annotations

import logging

import pytest

from aiomumble.client.loop import IDLE_INTERVAL, SessionLoop
from aiomumble.models.types import ConnectionState


class _ScriptedConnection:
    """Replays a fixed list of process() results, then disconnects."""

    host = "voice.example.org"

    def __init__(self, results: list[bool | Exception]) -> None:
        self.results = list(results)
        self.state = ConnectionState.CONNECTED
        self.steps = 0

    def process(self) -> bool:
        self.steps += 1
        result = self.results.pop(0)
        if not self.results:
            self.state = ConnectionState.DISCONNECTED
        if isinstance(result, Exception):
            raise result
        return result


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.mark.asyncio
async def test_yields_while_busy_and_sleeps_when_idle() -> None:
    connection = _ScriptedConnection([True] * 5 + [False])
    sleep = _RecordingSleep()
    loop = SessionLoop(connection, sleep=sleep)

    result = await loop.run()

    assert result is None
    assert sleep.delays == [0] * 5 + [IDLE_INTERVAL]
    assert connection.steps == 6


@pytest.mark.asyncio
async def test_does_not_step_a_disconnected_connection() -> None:
    connection = _ScriptedConnection([True])
    connection.state = ConnectionState.DISCONNECTED
    loop = SessionLoop(connection, sleep=_RecordingSleep())

    assert await loop.run() is None
    assert connection.steps == 0


@pytest.mark.asyncio
async def test_step_exception_ends_loop_and_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    error = ValueError("bad packet")
    connection = _ScriptedConnection([True, error, True])
    sleep = _RecordingSleep()
    loop = SessionLoop(connection, sleep=sleep)

    with caplog.at_level(logging.ERROR):
        result = await loop.run()

    assert result is error
    assert connection.steps == 2
    assert sleep.delays == [0]
    assert "voice.example.org" in caplog.text
    assert "connected" in caplog.text


@pytest.mark.asyncio
async def test_background_task_returns_result() -> None:
    connection = _ScriptedConnection([False, False])
    loop = SessionLoop(connection, idle_interval=0)

    loop.start()
    with pytest.raises(RuntimeError):
        loop.start()
    result = await loop.wait()

    assert result is None
    assert not loop.running
    assert connection.steps == 2
