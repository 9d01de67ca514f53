from __future__ import annotations

import asyncio
import threading

import pytest

from aiomumble.client.capture import CapturePipeline, ChannelVoiceTarget
from aiomumble.models.config import AudioFormat


class _FakeTransport:
    def __init__(self) -> None:
        self.voice: list[tuple[int, bytes]] = []
        self.stops: list[int] = []

    def send_voice(self, channel_id: int, pcm: bytes) -> None:
        self.voice.append((channel_id, pcm))

    def send_voice_stop(self, channel_id: int) -> None:
        self.stops.append(channel_id)


class _FakeInputStream:
    def __init__(self, callback) -> None:
        self.callback = callback
        self.started = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True


class _StreamFactory:
    def __init__(self) -> None:
        self.streams: list[_FakeInputStream] = []

    def __call__(self, _fmt: AudioFormat, callback) -> _FakeInputStream:
        stream = _FakeInputStream(callback)
        self.streams.append(stream)
        return stream


class _ThreadRecordingTransport(_FakeTransport):
    def __init__(self) -> None:
        super().__init__()
        self.threads: list[int] = []

    def send_voice(self, channel_id: int, pcm: bytes) -> None:
        self.threads.append(threading.get_ident())
        super().send_voice(channel_id, pcm)


def test_default_target_is_none_and_buffers_are_dropped() -> None:
    transport = _FakeTransport()
    factory = _StreamFactory()
    capture = CapturePipeline(
        AudioFormat(),
        fallback_target=lambda: ChannelVoiceTarget(3, transport),
        stream_factory=factory,
    )

    capture.start()
    factory.streams[0].callback(b"\x00\x01")

    assert capture.target is None
    assert capture.recording
    assert capture.device_open
    assert transport.voice == []


def test_buffers_go_to_target_only_while_recording() -> None:
    transport = _FakeTransport()
    factory = _StreamFactory()
    capture = CapturePipeline(
        AudioFormat(), target=ChannelVoiceTarget(1, transport), stream_factory=factory
    )

    capture.start()
    stream = factory.streams[0]
    stream.callback(b"a")
    capture.stop()
    stream.callback(b"b")
    capture.start()
    stream.callback(b"c")

    assert transport.voice == [(1, b"a"), (1, b"c")]
    # The device is opened once and keeps running while muted.
    assert len(factory.streams) == 1
    assert stream.started


def test_each_stop_sends_exactly_one_voice_stop() -> None:
    transport = _FakeTransport()
    capture = CapturePipeline(
        AudioFormat(), target=ChannelVoiceTarget(4, transport), stream_factory=_StreamFactory()
    )

    for _ in range(3):
        capture.start()
        capture.stop()

    assert transport.stops == [4, 4, 4]


def test_stop_without_target_uses_fallback() -> None:
    transport = _FakeTransport()
    capture = CapturePipeline(
        AudioFormat(),
        fallback_target=lambda: ChannelVoiceTarget(7, transport),
        stream_factory=_StreamFactory(),
    )

    capture.start()
    capture.stop()

    assert transport.stops == [7]


def test_stop_without_any_target_sends_nothing() -> None:
    capture = CapturePipeline(
        AudioFormat(), fallback_target=lambda: None, stream_factory=_StreamFactory()
    )

    capture.start()
    capture.stop()

    assert not capture.recording


def test_target_swap_splits_buffers_without_loss_or_duplication() -> None:
    transport = _FakeTransport()
    factory = _StreamFactory()
    capture = CapturePipeline(
        AudioFormat(), target=ChannelVoiceTarget(1, transport), stream_factory=factory
    )

    capture.start()
    callback = factory.streams[0].callback
    for index in range(5):
        callback(bytes([index]))
    capture.set_target(ChannelVoiceTarget(2, transport))
    for index in range(5, 10):
        callback(bytes([index]))

    assert [pcm for _channel, pcm in transport.voice] == [bytes([i]) for i in range(10)]
    assert [channel for channel, _pcm in transport.voice] == [1] * 5 + [2] * 5


def test_close_stops_recording_and_releases_device() -> None:
    transport = _FakeTransport()
    factory = _StreamFactory()
    capture = CapturePipeline(
        AudioFormat(), target=ChannelVoiceTarget(1, transport), stream_factory=factory
    )

    capture.start()
    capture.close()
    capture.close()

    assert transport.stops == [1]
    assert factory.streams[0].closed
    assert not capture.device_open


def test_send_failure_is_contained() -> None:
    class _BrokenTransport(_FakeTransport):
        def send_voice(self, channel_id: int, pcm: bytes) -> None:
            raise ConnectionResetError("gone")

    factory = _StreamFactory()
    capture = CapturePipeline(
        AudioFormat(), target=ChannelVoiceTarget(1, _BrokenTransport()), stream_factory=factory
    )

    capture.start()
    factory.streams[0].callback(b"a")

    assert capture.recording


@pytest.mark.asyncio
async def test_sends_are_performed_on_the_event_loop() -> None:
    loop = asyncio.get_running_loop()
    transport = _ThreadRecordingTransport()
    factory = _StreamFactory()
    capture = CapturePipeline(
        AudioFormat(),
        target=ChannelVoiceTarget(1, transport),
        stream_factory=factory,
        loop=loop,
    )

    capture.start()
    await loop.run_in_executor(None, factory.streams[0].callback, b"threaded")
    await asyncio.sleep(0)

    assert transport.voice == [(1, b"threaded")]
    assert transport.threads == [threading.get_ident()]


class _OrderedTransport:
    def __init__(self) -> None:
        self.log: list[str] = []

    def send_voice(self, channel_id: int, pcm: bytes) -> None:
        self.log.append("voice")

    def send_voice_stop(self, channel_id: int) -> None:
        self.log.append("stop")


class _StopOnRelease:
    """Lock wrapper that calls ``stop()`` right after a buffer releases the lock."""

    def __init__(self, capture: CapturePipeline) -> None:
        self._lock = threading.Lock()
        self._capture = capture
        self.armed = False

    def __enter__(self) -> None:
        self._lock.acquire()

    def __exit__(self, *exc_info: object) -> None:
        self._lock.release()
        if self.armed:
            self.armed = False
            self._capture.stop()


def test_no_voice_follows_voice_stop() -> None:
    transport = _OrderedTransport()
    factory = _StreamFactory()
    capture = CapturePipeline(
        AudioFormat(), target=ChannelVoiceTarget(1, transport), stream_factory=factory
    )
    capture.start()
    lock = _StopOnRelease(capture)
    capture._lock = lock  # type: ignore[assignment]  # noqa: SLF001

    lock.armed = True
    factory.streams[0].callback(b"last")
    factory.streams[0].callback(b"after stop")

    assert transport.log == ["voice", "stop"]


@pytest.mark.asyncio
async def test_no_voice_follows_voice_stop_on_the_event_loop() -> None:
    loop = asyncio.get_running_loop()
    transport = _OrderedTransport()
    factory = _StreamFactory()
    capture = CapturePipeline(
        AudioFormat(),
        target=ChannelVoiceTarget(1, transport),
        stream_factory=factory,
        loop=loop,
    )
    capture.start()
    lock = _StopOnRelease(capture)
    capture._lock = lock  # type: ignore[assignment]  # noqa: SLF001

    lock.armed = True
    await loop.run_in_executor(None, factory.streams[0].callback, b"last")
    await asyncio.sleep(0)

    assert transport.log == ["voice", "stop"]


def test_failed_device_start_releases_stream() -> None:
    class _FailingStream(_FakeInputStream):
        def start(self) -> None:
            raise OSError("no input device")

    streams: list[_FailingStream] = []

    def _factory(_fmt: AudioFormat, callback) -> _FailingStream:
        stream = _FailingStream(callback)
        streams.append(stream)
        return stream

    capture = CapturePipeline(AudioFormat(), stream_factory=_factory)

    with pytest.raises(OSError, match="no input device"):
        capture.start()

    assert streams[0].closed
    assert not capture.device_open
    assert not capture.recording
