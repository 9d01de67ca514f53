"""Microphone capture and routing of captured audio to a channel."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from aiomumble.audio import open_input_stream

if TYPE_CHECKING:
    from aiomumble.models.config import AudioFormat

    from .interfaces import AudioStream, InputStreamFactory, VoiceTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChannelVoiceTarget:
    """Send primitive of one channel: raw PCM out, plus the voice-stop signal."""

    channel_id: int
    transport: VoiceTransport

    def send_voice(self, pcm: bytes) -> None:
        """Send a captured PCM buffer to this channel."""
        self.transport.send_voice(self.channel_id, pcm)

    def send_voice_stop(self) -> None:
        """Tell this channel the local user stopped talking."""
        self.transport.send_voice_stop(self.channel_id)


class CapturePipeline:
    """
    Captures microphone audio and forwards it to the current routing target.

    The device keeps running while muted so that unmuting is instant; buffers
    delivered while not recording, or while no target is set, are dropped.

    Buffers are handed to the target on the event loop when one is given, so
    sends happen on the same thread that drives the connection and the device
    callback never waits on the network.
    """

    _audio_format: AudioFormat
    """Fixed capture format."""
    _stream_factory: InputStreamFactory
    """Opens the input device."""
    _stream: AudioStream | None = None
    """Open input device, if any."""
    _target: ChannelVoiceTarget | None = None
    """Where captured buffers go."""
    _fallback_target: Callable[[], ChannelVoiceTarget | None] | None
    """Resolves where to send voice-stop when no target is set."""
    _recording: bool = False
    """Whether buffers are forwarded."""
    _lock: threading.Lock
    """Guards target and recording state against the device thread."""
    _loop: asyncio.AbstractEventLoop | None
    """Loop on which sends are performed, or None to send inline."""

    def __init__(
        self,
        audio_format: AudioFormat,
        *,
        target: ChannelVoiceTarget | None = None,
        fallback_target: Callable[[], ChannelVoiceTarget | None] | None = None,
        stream_factory: InputStreamFactory = open_input_stream,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        Create a capture pipeline. The device is not opened until ``start()``.

        Args:
            audio_format: Capture format, fixed for the session.
            target: Initial routing target.
            fallback_target: Resolves the channel that receives the voice-stop
                signal when ``stop()`` is called with no target set, typically
                the local user's current channel.
            stream_factory: Opens the input device. Defaults to sounddevice.
            loop: Event loop to perform sends on. When None, sends happen inline
                on the calling thread.
        """
        self._audio_format = audio_format
        self._target = target
        self._fallback_target = fallback_target
        self._stream_factory = stream_factory
        self._loop = loop
        self._lock = threading.Lock()

    @property
    def recording(self) -> bool:
        """Return True while captured audio is being forwarded."""
        with self._lock:
            return self._recording

    @property
    def target(self) -> ChannelVoiceTarget | None:
        """Return the current routing target."""
        with self._lock:
            return self._target

    @property
    def device_open(self) -> bool:
        """Return True while the input device is open."""
        return self._stream is not None

    def set_target(self, target: ChannelVoiceTarget | None) -> None:
        """Swap the routing target. Buffers already captured keep their old target."""
        with self._lock:
            previous = self._target
            self._target = target
        logger.info(
            "Voice target changed from %s to %s",
            previous.channel_id if previous else None,
            target.channel_id if target else None,
        )

    def start(self) -> None:
        """Open and start the input device if needed, then start recording."""
        if self._stream is None:
            stream = self._stream_factory(self._audio_format, self._on_buffer)
            try:
                stream.start()
            except Exception:
                stream.close()
                raise
            self._stream = stream
            logger.info("Capture device started")
        with self._lock:
            self._recording = True
        logger.info("Recording started")

    def stop(self) -> None:
        """Stop recording and send the voice-stop signal. The device keeps running."""
        fallback = self._fallback_target() if self._fallback_target is not None else None
        # The voice-stop is handed off under the lock, so no buffer can follow it.
        with self._lock:
            self._recording = False
            target = self._target or fallback
            if target is not None:
                self._deliver(target.send_voice_stop)
        if target is None:
            logger.debug("Recording stopped with no channel to signal voice stop")
        logger.info("Recording stopped")

    def close(self) -> None:
        """Stop recording and release the input device."""
        if self.recording:
            self.stop()
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception:
            logger.exception("Failed to close capture device")
        logger.info("Capture device closed")

    def _on_buffer(self, pcm: bytes) -> None:
        """Handle one captured buffer (called from the device thread)."""
        with self._lock:
            if not self._recording or self._target is None:
                return
            self._deliver(self._target.send_voice, pcm)

    def _deliver(self, func: Callable[..., None], *args: Any) -> None:
        if self._loop is None:
            self._call(func, *args)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._call, func, *args)

    @staticmethod
    def _call(func: Callable[..., None], *args: Any) -> None:
        try:
            func(*args)
        except Exception:
            logger.exception("Failed to send captured audio")
