"""Per-user playback of remote voice streams."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from contextlib import suppress
from typing import TYPE_CHECKING

from aiomumble.audio import open_output_stream

if TYPE_CHECKING:
    from aiomumble.models.config import AudioFormat
    from aiomumble.models.core import User

    from .interfaces import AudioStream, OutputStreamFactory, VoiceStream

logger = logging.getLogger(__name__)

# Callback invoked with (user_id, cause) when a user's playback pipeline fails.
PlaybackFailureCallback = Callable[[int, BaseException], None]


class PlaybackError(RuntimeError):
    """The playback device stopped without being asked to."""


class PlaybackPipeline:
    """Plays one user's voice stream on its own output device stream."""

    user_id: int
    _voice: VoiceStream
    _audio_format: AudioFormat
    _stream_factory: OutputStreamFactory
    _on_failure: Callable[[PlaybackPipeline, BaseException], None]
    _stream: AudioStream | None = None
    _stopping: bool = False
    _failure: BaseException | None = None
    _failure_reported: bool = False
    _lock: threading.Lock

    def __init__(
        self,
        user_id: int,
        voice: VoiceStream,
        audio_format: AudioFormat,
        *,
        on_failure: Callable[[PlaybackPipeline, BaseException], None],
        stream_factory: OutputStreamFactory = open_output_stream,
    ) -> None:
        """Create a pipeline. Nothing is opened until ``start()``."""
        self.user_id = user_id
        self._voice = voice
        self._audio_format = audio_format
        self._on_failure = on_failure
        self._stream_factory = stream_factory
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        """Return True while the output stream is open and not stopping."""
        return self._stream is not None and not self._stopping

    def start(self) -> None:
        """Open and start the output device."""
        stream = self._stream_factory(self._audio_format, self._fill, self._on_finished)
        self._stream = stream
        stream.start()

    def stop(self) -> None:
        """Stop and release the output device. Safe to call more than once."""
        self._stopping = True
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception:
            logger.exception("Failed to close playback device for user %d", self.user_id)

    def _fill(self, buffer: memoryview) -> bool:
        """Fill an output buffer from the voice stream (called from the device thread)."""
        try:
            data = self._voice.read(len(buffer))
        except Exception as err:  # noqa: BLE001
            self._failure = err
            return False
        size = min(len(data), len(buffer))
        buffer[:size] = data[:size]
        if size < len(buffer):
            buffer[size:] = bytes(len(buffer) - size)
        return True

    def _on_finished(self) -> None:
        """Handle the end of the output stream (called from the device thread)."""
        if self._stopping:
            return
        self._report_failure(self._failure or PlaybackError("Playback device stopped"))

    def _report_failure(self, cause: BaseException) -> None:
        with self._lock:
            if self._failure_reported:
                return
            self._failure_reported = True
        self._on_failure(self, cause)


class PlaybackRouter:
    """
    Keeps exactly one playback pipeline per joined remote user.

    Pipelines are keyed by user id. Joining replaces (and stops) any stale
    pipeline for the same id; leaving stops and forgets it. A pipeline whose
    device fails is reported once to the failure listeners and removed; it is
    not recreated until the user joins again.
    """

    _audio_format: AudioFormat
    _stream_factory: OutputStreamFactory
    _loop: asyncio.AbstractEventLoop | None
    _pipelines: dict[int, PlaybackPipeline]
    _lock: threading.Lock
    _failure_callbacks: list[PlaybackFailureCallback]

    def __init__(
        self,
        audio_format: AudioFormat,
        *,
        stream_factory: OutputStreamFactory = open_output_stream,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        Create a router.

        Args:
            audio_format: Playback format, fixed for the session.
            stream_factory: Opens an output device per user. Defaults to sounddevice.
            loop: Event loop on which device failures are handled. When None,
                failures are handled on the device thread that reported them.
        """
        self._audio_format = audio_format
        self._stream_factory = stream_factory
        self._loop = loop
        self._pipelines = {}
        self._lock = threading.Lock()
        self._failure_callbacks = []

    def __len__(self) -> int:
        """Return the number of live pipelines."""
        with self._lock:
            return len(self._pipelines)

    def __contains__(self, user_id: object) -> bool:
        """Return True if a pipeline exists for this user id."""
        with self._lock:
            return user_id in self._pipelines

    @property
    def user_ids(self) -> list[int]:
        """Return the ids of users with a live pipeline."""
        with self._lock:
            return list(self._pipelines)

    def get(self, user_id: int) -> PlaybackPipeline | None:
        """Return the pipeline for a user, if any."""
        with self._lock:
            return self._pipelines.get(user_id)

    def add_failure_listener(self, callback: PlaybackFailureCallback) -> Callable[[], None]:
        """Add a listener for failed pipelines.

        Returns:
            A function that removes this listener when called.
        """
        self._failure_callbacks.append(callback)

        def _remove() -> None:
            with suppress(ValueError):
                self._failure_callbacks.remove(callback)

        return _remove

    def on_user_joined(self, user: User) -> None:
        """Create and start a pipeline for a user, replacing any stale one."""
        with self._lock:
            stale = self._pipelines.pop(user.id, None)
        if stale is not None:
            logger.debug("Replacing stale playback pipeline for user %d", user.id)
            stale.stop()

        if user.voice is None:
            logger.warning(
                "User %d (%s) has no voice stream, skipping playback", user.id, user.name
            )
            return

        pipeline = PlaybackPipeline(
            user.id,
            user.voice,
            self._audio_format,
            on_failure=self._handle_failure,
            stream_factory=self._stream_factory,
        )

        try:
            pipeline.start()
        except Exception as err:
            logger.exception("Failed to start playback for user %d (%s)", user.id, user.name)
            pipeline.stop()
            self._notify_failure(user.id, err)
            return

        with self._lock:
            self._pipelines[user.id] = pipeline
        logger.info("Playback started for user %d (%s)", user.id, user.name)

    def on_user_left(self, user: User) -> None:
        """Stop and forget the pipeline of a user. No-op if there is none."""
        with self._lock:
            pipeline = self._pipelines.pop(user.id, None)
        if pipeline is None:
            return
        pipeline.stop()
        logger.info("Playback stopped for user %d (%s)", user.id, user.name)

    def close(self) -> None:
        """Stop all pipelines."""
        with self._lock:
            pipelines = list(self._pipelines.values())
            self._pipelines.clear()
        for pipeline in pipelines:
            pipeline.stop()
        if pipelines:
            logger.info("Stopped %d playback pipeline(s)", len(pipelines))

    def _handle_failure(self, pipeline: PlaybackPipeline, cause: BaseException) -> None:
        if self._loop is None:
            self._remove_failed(pipeline, cause)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._remove_failed, pipeline, cause)

    def _remove_failed(self, pipeline: PlaybackPipeline, cause: BaseException) -> None:
        with self._lock:
            if self._pipelines.get(pipeline.user_id) is pipeline:
                del self._pipelines[pipeline.user_id]
            else:
                # Already replaced or removed; the failure is stale.
                return
        logger.error("Playback for user %d failed: %s", pipeline.user_id, cause)
        pipeline.stop()
        self._notify_failure(pipeline.user_id, cause)

    def _notify_failure(self, user_id: int, cause: BaseException) -> None:
        for callback in list(self._failure_callbacks):
            try:
                callback(user_id, cause)
            except Exception:
                logger.exception("Error in playback failure callback %s", callback)
