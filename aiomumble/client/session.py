"""Voice session: wires connection, dispatcher, capture and playback together."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from aiomumble.audio import open_input_stream, open_output_stream
from aiomumble.models.directory import render_tree
from aiomumble.util import resolve_host

from .capture import CapturePipeline, ChannelVoiceTarget
from .dispatcher import EventDispatcher
from .loop import IDLE_INTERVAL, SessionLoop
from .playback import PlaybackRouter

if TYPE_CHECKING:
    from aiomumble.models.config import SessionConfig
    from aiomumble.models.core import User

    from .interfaces import Connection, ConnectionFactory, InputStreamFactory, OutputStreamFactory

logger = logging.getLogger(__name__)


class VoiceSession:
    """
    A single voice session with one server.

    The session loop runs as a task on the event loop. Capture and playback
    run on audio device threads and hand their work back to the event loop, so
    none of the three ever waits on another.

    The session must be created within an async context.
    """

    _config: SessionConfig
    _connection_factory: ConnectionFactory
    _loop: asyncio.AbstractEventLoop
    _dispatcher: EventDispatcher
    _router: PlaybackRouter
    _capture: CapturePipeline
    _connection: Connection | None = None
    _session_loop: SessionLoop | None = None
    _idle_interval: float
    _started: bool = False

    def __init__(
        self,
        config: SessionConfig,
        connection_factory: ConnectionFactory,
        *,
        dispatcher: EventDispatcher | None = None,
        input_stream_factory: InputStreamFactory = open_input_stream,
        output_stream_factory: OutputStreamFactory = open_output_stream,
        idle_interval: float = IDLE_INTERVAL,
    ) -> None:
        """
        Create a voice session.

        Args:
            config: Server, identity and audio format.
            connection_factory: Builds the connection for the resolved endpoint.
            dispatcher: Event dispatcher to use. A new one is created if omitted;
                a supplied dispatcher without a router gets this session's router.
            input_stream_factory: Opens the microphone. Defaults to sounddevice.
            output_stream_factory: Opens a speaker stream per remote user.
                Defaults to sounddevice.
            idle_interval: Session loop pause when the connection is idle.
        """
        self._config = config
        self._connection_factory = connection_factory
        self._loop = asyncio.get_running_loop()
        self._idle_interval = idle_interval

        self._dispatcher = dispatcher if dispatcher is not None else EventDispatcher()
        if self._dispatcher.router is None:
            self._dispatcher.router = PlaybackRouter(
                config.audio, stream_factory=output_stream_factory, loop=self._loop
            )
        self._router = self._dispatcher.router

        self._capture = CapturePipeline(
            config.audio,
            fallback_target=self._home_target,
            stream_factory=input_stream_factory,
            loop=self._loop,
        )

    @property
    def config(self) -> SessionConfig:
        """Return the session configuration."""
        return self._config

    @property
    def dispatcher(self) -> EventDispatcher:
        """Return the event dispatcher."""
        return self._dispatcher

    @property
    def router(self) -> PlaybackRouter:
        """Return the playback router."""
        return self._router

    @property
    def capture(self) -> CapturePipeline:
        """Return the capture pipeline."""
        return self._capture

    @property
    def connection(self) -> Connection | None:
        """Return the connection, once started."""
        return self._connection

    @property
    def local_user(self) -> User | None:
        """Return the local user's current record."""
        return self._dispatcher.local_user

    @property
    def running(self) -> bool:
        """Return True while the session loop is running."""
        return self._session_loop is not None and self._session_loop.running

    async def start(self, *, sync_timeout: float = 10.0) -> None:
        """
        Connect, wait for the server to synchronize, then start recording.

        Raises:
            RuntimeError: If the session was already started.
            OSError: If the host cannot be resolved.
            TimeoutError: If the server did not synchronize within ``sync_timeout``.
            ConnectionError: If the connection ended before synchronizing.
            Exception: Whatever the input device raised while starting capture;
                the session is stopped first.
        """
        if self._started:
            raise RuntimeError("Session already started")
        self._started = True

        config = self._config
        address = await resolve_host(config.host, config.port, loop=self._loop)
        logger.info(
            "Connecting to %s (%s:%d) as %s", config.host, address, config.port, config.username
        )

        synced = asyncio.Event()
        remove_listener = self._dispatcher.add_server_sync_listener(lambda _user: synced.set())
        try:
            self._connection = self._connection_factory((address, config.port), self._dispatcher)
            self._connection.connect(config.username, config.password, config.tokens, config.host)
            self._session_loop = SessionLoop(self._connection, idle_interval=self._idle_interval)
            loop_task = self._session_loop.start()

            sync_task = self._loop.create_task(synced.wait())
            done, _ = await asyncio.wait(
                {sync_task, loop_task},
                timeout=sync_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if sync_task not in done:
                sync_task.cancel()
                await self.stop()
                if loop_task in done:
                    raise ConnectionError(
                        f"Connection to {config.host} ended before synchronizing"
                    ) from loop_task.result()
                raise TimeoutError(f"Timed out waiting for {config.host} to synchronize")
        finally:
            remove_listener()

        logger.info("Connected as %s", self._dispatcher.local_user_id)
        self._capture.set_target(self._home_target())
        try:
            self._capture.start()
        except Exception:
            logger.error("Could not start capture, ending session with %s", config.host)
            await self.stop()
            raise

    async def stop(self, *, timeout: float = 5.0) -> BaseException | None:
        """
        End the session.

        Stops capture (sending voice-stop), tears down all playback, then
        disconnects and waits for the session loop to exit. A loop that has
        not exited within ``timeout`` seconds is cancelled.

        Returns:
            The exception that ended the session loop, if any.
        """
        self._capture.close()
        # Let the queued voice-stop go out before the connection closes.
        await asyncio.sleep(0)
        self._router.close()
        if self._connection is not None:
            try:
                self._connection.disconnect()
            except Exception:
                logger.exception("Error disconnecting from %s", self._config.host)
        error: BaseException | None = None
        if self._session_loop is not None:
            try:
                error = await asyncio.wait_for(self._session_loop.wait(), timeout=timeout)
            except TimeoutError:
                logger.warning(
                    "Session loop for %s did not exit within %.1fs, cancelling",
                    self._config.host,
                    timeout,
                )
                await self._session_loop.cancel()
        logger.info("Session with %s ended", self._config.host)
        return error

    async def wait(self) -> BaseException | None:
        """Wait for the session loop to exit and return the exception that ended it, if any."""
        if self._session_loop is None:
            return None
        return await self._session_loop.wait()

    def mute(self) -> None:
        """Stop sending captured audio."""
        self._capture.stop()

    def unmute(self) -> None:
        """Resume sending captured audio."""
        self._capture.start()

    def set_voice_target(self, channel_id: int | None) -> None:
        """
        Send captured audio to a channel, or to nowhere when None.

        Raises:
            RuntimeError: If the session is not connected.
            ValueError: If the channel is not known.
        """
        if self._connection is None:
            raise RuntimeError("Session is not connected")
        if channel_id is None:
            self._capture.set_target(None)
            return
        if self._dispatcher.directory.get_channel(channel_id) is None:
            raise ValueError(f"Unknown channel {channel_id}")
        self._capture.set_target(ChannelVoiceTarget(channel_id, self._connection))

    def render(self) -> str:
        """Render the channel tree with its users as indented text."""
        tree = self._dispatcher.directory.tree()
        if tree is None:
            return ""
        return "\n".join(render_tree(tree))

    def _home_target(self) -> ChannelVoiceTarget | None:
        """Return a target for the channel the local user stands in."""
        local_user = self.local_user
        if local_user is None or self._connection is None:
            return None
        return ChannelVoiceTarget(local_user.channel_id, self._connection)
