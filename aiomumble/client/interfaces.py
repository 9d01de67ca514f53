"""
Interfaces of the collaborators the session core drives but does not implement.

The wire protocol, codec and transport security live behind ``Connection``.
Audio hardware lives behind the input/output stream interfaces so the core
can run against sounddevice or against in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from aiomumble.models.config import AudioFormat
    from aiomumble.models.types import ConnectionState

    from .dispatcher import EventDispatcher


class VoiceTransport(Protocol):
    """Outbound voice primitive of a connection."""

    def send_voice(self, channel_id: int, pcm: bytes) -> None:
        """Encode and send raw PCM captured for the given channel."""

    def send_voice_stop(self, channel_id: int) -> None:
        """Signal that the local user stopped talking to the given channel."""


class Connection(VoiceTransport, Protocol):
    """A connection to a voice server, driven by the session loop."""

    @property
    def host(self) -> str:
        """Host name the connection was opened for."""

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""

    def connect(
        self, username: str, password: str, tokens: Sequence[str], host: str
    ) -> None:
        """Start connecting. Progress happens inside ``process()``."""

    def process(self) -> bool:
        """
        Advance the connection by one bounded step.

        Decoded inbound events are dispatched synchronously from inside this call.

        Returns:
            True if more work is immediately available.
        """

    def disconnect(self) -> None:
        """Close the connection and move to ``ConnectionState.DISCONNECTED``."""


# Builds a connection for a resolved endpoint, delivering events to the dispatcher.
ConnectionFactory = Callable[[tuple[str, int], "EventDispatcher"], Connection]


class VoiceStream(Protocol):
    """Readable decoded-audio source for one remote user."""

    def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes of PCM without blocking."""


class AudioStream(Protocol):
    """A running audio device stream."""

    def start(self) -> None:
        """Start the device."""

    def stop(self) -> None:
        """Stop the device, waiting for pending buffers."""

    def close(self) -> None:
        """Release the device."""


# Called from the device thread with each captured buffer.
InputCallback = Callable[[bytes], None]

# Called from the device thread with a writable output buffer to fill.
# Returning False asks the device to abort the stream.
OutputCallback = Callable[[memoryview], bool]

# Called from the device thread once an output stream has finished.
FinishedCallback = Callable[[], None]

# Opens an input stream in the given format delivering buffers to the callback.
InputStreamFactory = Callable[["AudioFormat", InputCallback], AudioStream]

# Opens an output stream in the given format pulling buffers from the callback.
OutputStreamFactory = Callable[["AudioFormat", OutputCallback, FinishedCallback], AudioStream]
