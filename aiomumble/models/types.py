"""Models for enum types used by aiomumble."""

from enum import Enum


class ConnectionState(Enum):
    """Lifecycle state of a connection to a voice server."""

    CONNECTING = "connecting"
    """Transport is up, the server has not finished synchronizing yet."""
    CONNECTED = "connected"
    """Server synchronization completed; the session is live."""
    DISCONNECTED = "disconnected"
    """Terminal state. The session loop exits once this is observed."""


class SpeechTarget(Enum):
    """Classification of who an inbound voice frame was addressed to."""

    NORMAL = "normal"
    """Regular talking to the speaker's current channel."""
    CHANNEL_WHISPER = "channel_whisper"
    """Whisper or shout to a channel other than the speaker's own."""
    USER_WHISPER = "user_whisper"
    """Whisper addressed to specific users."""
    SERVER_LOOPBACK = "server_loopback"
    """Server echoing the local user's own audio back."""
