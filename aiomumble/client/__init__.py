"""Public interface for the aiomumble client package."""

from .capture import CapturePipeline, ChannelVoiceTarget
from .directory import Directory
from .dispatcher import (
    ChannelMessageCallback,
    EventDispatcher,
    PersonalMessageCallback,
    ServerConfigCallback,
    ServerSyncCallback,
    UserJoinedCallback,
    UserLeftCallback,
    VoiceFrameCallback,
)
from .interfaces import Connection, ConnectionFactory, VoiceStream, VoiceTransport
from .loop import SessionLoop
from .playback import PlaybackError, PlaybackFailureCallback, PlaybackPipeline, PlaybackRouter
from .session import VoiceSession

__all__ = [
    "CapturePipeline",
    "ChannelMessageCallback",
    "ChannelVoiceTarget",
    "Connection",
    "ConnectionFactory",
    "Directory",
    "EventDispatcher",
    "PersonalMessageCallback",
    "PlaybackError",
    "PlaybackFailureCallback",
    "PlaybackPipeline",
    "PlaybackRouter",
    "ServerConfigCallback",
    "ServerSyncCallback",
    "SessionLoop",
    "UserJoinedCallback",
    "UserLeftCallback",
    "VoiceFrameCallback",
    "VoiceSession",
    "VoiceStream",
    "VoiceTransport",
]
