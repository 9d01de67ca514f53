"""Models for the aiomumble voice session core."""

from __future__ import annotations

__all__ = [
    "AudioFormat",
    "Channel",
    "ChannelMessage",
    "ChannelMessageEvent",
    "ChannelNode",
    "ChannelRemovedEvent",
    "ChannelStateEvent",
    "ConnectionState",
    "PersonalMessage",
    "PersonalMessageEvent",
    "ServerConfig",
    "ServerConfigEvent",
    "ServerSyncEvent",
    "SessionConfig",
    "SessionEvent",
    "SpeechTarget",
    "User",
    "UserEntry",
    "UserJoinedEvent",
    "UserLeftEvent",
    "UserStateEvent",
    "VoiceFrame",
    "VoiceFrameEvent",
    "config",
    "core",
    "directory",
    "events",
    "parse_port",
    "render_tree",
    "types",
]

from . import config, core, directory, events, types
from .config import AudioFormat, SessionConfig, parse_port
from .core import Channel, ChannelMessage, PersonalMessage, ServerConfig, User, VoiceFrame
from .directory import ChannelNode, UserEntry, render_tree
from .events import (
    ChannelMessageEvent,
    ChannelRemovedEvent,
    ChannelStateEvent,
    PersonalMessageEvent,
    ServerConfigEvent,
    ServerSyncEvent,
    SessionEvent,
    UserJoinedEvent,
    UserLeftEvent,
    UserStateEvent,
    VoiceFrameEvent,
)
from .types import ConnectionState, SpeechTarget
