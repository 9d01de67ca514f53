"""
Inbound events delivered by a connection while it processes traffic.

Each event kind is its own dataclass so the dispatcher can route them with a
single ``match`` statement. Connections construct these from whatever wire
format they speak.
"""

from __future__ import annotations

from dataclasses import dataclass

from .core import Channel, ChannelMessage, PersonalMessage, ServerConfig, User, VoiceFrame


class SessionEvent:
    """Base type for events passed to ``EventDispatcher.dispatch()``."""


@dataclass(slots=True)
class ServerSyncEvent(SessionEvent):
    """Server finished sending the initial state and assigned our session id."""

    session_id: int
    welcome_text: str | None = None
    max_bandwidth: int | None = None


@dataclass(slots=True)
class ServerConfigEvent(SessionEvent):
    """Server announced its session-scoped configuration."""

    config: ServerConfig


@dataclass(slots=True)
class ChannelStateEvent(SessionEvent):
    """A channel was created or its attributes changed."""

    channel: Channel


@dataclass(slots=True)
class ChannelRemovedEvent(SessionEvent):
    """A channel was deleted."""

    channel_id: int


@dataclass(slots=True)
class UserJoinedEvent(SessionEvent):
    """A user connected to the server."""

    user: User


@dataclass(slots=True)
class UserStateEvent(SessionEvent):
    """
    Partial update of a user.

    Fields left as None are unchanged. A changed ``channel_id`` is a move.
    """

    user_id: int
    name: str | None = None
    channel_id: int | None = None
    comment: str | None = None
    mute: bool | None = None
    self_mute: bool | None = None


@dataclass(slots=True)
class UserLeftEvent(SessionEvent):
    """A user disconnected from the server."""

    user_id: int
    reason: str | None = None


@dataclass(slots=True)
class VoiceFrameEvent(SessionEvent):
    """An encoded voice frame arrived."""

    frame: VoiceFrame


@dataclass(slots=True)
class ChannelMessageEvent(SessionEvent):
    """A text message was posted to a channel."""

    message: ChannelMessage


@dataclass(slots=True)
class PersonalMessageEvent(SessionEvent):
    """A text message was sent to the local user."""

    message: PersonalMessage
