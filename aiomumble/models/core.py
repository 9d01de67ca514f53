"""
Core records for a voice chat session.

Channels and users are the nodes of the session directory. Voice frames and
text messages are what the connection hands to the dispatcher while it
processes inbound traffic. Only ``ServerConfig`` is serialized; the other
records hold live references (such as a user's voice stream) and stay in
memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin

from .types import SpeechTarget

if TYPE_CHECKING:
    from aiomumble.client.interfaces import VoiceStream


@dataclass(slots=True)
class Channel:
    """A node of the channel tree."""

    id: int
    """Unique channel id, stable for the lifetime of the session."""
    name: str
    """Display name."""
    parent: int
    """Parent channel id. The root channel's parent is its own id."""
    temporary: bool = False
    """Whether the server deletes the channel once it is empty."""
    description: str | None = None
    """Optional free-text description."""

    @property
    def is_root(self) -> bool:
        """Return True if this is the self-parented root channel."""
        return self.parent == self.id


@dataclass(slots=True)
class User:
    """A participant of the session, including the local user."""

    id: int
    """Session id assigned by the server."""
    name: str
    """Display name."""
    channel_id: int
    """Channel the user currently stands in."""
    comment: str | None = None
    """Optional free-text comment."""
    mute: bool = False
    """Muted by the server or an administrator."""
    self_mute: bool = False
    """Muted by the user themselves."""
    voice: VoiceStream | None = field(default=None, repr=False, compare=False)
    """Readable decoded-audio stream for this user's inbound voice."""


@dataclass(slots=True)
class VoiceFrame:
    """A single encoded voice packet received from a speaker."""

    sender_id: int
    """Session id of the speaking user."""
    sequence: int
    """Per-speaker sequence number."""
    payload: bytes = field(repr=False)
    """Opaque encoded audio."""
    target: SpeechTarget = SpeechTarget.NORMAL
    """Who the frame was addressed to."""
    codec: str | None = None
    """Name of the codec that produced the payload."""


@dataclass(slots=True)
class ChannelMessage:
    """Text message posted to a channel."""

    sender_id: int
    channel_id: int
    text: str


@dataclass(slots=True)
class PersonalMessage:
    """Text message sent directly to the local user."""

    sender_id: int
    text: str


@dataclass
class ServerConfig(DataClassORJSONMixin):
    """Session-scoped settings announced once by the server."""

    welcome_text: str | None = None
    """Message of the day shown after connecting."""
    max_bandwidth: int | None = None
    """Maximum allowed outbound voice bandwidth in bits per second."""
    allow_html: bool | None = None
    """Whether text messages may contain HTML."""
    message_length: int | None = None
    """Maximum text message length."""
    image_message_length: int | None = None
    """Maximum length of text messages carrying images."""
    max_users: int | None = None
    """Maximum number of users on the server."""

    class Config(BaseConfig):
        """Config for serializing server config."""

        omit_none = True
