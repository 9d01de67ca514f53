"""Handlers for inbound session events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from aiomumble.models.core import (
    Channel,
    ChannelMessage,
    PersonalMessage,
    ServerConfig,
    User,
    VoiceFrame,
)
from aiomumble.models.events import (
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

from .directory import Directory

if TYPE_CHECKING:
    from .playback import PlaybackRouter

logger = logging.getLogger(__name__)

# Callback invoked with (frame, sender) for every inbound voice frame. Sender is
# None when the frame references a user that is not in the directory.
VoiceFrameCallback = Callable[[VoiceFrame, User | None], None]

# Callback invoked with the user record after a user joined.
UserJoinedCallback = Callable[[User], None]

# Callback invoked with the last user record after a user left.
UserLeftCallback = Callable[[User], None]

# Callback invoked with (message, sender, channel) for channel messages.
ChannelMessageCallback = Callable[[ChannelMessage, User | None, Channel | None], None]

# Callback invoked with (message, sender) for personal messages.
PersonalMessageCallback = Callable[[PersonalMessage, User | None], None]

# Callback invoked when the server announces its configuration.
ServerConfigCallback = Callable[[ServerConfig], None]

# Callback invoked with the local user (None if it is not in the directory yet)
# once the server finished its initial synchronization.
ServerSyncCallback = Callable[[User | None], None]


class EventDispatcher:
    """
    Applies inbound events to the directory and the playback router.

    The connection calls ``dispatch()`` (or a handler directly) synchronously
    from inside its processing step. Handlers look entities up instead of
    assuming them: an event about a channel or user that is not (or no longer)
    known is logged and ignored.

    Subclasses may override handlers; call the base implementation to keep the
    directory and playback consistent.
    """

    _directory: Directory
    """Channels and users of the session."""
    _router: PlaybackRouter | None
    """Per-user playback, if audio output is enabled."""
    _local_user_id: int | None = None
    """Session id of the local user, known after server sync."""
    _server_config: ServerConfig | None = None
    """Latest configuration announced by the server."""

    _voice_callbacks: list[VoiceFrameCallback]
    _user_joined_callbacks: list[UserJoinedCallback]
    _user_left_callbacks: list[UserLeftCallback]
    _channel_message_callbacks: list[ChannelMessageCallback]
    _personal_message_callbacks: list[PersonalMessageCallback]
    _server_config_callbacks: list[ServerConfigCallback]
    _server_sync_callbacks: list[ServerSyncCallback]

    def __init__(
        self,
        directory: Directory | None = None,
        router: PlaybackRouter | None = None,
    ) -> None:
        """
        Create a dispatcher.

        Args:
            directory: Directory to maintain. A new one is created if omitted.
            router: Playback router driven by join and leave events.
        """
        self._directory = directory if directory is not None else Directory()
        self._router = router

        self._voice_callbacks = []
        self._user_joined_callbacks = []
        self._user_left_callbacks = []
        self._channel_message_callbacks = []
        self._personal_message_callbacks = []
        self._server_config_callbacks = []
        self._server_sync_callbacks = []

    @property
    def directory(self) -> Directory:
        """Return the directory maintained by this dispatcher."""
        return self._directory

    @property
    def router(self) -> PlaybackRouter | None:
        """Return the playback router driven by this dispatcher."""
        return self._router

    @router.setter
    def router(self, router: PlaybackRouter | None) -> None:
        """Set the playback router driven by join and leave events."""
        self._router = router

    @property
    def synced(self) -> bool:
        """Return True once the server finished its initial synchronization."""
        return self._local_user_id is not None

    @property
    def local_user_id(self) -> int | None:
        """Return the session id of the local user."""
        return self._local_user_id

    @property
    def local_user(self) -> User | None:
        """Return the local user's current record."""
        if self._local_user_id is None:
            return None
        return self._directory.get_user(self._local_user_id)

    @property
    def server_config(self) -> ServerConfig | None:
        """Return the server configuration, if announced."""
        return self._server_config

    def dispatch(self, event: SessionEvent) -> None:
        """Route an event to its handler."""
        match event:
            case VoiceFrameEvent(frame=frame):
                self.encoded_voice(frame)
            case UserJoinedEvent(user=user):
                self.user_joined(user)
            case UserStateEvent():
                self.user_state(event)
            case UserLeftEvent(user_id=user_id):
                self.user_left(user_id)
            case ChannelStateEvent(channel=channel):
                self.channel_state(channel)
            case ChannelRemovedEvent(channel_id=channel_id):
                self.channel_removed(channel_id)
            case ChannelMessageEvent(message=message):
                self.channel_message_received(message)
            case PersonalMessageEvent(message=message):
                self.personal_message_received(message)
            case ServerConfigEvent(config=config):
                self.server_config_received(config)
            case ServerSyncEvent():
                self.server_sync(event)
            case _:
                logger.debug("Unhandled session event type: %s", type(event).__name__)

    def encoded_voice(self, frame: VoiceFrame) -> None:
        """Observe an inbound voice frame. Decoding stays with the connection."""
        sender = self._directory.get_user(frame.sender_id)
        logger.debug(
            "%s (%08x) is speaking. Sequence #%d (%d bytes), %s",
            sender.name if sender else "<unknown>",
            frame.sender_id,
            frame.sequence,
            len(frame.payload),
            frame.target.value,
        )
        self._notify(self._voice_callbacks, "voice frame", frame, sender)

    def user_joined(self, user: User) -> None:
        """Add a user to the directory, then start its playback."""
        if not self._directory.add_user(user):
            return
        logger.info("%s (%08x) joined", user.name, user.id)
        if self._router is not None and user.id != self._local_user_id:
            self._router.on_user_joined(user)
        self._notify(self._user_joined_callbacks, "user joined", user)

    def user_state(self, event: UserStateEvent) -> None:
        """Apply a partial user update such as a move or a mute change."""
        previous = self._directory.get_user(event.user_id)
        user = self._directory.update_user(
            event.user_id,
            name=event.name,
            channel_id=event.channel_id,
            comment=event.comment,
            mute=event.mute,
            self_mute=event.self_mute,
        )
        if user is None or previous is None:
            return
        if previous.channel_id != user.channel_id:
            logger.info(
                "%s (%08x) moved from channel %d to %d",
                user.name,
                user.id,
                previous.channel_id,
                user.channel_id,
            )

    def user_left(self, user_id: int) -> None:
        """Stop a user's playback, then remove the user from the directory."""
        user = self._directory.get_user(user_id)
        if user is None:
            logger.warning("Ignoring leave of unknown user %d", user_id)
            return
        if self._router is not None:
            self._router.on_user_left(user)
        self._directory.remove_user(user_id)
        logger.info("%s (%08x) left", user.name, user.id)
        self._notify(self._user_left_callbacks, "user left", user)

    def channel_state(self, channel: Channel) -> None:
        """Add or update a channel."""
        self._directory.add_channel(channel)

    def channel_removed(self, channel_id: int) -> None:
        """Remove a channel."""
        self._directory.remove_channel(channel_id)

    def channel_message_received(self, message: ChannelMessage) -> None:
        """Observe a channel message."""
        sender = self._directory.get_user(message.sender_id)
        channel = self._directory.get_channel(message.channel_id)
        logger.info(
            "[channel] %s @ %s: %s",
            sender.name if sender else "<unknown>",
            channel.name if channel else "<unknown>",
            message.text,
        )
        self._notify(self._channel_message_callbacks, "channel message", message, sender, channel)

    def personal_message_received(self, message: PersonalMessage) -> None:
        """Observe a personal message."""
        sender = self._directory.get_user(message.sender_id)
        logger.info("[personal] %s: %s", sender.name if sender else "<unknown>", message.text)
        self._notify(self._personal_message_callbacks, "personal message", message, sender)

    def server_config_received(self, config: ServerConfig) -> None:
        """Store the server configuration."""
        self._server_config = config
        if config.welcome_text:
            logger.info("Server welcome text: %s", config.welcome_text)
        self._notify(self._server_config_callbacks, "server config", config)

    def server_sync(self, event: ServerSyncEvent) -> None:
        """Record the local identity once the server finished synchronizing."""
        self._local_user_id = event.session_id
        if event.welcome_text or event.max_bandwidth is not None:
            config = self._server_config or ServerConfig()
            self._server_config = replace(
                config,
                welcome_text=event.welcome_text or config.welcome_text,
                max_bandwidth=(
                    event.max_bandwidth
                    if event.max_bandwidth is not None
                    else config.max_bandwidth
                ),
            )
        local_user = self._directory.get_user(event.session_id)
        if local_user is None:
            logger.warning("Local user %d is not in the directory", event.session_id)
        elif self._router is not None:
            # Joined before we knew it was us.
            self._router.on_user_left(local_user)
        logger.info("Server sync complete, local session id %d", event.session_id)
        self._notify(self._server_sync_callbacks, "server sync", local_user)

    def add_voice_frame_listener(self, callback: VoiceFrameCallback) -> Callable[[], None]:
        """Add a listener for inbound voice frames.

        Returns:
            A function that removes this listener when called.
        """
        return self._add_listener(self._voice_callbacks, callback)

    def add_user_joined_listener(self, callback: UserJoinedCallback) -> Callable[[], None]:
        """Add a listener for users joining.

        Returns:
            A function that removes this listener when called.
        """
        return self._add_listener(self._user_joined_callbacks, callback)

    def add_user_left_listener(self, callback: UserLeftCallback) -> Callable[[], None]:
        """Add a listener for users leaving.

        Returns:
            A function that removes this listener when called.
        """
        return self._add_listener(self._user_left_callbacks, callback)

    def add_channel_message_listener(
        self, callback: ChannelMessageCallback
    ) -> Callable[[], None]:
        """Add a listener for channel messages.

        Returns:
            A function that removes this listener when called.
        """
        return self._add_listener(self._channel_message_callbacks, callback)

    def add_personal_message_listener(
        self, callback: PersonalMessageCallback
    ) -> Callable[[], None]:
        """Add a listener for personal messages.

        Returns:
            A function that removes this listener when called.
        """
        return self._add_listener(self._personal_message_callbacks, callback)

    def add_server_config_listener(self, callback: ServerConfigCallback) -> Callable[[], None]:
        """Add a listener for the server configuration.

        Returns:
            A function that removes this listener when called.
        """
        return self._add_listener(self._server_config_callbacks, callback)

    def add_server_sync_listener(self, callback: ServerSyncCallback) -> Callable[[], None]:
        """Add a listener for the end of the initial server synchronization.

        Returns:
            A function that removes this listener when called.
        """
        return self._add_listener(self._server_sync_callbacks, callback)

    @staticmethod
    def _add_listener(callbacks: list[Any], callback: Any) -> Callable[[], None]:
        callbacks.append(callback)

        def _remove() -> None:
            with suppress(ValueError):
                callbacks.remove(callback)

        return _remove

    @staticmethod
    def _notify(callbacks: list[Any], kind: str, *args: Any) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception:
                logger.exception("Error in %s callback %s", kind, callback)
