"""In-memory directory of the channels and users of a session."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace

from aiomumble.models.core import Channel, User
from aiomumble.models.directory import ChannelNode, UserEntry

logger = logging.getLogger(__name__)


class Directory:
    """
    Channel tree and user list of the current session.

    Mutations come from the event dispatcher only, on the session loop. Capture
    and playback read from their own device threads, so every lookup and every
    mutation takes the lock for its own duration and nothing else. Readers get
    copies, never the stored records.

    The root channel is the one whose parent is its own id. That self-edge ends
    the parent chain and is the only channel allowed to be its own ancestor.
    """

    _channels: dict[int, Channel]
    """Channels by id."""
    _users: dict[int, User]
    """Users by session id."""
    _root_id: int | None
    """Id of the self-parented root channel, once known."""
    _lock: threading.Lock
    """Guards the two maps above."""

    def __init__(self) -> None:
        """Initialize an empty directory."""
        self._channels = {}
        self._users = {}
        self._root_id = None
        self._lock = threading.Lock()

    @property
    def root(self) -> Channel | None:
        """Return the root channel, if known."""
        with self._lock:
            if self._root_id is None:
                return None
            return replace(self._channels[self._root_id])

    def get_channel(self, channel_id: int) -> Channel | None:
        """Return a copy of the channel with this id, or None."""
        with self._lock:
            channel = self._channels.get(channel_id)
            return replace(channel) if channel is not None else None

    def get_user(self, user_id: int) -> User | None:
        """Return a copy of the user with this id, or None."""
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user is not None else None

    @property
    def channels(self) -> list[Channel]:
        """Return copies of all channels."""
        with self._lock:
            return [replace(channel) for channel in self._channels.values()]

    @property
    def users(self) -> list[User]:
        """Return copies of all users."""
        with self._lock:
            return [replace(user) for user in self._users.values()]

    def children(self, channel_id: int) -> list[Channel]:
        """Return the direct sub-channels of a channel, excluding the root's self-edge."""
        with self._lock:
            return [replace(c) for c in self._children_locked(channel_id)]

    def users_in(self, channel_id: int) -> list[User]:
        """Return the users currently standing in a channel."""
        with self._lock:
            return [replace(u) for u in self._users.values() if u.channel_id == channel_id]

    def add_channel(self, channel: Channel) -> bool:
        """
        Insert a channel or update an existing one.

        Rejected (logged, returns False) when the parent is unknown, when the
        channel would be a second root, or when the new parent would make the
        channel its own ancestor.
        """
        with self._lock:
            if channel.is_root:
                if self._root_id is not None and self._root_id != channel.id:
                    logger.warning(
                        "Ignoring channel %d (%s): root channel %d already exists",
                        channel.id,
                        channel.name,
                        self._root_id,
                    )
                    return False
                self._root_id = channel.id
            else:
                if channel.parent not in self._channels:
                    logger.warning(
                        "Ignoring channel %d (%s): unknown parent %d",
                        channel.id,
                        channel.name,
                        channel.parent,
                    )
                    return False
                if channel.id == self._root_id:
                    logger.warning("Ignoring attempt to re-parent root channel %d", channel.id)
                    return False
                if self._is_ancestor_locked(channel.id, channel.parent):
                    logger.warning(
                        "Ignoring channel %d (%s): parent %d would create a cycle",
                        channel.id,
                        channel.name,
                        channel.parent,
                    )
                    return False
            updated = channel.id in self._channels
            self._channels[channel.id] = replace(channel)
        logger.debug(
            "%s channel %d (%s)", "Updated" if updated else "Added", channel.id, channel.name
        )
        return True

    def remove_channel(self, channel_id: int) -> bool:
        """
        Remove a channel.

        Users and sub-channels of the removed channel move to its parent. The
        root cannot be removed. Unknown ids are a logged no-op.
        """
        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                logger.warning("Ignoring removal of unknown channel %d", channel_id)
                return False
            if channel.is_root:
                logger.warning("Ignoring removal of root channel %d", channel_id)
                return False
            for child in self._children_locked(channel_id):
                child.parent = channel.parent
            for user in self._users.values():
                if user.channel_id == channel_id:
                    user.channel_id = channel.parent
            del self._channels[channel_id]
        logger.debug("Removed channel %d (%s)", channel_id, channel.name)
        return True

    def add_user(self, user: User) -> bool:
        """
        Insert a user or replace the record of an existing one.

        Rejected (logged, returns False) when the user's channel is unknown.
        """
        with self._lock:
            if user.channel_id not in self._channels:
                logger.warning(
                    "Ignoring user %d (%s): unknown channel %d",
                    user.id,
                    user.name,
                    user.channel_id,
                )
                return False
            self._users[user.id] = replace(user)
        return True

    def update_user(
        self,
        user_id: int,
        *,
        name: str | None = None,
        channel_id: int | None = None,
        comment: str | None = None,
        mute: bool | None = None,
        self_mute: bool | None = None,
    ) -> User | None:
        """
        Apply a partial update to a user.

        Returns the updated user, or None when the user is unknown or the target
        channel does not exist (in which case nothing is changed).
        """
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                logger.warning("Ignoring update of unknown user %d", user_id)
                return None
            if channel_id is not None and channel_id not in self._channels:
                logger.warning(
                    "Ignoring move of user %d (%s) to unknown channel %d",
                    user_id,
                    user.name,
                    channel_id,
                )
                return None
            if name is not None:
                user.name = name
            if channel_id is not None:
                user.channel_id = channel_id
            if comment is not None:
                user.comment = comment
            if mute is not None:
                user.mute = mute
            if self_mute is not None:
                user.self_mute = self_mute
            return replace(user)

    def remove_user(self, user_id: int) -> User | None:
        """Remove a user and return its last record. Unknown ids are a logged no-op."""
        with self._lock:
            user = self._users.pop(user_id, None)
        if user is None:
            logger.warning("Ignoring removal of unknown user %d", user_id)
        return user

    def clear(self) -> None:
        """Forget all channels and users."""
        with self._lock:
            self._channels.clear()
            self._users.clear()
            self._root_id = None

    def tree(self) -> ChannelNode | None:
        """
        Walk the channel tree depth-first from the root.

        Each channel lists its sub-channels (recursively) and then its users.
        Channels already visited are skipped, so a corrupted parent chain cannot
        recurse forever. Returns None while no root is known.
        """
        with self._lock:
            if self._root_id is None:
                return None
            channels = {cid: replace(c) for cid, c in self._channels.items()}
            users = [replace(u) for u in self._users.values()]
            root_id = self._root_id

        visited: set[int] = set()

        def _walk(channel: Channel) -> ChannelNode:
            visited.add(channel.id)
            node = ChannelNode(id=channel.id, name=channel.name, temporary=channel.temporary)
            for child in channels.values():
                if child.parent == channel.id and not child.is_root and child.id not in visited:
                    node.channels.append(_walk(child))
            node.users = [
                UserEntry(
                    id=user.id,
                    name=user.name,
                    comment=user.comment,
                    mute=user.mute,
                    self_mute=user.self_mute,
                )
                for user in users
                if user.channel_id == channel.id
            ]
            return node

        return _walk(channels[root_id])

    def _children_locked(self, channel_id: int) -> list[Channel]:
        return [
            channel
            for channel in self._channels.values()
            if channel.parent == channel_id and not channel.is_root
        ]

    def _is_ancestor_locked(self, channel_id: int, candidate_id: int) -> bool:
        """Return True if ``channel_id`` is ``candidate_id`` or one of its ancestors."""
        seen: set[int] = set()
        current = self._channels.get(candidate_id)
        while current is not None and current.id not in seen:
            if current.id == channel_id:
                return True
            if current.is_root:
                return False
            seen.add(current.id)
            current = self._channels.get(current.parent)
        return False
