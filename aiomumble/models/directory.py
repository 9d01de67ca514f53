"""Serializable snapshot of the session directory."""

from __future__ import annotations

from dataclasses import dataclass, field

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin


@dataclass
class UserEntry(DataClassORJSONMixin):
    """A user as listed under its channel."""

    id: int
    name: str
    comment: str | None = None
    mute: bool = False
    self_mute: bool = False

    class Config(BaseConfig):
        """Config for serializing directory snapshots."""

        omit_none = True


@dataclass
class ChannelNode(DataClassORJSONMixin):
    """A channel with its sub-channels and users, in traversal order."""

    id: int
    name: str
    temporary: bool = False
    channels: list[ChannelNode] = field(default_factory=list)
    users: list[UserEntry] = field(default_factory=list)

    def iter_channels(self) -> list[ChannelNode]:
        """Return this node and all descendants in depth-first order."""
        result = [self]
        for child in self.channels:
            result.extend(child.iter_channels())
        return result


def render_tree(node: ChannelNode, indent: str = "") -> list[str]:
    """Format a channel tree as indented text lines."""
    prefix = "[temp] " if node.temporary else ""
    lines = [f"{indent}{prefix}{node.name}"]
    for child in node.channels:
        lines.extend(render_tree(child, indent + "    "))
    for user in node.users:
        comment = (user.comment or "").strip()
        lines.append(f"{indent}- {user.name} ({comment})")
    return lines
