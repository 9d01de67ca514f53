from __future__ import annotations

from aiomumble.client.directory import Directory
from aiomumble.models.core import Channel, User
from aiomumble.models.directory import render_tree


def _lobby() -> Directory:
    directory = Directory()
    directory.add_channel(Channel(id=0, name="Root", parent=0))
    directory.add_channel(Channel(id=1, name="Lobby", parent=0))
    directory.add_channel(Channel(id=2, name="Games", parent=0, temporary=True))
    directory.add_channel(Channel(id=3, name="Quake", parent=2))
    return directory


def test_tree_visits_each_channel_once() -> None:
    directory = _lobby()
    directory.add_user(User(id=10, name="alice", channel_id=1, comment="  afk  "))
    directory.add_user(User(id=11, name="bob", channel_id=0))

    tree = directory.tree()

    assert tree is not None
    ids = [node.id for node in tree.iter_channels()]
    assert sorted(ids) == [0, 1, 2, 3]
    assert len(ids) == len(set(ids))
    assert ids[0] == 0
    # Sub-channels come before the parent's users, depth-first.
    assert ids.index(3) == ids.index(2) + 1
    assert [user.name for user in tree.users] == ["bob"]


def test_render_tree_indents_children_and_lists_users() -> None:
    directory = _lobby()
    directory.add_user(User(id=10, name="alice", channel_id=1, comment="  afk  "))
    directory.add_user(User(id=11, name="bob", channel_id=0))

    tree = directory.tree()
    assert tree is not None
    lines = render_tree(tree)

    assert lines[0] == "Root"
    assert "    Lobby" in lines
    assert "    - alice (afk)" in lines
    assert "    [temp] Games" in lines
    assert "        Quake" in lines
    assert lines[-1] == "- bob ()"


def test_tree_is_none_without_root() -> None:
    assert Directory().tree() is None


def test_rejects_second_root_and_unknown_parent() -> None:
    directory = _lobby()

    assert not directory.add_channel(Channel(id=9, name="Other root", parent=9))
    assert not directory.add_channel(Channel(id=8, name="Orphan", parent=42))
    assert directory.get_channel(9) is None
    assert directory.get_channel(8) is None
    root = directory.root
    assert root is not None
    assert root.id == 0


def test_rejects_reparent_that_creates_cycle() -> None:
    directory = _lobby()

    # Games (2) under its own child Quake (3) would loop 2 -> 3 -> 2.
    assert not directory.add_channel(Channel(id=2, name="Games", parent=3))
    games = directory.get_channel(2)
    assert games is not None
    assert games.parent == 0


def test_rejects_reparenting_root() -> None:
    directory = _lobby()

    assert not directory.add_channel(Channel(id=0, name="Root", parent=1))
    root = directory.root
    assert root is not None
    assert root.is_root


def test_traversal_terminates_on_corrupted_parent_chain() -> None:
    directory = _lobby()
    # Force a cycle behind the directory's back.
    directory._channels[2].parent = 3  # noqa: SLF001

    tree = directory.tree()

    assert tree is not None
    ids = [node.id for node in tree.iter_channels()]
    assert len(ids) == len(set(ids))
    assert 2 not in ids
    assert 3 not in ids


def test_update_moves_user_and_ignores_unknown_ids() -> None:
    directory = _lobby()
    directory.add_user(User(id=10, name="alice", channel_id=1))

    moved = directory.update_user(10, channel_id=3, self_mute=True)

    assert moved is not None
    assert moved.channel_id == 3
    assert moved.self_mute
    assert directory.update_user(99, channel_id=1) is None
    assert directory.update_user(10, channel_id=42) is None
    user = directory.get_user(10)
    assert user is not None
    assert user.channel_id == 3


def test_user_in_unknown_channel_is_rejected() -> None:
    directory = _lobby()

    assert not directory.add_user(User(id=10, name="alice", channel_id=42))
    assert directory.get_user(10) is None


def test_remove_channel_rehomes_children_and_users() -> None:
    directory = _lobby()
    directory.add_user(User(id=10, name="alice", channel_id=2))

    assert directory.remove_channel(2)

    quake = directory.get_channel(3)
    alice = directory.get_user(10)
    assert quake is not None
    assert quake.parent == 0
    assert alice is not None
    assert alice.channel_id == 0
    assert not directory.remove_channel(0)
    assert not directory.remove_channel(2)


def test_removed_ids_are_stale() -> None:
    directory = _lobby()
    directory.add_user(User(id=10, name="alice", channel_id=1))

    assert directory.remove_user(10) is not None
    assert directory.remove_user(10) is None
    assert directory.get_user(10) is None
    assert directory.users_in(1) == []


def test_readers_get_copies() -> None:
    directory = _lobby()
    directory.add_user(User(id=10, name="alice", channel_id=1))

    user = directory.get_user(10)
    assert user is not None
    user.channel_id = 3

    stored = directory.get_user(10)
    assert stored is not None
    assert stored.channel_id == 1
    assert [channel.id for channel in directory.children(0)] == [1, 2]
