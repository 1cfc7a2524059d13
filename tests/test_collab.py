"""Tests for sessions, subscriptions and the tag directory."""

import pytest

from assetledger import audit as actions
from assetledger.collab import MAX_PARTICIPANTS, CategoryDirectory
from assetledger.errors import CapacityExceededError, NotFoundError, UnauthorizedError, ValidationError
from assetledger.registry import Registry

from .helpers import OWNER


def test_create_session(registry: Registry, asset_id: int):
    session_id = registry.create_collaboration_session(asset_id, ["bob", "carol"], 10, 20, OWNER, 2)
    assert session_id == 1

    session = registry.get_session(session_id)
    assert session.participants == ("bob", "carol")
    assert session.organizer == OWNER
    assert session.is_open(10)
    assert not session.is_open(20)
    assert session.to_dict()["participants"] == ["bob", "carol"]

    assert registry.get_analytics(asset_id).collaborations == 1
    assert registry.audit_trail(asset_id)[-1].action == actions.SESSION_CREATED
    assert registry.get_system_statistics().total_sessions == 1
    assert [s.session_id for s in registry.store.sessions.for_asset(asset_id)] == [1]


def test_session_requires_write_access(registry: Registry, asset_id: int):
    with pytest.raises(UnauthorizedError):
        registry.create_collaboration_session(asset_id, ["bob"], 10, 20, "bob", 2)


def test_session_bounds(registry: Registry, asset_id: int):
    with pytest.raises(ValidationError, match="start before it ends"):
        registry.create_collaboration_session(asset_id, ["bob"], 20, 20, OWNER, 2)
    with pytest.raises(ValidationError, match="at least one participant"):
        registry.create_collaboration_session(asset_id, [], 10, 20, OWNER, 2)

    crowd = [f"user{i}" for i in range(MAX_PARTICIPANTS + 1)]
    with pytest.raises(CapacityExceededError):
        registry.create_collaboration_session(asset_id, crowd, 10, 20, OWNER, 2)

    assert registry.create_collaboration_session(asset_id, crowd[:MAX_PARTICIPANTS], 10, 20, OWNER, 2) == 1


def test_unknown_session(registry: Registry):
    with pytest.raises(NotFoundError):
        registry.get_session(1)


def test_subscribe_upserts(registry: Registry, asset_id: int):
    registry.subscribe(asset_id, True, False, "bob", 2)
    registry.subscribe(asset_id, False, True, "bob", 3)
    registry.subscribe(asset_id, True, True, "carol", 4)

    subs = registry.store.subscriptions
    bob = subs.get(asset_id, "bob")
    assert (bob.notify_on_update, bob.notify_on_access, bob.subscribed_at) == (False, True, 3)
    assert [s.user for s in subs.subscribers(asset_id, on_update=True)] == ["carol"]
    assert len(subs.subscribers(asset_id)) == 2


def test_subscribe_unknown_asset(registry: Registry):
    with pytest.raises(NotFoundError):
        registry.subscribe(5, True, True, "bob", 1)


def test_category_directory():
    directory = CategoryDirectory()
    directory.index(1, ["draft", "pdf", "draft"])
    directory.index(2, ["pdf"])
    assert directory.assets_tagged("pdf") == [1, 2]
    assert directory.assets_tagged("draft") == [1]

    directory.unindex(1, ["draft"])
    assert directory.tags() == ["pdf"]
