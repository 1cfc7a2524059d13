"""Tests for the registry orchestrator."""

from __future__ import annotations

import threading

import pytest

from assetledger.errors import (
    CapacityExceededError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    attempt,
)
from assetledger.ids import ASSET_COUNTER, AUDIT_COUNTER
from assetledger.models import STATUS_DELETED, AuditEntry
from assetledger.registry import Registry

from .helpers import ADMIN, HASH_A, HASH_B, OWNER, register_spec_pdf


def test_register_and_revise_scenario(registry: Registry):
    asset_id = register_spec_pdf(registry)
    assert asset_id == 1

    view = registry.read(asset_id, OWNER, 1)
    assert (view.current_version, view.total_versions) == (1, 1)
    assert view.metadata == "{}"

    assert registry.revise(asset_id, "fix typo", 2050, HASH_B, "typo fix", OWNER, 2) == 2
    view = registry.read(asset_id, OWNER, 2)
    assert view.current_version == 2
    assert view.size == 2050
    assert view.content_hash == HASH_B
    assert registry.get_version(asset_id, 2, OWNER, 2).content_hash == HASH_B
    assert registry.get_version(asset_id, 1, OWNER, 2).content_hash == HASH_A

    registry.grant_access(asset_id, "userX", True, False, False, None, OWNER, 3)
    assert registry.read(asset_id, "userX", 4).name == "spec.pdf"

    with pytest.raises(UnauthorizedError):
        registry.revise(asset_id, "sneaky", 10, HASH_A, "sneaky", "userX", 5)
    assert registry.get_version_count(asset_id) == 2


def test_create_version_is_revise(registry: Registry, asset_id: int):
    assert registry.create_version(asset_id, "fix", 10, HASH_B, "fix", OWNER, 2) == 2


def test_ids_strictly_increase(registry: Registry):
    issued = [register_spec_pdf(registry, now=n) for n in range(1, 6)]
    assert issued == [1, 2, 3, 4, 5]


def test_owner_read_ignores_grants(registry: Registry, asset_id: int):
    assert registry.read(asset_id, OWNER, 2).owner == OWNER


def test_read_without_grant_is_forbidden(registry: Registry, asset_id: int):
    with pytest.raises(ForbiddenError):
        registry.read(asset_id, "mallory", 2)
    assert registry.get_analytics(asset_id).views == 0


def test_write_only_grant_does_not_allow_read(registry: Registry, asset_id: int):
    registry.grant_access(asset_id, "bob", False, True, False, None, OWNER, 2)
    assert registry.revise(asset_id, "bob edit", 5, HASH_B, "bob edit", "bob", 3) == 2
    with pytest.raises(ForbiddenError):
        registry.read(asset_id, "bob", 4)


def test_reads_count_views_and_downloads(registry: Registry, asset_id: int):
    registry.read(asset_id, OWNER, 2)
    registry.read(asset_id, OWNER, 3)
    assert registry.record_download(asset_id, OWNER, 4) == 1

    view = registry.read(asset_id, OWNER, 5)
    assert view.views == 3
    assert view.downloads == 1
    assert registry.get_analytics(asset_id).last_access == 5


def test_unknown_asset_is_not_found(registry: Registry):
    for call in (
        lambda: registry.read(9, OWNER, 1),
        lambda: registry.revise(9, "d", 1, HASH_A, "s", OWNER, 1),
        lambda: registry.grant_access(9, "bob", True, False, False, None, OWNER, 1),
        lambda: registry.transfer_ownership(9, "bob", OWNER, 1),
        lambda: registry.retire(9, OWNER, 1),
        lambda: registry.get_owner(9),
        lambda: registry.get_version_count(9),
        lambda: registry.get_analytics(9),
    ):
        with pytest.raises(NotFoundError):
            call()


def test_failed_registration_has_no_side_effects(registry: Registry):
    with pytest.raises(ValidationError):
        registry.register("", 2048, "d", ["t"], False, "", HASH_A, "", OWNER, 1)
    with pytest.raises(CapacityExceededError):
        registry.register("big", 10**9 + 1, "d", ["t"], False, "", HASH_A, "", OWNER, 1)

    store = registry.store
    assert store.ids.current(ASSET_COUNTER) == 0
    assert store.ids.current(AUDIT_COUNTER) == 0
    assert store.assets == {}
    assert len(store.access) == 0
    assert len(store.versions) == 0
    assert registry.last_sequence == 0
    assert registry.get_profile(OWNER).assets_registered == 0

    assert register_spec_pdf(registry) == 1


def test_failed_revision_has_no_side_effects(registry: Registry, asset_id: int):
    with pytest.raises(ValidationError):
        registry.revise(asset_id, "d" * 129, 10, HASH_B, "s", OWNER, 2)
    assert registry.get_version_count(asset_id) == 1
    assert registry.read(asset_id, OWNER, 2).content_hash == HASH_A
    assert registry.last_sequence == 1


def test_update_metadata_keeps_version(registry: Registry, asset_id: int):
    assert registry.update_metadata(asset_id, "spec-v2.pdf", 4096, "renamed", ["final", "pdf"], OWNER, 2)
    view = registry.read(asset_id, OWNER, 3)
    assert view.name == "spec-v2.pdf"
    assert view.tags == ("final", "pdf")
    assert view.last_modified == 2
    assert view.current_version == 1
    assert registry.assets_tagged("draft") == []
    assert registry.assets_tagged("final") == [asset_id]


def test_update_metadata_requires_write(registry: Registry, asset_id: int):
    with pytest.raises(UnauthorizedError):
        registry.update_metadata(asset_id, "x", 1, "x", ["x"], "mallory", 2)


def test_retire_is_soft(registry: Registry, asset_id: int):
    registry.retire(asset_id, OWNER, 2)

    view = registry.read(asset_id, OWNER, 3)
    assert view.status == STATUS_DELETED
    assert registry.get_version_count(asset_id) == 1
    assert registry.get_system_statistics().retired_assets == 1


def test_retired_asset_rejects_mutations(registry: Registry, asset_id: int):
    registry.retire(asset_id, OWNER, 2)
    with pytest.raises(ValidationError, match="retired"):
        registry.revise(asset_id, "d", 1, HASH_B, "s", OWNER, 3)
    with pytest.raises(ValidationError, match="retired"):
        registry.retire(asset_id, OWNER, 3)
    with pytest.raises(ValidationError, match="retired"):
        registry.rate(asset_id, 5, OWNER, 3)


def test_only_owner_may_retire(registry: Registry, asset_id: int):
    registry.grant_access(asset_id, "bob", True, True, True, None, OWNER, 2)
    with pytest.raises(UnauthorizedError):
        registry.retire(asset_id, "bob", 3)
    with pytest.raises(UnauthorizedError):
        registry.retire(asset_id, ADMIN, 3)


def test_sequence_cannot_go_backwards(registry: Registry):
    register_spec_pdf(registry, now=5)
    with pytest.raises(ValidationError, match="precedes"):
        register_spec_pdf(registry, now=4)
    # Reads accept an earlier sequence
    assert registry.read(1, OWNER, 0).asset_id == 1


def test_empty_actor_rejected(registry: Registry):
    with pytest.raises(ValidationError, match="actor identity"):
        register_spec_pdf(registry, actor="  ")


def test_profiles_track_contributions(registry: Registry, asset_id: int):
    registry.grant_access(asset_id, "bob", True, True, False, None, OWNER, 2)
    registry.revise(asset_id, "bob edit", 5, HASH_B, "bob edit", "bob", 3)

    alice = registry.get_profile(OWNER)
    assert (alice.assets_registered, alice.reputation) == (1, 10)
    bob = registry.get_profile("bob")
    assert (bob.versions_authored, bob.reputation, bob.last_active) == (1, 5, 3)


def test_system_statistics(registry: Registry, asset_id: int):
    register_spec_pdf(registry, now=2)
    registry.revise(asset_id, "fix", 10, HASH_B, "fix", OWNER, 3)
    registry.grant_access(asset_id, "bob", True, False, False, None, OWNER, 4)

    stats = registry.get_system_statistics()
    assert stats.total_assets == 2
    assert stats.active_assets == 2
    assert stats.total_versions == 3
    assert stats.total_audit_entries == 4
    assert stats.total_grants == 3


def test_attempt_wraps_errors(registry: Registry, asset_id: int):
    ok = attempt(registry.rate, asset_id, 5, "bob", 2)
    assert ok.ok and ok.unwrap() == 5

    failed = attempt(registry.read, asset_id, "mallory", 2)
    assert not failed.ok
    assert failed.to_dict() == {
        "ok": False,
        "error": "forbidden",
        "message": f"mallory may not read asset {asset_id}",
    }
    with pytest.raises(RuntimeError):
        failed.unwrap()

    invalid = attempt(registry.register, "", 0, "d", ["t"], False, "", HASH_A, "", OWNER, 3)
    assert invalid.error_kind == "validation"
    assert len(invalid.violations) == 2


def test_commit_hooks_see_only_successful_calls(registry: Registry):
    seen: list[tuple[str, dict, AuditEntry | None]] = []

    def hook(op: str, call: dict, entry: AuditEntry | None) -> None:
        seen.append((op, call, entry))

    registry.add_commit_hook(hook)
    asset_id = register_spec_pdf(registry)
    with pytest.raises(ForbiddenError):
        registry.read(asset_id, "mallory", 2)
    registry.read(asset_id, OWNER, 2)
    registry.remove_commit_hook(hook)
    registry.rate(asset_id, 3, OWNER, 3)

    assert [op for op, _, _ in seen] == ["register", "read"]
    op, call, entry = seen[0]
    assert call["actor"] == OWNER
    assert call["now"] == 1
    assert entry == registry.store.audit.get(1)
    # Reads append no audit entry
    assert seen[1][2] is None


def test_failing_commit_hook_propagates_after_commit(registry: Registry):
    def full_disk(op: str, call: dict, entry: AuditEntry | None) -> None:
        raise OSError("No space left on device")

    registry.add_commit_hook(full_disk)
    with pytest.raises(OSError, match="No space left"):
        register_spec_pdf(registry)

    # Applied in memory, not durable
    assert registry.get_owner(1) == OWNER
    assert len(registry.store.audit) == 1


def test_concurrent_registrations_get_unique_ids(registry: Registry):
    issued: list[int] = []
    issued_lock = threading.Lock()

    def worker(n: int) -> None:
        for _ in range(25):
            asset_id = register_spec_pdf(registry, actor=f"user{n}", now=1)
            with issued_lock:
                issued.append(asset_id)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(issued) == list(range(1, 201))
    assert len(registry.store.audit) == 200
    assert registry.store.audit.verify() is None
