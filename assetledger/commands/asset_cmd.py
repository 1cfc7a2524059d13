"""Asset registry CLI commands."""

from __future__ import annotations

import json
from typing import Any, Callable, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..audit import format_audit_entry
from ..config import RegistryConfig
from ..errors import Outcome, attempt
from ..journal import JournalError, OperationJournal, open_registry
from ..registry import Registry


def _open(config: RegistryConfig) -> tuple[Registry, OperationJournal] | None:
    try:
        return open_registry(config)
    except JournalError as e:
        Console(stderr=True).print(f"Journal replay failed: {e}", style="bold red", markup=False)
        return None


def _next_sequence(registry: Registry, at: int | None) -> int:
    return at if at is not None else registry.last_sequence + 1


def _read_sequence(registry: Registry, at: int | None) -> int:
    return at if at is not None else registry.last_sequence


def _report_error(outcome: Outcome[Any]) -> int:
    err = Console(stderr=True)
    if len(outcome.violations) > 1:
        err.print(f"{outcome.error_kind}:", style="bold red", markup=False)
        for violation in outcome.violations:
            err.print(f"  - {violation}", style="red", markup=False)
    else:
        err.print(f"{outcome.error_kind}: {outcome.message}", style="bold red", markup=False)
    return 1


def _run(
    config: RegistryConfig,
    call: Callable[[Registry], Any],
    render: Callable[[Any], None],
) -> int:
    opened = _open(config)
    if opened is None:
        return 1
    outcome = attempt(call, opened[0])
    if not outcome.ok:
        return _report_error(outcome)
    render(outcome.value)
    return 0


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def _done(message: str) -> Callable[[Any], None]:
    def render(_: Any) -> None:
        Console().print(message, style="green", markup=False)

    return render


# -----------------------------------------------------------------------------
# Mutating commands
# -----------------------------------------------------------------------------


def run_register(
    config: RegistryConfig,
    actor: str,
    *,
    name: str,
    size: int,
    description: str,
    tags: Sequence[str],
    content_hash: str,
    encrypted: bool = False,
    key_hash: str = "",
    metadata: str = "",
    at: int | None = None,
    output_json: bool = False,
) -> int:
    def call(registry: Registry) -> int:
        return registry.register(
            name, size, description, list(tags), encrypted, key_hash, content_hash, metadata,
            actor, _next_sequence(registry, at),
        )

    def render(asset_id: int) -> None:
        if output_json:
            _print_json({"asset_id": asset_id, "version": 1})
        else:
            Console().print(f"registered asset {asset_id} (version 1)", style="green")

    return _run(config, call, render)


def run_revise(
    config: RegistryConfig,
    actor: str,
    asset_id: int,
    *,
    description: str,
    size: int,
    content_hash: str,
    summary: str,
    at: int | None = None,
    output_json: bool = False,
) -> int:
    def call(registry: Registry) -> int:
        return registry.revise(asset_id, description, size, content_hash, summary, actor, _next_sequence(registry, at))

    def render(version: int) -> None:
        if output_json:
            _print_json({"asset_id": asset_id, "version": version})
        else:
            Console().print(f"asset {asset_id} now at version {version}", style="green")

    return _run(config, call, render)


def run_update(
    config: RegistryConfig,
    actor: str,
    asset_id: int,
    *,
    name: str,
    size: int,
    description: str,
    tags: Sequence[str],
    at: int | None = None,
) -> int:
    return _run(
        config,
        lambda r: r.update_metadata(asset_id, name, size, description, list(tags), actor, _next_sequence(r, at)),
        _done(f"asset {asset_id} metadata updated"),
    )


def run_grant(
    config: RegistryConfig,
    actor: str,
    asset_id: int,
    target: str,
    *,
    read: bool,
    write: bool,
    admin: bool,
    expires_at: int | None = None,
    at: int | None = None,
) -> int:
    return _run(
        config,
        lambda r: r.grant_access(asset_id, target, read, write, admin, expires_at, actor, _next_sequence(r, at)),
        _done(f"granted access on asset {asset_id} to {target}"),
    )


def run_transfer(config: RegistryConfig, actor: str, asset_id: int, new_owner: str, *, at: int | None = None) -> int:
    return _run(
        config,
        lambda r: r.transfer_ownership(asset_id, new_owner, actor, _next_sequence(r, at)),
        _done(f"asset {asset_id} transferred to {new_owner}"),
    )


def run_retire(config: RegistryConfig, actor: str, asset_id: int, *, at: int | None = None) -> int:
    return _run(
        config,
        lambda r: r.retire(asset_id, actor, _next_sequence(r, at)),
        _done(f"asset {asset_id} retired"),
    )


def run_rate(
    config: RegistryConfig,
    actor: str,
    asset_id: int,
    rating: int,
    *,
    at: int | None = None,
    output_json: bool = False,
) -> int:
    def render(average: int) -> None:
        if output_json:
            _print_json({"asset_id": asset_id, "average_rating": average})
        else:
            Console().print(f"asset {asset_id} average rating: {average}", style="green")

    return _run(config, lambda r: r.rate(asset_id, rating, actor, _next_sequence(r, at)), render)


def run_session(
    config: RegistryConfig,
    actor: str,
    asset_id: int,
    *,
    participants: Sequence[str],
    starts_at: int,
    ends_at: int,
    at: int | None = None,
) -> int:
    def render(session_id: int) -> None:
        Console().print(f"session {session_id} scheduled on asset {asset_id}", style="green")

    return _run(
        config,
        lambda r: r.create_collaboration_session(
            asset_id, list(participants), starts_at, ends_at, actor, _next_sequence(r, at)
        ),
        render,
    )


def run_subscribe(
    config: RegistryConfig,
    actor: str,
    asset_id: int,
    *,
    on_update: bool,
    on_access: bool,
    at: int | None = None,
) -> int:
    return _run(
        config,
        lambda r: r.subscribe(asset_id, on_update, on_access, actor, _next_sequence(r, at)),
        _done(f"subscription on asset {asset_id} saved"),
    )


# -----------------------------------------------------------------------------
# Read commands
# -----------------------------------------------------------------------------


def run_show(config: RegistryConfig, actor: str, asset_id: int, *, at: int | None = None, output_json: bool = False) -> int:
    def render(view: Any) -> None:
        data = view.to_dict()
        if output_json:
            _print_json(data)
            return
        table = Table(title=f"Asset {asset_id}", show_header=False)
        table.add_column("field", style="cyan", no_wrap=True)
        table.add_column("value")
        for key, value in data.items():
            if key == "tags":
                value = ", ".join(value)
            table.add_row(key, escape(str(value)))
        Console().print(table)

    return _run(config, lambda r: r.read(asset_id, actor, _read_sequence(r, at)), render)


def run_download(config: RegistryConfig, actor: str, asset_id: int, *, at: int | None = None) -> int:
    def render(downloads: int) -> None:
        Console().print(f"download recorded (total {downloads})", style="green")

    return _run(config, lambda r: r.record_download(asset_id, actor, _read_sequence(r, at)), render)


def run_versions(config: RegistryConfig, actor: str, asset_id: int, *, at: int | None = None, output_json: bool = False) -> int:
    def render(records: list[Any]) -> None:
        if output_json:
            _print_json([rec.to_dict() for rec in records])
            return
        table = Table(title=f"Versions of asset {asset_id}")
        table.add_column("version", justify="right")
        table.add_column("editor", style="magenta")
        table.add_column("seq", justify="right")
        table.add_column("size", justify="right")
        table.add_column("content_hash", style="dim")
        table.add_column("summary")
        for rec in records:
            table.add_row(
                str(rec.version),
                escape(rec.editor),
                str(rec.created_at),
                str(rec.size),
                rec.content_hash[:12] + "…",
                escape(rec.summary),
            )
        Console().print(table)

    return _run(config, lambda r: r.version_history(asset_id, actor, _read_sequence(r, at)), render)


def run_access(config: RegistryConfig, asset_id: int, user: str, *, at: int | None = None, output_json: bool = False) -> int:
    def render(status: Any) -> None:
        if output_json:
            _print_json(status.to_dict())
            return
        console = Console()
        flags = [name for name in ("read", "write", "admin") if getattr(status, name)]
        console.print(f"{escape(user)} on asset {asset_id}: {', '.join(flags) or 'no grant'}")
        if status.is_owner:
            console.print("  owner", style="dim")
        if status.expires_at is not None:
            console.print(f"  expires at {status.expires_at}", style="dim")
        console.print(f"  can view: {'yes' if status.can_view else 'no'}", style="dim")

    return _run(config, lambda r: r.get_access_status(asset_id, user, _read_sequence(r, at)), render)


def run_owner(config: RegistryConfig, asset_id: int) -> int:
    return _run(config, lambda r: r.get_owner(asset_id), lambda owner: print(owner))


def run_analytics(config: RegistryConfig, asset_id: int, *, output_json: bool = False) -> int:
    def render(record: Any) -> None:
        data = record.to_dict()
        if output_json:
            _print_json(data)
            return
        table = Table(title=f"Analytics for asset {asset_id}", show_header=False)
        table.add_column("metric", style="cyan")
        table.add_column("value", justify="right")
        for key, value in data.items():
            if key != "asset_id":
                table.add_row(key, str(value))
        Console().print(table)

    return _run(config, lambda r: r.get_analytics(asset_id), render)


def run_audit(
    config: RegistryConfig,
    *,
    asset_id: int | None = None,
    actor: str | None = None,
    action: str | None = None,
    limit: int | None = None,
    newest_first: bool = False,
    output_json: bool = False,
) -> int:
    def call(registry: Registry) -> list[Any]:
        if asset_id is not None:
            registry.get_owner(asset_id)  # NotFoundError for unknown assets
        return registry.store.audit.query(
            asset_id=asset_id,
            actor=actor,
            action=action,
            limit=limit,
            order="desc" if newest_first else "asc",
        )

    def render(entries: list[Any]) -> None:
        if output_json:
            _print_json([e.to_dict() for e in entries])
            return
        console = Console()
        if not entries:
            console.print("No audit entries.", style="dim")
            return
        for entry in entries:
            console.print(format_audit_entry(entry), markup=False, highlight=False)

    return _run(config, call, render)


def run_verify(config: RegistryConfig) -> int:
    opened = _open(config)
    if opened is None:
        return 1
    registry, journal = opened
    console = Console()
    broken = registry.store.audit.verify()
    if broken is None:
        broken = journal.verify_audit(registry.store.audit)
    if broken is not None:
        Console(stderr=True).print(f"audit chain broken at entry #{broken}", style="bold red")
        return 1
    console.print(f"audit chain intact ({len(registry.store.audit)} entries)", style="green")
    return 0


def run_stats(config: RegistryConfig, *, output_json: bool = False) -> int:
    def render(stats: Any) -> None:
        data = stats.to_dict()
        if output_json:
            _print_json(data)
            return
        table = Table(title="Registry statistics", show_header=False)
        table.add_column("metric", style="cyan")
        table.add_column("value", justify="right")
        for key, value in data.items():
            table.add_row(key.replace("_", " "), str(value))
        Console().print(table)

    return _run(config, lambda r: r.get_system_statistics(), render)


def run_profile(config: RegistryConfig, user: str, *, output_json: bool = False) -> int:
    def render(profile: Any) -> None:
        data = profile.to_dict()
        if output_json:
            _print_json(data)
            return
        console = Console()
        console.print(f"{escape(profile.user)}: reputation {profile.reputation}")
        console.print(
            f"  assets registered: {profile.assets_registered}, versions authored: {profile.versions_authored}",
            style="dim",
        )

    return _run(config, lambda r: r.get_profile(user), render)


def run_tagged(config: RegistryConfig, tag: str) -> int:
    def render(asset_ids: list[int]) -> None:
        if not asset_ids:
            Console().print(f"No assets tagged {tag!r}.", style="dim", markup=False)
            return
        for asset_id in asset_ids:
            print(asset_id)

    return _run(config, lambda r: r.assets_tagged(tag), render)
