"""CLI entrypoint for assetledger."""

import logging
import os
import sys
from pathlib import Path

import click

from . import __version__

ACTOR_ENV_VAR = "ASSETLEDGER_ACTOR"


def _configure_logging(verbose: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(__version__, prog_name="assetledger")
@click.option(
    "--data-dir",
    "-d",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Registry data directory (default: ./.assetledger or the config's storage.data_dir)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml (default: $ASSETLEDGER_CONFIG or <data-dir>/config.toml)",
)
@click.option(
    "--actor",
    "-a",
    type=str,
    default=None,
    help="Authenticated caller identity (default: $ASSETLEDGER_ACTOR)",
)
@click.option("--verbose", is_flag=True, help="Log every committed and rejected operation")
@click.pass_context
def cli(ctx: click.Context, data_dir: Path | None, config_path: Path | None, actor: str | None, verbose: bool) -> None:
    """assetledger - Permissioned registry for immutable asset records.

    Every state change is attributed to --actor and stamped with a host
    sequence number (--at on each command; defaults to the next sequence).
    """
    from .config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path, data_dir=data_dir)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    ctx.obj["config"] = config
    ctx.obj["actor"] = actor or os.environ.get(ACTOR_ENV_VAR)


def _actor(ctx: click.Context) -> str:
    actor = ctx.obj.get("actor")
    if not actor:
        raise click.UsageError(f"No caller identity. Pass --actor or set {ACTOR_ENV_VAR}.")
    return actor


_at_option = click.option(
    "--at",
    type=click.IntRange(min=0),
    default=None,
    help="Host sequence number (default: next sequence for changes, current for reads)",
)
_json_option = click.option("--json", "output_json", is_flag=True, help="Output results as JSON")


# -----------------------------------------------------------------------------
# Mutating commands
# -----------------------------------------------------------------------------


@cli.command()
@click.argument("name")
@click.option("--size", type=int, required=True, help="Content size in bytes")
@click.option("--description", required=True, help="Short description (max 128 chars)")
@click.option("--tag", "tags", multiple=True, required=True, help="Category tag (repeatable, 1-10)")
@click.option("--content-hash", required=True, help="64-character content hash")
@click.option("--encrypted", is_flag=True, help="Content is encrypted")
@click.option("--key-hash", default="", help="64-character encryption key hash")
@click.option("--metadata", default="", help="Free-form metadata (max 256 chars)")
@_at_option
@_json_option
@click.pass_context
def register(
    ctx: click.Context,
    name: str,
    size: int,
    description: str,
    tags: tuple[str, ...],
    content_hash: str,
    encrypted: bool,
    key_hash: str,
    metadata: str,
    at: int | None,
    output_json: bool,
) -> None:
    """Register a new asset owned by the caller.

    Examples:

        assetledger -a alice register spec.pdf --size 2048 --description "design doc" --tag draft --content-hash <64 hex>
    """
    from .commands.asset_cmd import run_register

    exit_code = run_register(
        ctx.obj["config"],
        _actor(ctx),
        name=name,
        size=size,
        description=description,
        tags=tags,
        content_hash=content_hash,
        encrypted=encrypted,
        key_hash=key_hash,
        metadata=metadata,
        at=at,
        output_json=output_json,
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("asset_id", type=int)
@click.option("--description", required=True, help="Description of this version")
@click.option("--size", type=int, required=True, help="Content size in bytes")
@click.option("--content-hash", required=True, help="64-character content hash")
@click.option("--summary", required=True, help="Change summary (max 256 chars)")
@_at_option
@_json_option
@click.pass_context
def revise(
    ctx: click.Context,
    asset_id: int,
    description: str,
    size: int,
    content_hash: str,
    summary: str,
    at: int | None,
    output_json: bool,
) -> None:
    """Append a new content version (requires write access)."""
    from .commands.asset_cmd import run_revise

    sys.exit(run_revise(
        ctx.obj["config"],
        _actor(ctx),
        asset_id,
        description=description,
        size=size,
        content_hash=content_hash,
        summary=summary,
        at=at,
        output_json=output_json,
    ))


@cli.command()
@click.argument("asset_id", type=int)
@click.option("--name", required=True)
@click.option("--size", type=int, required=True)
@click.option("--description", required=True)
@click.option("--tag", "tags", multiple=True, required=True)
@_at_option
@click.pass_context
def update(
    ctx: click.Context,
    asset_id: int,
    name: str,
    size: int,
    description: str,
    tags: tuple[str, ...],
    at: int | None,
) -> None:
    """Edit display metadata without creating a version."""
    from .commands.asset_cmd import run_update

    sys.exit(run_update(
        ctx.obj["config"], _actor(ctx), asset_id, name=name, size=size, description=description, tags=tags, at=at
    ))


@cli.command()
@click.argument("asset_id", type=int)
@click.argument("target")
@click.option("--read/--no-read", default=True, show_default=True)
@click.option("--write/--no-write", default=False, show_default=True)
@click.option("--admin/--no-admin", default=False, show_default=True)
@click.option("--expires", "expires_at", type=click.IntRange(min=0), default=None, help="Expiry sequence number")
@_at_option
@click.pass_context
def grant(
    ctx: click.Context,
    asset_id: int,
    target: str,
    read: bool,
    write: bool,
    admin: bool,
    expires_at: int | None,
    at: int | None,
) -> None:
    """Create or replace TARGET's grant (owner or administrator only)."""
    from .commands.asset_cmd import run_grant

    sys.exit(run_grant(
        ctx.obj["config"],
        _actor(ctx),
        asset_id,
        target,
        read=read,
        write=write,
        admin=admin,
        expires_at=expires_at,
        at=at,
    ))


@cli.command()
@click.argument("asset_id", type=int)
@click.argument("new_owner")
@_at_option
@click.pass_context
def transfer(ctx: click.Context, asset_id: int, new_owner: str, at: int | None) -> None:
    """Transfer ownership of an asset."""
    from rich.console import Console
    from .commands.asset_cmd import run_transfer

    config = ctx.obj["config"]
    if not config.revoke_previous_owner:
        Console(stderr=True).print(
            "[yellow]⚠ Notice:[/] the previous owner keeps their full grant after transfer.", style="dim"
        )
    sys.exit(run_transfer(config, _actor(ctx), asset_id, new_owner, at=at))


@cli.command()
@click.argument("asset_id", type=int)
@_at_option
@click.pass_context
def retire(ctx: click.Context, asset_id: int, at: int | None) -> None:
    """Retire (soft-delete) an asset. The record stays readable."""
    from .commands.asset_cmd import run_retire

    sys.exit(run_retire(ctx.obj["config"], _actor(ctx), asset_id, at=at))


@cli.command()
@click.argument("asset_id", type=int)
@click.argument("rating", type=int)
@_at_option
@_json_option
@click.pass_context
def rate(ctx: click.Context, asset_id: int, rating: int, at: int | None, output_json: bool) -> None:
    """Rate an asset from 1 to 5."""
    from .commands.asset_cmd import run_rate

    sys.exit(run_rate(ctx.obj["config"], _actor(ctx), asset_id, rating, at=at, output_json=output_json))


@cli.command()
@click.argument("asset_id", type=int)
@click.option("--participant", "participants", multiple=True, required=True, help="Participant (repeatable)")
@click.option("--start", "starts_at", type=click.IntRange(min=0), required=True, help="Start sequence")
@click.option("--end", "ends_at", type=click.IntRange(min=0), required=True, help="End sequence")
@_at_option
@click.pass_context
def session(
    ctx: click.Context,
    asset_id: int,
    participants: tuple[str, ...],
    starts_at: int,
    ends_at: int,
    at: int | None,
) -> None:
    """Schedule a collaboration session on an asset."""
    from .commands.asset_cmd import run_session

    sys.exit(run_session(
        ctx.obj["config"],
        _actor(ctx),
        asset_id,
        participants=participants,
        starts_at=starts_at,
        ends_at=ends_at,
        at=at,
    ))


@cli.command()
@click.argument("asset_id", type=int)
@click.option("--updates/--no-updates", "on_update", default=True, show_default=True)
@click.option("--access/--no-access", "on_access", default=False, show_default=True)
@_at_option
@click.pass_context
def subscribe(ctx: click.Context, asset_id: int, on_update: bool, on_access: bool, at: int | None) -> None:
    """Set the caller's notification preferences for an asset."""
    from .commands.asset_cmd import run_subscribe

    sys.exit(run_subscribe(
        ctx.obj["config"], _actor(ctx), asset_id, on_update=on_update, on_access=on_access, at=at
    ))


# -----------------------------------------------------------------------------
# Read commands
# -----------------------------------------------------------------------------


@cli.command()
@click.argument("asset_id", type=int)
@_at_option
@_json_option
@click.pass_context
def show(ctx: click.Context, asset_id: int, at: int | None, output_json: bool) -> None:
    """Show an asset (requires read access or ownership)."""
    from .commands.asset_cmd import run_show

    sys.exit(run_show(ctx.obj["config"], _actor(ctx), asset_id, at=at, output_json=output_json))


@cli.command()
@click.argument("asset_id", type=int)
@_at_option
@click.pass_context
def download(ctx: click.Context, asset_id: int, at: int | None) -> None:
    """Record a download of an asset."""
    from .commands.asset_cmd import run_download

    sys.exit(run_download(ctx.obj["config"], _actor(ctx), asset_id, at=at))


@cli.command()
@click.argument("asset_id", type=int)
@_at_option
@_json_option
@click.pass_context
def versions(ctx: click.Context, asset_id: int, at: int | None, output_json: bool) -> None:
    """List the version history of an asset."""
    from .commands.asset_cmd import run_versions

    sys.exit(run_versions(ctx.obj["config"], _actor(ctx), asset_id, at=at, output_json=output_json))


@cli.command()
@click.argument("asset_id", type=int)
@click.argument("user")
@_at_option
@_json_option
@click.pass_context
def access(ctx: click.Context, asset_id: int, user: str, at: int | None, output_json: bool) -> None:
    """Show USER's effective access to an asset."""
    from .commands.asset_cmd import run_access

    sys.exit(run_access(ctx.obj["config"], asset_id, user, at=at, output_json=output_json))


@cli.command()
@click.argument("asset_id", type=int)
@click.pass_context
def owner(ctx: click.Context, asset_id: int) -> None:
    """Print the current owner of an asset."""
    from .commands.asset_cmd import run_owner

    sys.exit(run_owner(ctx.obj["config"], asset_id))


@cli.command()
@click.argument("asset_id", type=int)
@_json_option
@click.pass_context
def analytics(ctx: click.Context, asset_id: int, output_json: bool) -> None:
    """Show view, download, collaboration and rating counters."""
    from .commands.asset_cmd import run_analytics

    sys.exit(run_analytics(ctx.obj["config"], asset_id, output_json=output_json))


@cli.command()
@click.option("--asset", "asset_id", type=int, default=None, help="Only entries for this asset")
@click.option("--by", "actor", default=None, help="Only entries by this actor")
@click.option("--action", default=None, help="Only entries with this action tag")
@click.option("--limit", type=click.IntRange(min=1), default=None)
@click.option("--desc", "newest_first", is_flag=True, help="Newest first")
@_json_option
@click.pass_context
def audit(
    ctx: click.Context,
    asset_id: int | None,
    actor: str | None,
    action: str | None,
    limit: int | None,
    newest_first: bool,
    output_json: bool,
) -> None:
    """Show the audit trail."""
    from .commands.asset_cmd import run_audit

    sys.exit(run_audit(
        ctx.obj["config"],
        asset_id=asset_id,
        actor=actor,
        action=action,
        limit=limit,
        newest_first=newest_first,
        output_json=output_json,
    ))


@cli.command()
@click.pass_context
def verify(ctx: click.Context) -> None:
    """Verify the audit hash chain."""
    from .commands.asset_cmd import run_verify

    sys.exit(run_verify(ctx.obj["config"]))


@cli.command()
@_json_option
@click.pass_context
def stats(ctx: click.Context, output_json: bool) -> None:
    """Show registry-wide statistics."""
    from .commands.asset_cmd import run_stats

    sys.exit(run_stats(ctx.obj["config"], output_json=output_json))


@cli.command()
@click.argument("user")
@_json_option
@click.pass_context
def profile(ctx: click.Context, user: str, output_json: bool) -> None:
    """Show a user's registration and revision counts."""
    from .commands.asset_cmd import run_profile

    sys.exit(run_profile(ctx.obj["config"], user, output_json=output_json))


@cli.command()
@click.argument("tag")
@click.pass_context
def tagged(ctx: click.Context, tag: str) -> None:
    """List asset ids carrying TAG."""
    from .commands.asset_cmd import run_tagged

    sys.exit(run_tagged(ctx.obj["config"], tag))


if __name__ == "__main__":
    cli()
