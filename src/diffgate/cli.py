"""
diffgate CLI - diffgate serve | pending | show | respond | sweep

``serve`` runs the MCP server the agent talks to. The other commands act on
the mailbox from the reviewer's side, for editors without a plugin and for
inspecting a stuck session.
"""
import asyncio
import difflib
import sys
from datetime import datetime
from pathlib import Path

import click

from diffgate.approval.mailbox import MailboxStore
from diffgate.config.settings import Settings, load_settings
from diffgate.core.exceptions import ConfigurationError, DiffGateError, ValidationError
from diffgate.core.structured_logger import configure_logging


def _mailbox(settings: Settings) -> MailboxStore:
    return MailboxStore(settings.resolved_mailbox_dir(), poll_interval=settings.mailbox.poll_interval)


@click.group()
@click.version_option(package_name="diffgate")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (environment variables still take priority)",
)
@click.option("--mailbox-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Mailbox directory for this session")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, mailbox_dir: Path | None) -> None:
    """diffgate - review agent file edits before they reach disk."""
    try:
        settings = load_settings(config_path)
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    if mailbox_dir is not None:
        settings.mailbox_dir = mailbox_dir
    ctx.obj = settings


@cli.command()
@click.pass_obj
def serve(settings: Settings) -> None:
    """Run the MCP server on stdio."""
    from diffgate.protocols.mcp.mcp_server import start_mcp_server

    configure_logging(settings.logging.level, settings.logging.output_file, settings.logging.format)
    asyncio.run(start_mcp_server(settings))


@cli.command()
@click.pass_obj
def pending(settings: Settings) -> None:
    """List changes waiting for a decision."""
    requests = _mailbox(settings).list_requests()
    if not requests:
        click.echo("No pending changes.")
        return
    for request in requests:
        created = datetime.fromtimestamp(request.timestamp / 1000).strftime("%H:%M:%S")
        click.echo(f"{request.hash}  {created}  {request.filepath}")


@cli.command()
@click.argument("change_hash")
@click.pass_obj
def show(settings: Settings, change_hash: str) -> None:
    """Print a pending change as a unified diff."""
    try:
        request = _mailbox(settings).read_request(change_hash)
    except ValidationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    if request is None:
        click.echo(f"No pending change {change_hash}", err=True)
        sys.exit(1)

    diff = difflib.unified_diff(
        request.original.splitlines(keepends=True),
        request.modified.splitlines(keepends=True),
        fromfile=f"a/{request.filepath}",
        tofile=f"b/{request.filepath}",
    )
    click.echo("".join(diff), nl=False)


@cli.command()
@click.argument("change_hash")
@click.option("--approve", "decision", flag_value="approve", help="Apply the change")
@click.option("--reject", "decision", flag_value="reject", help="Discard the change")
@click.pass_obj
def respond(settings: Settings, change_hash: str, decision: str | None) -> None:
    """Approve or reject a pending change."""
    if decision is None:
        raise click.UsageError("Pass --approve or --reject")
    approved = decision == "approve"
    try:
        written = _mailbox(settings).write_response(change_hash, approved)
    except DiffGateError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    if not written:
        click.echo(f"No pending change {change_hash} (it may have timed out)", err=True)
        sys.exit(1)
    click.echo(f"Change {change_hash} {'approved' if approved else 'rejected'}")


@cli.command()
@click.option("--max-age", type=float, default=None,
              help="Age in seconds after which a request is stale (default: review timeout)")
@click.pass_obj
def sweep(settings: Settings, max_age: float | None) -> None:
    """Remove abandoned mailbox artifacts."""
    max_age = settings.approval.timeout_seconds if max_age is None else max_age
    removed = _mailbox(settings).sweep_stale(max_age)
    click.echo(f"Removed {removed} stale artifact(s)")


if __name__ == "__main__":
    cli()
