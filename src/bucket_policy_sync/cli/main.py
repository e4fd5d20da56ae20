"""CLI entry point for bucket-policy-sync.

Invoked as::

    bucket-policy [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m bucket_policy_sync.cli.main

All stores are backed by JSON files under the configured ``state_dir``.

Commands
--------
- put       Reconcile and store a policy for a bucket
- get       Print the stored policy for a bucket
- delete    Remove the stored policy for a bucket
- diff      Show object-level changes between two policy files
- register  Register the permission records backing an object
- version   Show version information
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bucket_policy_sync.config import DEFAULT_CONFIG_PATH, ConfigLoader, SyncConfig
from bucket_policy_sync.context import RequestContext
from bucket_policy_sync.errors import BucketPolicyError, MalformedPolicyError, PolicyNotFoundError
from bucket_policy_sync.permissions.propagator import derived_suffixes
from bucket_policy_sync.policies.differ import PolicyDiffer
from bucket_policy_sync.policies.extractor import ObjectNameExtractor
from bucket_policy_sync.policies.parser import PolicyParser
from bucket_policy_sync.reconciler import ReconcileOutcome, ReconcileResult, Reconciler
from bucket_policy_sync.replication.hook import (
    LoggingReplicationHook,
    ReplicationHook,
    WebhookReplicationHook,
)
from bucket_policy_sync.stores.filesystem import (
    FileMetadataStore,
    FilePermissionStore,
    FileRecordStore,
)

console = Console()
err_console = Console(stderr=True)

_OUTCOME_STYLES: dict[ReconcileOutcome, str] = {
    ReconcileOutcome.SYNCED: "[green]SYNCED[/green]",
    ReconcileOutcome.SYNCED_WITH_PARTIAL_PROPAGATION: "[yellow]SYNCED (PARTIAL PROPAGATION)[/yellow]",
    ReconcileOutcome.REJECTED: "[red]REJECTED[/red]",
    ReconcileOutcome.ABORTED: "[red]ABORTED[/red]",
}

_EXIT_CODES: dict[ReconcileOutcome, int] = {
    ReconcileOutcome.SYNCED: 0,
    ReconcileOutcome.SYNCED_WITH_PARTIAL_PROPAGATION: 0,
    ReconcileOutcome.REJECTED: 2,
    ReconcileOutcome.ABORTED: 1,
}

_config_option = click.option(
    "--config",
    "-c",
    "config_path",
    default=str(DEFAULT_CONFIG_PATH),
    show_default=True,
    type=click.Path(),
    help="Path to bucket-policy.yaml.",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_config(config_path: str) -> SyncConfig:
    try:
        return ConfigLoader().load_or_default(Path(config_path))
    except ValueError as exc:
        err_console.print(f"[red]Invalid config:[/red] {exc}")
        sys.exit(1)


def _build_hook(config: SyncConfig) -> ReplicationHook:
    if config.replication.webhook_url:
        return WebhookReplicationHook(
            config.replication.webhook_url,
            timeout_seconds=config.replication.timeout_seconds,
        )
    return LoggingReplicationHook()


def _build_reconciler(config: SyncConfig) -> Reconciler:
    state_dir = config.state_dir
    return Reconciler.from_config(
        config,
        record_store=FileRecordStore(state_dir),
        metadata_store=FileMetadataStore(state_dir),
        permission_store=FilePermissionStore(state_dir),
        replication_hook=_build_hook(config),
    )


def _request_context(config: SyncConfig) -> RequestContext:
    if config.request_timeout_seconds is not None:
        return RequestContext.with_timeout(config.request_timeout_seconds)
    return RequestContext.background()


def _print_result(result: ReconcileResult) -> None:
    console.print(
        Panel(
            _OUTCOME_STYLES[result.outcome],
            title=f"Bucket Policy: {result.bucket}",
            border_style="blue",
        )
    )
    if result.reason:
        console.print(f"  Reason: {result.reason}")
    if result.record_status is not None:
        console.print(f"  Record store: [cyan]{result.record_status.value}[/cyan]")
    if result.updated_at is not None:
        console.print(f"  Updated at: [dim]{result.updated_at.isoformat()}[/dim]")

    if result.delta.added or result.delta.removed:
        table = Table(title="Object Changes", box=box.SIMPLE)
        table.add_column("Object", style="cyan")
        table.add_column("Change", style="magenta")
        for name in result.delta.added:
            table.add_row(name, "public read granted")
        for name in result.delta.removed:
            table.add_row(name, "public read revoked")
        console.print(table)

    for name in result.propagation.skipped:
        console.print(f"  [yellow]Skipped (wildcard)[/yellow] '{name}'")
    for failure in result.propagation.failures:
        console.print(
            f"  [yellow]Propagation failed[/yellow] for '{failure.object_name}' "
            f"({failure.suffix}): {failure.reason}"
        )


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="bucket-policy-sync")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Bucket policy CLI — reconcile, inspect, and remove bucket policies."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from bucket_policy_sync import __version__

    console.print(
        Panel(
            f"[bold]bucket-policy-sync[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Bucket access policy reconciliation engine.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# put / get / delete
# ---------------------------------------------------------------------------


@cli.command(name="put")
@click.argument("bucket")
@click.argument("policy_file", type=click.Path(exists=True, dir_okay=False))
@_config_option
def put_command(bucket: str, policy_file: str, config_path: str) -> None:
    """Reconcile POLICY_FILE as the access policy of BUCKET."""
    config = _load_config(config_path)
    data = Path(policy_file).read_bytes()

    result = _build_reconciler(config).put_policy(_request_context(config), bucket, data)
    _print_result(result)
    sys.exit(_EXIT_CODES[result.outcome])


@cli.command(name="get")
@click.argument("bucket")
@_config_option
def get_command(bucket: str, config_path: str) -> None:
    """Print the stored policy of BUCKET as JSON."""
    config = _load_config(config_path)
    try:
        data = _build_reconciler(config).get_policy(_request_context(config), bucket)
    except PolicyNotFoundError as exc:
        err_console.print(f"[yellow]{exc}[/yellow]")
        sys.exit(1)
    console.print_json(data.decode("utf-8"))


@cli.command(name="delete")
@click.argument("bucket")
@_config_option
def delete_command(bucket: str, config_path: str) -> None:
    """Remove the stored policy of BUCKET."""
    config = _load_config(config_path)
    try:
        updated_at = _build_reconciler(config).delete_policy(_request_context(config), bucket)
    except BucketPolicyError as exc:
        err_console.print(f"[red]Delete failed:[/red] {exc}")
        sys.exit(1)
    console.print(f"[green]Deleted[/green] policy for bucket [bold]{bucket}[/bold] at {updated_at.isoformat()}")


# ---------------------------------------------------------------------------
# diff
# ---------------------------------------------------------------------------


@cli.command(name="diff")
@click.argument("bucket")
@click.argument("old_policy", type=click.Path(exists=True, dir_okay=False))
@click.argument("new_policy", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Emit the delta as JSON.")
def diff_command(bucket: str, old_policy: str, new_policy: str, as_json: bool) -> None:
    """Show objects gaining or losing public read between two policy files."""
    parser = PolicyParser()
    extractor = ObjectNameExtractor()
    try:
        old_doc = parser.parse(Path(old_policy).read_bytes(), bucket)
        new_doc = parser.parse(Path(new_policy).read_bytes(), bucket)
    except MalformedPolicyError as exc:
        err_console.print(f"[red]{exc}[/red]")
        sys.exit(2)

    delta = PolicyDiffer().diff(extractor.extract(old_doc, bucket), extractor.extract(new_doc, bucket))

    if as_json:
        click.echo(json.dumps({"added": delta.added, "removed": delta.removed}))
        return

    if delta.is_empty:
        console.print("[green]No object-level changes.[/green]")
        return

    table = Table(title=f"Public Read Changes: {bucket}", box=box.SIMPLE)
    table.add_column("Object", style="cyan")
    table.add_column("Change", style="magenta")
    for name in delta.added:
        table.add_row(name, "added")
    for name in delta.removed:
        table.add_row(name, "removed")
    console.print(table)


# ---------------------------------------------------------------------------
# register
# ---------------------------------------------------------------------------


@cli.command(name="register")
@click.argument("bucket")
@click.argument("object_names", nargs=-1, required=True)
@_config_option
def register_command(bucket: str, object_names: tuple[str, ...], config_path: str) -> None:
    """Register the permission records backing OBJECT_NAMES in BUCKET."""
    config = _load_config(config_path)
    store = FilePermissionStore(config.state_dir)

    table = Table(title="Registered Permission Records", box=box.SIMPLE)
    table.add_column("Object", style="cyan")
    table.add_column("Record")
    table.add_column("Identifier", style="dim")
    for name in object_names:
        for suffix in derived_suffixes(name):
            identifier = store.register(config.owner_id, suffix, bucket)
            table.add_row(name, suffix, identifier)
    console.print(table)


if __name__ == "__main__":
    cli()
