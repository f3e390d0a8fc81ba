"""AWS Operator CLI (aws-operator).

Usage:
    aws-operator apply  --cluster-file cluster.yaml --region us-east-1
    aws-operator plan   --cluster-file cluster.yaml --region us-east-1
    aws-operator delete --cluster-file cluster.yaml --region us-east-1

Options not given on the command line fall back to the environment
variables documented in ``Config.from_env``.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from botocore.exceptions import BotoCoreError

from .cluster_loader import ClusterLoadError
from .config import (
    DEFAULT_CLUSTER_FILE,
    DEFAULT_LOG_LEVEL,
    VALID_LOG_LEVELS,
    Config,
    ConfigurationError,
)
from .main import run_pass, setup_logging
from .reconciler import ReconcileAction, ReconcileResult, ResourceAction

CLI_VERSION = "0.1.0"


def _build_config(
    cluster_file: Path | None,
    region: str | None,
    profile: str | None,
    dry_run: bool,
    log_level: str | None,
    json_logs: bool,
) -> Config:
    try:
        return Config(
            region=region or os.environ.get("AWS_REGION", ""),
            cluster_file=cluster_file
            or Path(os.environ.get("CLUSTER_FILE", DEFAULT_CLUSTER_FILE)),
            profile=profile or os.environ.get("AWS_PROFILE") or None,
            dry_run=dry_run,
            log_level=log_level or os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL),
            json_logs=json_logs,
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def _execute(config: Config, *, destroy: bool) -> ReconcileResult:
    setup_logging(config.log_level, config.json_logs)
    try:
        return run_pass(config, destroy=destroy)
    except (ClusterLoadError, ConfigurationError) as e:
        raise click.ClickException(str(e)) from e
    except BotoCoreError as e:
        raise click.ClickException(f"Failed to create AWS client: {e}") from e


def _report(result: ReconcileResult) -> None:
    """Print one line per resource and a summary; exit non-zero on failure."""
    for outcome in result.outcomes:
        click.echo(f"  {outcome.action.value:<12} {outcome.kind} [{outcome.name}]")

    if result.error is not None:
        raise click.ClickException(f"{result.action.value} failed: {result.error}")

    if result.dry_run and result.action == ReconcileAction.DESTROY:
        pending = sum(1 for o in result.outcomes if o.action == ResourceAction.WOULD_DELETE)
        click.secho(
            f"✓ {result.cluster}: {pending} resource(s) would be deleted (dry run)",
            fg="yellow",
        )
    elif result.dry_run:
        drifted = sum(1 for o in result.outcomes if o.action == ResourceAction.DRIFTED)
        click.secho(
            f"✓ {result.cluster}: {drifted} resource(s) drifted, nothing changed (dry run)",
            fg="yellow",
        )
    else:
        click.secho(
            f"✓ {result.cluster}: {result.changes_applied} resource(s) changed",
            fg="green",
        )


def common_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every reconciliation command."""
    options = [
        click.option(
            "--cluster-file",
            "-f",
            type=click.Path(path_type=Path, dir_okay=False),
            help="Cluster declaration YAML (env: CLUSTER_FILE)",
        ),
        click.option("--region", "-r", help="AWS region (env: AWS_REGION)"),
        click.option("--profile", "-p", help="AWS credentials profile (env: AWS_PROFILE)"),
        click.option(
            "--log-level",
            type=click.Choice(VALID_LOG_LEVELS, case_sensitive=False),
            help="Log level (env: LOG_LEVEL)",
        ),
        click.option(
            "--json-logs/--text-logs",
            default=True,
            help="Emit JSON log lines (default) or plain text",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=CLI_VERSION, prog_name="aws-operator")
def cli() -> None:
    """AWS Operator CLI (aws-operator).

    Reconciles a declared cluster's networking against its live AWS state.

    \b
    Quick Start:
        aws-operator plan  -f cluster.yaml -r us-east-1   # Show drift
        aws-operator apply -f cluster.yaml -r us-east-1   # Converge
    """
    pass


@cli.command()
@common_options
@click.option("--dry-run", is_flag=True, help="Report drift without applying it")
def apply(
    cluster_file: Path | None,
    region: str | None,
    profile: str | None,
    log_level: str | None,
    json_logs: bool,
    dry_run: bool,
) -> None:
    """Converge the provider toward the cluster declaration."""
    config = _build_config(cluster_file, region, profile, dry_run, log_level, json_logs)
    _report(_execute(config, destroy=False))


@cli.command()
@common_options
def plan(
    cluster_file: Path | None,
    region: str | None,
    profile: str | None,
    log_level: str | None,
    json_logs: bool,
) -> None:
    """Show drift between the declaration and the provider (no changes)."""
    config = _build_config(cluster_file, region, profile, True, log_level, json_logs)
    _report(_execute(config, destroy=False))


@cli.command()
@common_options
@click.option("--dry-run", is_flag=True, help="Report what would be deleted")
def delete(
    cluster_file: Path | None,
    region: str | None,
    profile: str | None,
    log_level: str | None,
    json_logs: bool,
    dry_run: bool,
) -> None:
    """Tear down the resources the cluster declaration owns."""
    config = _build_config(cluster_file, region, profile, dry_run, log_level, json_logs)
    _report(_execute(config, destroy=True))


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
