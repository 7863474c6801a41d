"""Main CLI entry point for ncbackup.

Backs up a Docker-hosted Nextcloud (database, data directory and application
volume) to a remote host over SSH. Intended to be run from cron:

    0 3 * * * cd /opt/ncbackup && ncbackup run
"""

import os
from typing import Optional

import click

from ncbackup import __version__
from ncbackup.utils.errors import ErrorHandler, NCBackupError
from ncbackup.utils.logging import setup_logging


def _load_manager(ctx: click.Context):
    """Resolve configuration, configure logging and build the backup manager."""
    from ncbackup.backup import BackupManager
    from ncbackup.config import DEFAULT_LOG_FILE, ConfigManager

    try:
        config = ConfigManager(
            config_path=ctx.obj["config_path"],
            env_file=ctx.obj["env_file"],
        ).load()
    except NCBackupError:
        # No resolved config: fall back so the failure still reaches a log file
        fallback = ctx.obj["log_file"] or os.environ.get("NCBACKUP_LOG_FILE") or DEFAULT_LOG_FILE
        setup_logging(verbose=ctx.obj["verbose"], log_file=fallback)
        raise

    setup_logging(verbose=ctx.obj["verbose"], log_file=ctx.obj["log_file"] or config.log_file)
    return BackupManager(config)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--log-file", help="Append log output to this file (default: NCBACKUP_LOG_FILE or /var/log/nextcloud_backup.log)")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML configuration file")
@click.option("--env-file", type=click.Path(dir_okay=False), help="Environment file to load (default: .env if present)")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    log_file: Optional[str],
    config_path: Optional[str],
    env_file: Optional[str],
) -> None:
    """ncbackup - Nextcloud Docker backup tool.

    Puts Nextcloud into maintenance mode, dumps its database, archives the
    data directory and application volume, uploads one archive to a remote
    host and prunes archives older than the retention period.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["log_file"] = log_file
    ctx.obj["config_path"] = config_path
    ctx.obj["env_file"] = env_file
    ctx.obj["error_handler"] = ErrorHandler(verbose=verbose)

    # Console logging until the configured log file is known
    setup_logging(verbose=verbose, log_file=log_file)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Run checks and show what would be done without executing")
@click.pass_context
def run(ctx: click.Context, dry_run: bool) -> None:
    """Run a full backup."""
    try:
        manager = _load_manager(ctx)
    except NCBackupError as e:
        ctx.obj["error_handler"].exit_with_error(e, context="Loading configuration")
        return

    if dry_run:
        try:
            manager.check()
        except NCBackupError as e:
            ctx.obj["error_handler"].exit_with_error(e, context="Pre-flight checks")
            return

        run_id = manager.new_run_id()
        click.echo(f"DRY RUN: Backup {run_id} would perform:")
        for step in manager.plan(run_id):
            click.echo(f"DRY RUN:   {step}")
        return

    result = manager.run()

    if result.success:
        click.echo(f"✓ Backup {result.run_id} uploaded to {result.remote_archive}")
        for warning in result.warnings:
            click.echo(f"! {warning}")
    else:
        click.echo(f"✗ Backup {result.run_id} failed: {result.error}", err=True)

    ctx.exit(result.exit_code)


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify tools, SSH key, Docker and containers without backing up."""
    try:
        manager = _load_manager(ctx)
        warnings = manager.check()
    except NCBackupError as e:
        ctx.obj["error_handler"].exit_with_error(e, context="Pre-flight checks")
        return

    for warning in warnings:
        click.echo(f"! {warning}")
    click.echo("✓ All pre-flight checks passed")


@cli.command()
@click.pass_context
def prune(ctx: click.Context) -> None:
    """Delete remote archives older than the retention period."""
    try:
        manager = _load_manager(ctx)
        outcome = manager.prune()
    except NCBackupError as e:
        ctx.obj["error_handler"].exit_with_error(e, context="Retention")
        return

    for warning in outcome.warnings:
        click.echo(f"! {warning}")
    if outcome.remaining is not None:
        click.echo(f"✓ {outcome.remaining} backup(s) remaining on remote host")


if __name__ == "__main__":
    cli(obj={})
