#!/usr/bin/env python3
"""
GCC High migration CLI - export security groups from the commercial tenant
and re-import them, with owners and members, into the GCC High tenant.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from gcch_migration import datasets
from gcch_migration.config import Config
from gcch_migration.errors import ConfigError, ConnectionFailure, DatasetError
from gcch_migration.logger import setup_logging
from gcch_migration.models.run import ExportOptions, ImportOptions
from gcch_migration.services.base import DirectoryService
from gcch_migration.services.exchange import ExchangeOnlineService
from gcch_migration.services.graph import GraphService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONNECTION = 1
EXIT_COMPLETED_WITH_ERRORS = 2


def build_directory(config: Config, role: str) -> DirectoryService:
    return GraphService(config.tenant(role))


def build_mail_service(config: Config, role: str) -> ExchangeOnlineService:
    return ExchangeOnlineService(config.tenant(role), powershell=config.powershell,
                                 timeout=config.exchange_timeout)


def _fatal(message: str) -> None:
    logger.critical(message)
    sys.exit(EXIT_CONNECTION)


def _connect_directory(config: Config, role: str, connect: bool) -> DirectoryService:
    try:
        directory = build_directory(config, role)
        if connect:
            directory.test_connection()
    except (ConfigError, ConnectionFailure) as e:
        _fatal(f"Cannot connect to {role} tenant: {e}")
    return directory


def _connect_mail(config: Config, role: str, connect: bool) -> Optional[ExchangeOnlineService]:
    """Exchange Online is optional: without it mail-enabled groups fall back to Graph."""
    try:
        mail = build_mail_service(config, role)
        if connect:
            mail.test_connection()
        return mail
    except (ConfigError, ConnectionFailure) as e:
        logger.warning(f"Exchange Online unavailable, mail-enabled groups will go through Graph: {e}")
        return None


def _needs_exchange(options: ImportOptions) -> bool:
    path = options.groups_file or datasets.discover_latest(options.import_dir, "groups")
    if not path:
        return False
    try:
        return any(g.mail_enabled for g in datasets.read_groups(path))
    except DatasetError:
        return False


@click.group(help="GCC High migration CLI (security groups, owners, members)")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Settings YAML (default: config/settings.yaml)")
@click.option("--log-dir", default=None, help="Directory for run logs (default from settings)")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
@click.pass_context
def cli(ctx, config_path, log_dir, log_level):
    """GCC High migration CLI."""
    ctx.ensure_object(dict)
    try:
        config = Config(config_path)
    except (OSError, ConfigError) as e:
        raise click.ClickException(f"Cannot load settings: {e}")
    ctx.obj["config"] = config
    ctx.obj["log_dir"] = log_dir or config.log_dir
    ctx.obj["log_level"] = log_level or config.log_level


# ========== EXPORT ==========

@cli.command("export")
@click.option("--output-dir", type=click.Path(file_okay=False), default=".", show_default=True,
              help="Directory the three CSV files are written to")
@click.option("--connect/--no-connect", default=True, show_default=True,
              help="Verify the source tenant connection before exporting")
@click.option("--include-mail-enabled", is_flag=True, default=False,
              help="Also export mail-enabled security groups")
@click.pass_context
def export_cmd(ctx, output_dir, connect, include_mail_enabled):
    """Export security groups, members and owners from the source tenant."""
    from gcch_migration.workflows.export import run_export

    config: Config = ctx.obj["config"]
    setup_logging(ctx.obj["log_level"], log_dir=ctx.obj["log_dir"], log_prefix="export")
    options = ExportOptions(output_dir=Path(output_dir), connect=connect,
                            include_mail_enabled=include_mail_enabled)

    logger.info(f"Exporting security groups to {Path(output_dir).resolve()}")
    directory = _connect_directory(config, "source", connect)
    try:
        summary = run_export(directory, options)
    except ConnectionFailure as e:
        _fatal(f"Lost connection to source tenant: {e}")

    summary.log_report(logger)
    sys.exit(EXIT_COMPLETED_WITH_ERRORS if summary.errors else EXIT_OK)


# ========== IMPORT ==========

@cli.command("import")
@click.option("--import-dir", type=click.Path(file_okay=False), default=".", show_default=True,
              help="Directory holding the exported CSV files")
@click.option("--groups-file", type=click.Path(dir_okay=False), default=None, help="Groups CSV override")
@click.option("--members-file", type=click.Path(dir_okay=False), default=None, help="Members CSV override")
@click.option("--owners-file", type=click.Path(dir_okay=False), default=None, help="Owners CSV override")
@click.option("--create-groups", is_flag=True, help="Run the create-groups phase")
@click.option("--add-owners", is_flag=True, help="Run the add-owners phase")
@click.option("--add-members", is_flag=True, help="Run the add-members phase")
@click.option("--all", "all_phases", is_flag=True, help="Run all three phases")
@click.option("--preview", "preview_only", is_flag=True, help="Look up and log everything, change nothing")
@click.option("--connect/--no-connect", default=True, show_default=True,
              help="Verify destination connections before importing")
@click.option("--prefix", default="", help="Prefix added to every group display name")
@click.option("--suffix", default="", help="Suffix added to every group display name")
@click.option("--skip-existing/--no-skip-existing", default=True, show_default=True,
              help="Skip groups that already exist")
@click.option("--continue-on-error/--stop-on-error", default=True, show_default=True,
              help="Keep going after a failed create/add")
@click.option("--settle-seconds", type=click.FloatRange(min=0), default=None,
              help="Pause after each group creation (default from settings)")
@click.pass_context
def import_cmd(ctx, import_dir, groups_file, members_file, owners_file, create_groups, add_owners,
               add_members, all_phases, preview_only, connect, prefix, suffix, skip_existing,
               continue_on_error, settle_seconds):
    """Import groups, owners and members into the destination tenant."""
    from gcch_migration.workflows.importer import run_import

    config: Config = ctx.obj["config"]
    try:
        options = ImportOptions(
            import_dir=Path(import_dir),
            groups_file=Path(groups_file) if groups_file else None,
            members_file=Path(members_file) if members_file else None,
            owners_file=Path(owners_file) if owners_file else None,
            create_groups=create_groups,
            add_owners=add_owners,
            add_members=add_members,
            all_phases=all_phases,
            preview_only=preview_only,
            connect=connect,
            prefix=prefix,
            suffix=suffix,
            skip_existing=skip_existing,
            continue_on_error=continue_on_error,
            settle_seconds=config.settle_seconds if settle_seconds is None else settle_seconds,
        )
    except ValidationError as e:
        raise click.UsageError(f"Invalid import options: {e.errors()[0].get('msg')}")
    if not options.phases:
        raise click.UsageError("Select at least one phase: --create-groups, --add-owners, --add-members or --all")

    setup_logging(ctx.obj["log_level"], log_dir=ctx.obj["log_dir"], log_prefix="import")
    if options.preview_only:
        logger.warning("PREVIEW MODE: no changes will be made to the destination tenant")
    logger.info(f"Phases: {', '.join(p.value for p in options.phases)}")

    directory = _connect_directory(config, "destination", connect)
    mail_service = _connect_mail(config, "destination", connect) if _needs_exchange(options) else None

    try:
        summary = run_import(directory, options, mail_service=mail_service)
    except ConnectionFailure as e:
        _fatal(f"Lost connection to destination tenant: {e}")

    summary.log_report(logger)
    sys.exit(EXIT_COMPLETED_WITH_ERRORS if summary.total_errors else EXIT_OK)


if __name__ == "__main__":
    cli()
