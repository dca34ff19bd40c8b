"""
ferry - command line entry point.

Moves Datadog monitors from PagerDuty/Opsgenie notifications to
incident.io webhooks. The commands are thin wrappers: all decisions are
made by the services, this module only wires options, confirmation
prompts and output together.
"""

import asyncio
import json
import re
from pathlib import Path
from typing import NoReturn, Optional

import typer

from ferry.config.exceptions import ConfigurationError
from ferry.config.migration_config import (
    MigrationConfig,
    MigrationConfigLoader,
    create_default_config,
    save_mappings,
    write_config_file,
)
from ferry.config.settings import get_settings
from ferry.integrations.datadog.client import DatadogClient
from ferry.integrations.datadog.exceptions import DatadogError
from ferry.models.destination import SingleWebhookConfig
from ferry.models.mapping import MappingTable
from ferry.models.migration import MigrationOptions, MigrationResult, MigrationType, MonitorFilter
from ferry.models.monitor import Monitor
from ferry.services.analysis_service import MonitorStats, analyze_monitors, check_mapping_coverage
from ferry.services.mapping_generator import detect_services, merge_detected_services
from ferry.services.migration_service import MigrationService
from ferry.utils.logger import get_module_logger, setup_logging
from ferry.utils.markers import Provider
from ferry.utils.message_diff import format_message_diff
from ferry.utils.monitor_filter import filter_monitors, parse_filter_options

logger = get_module_logger(__name__)

app = typer.Typer(
    name="ferry",
    help="Migrate Datadog monitors from PagerDuty/Opsgenie to incident.io webhooks.",
    no_args_is_help=True,
)

API_KEY_OPTION = typer.Option(None, "--api-key", "-k", help="Datadog API key (defaults to DATADOG_API_KEY)")
APP_KEY_OPTION = typer.Option(None, "--app-key", "-a", help="Datadog App key (defaults to DATADOG_APP_KEY)")
CONFIG_OPTION = typer.Option(..., "--config", "-c", help="Path to config file")
TAGS_OPTION = typer.Option(None, "--tags", "-t", help="Filter monitors by tags (comma-separated)")
NAME_OPTION = typer.Option(None, "--name", "-n", help="Filter monitors by name pattern")
MESSAGE_OPTION = typer.Option(None, "--message", help="Filter monitors by message pattern")
DRY_RUN_OPTION = typer.Option(False, "--dry-run", "-d", help="Dry run mode (no actual changes)")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Show unchanged monitors and why")
YES_OPTION = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (defaults to LOG_LEVEL or INFO)"),
) -> None:
    """Migrate Datadog monitors from PagerDuty/Opsgenie to incident.io webhooks."""
    try:
        setup_logging(log_level or get_settings().log_level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level") from e


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def _fail(error: Exception) -> NoReturn:
    typer.secho(f"\nError: {error}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _load_config(config_path: str, create: bool = False) -> MigrationConfig:
    loader = MigrationConfigLoader(config_path, fallback_token=get_settings().incidentio_webhook_token)
    return loader.load(create=create)


def _create_client(api_key: Optional[str], app_key: Optional[str]) -> DatadogClient:
    return DatadogClient.from_settings(get_settings(), api_key=api_key, app_key=app_key)


def _build_filter(tags: Optional[str], name: Optional[str], message: Optional[str]) -> Optional[MonitorFilter]:
    try:
        return parse_filter_options(tags, name, message)
    except re.error as e:
        raise typer.BadParameter(f"Invalid filter pattern: {e}") from e


async def _fetch_monitors(client: DatadogClient) -> list:
    async with client:
        return await client.list_monitors()


def _display_results(result: MigrationResult, operation: str, dry_run: bool, verbose: bool) -> None:
    typer.secho("\nResults:", bold=True)
    typer.echo(f"Processed: {result.processed}")
    typer.secho(f"Updated: {result.updated}", fg=typer.colors.GREEN)
    typer.secho(f"Unchanged: {result.unchanged}", fg=typer.colors.YELLOW)
    if result.failed:
        typer.secho(f"Failed: {result.failed}", fg=typer.colors.RED)

    if result.changes:
        typer.secho("\nChanges:", bold=True)
    for change in result.changes:
        if change.before != change.after or change.tags_after is not None:
            typer.secho(f"\nMonitor #{change.id}: {change.name}", bold=True)
            if change.before != change.after:
                typer.secho("Before:", fg=typer.colors.YELLOW)
                before = change.before if operation == "add" else format_message_diff(change.before, change.after, operation)
                typer.echo(f"  {before}")
                typer.secho("After:", fg=typer.colors.GREEN)
                after = format_message_diff(change.before, change.after, operation) if operation == "add" else change.after
                typer.echo(f"  {after}")
            if change.added_tags:
                typer.secho("Added Tags:", fg=typer.colors.GREEN)
                typer.echo(f"  {', '.join(change.added_tags)}")
        elif verbose and change.reason:
            typer.secho(f"\nMonitor #{change.id}: {change.name}", bold=True)
            typer.secho(f"  [Unchanged - {change.reason}]", dim=True)
            typer.echo(f"  {change.before}")

    if result.errors:
        typer.secho(f"\nErrors ({len(result.errors)}):", fg=typer.colors.RED)
        for error in result.errors:
            typer.secho(f"  - Monitor ID {error.id}: {error.error}", fg=typer.colors.RED)

    if dry_run:
        typer.secho("\nThis was a dry run. No changes were made.", fg=typer.colors.CYAN)
        typer.secho("Run again without --dry-run to apply changes.", fg=typer.colors.CYAN)


def _display_validation(result: MigrationResult) -> None:
    report = result.validation_results
    if report is None or report.valid:
        return
    typer.secho("\nMapping validation found problems (dry run continues):", fg=typer.colors.YELLOW)
    if report.unmapped_services:
        typer.secho(f"  Unmapped services: {', '.join(report.unmapped_services)}", fg=typer.colors.YELLOW)
    if report.team_required and report.null_mappings:
        typer.secho(f"  Services without team: {', '.join(report.null_mappings)}", fg=typer.colors.YELLOW)
    for line in report.describe_invalid_team_names():
        typer.secho(f"  Invalid team name: {line}", fg=typer.colors.YELLOW)


def _run_migration(
    migration_type: MigrationType,
    config: MigrationConfig,
    api_key: Optional[str],
    app_key: Optional[str],
    monitor_filter: Optional[MonitorFilter],
    dry_run: bool,
    verbose: bool,
) -> MigrationResult:
    async def _migrate() -> MigrationResult:
        async with _create_client(api_key, app_key) as client:
            service = MigrationService(client, config.destination, config.mappings)
            options = MigrationOptions(dry_run=dry_run, verbose=verbose, filter=monitor_filter)
            return await service.migrate_monitors(migration_type, options)

    logger.debug(f"Using dry run mode: {'YES' if dry_run else 'NO'}")
    return asyncio.run(_migrate())


# ----------------------------------------------------------------------
# Migration commands
# ----------------------------------------------------------------------

@app.command("add-incidentio")
def add_incidentio(
    config: str = CONFIG_OPTION,
    api_key: Optional[str] = API_KEY_OPTION,
    app_key: Optional[str] = APP_KEY_OPTION,
    tags: Optional[str] = TAGS_OPTION,
    name: Optional[str] = NAME_OPTION,
    message: Optional[str] = MESSAGE_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    verbose: bool = VERBOSE_OPTION,
    yes: bool = YES_OPTION,
) -> None:
    """Add incident.io webhooks to monitors that use PagerDuty or Opsgenie."""
    monitor_filter = _build_filter(tags, name, message)
    try:
        migration_config = _load_config(config)
        destination = migration_config.destination
        provider_name = migration_config.provider.display_name

        if not dry_run and not yes:
            if isinstance(destination, SingleWebhookConfig):
                webhook_type = "a single incident.io webhook (@webhook-incident-io)"
                tag_note = (
                    f" and add team tags ({destination.team_tag_prefix}:team-name)"
                    if destination.add_team_tags else ""
                )
            else:
                webhook_type = "team-specific incident.io webhooks (@webhook-incident-io-team)"
                tag_note = ""
            typer.confirm(
                f"This will add {webhook_type}{tag_note} to monitors with {provider_name} services. Continue?",
                abort=True,
            )

        result = _run_migration(
            MigrationType.ADD_INCIDENTIO_WEBHOOK, migration_config, api_key, app_key,
            monitor_filter, dry_run, verbose,
        )
    except (ConfigurationError, DatadogError) as e:
        _fail(e)

    _display_validation(result)
    _display_results(result, "add", dry_run, verbose)


@app.command("remove-incidentio")
def remove_incidentio(
    config: str = CONFIG_OPTION,
    api_key: Optional[str] = API_KEY_OPTION,
    app_key: Optional[str] = APP_KEY_OPTION,
    tags: Optional[str] = TAGS_OPTION,
    name: Optional[str] = NAME_OPTION,
    message: Optional[str] = MESSAGE_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    verbose: bool = VERBOSE_OPTION,
    yes: bool = YES_OPTION,
) -> None:
    """Remove incident.io webhooks from monitors."""
    monitor_filter = _build_filter(tags, name, message)
    try:
        migration_config = _load_config(config)
        if not dry_run and not yes:
            typer.confirm("This will remove all incident.io webhooks from the selected monitors. Continue?", abort=True)

        result = _run_migration(
            MigrationType.REMOVE_INCIDENTIO_WEBHOOK, migration_config, api_key, app_key,
            monitor_filter, dry_run, verbose,
        )
    except (ConfigurationError, DatadogError) as e:
        _fail(e)

    _display_results(result, "remove", dry_run, verbose)


@app.command("remove-provider")
def remove_provider(
    config: str = CONFIG_OPTION,
    api_key: Optional[str] = API_KEY_OPTION,
    app_key: Optional[str] = APP_KEY_OPTION,
    tags: Optional[str] = TAGS_OPTION,
    name: Optional[str] = NAME_OPTION,
    message: Optional[str] = MESSAGE_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    verbose: bool = VERBOSE_OPTION,
    yes: bool = YES_OPTION,
) -> None:
    """Remove PagerDuty or Opsgenie service mentions from monitors."""
    monitor_filter = _build_filter(tags, name, message)
    try:
        migration_config = _load_config(config)
        provider_name = migration_config.provider.display_name

        if not dry_run and not yes:
            typer.secho("\nWARNING: This is a destructive operation", fg=typer.colors.YELLOW)
            typer.secho(f"This will remove all {provider_name} service mentions from your monitors.", fg=typer.colors.YELLOW)
            typer.secho("This action cannot be automatically undone.\n", fg=typer.colors.YELLOW)
            if typer.prompt("Type CONFIRM to proceed") != "CONFIRM":
                typer.secho("Operation cancelled.", fg=typer.colors.YELLOW)
                raise typer.Exit(code=0)

        result = _run_migration(
            MigrationType.REMOVE_PROVIDER, migration_config, api_key, app_key,
            monitor_filter, dry_run, verbose,
        )
    except (ConfigurationError, DatadogError) as e:
        _fail(e)

    _display_results(result, "remove", dry_run, verbose)


# ----------------------------------------------------------------------
# Setup and analysis commands
# ----------------------------------------------------------------------

def _display_stats(stats: MonitorStats) -> None:
    provider_name = stats.provider.display_name
    typer.secho("\nMonitor Analysis Summary", bold=True)
    typer.echo(f"Total Monitors: {stats.total}")
    typer.secho(
        f"Using {provider_name}: {stats.provider_count} ({stats.percentage(stats.provider_count)})",
        fg=typer.colors.BLUE,
    )
    typer.secho(
        f"Using incident.io: {stats.destination_count} ({stats.percentage(stats.destination_count)})",
        fg=typer.colors.GREEN,
    )
    typer.secho(f"Using Both: {stats.both} ({stats.percentage(stats.both)})", fg=typer.colors.YELLOW)
    typer.echo(f"Using Neither: {stats.neither} ({stats.percentage(stats.neither)})")

    if stats.services:
        typer.secho(f"\n{provider_name} Services:", bold=True)
        for service, count in stats.services_by_usage():
            typer.echo(f"  {service}: {count} monitors ({stats.percentage(count)})")

    if stats.webhooks:
        typer.secho("\nincident.io Webhooks:", bold=True)
        for webhook, count in stats.webhooks_by_usage():
            typer.echo(f"  {webhook}: {count} monitors ({stats.percentage(count)})")


def _display_coverage(stats: MonitorStats, mapping_table: MappingTable) -> None:
    provider_name = stats.provider.display_name
    coverage = check_mapping_coverage(stats, mapping_table)

    typer.secho("\nMapping Validation:", bold=True)
    if coverage.complete:
        typer.secho(f"  All {provider_name} services have complete mappings", fg=typer.colors.GREEN)
        return

    if coverage.unmapped_services:
        typer.secho(
            f"  {len(coverage.unmapped_services)} {provider_name} services lack mappings:",
            fg=typer.colors.RED,
        )
        for service, count in coverage.unmapped_services.items():
            typer.secho(f"    - {service} (used in {count} monitors)", fg=typer.colors.RED)

        key = "opsgenieService" if stats.provider is Provider.OPSGENIE else "pagerdutyService"
        example = [{key: service, "incidentioTeam": None} for service in coverage.unmapped_services]
        typer.secho("\nCreate mappings for these services:", fg=typer.colors.CYAN)
        typer.echo("  ferry generate-mappings --config <your-config>")
        typer.echo("or add these to your existing mappings:")
        typer.echo(json.dumps(example, indent=2))

    if coverage.null_mappings:
        typer.secho(
            f"  {len(coverage.null_mappings)} {provider_name} services are found in the config "
            f"but don't have teams assigned:",
            fg=typer.colors.YELLOW,
        )
        for service, count in coverage.null_mappings.items():
            typer.secho(f"    - {service} (used in {count} monitors)", fg=typer.colors.YELLOW)
        typer.secho(
            "\nPlease assign incident.io teams to these services in your config "
            "using an alias from Catalog in incident.io.",
            fg=typer.colors.CYAN,
        )


def _display_monitor_groups(stats: MonitorStats, monitors: list) -> None:
    by_id = {monitor.id: monitor for monitor in monitors}
    provider_name = stats.provider.display_name
    groups = [
        (f"Monitors using {provider_name} only:", stats.provider_only_ids),
        ("Monitors using incident.io only:", stats.destination_only_ids),
        (f"Monitors using both {provider_name} and incident.io:", stats.both_ids),
        (f"Monitors using neither {provider_name} nor incident.io:", stats.neither_ids),
    ]

    typer.secho("\nMonitor Details:", bold=True)
    for title, ids in groups:
        if not ids:
            continue
        typer.secho(f"\n{title}", bold=True)
        for monitor_id in ids:
            monitor: Monitor = by_id[monitor_id]
            typer.echo(f"  #{monitor.id}: {monitor.name}")
            typer.echo(f"    Tags: {', '.join(monitor.tags) if monitor.tags else 'No tags'}")


@app.command("analyze")
def analyze(
    config: str = CONFIG_OPTION,
    api_key: Optional[str] = API_KEY_OPTION,
    app_key: Optional[str] = APP_KEY_OPTION,
    tags: Optional[str] = TAGS_OPTION,
    name: Optional[str] = NAME_OPTION,
    message: Optional[str] = MESSAGE_OPTION,
    show_monitors: bool = typer.Option(False, "--show-monitors", help="Show detailed list of monitors"),
) -> None:
    """Analyze Datadog monitors and validate the mapping configuration."""
    monitor_filter = _build_filter(tags, name, message)
    try:
        migration_config = _load_config(config)
        monitors = asyncio.run(_fetch_monitors(_create_client(api_key, app_key)))
    except (ConfigurationError, DatadogError) as e:
        _fail(e)

    selected = filter_monitors(monitors, monitor_filter)
    stats = analyze_monitors(selected, migration_config.provider)

    _display_stats(stats)
    _display_coverage(stats, MappingTable(migration_config.mappings, migration_config.provider))
    if show_monitors:
        _display_monitor_groups(stats, selected)


@app.command("generate-mappings")
def generate_mappings(
    config: str = typer.Option(
        ..., "--config", "-c", help="Path to config file (created if it doesn't exist)"
    ),
    api_key: Optional[str] = API_KEY_OPTION,
    app_key: Optional[str] = APP_KEY_OPTION,
    tags: Optional[str] = TAGS_OPTION,
    name: Optional[str] = NAME_OPTION,
    message: Optional[str] = MESSAGE_OPTION,
) -> None:
    """Add placeholder mappings for every detected PagerDuty/Opsgenie service."""
    monitor_filter = _build_filter(tags, name, message)
    try:
        migration_config = _load_config(config, create=True)
        typer.secho(f"Loaded configuration from {config}", fg=typer.colors.BLUE)

        monitors = asyncio.run(_fetch_monitors(_create_client(api_key, app_key)))
        provider = migration_config.provider
        detected = detect_services(filter_monitors(monitors, monitor_filter), provider)
        typer.echo(f"Detected {len(detected)} {provider.display_name} services")

        merged = merge_detected_services(migration_config.mappings, detected, provider)
        save_mappings(config, merged.mappings)
    except (ConfigurationError, DatadogError) as e:
        _fail(e)

    typer.secho(f"\nMappings updated in config file: {config}", fg=typer.colors.GREEN)
    typer.echo(f"Total services: {len(merged.detected)}")
    typer.echo(f"New entries: {len(merged.added)}")
    typer.echo(f"Existing entries: {len(merged.mappings) - len(merged.added)}")
    if merged.added:
        typer.secho(
            "\nPlease edit the file to fill in the incidentioTeam values before migrating.",
            fg=typer.colors.YELLOW,
        )


@app.command("init-config")
def init_config(
    path: str = typer.Option("./config.yaml", "--path", "-p", help="Path to save the config file"),
    webhook_per_team: bool = typer.Option(
        False, "--webhook-per-team/--single-webhook",
        help="Create one incident.io webhook per team instead of a shared one",
    ),
    webhook_url: Optional[str] = typer.Option(None, "--webhook-url", help="incident.io alert source URL"),
    webhook_token: Optional[str] = typer.Option(
        None, "--webhook-token",
        help="incident.io alert source token (prefer INCIDENTIO_WEBHOOK_TOKEN)",
    ),
    add_team_tags: bool = typer.Option(False, "--add-team-tags", help="Tag monitors with their team"),
    team_tag_prefix: str = typer.Option("team", "--team-tag-prefix", help="Prefix of team tags"),
    source: Provider = typer.Option(Provider.PAGERDUTY, "--source", help="Provider to migrate from"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file without asking"),
) -> None:
    """Initialize a new configuration file."""
    config_path = Path(path).expanduser().resolve()
    if config_path.exists() and not force:
        if not typer.confirm(f"File {path} already exists. Overwrite?", default=False):
            typer.secho("Operation cancelled.", fg=typer.colors.YELLOW)
            raise typer.Exit(code=0)

    data = create_default_config()
    data["incidentioConfig"].update({
        "webhookPerTeam": webhook_per_team,
        "webhookUrl": webhook_url,
        "webhookToken": webhook_token,
        "addTeamTags": add_team_tags and not webhook_per_team,
        "teamTagPrefix": team_tag_prefix,
        "source": Provider(source).value,
    })

    try:
        write_config_file(config_path, data)
    except OSError as e:
        _fail(ConfigurationError(f"Failed to write config file {config_path}: {e}"))

    typer.secho(f"Configuration saved to {config_path}", fg=typer.colors.GREEN)
    if not webhook_token:
        typer.echo("Set INCIDENTIO_WEBHOOK_TOKEN in your environment or .env file before adding webhooks.")
    typer.echo("Next: run 'ferry generate-mappings' to detect services and fill in incidentioTeam values.")


if __name__ == "__main__":
    app()
