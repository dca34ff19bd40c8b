"""
Migration Service

Reconciles the notification markers of Datadog monitors with the
desired incident.io setup. For every monitor the service computes the
new message (and tags) fully in memory, then applies it with a single
Datadog update call. Monitors are processed one at a time, in the order
Datadog lists them.

Supported operations:
- add incident.io webhooks next to PagerDuty/Opsgenie services
- remove incident.io webhooks
- remove PagerDuty/Opsgenie service mentions
"""

from typing import Dict, List, Optional, Sequence

from ferry.integrations.datadog.client import DatadogClient
from ferry.integrations.datadog.exceptions import DatadogError
from ferry.models.destination import DestinationConfig, SingleWebhookConfig
from ferry.models.mapping import MappingTable, ServiceMapping
from ferry.models.migration import (
    MigrationOptions,
    MigrationResult,
    MigrationType,
    MonitorChange,
    MonitorError,
    MonitorOutcome,
    OutcomeStatus,
)
from ferry.models.monitor import Monitor, MonitorUpdate
from ferry.services.mapping_validator import MappingValidator
from ferry.services.webhook_provisioner import WebhookProvisioner
from ferry.utils.logger import get_module_logger
from ferry.utils.markers import (
    MarkedMessage,
    SegmentKind,
    marker_for_webhook,
    webhook_name_for_team,
)
from ferry.utils.monitor_filter import filter_monitors

logger = get_module_logger(__name__)


class MigrationService:
    """
    Reconciliation engine for monitor notification markers.

    The service itself is stateless between runs: everything a run
    accumulates (such as the set of webhooks already provisioned) lives
    in objects created by ``reconcile`` and discarded afterwards.
    """

    def __init__(
        self,
        client: DatadogClient,
        destination: DestinationConfig,
        mappings: Sequence[ServiceMapping] = (),
    ):
        """
        Initialize the migration service.

        Args:
            client: Datadog API client
            destination: incident.io destination configuration
            mappings: Service-to-team mappings from the config file
        """
        self.client = client
        self.destination = destination
        self.provider = destination.source
        self.mapping_table = MappingTable(mappings, self.provider)
        self.validator = MappingValidator(self.mapping_table, destination)

    async def migrate_monitors(self, migration_type: MigrationType, options: MigrationOptions) -> MigrationResult:
        """
        Fetch all monitors from Datadog and reconcile them.

        Raises:
            DatadogConnectivityError: If the monitor list cannot be fetched
            MappingValidationError: If adding webhooks is blocked by missing mappings
        """
        monitors = await self.client.list_monitors()
        return await self.reconcile(monitors, migration_type, options)

    async def reconcile(
        self,
        monitors: Sequence[Monitor],
        migration_type: MigrationType,
        options: MigrationOptions,
    ) -> MigrationResult:
        """
        Reconcile a list of monitors for one operation.

        Args:
            monitors: Monitors as listed by Datadog
            migration_type: Operation to apply
            options: Dry-run, verbosity and pre-filter

        Returns:
            MigrationResult with counts, change records and per-monitor errors

        Raises:
            MappingValidationError: If adding webhooks in a real run would
                leave some services without a valid mapping
        """
        migration_type = MigrationType(migration_type)
        selected = filter_monitors(monitors, options.filter) if options.filter else list(monitors)
        logger.info(
            f"Reconciling {len(selected)} of {len(monitors)} monitors "
            f"({migration_type.value}, dry_run={options.dry_run})"
        )

        result = MigrationResult()

        if migration_type == MigrationType.ADD_INCIDENTIO_WEBHOOK:
            report = self.validator.validate(selected)
            result.validation_results = report
            if not report.valid and not options.dry_run:
                self.validator.raise_for_blocking_findings(report)

        provisioner = WebhookProvisioner(self.client, self.destination, dry_run=options.dry_run)

        for monitor in selected:
            try:
                outcome = await self.process_monitor(monitor, migration_type, options.dry_run, provisioner)
            except Exception as e:
                logger.error(f"Unexpected error processing monitor {monitor.id}: {e}", exc_info=True)
                result.errors.append(MonitorError(id=monitor.id, error=str(e) or type(e).__name__))
                continue

            self._record(result, monitor, outcome, options.verbose)

        logger.info(
            f"Processed {result.processed} monitors: {result.updated} updated, "
            f"{result.unchanged} unchanged, {result.failed} failed"
        )
        return result

    def _record(self, result: MigrationResult, monitor: Monitor, outcome: MonitorOutcome, verbose: bool) -> None:
        result.processed += 1

        if outcome.updated:
            result.updated += 1
            result.changes.append(MonitorChange(
                id=monitor.id,
                name=monitor.name,
                status=outcome.status,
                before=monitor.message,
                after=outcome.message,
                tags_before=outcome.tags_before,
                tags_after=outcome.tags_after,
            ))
            return

        result.unchanged += 1
        if outcome.status == OutcomeStatus.UPDATE_FAILED:
            result.failed += 1
            result.errors.append(MonitorError(id=monitor.id, error=outcome.error or outcome.reason or "Update failed"))

        if verbose:
            result.changes.append(MonitorChange(
                id=monitor.id,
                name=monitor.name,
                status=outcome.status,
                before=monitor.message,
                after=monitor.message,
                reason=outcome.reason,
            ))

    async def process_monitor(
        self,
        monitor: Monitor,
        migration_type: MigrationType,
        dry_run: bool = False,
        provisioner: Optional[WebhookProvisioner] = None,
    ) -> MonitorOutcome:
        """
        Compute and apply the change for a single monitor.

        Args:
            monitor: Monitor to reconcile
            migration_type: Operation to apply
            dry_run: Compute only, never call Datadog
            provisioner: Run-scoped provisioner; a fresh one is used if omitted

        Returns:
            MonitorOutcome for this monitor
        """
        if provisioner is None:
            provisioner = WebhookProvisioner(self.client, self.destination, dry_run=dry_run)

        logger.debug(f"Process monitor {monitor.id} with dry_run={dry_run}")
        logger.debug(f'Monitor message: "{monitor.message}"')

        if migration_type == MigrationType.ADD_INCIDENTIO_WEBHOOK:
            outcome = await self._plan_add_webhooks(monitor, provisioner)
        elif migration_type == MigrationType.REMOVE_INCIDENTIO_WEBHOOK:
            outcome = self._plan_remove_webhooks(monitor)
        elif migration_type == MigrationType.REMOVE_PROVIDER:
            outcome = self._plan_remove_provider(monitor)
        else:
            raise ValueError(f"Unsupported migration type: {migration_type}")

        if not outcome.updated:
            return outcome
        if dry_run:
            logger.debug(f"Skipping update of monitor {monitor.id} (dry run mode)")
            return outcome
        return await self._commit(monitor, outcome)

    # ------------------------------------------------------------------
    # Planning: pure computations of the desired message and tags
    # ------------------------------------------------------------------

    def _unchanged(
        self,
        monitor: Monitor,
        reason: str,
        tags_before: Optional[List[str]] = None,
        error: Optional[str] = None,
    ) -> MonitorOutcome:
        return MonitorOutcome(
            monitor_id=monitor.id,
            status=OutcomeStatus.UNCHANGED,
            message=monitor.message,
            tags_before=tags_before,
            reason=reason,
            error=error,
        )

    async def _plan_add_webhooks(self, monitor: Monitor, provisioner: WebhookProvisioner) -> MonitorOutcome:
        marked = MarkedMessage.parse(monitor.message, self.provider)
        services = marked.provider_services
        logger.debug(f"Found {self.provider.display_name} services in monitor {monitor.id}: {services}")

        if not services:
            return self._unchanged(monitor, f"No {self.provider.display_name} services found")

        existing = marked.destination_markers
        logger.debug(f"Found existing webhooks in monitor {monitor.id}: {existing}")

        if isinstance(self.destination, SingleWebhookConfig):
            return await self._plan_single_webhook(monitor, marked, services, existing, provisioner)
        return await self._plan_team_webhooks(monitor, marked, services, existing, provisioner)

    async def _plan_single_webhook(
        self,
        monitor: Monitor,
        marked: MarkedMessage,
        services: List[str],
        existing: List[str],
        provisioner: WebhookProvisioner,
    ) -> MonitorOutcome:
        webhook_name = webhook_name_for_team()
        marker = marker_for_webhook(webhook_name)

        if not await provisioner.ensure_exists(webhook_name):
            return self._unchanged(monitor, "Failed to create required webhook", error=provisioner.last_failure)

        tags_before: Optional[List[str]] = None
        tags_after: Optional[List[str]] = None
        if self.destination.add_team_tags:
            tags_before = list(monitor.tags)
            new_tags = self._annotated_tags(monitor, services)
            if new_tags != tags_before:
                tags_after = new_tags

        if existing == [marker]:
            if tags_after is None:
                return self._unchanged(monitor, "Already has correct incident.io webhook", tags_before)
            new_message = monitor.message
        else:
            logger.debug(f"Adding default webhook {marker} to monitor {monitor.id}")
            new_message = marked.without(SegmentKind.DESTINATION).with_markers([marker]).render()

        return MonitorOutcome(
            monitor_id=monitor.id,
            status=OutcomeStatus.UPDATED,
            message=new_message,
            tags_before=tags_before,
            tags_after=tags_after,
        )

    def _annotated_tags(self, monitor: Monitor, services: List[str]) -> List[str]:
        """
        Monitor tags plus metadata tags for every mapped service, and a team
        tag for each of those mappings that names a team.
        """
        tags = list(monitor.tags)
        for service in services:
            mapping = self.mapping_table.lookup(service)
            if mapping is None:
                continue
            candidates = [self.destination.team_tag(mapping.incidentio_team)] if mapping.has_team else []
            candidates.extend(f"{key}:{value}" for key, value in mapping.additional_metadata.items())
            for tag in candidates:
                if tag not in tags:
                    logger.debug(f"Adding tag {tag} to monitor {monitor.id}")
                    tags.append(tag)
        return tags

    async def _plan_team_webhooks(
        self,
        monitor: Monitor,
        marked: MarkedMessage,
        services: List[str],
        existing: List[str],
        provisioner: WebhookProvisioner,
    ) -> MonitorOutcome:
        logger.debug(f"Using team-specific webhooks for monitor {monitor.id}")

        # Ordered set: one marker per distinct team
        expected: Dict[str, None] = {}
        for service in dict.fromkeys(services):
            team = self.mapping_table.team_for(service)
            webhook_name = webhook_name_for_team(team)
            metadata = self.mapping_table.metadata_for(service)

            if not await provisioner.ensure_exists(webhook_name, team, metadata):
                return self._unchanged(
                    monitor,
                    f"Failed to create required webhook for team {team or 'unknown'}",
                    error=provisioner.last_failure,
                )

            expected.setdefault(marker_for_webhook(webhook_name), None)

        logger.debug(f"Expected webhooks for monitor {monitor.id}: {', '.join(expected)}")

        has_duplicates = len(existing) != len(set(existing))
        if set(existing) == set(expected) and not has_duplicates:
            logger.debug(f"Monitor {monitor.id} already has all correct incident.io webhooks")
            return self._unchanged(monitor, "Already has all correct incident.io webhooks")

        new_message = marked.without(SegmentKind.DESTINATION).with_markers(list(expected)).render()
        return MonitorOutcome(
            monitor_id=monitor.id,
            status=OutcomeStatus.UPDATED,
            message=new_message,
        )

    def _plan_remove_webhooks(self, monitor: Monitor) -> MonitorOutcome:
        marked = MarkedMessage.parse(monitor.message, self.provider)
        if not marked.destination_markers:
            return self._unchanged(monitor, "No incident.io webhooks found")

        return MonitorOutcome(
            monitor_id=monitor.id,
            status=OutcomeStatus.UPDATED,
            message=marked.without(SegmentKind.DESTINATION).render(),
        )

    def _plan_remove_provider(self, monitor: Monitor) -> MonitorOutcome:
        marked = MarkedMessage.parse(monitor.message, self.provider)
        if not marked.provider_services:
            return self._unchanged(monitor, f"No {self.provider.display_name} services found")

        return MonitorOutcome(
            monitor_id=monitor.id,
            status=OutcomeStatus.UPDATED,
            message=marked.without(SegmentKind.PROVIDER).render(),
        )

    # ------------------------------------------------------------------
    # Commit: the only point where a monitor is changed remotely
    # ------------------------------------------------------------------

    async def _commit(self, monitor: Monitor, outcome: MonitorOutcome) -> MonitorOutcome:
        update = MonitorUpdate(message=outcome.message, tags=outcome.tags_after)
        descriptor = "message and tags" if outcome.tags_changed else "message"
        logger.debug(f"Updating monitor {monitor.id} {descriptor}")

        try:
            updated_monitor = await self.client.update_monitor(monitor.id, update)
        except DatadogError as e:
            logger.error(f"Failed to update monitor {monitor.id}: {e}")
            return outcome.model_copy(update={
                "status": OutcomeStatus.UPDATE_FAILED,
                "reason": f"API update failed: {e}",
                "error": str(e),
            })

        logger.info(f"Successfully updated monitor {updated_monitor.id} ({monitor.name}) - {descriptor}")
        return outcome
