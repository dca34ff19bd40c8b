"""
Pre-flight validation of service mappings.

Adding incident.io webhooks is all-or-nothing: before any monitor is
touched, every provider service referenced by the selected monitors is
checked against the configured mappings. Real runs abort on blocking
findings; dry runs only report them.
"""

import re
from typing import Dict, Iterable, List

from ferry.config.exceptions import ConfigurationError
from ferry.models.destination import DestinationConfig, PerTeamWebhookConfig
from ferry.models.mapping import MappingTable
from ferry.models.migration import ValidationReport
from ferry.models.monitor import Monitor
from ferry.utils.logger import get_module_logger
from ferry.utils.markers import find_provider_markers

logger = get_module_logger(__name__)

VALID_TEAM_NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")


class MappingValidationError(ConfigurationError):
    """Monitors reference services that cannot be migrated with the current mappings."""

    def __init__(self, message: str, report: ValidationReport):
        super().__init__(message)
        self.report = report


class MappingValidator:
    """Classifies referenced provider services against a mapping table."""

    def __init__(self, mapping_table: MappingTable, destination: DestinationConfig):
        self.mapping_table = mapping_table
        self.destination = destination

    def referenced_services(self, monitors: Iterable[Monitor]) -> List[str]:
        """Distinct provider services mentioned across ``monitors``, in first-seen order."""
        seen: Dict[str, None] = {}
        for monitor in monitors:
            for service in find_provider_markers(monitor.message, self.mapping_table.provider):
                seen.setdefault(service, None)
        return list(seen)

    def validate(self, monitors: Iterable[Monitor]) -> ValidationReport:
        """
        Classify every referenced service as mapped, unmapped or null-mapped.

        Team names are checked against ``^[a-z0-9-]+$`` only when team
        identity is required (team-specific webhooks, or team tags).

        Args:
            monitors: The filtered monitors of this run

        Returns:
            ValidationReport for the whole monitor set
        """
        team_required = self.destination.requires_team
        report = ValidationReport(team_required=team_required)

        for service in self.referenced_services(monitors):
            report.referenced_services.append(service)
            mapping = self.mapping_table.lookup(service)
            if mapping is None:
                report.unmapped_services.append(service)
            elif not mapping.has_team:
                report.null_mappings.append(service)
            else:
                report.mapped_services.append(service)
                team = mapping.incidentio_team
                if team_required and not VALID_TEAM_NAME_PATTERN.match(team):
                    report.invalid_team_names[service] = team

        logger.debug(
            f"Mapping validation: {len(report.referenced_services)} services, "
            f"{len(report.unmapped_services)} unmapped, {len(report.null_mappings)} without team, "
            f"{len(report.invalid_team_names)} invalid team names"
        )
        return report

    def raise_for_blocking_findings(self, report: ValidationReport) -> None:
        """
        Raise if the report blocks a real (non dry-run) migration.

        Raises:
            MappingValidationError: With an explanation of what to fix
        """
        if report.valid:
            return

        provider_name = self.mapping_table.provider.display_name

        if report.unmapped_services:
            raise MappingValidationError(
                f"Missing mappings for {provider_name} services: {', '.join(report.unmapped_services)}\n\n"
                f"Please add these services to your config file before migrating.",
                report,
            )

        context = (
            "When using team-specific webhooks"
            if isinstance(self.destination, PerTeamWebhookConfig)
            else "When adding team tags based on mappings"
        )

        if report.null_mappings:
            raise MappingValidationError(
                f"{context}, all {provider_name} services must have team assignments.\n"
                f"Missing team assignments for: {', '.join(report.null_mappings)}\n\n"
                f"Please edit your config file to assign incident.io teams to these "
                f"{provider_name} services before migrating.\n",
                report,
            )

        invalid = "\n".join(report.describe_invalid_team_names())
        raise MappingValidationError(
            f"{context}, team names must be in a valid format (lowercase alphanumeric with hyphens).\n"
            f"Invalid team names for services:\n{invalid}\n\n"
            f"Please edit your config file to use valid team names for these {provider_name} services.\n",
            report,
        )
