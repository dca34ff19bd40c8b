"""
Monitor analysis.

Read-only counterpart of the migration engine: reports how the selected
monitors are routed today and how well the configured mappings cover
the provider services they reference.
"""

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ferry.models.mapping import MappingTable
from ferry.models.monitor import Monitor
from ferry.utils.logger import get_module_logger
from ferry.utils.markers import MarkedMessage, Provider

logger = get_module_logger(__name__)


class MonitorStats(BaseModel):
    """Routing statistics for a set of monitors."""

    provider: Provider
    total: int = 0
    provider_count: int = Field(default=0, description="Monitors mentioning at least one provider service")
    destination_count: int = Field(default=0, description="Monitors with at least one incident.io webhook")
    both: int = 0
    neither: int = 0
    services: Dict[str, int] = Field(
        default_factory=dict,
        description="Provider service -> number of mentions"
    )
    webhooks: Dict[str, int] = Field(
        default_factory=dict,
        description="incident.io webhook marker -> number of mentions"
    )
    provider_only_ids: List[int] = Field(default_factory=list)
    destination_only_ids: List[int] = Field(default_factory=list)
    both_ids: List[int] = Field(default_factory=list)
    neither_ids: List[int] = Field(default_factory=list)

    def percentage(self, count: int) -> str:
        if not self.total:
            return "0.0%"
        return f"{count / self.total * 100:.1f}%"

    def services_by_usage(self) -> List[tuple]:
        """``(service, count)`` pairs, most used first."""
        return sorted(self.services.items(), key=lambda item: item[1], reverse=True)

    def webhooks_by_usage(self) -> List[tuple]:
        return sorted(self.webhooks.items(), key=lambda item: item[1], reverse=True)


class MappingCoverage(BaseModel):
    """How the configured mappings cover the services seen in the monitors."""

    unmapped_services: Dict[str, int] = Field(
        default_factory=dict,
        description="Services without a mapping entry -> mentions"
    )
    null_mappings: Dict[str, int] = Field(
        default_factory=dict,
        description="Services mapped without a team -> mentions"
    )

    @property
    def complete(self) -> bool:
        return not self.unmapped_services and not self.null_mappings


def analyze_monitors(monitors: Iterable[Monitor], provider: Provider = Provider.PAGERDUTY) -> MonitorStats:
    """
    Count provider and incident.io usage across monitors.

    Args:
        monitors: Monitors to analyze (already filtered)
        provider: Provider whose markers are counted

    Returns:
        MonitorStats for the monitor set
    """
    stats = MonitorStats(provider=Provider(provider))

    for monitor in monitors:
        stats.total += 1
        marked = MarkedMessage.parse(monitor.message, stats.provider)
        services = marked.provider_services
        webhooks = marked.destination_markers

        for service in services:
            stats.services[service] = stats.services.get(service, 0) + 1
        for webhook in webhooks:
            stats.webhooks[webhook] = stats.webhooks.get(webhook, 0) + 1

        if services:
            stats.provider_count += 1
        if webhooks:
            stats.destination_count += 1

        if services and webhooks:
            stats.both += 1
            stats.both_ids.append(monitor.id)
        elif services:
            stats.provider_only_ids.append(monitor.id)
        elif webhooks:
            stats.destination_only_ids.append(monitor.id)
        else:
            stats.neither += 1
            stats.neither_ids.append(monitor.id)

    logger.debug(
        f"Analyzed {stats.total} monitors: {stats.provider_count} use {stats.provider.display_name}, "
        f"{stats.destination_count} use incident.io"
    )
    return stats


def check_mapping_coverage(stats: MonitorStats, mapping_table: Optional[MappingTable]) -> MappingCoverage:
    """
    Compare detected services with the mapping table.

    Args:
        stats: Result of ``analyze_monitors``
        mapping_table: Mappings for ``stats.provider``; None means no mappings

    Returns:
        MappingCoverage listing unmapped and team-less services
    """
    coverage = MappingCoverage()
    for service, count in stats.services.items():
        mapping = mapping_table.lookup(service) if mapping_table is not None else None
        if mapping is None:
            coverage.unmapped_services[service] = count
        elif not mapping.has_team:
            coverage.null_mappings[service] = count
    return coverage
