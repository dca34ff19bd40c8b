"""
Unit tests for monitor analysis and mapping coverage.
"""

import pytest

from ferry.models.mapping import MappingTable
from ferry.services.analysis_service import MonitorStats, analyze_monitors, check_mapping_coverage
from ferry.utils.markers import Provider
from tests.utils import MappingFactory, MonitorFactory


@pytest.mark.unit
class TestAnalyzeMonitors:
    """Test routing statistics."""

    def test_groups_sample_monitors(self, sample_monitors) -> None:
        stats = analyze_monitors(sample_monitors)

        assert stats.total == 4
        assert stats.provider_count == 2
        assert stats.destination_count == 2
        assert stats.both == 1
        assert stats.neither == 1
        assert stats.provider_only_ids == [1]
        assert stats.both_ids == [2]
        assert stats.destination_only_ids == [3]
        assert stats.neither_ids == [4]

    def test_counts_every_mention(self) -> None:
        monitors = [
            MonitorFactory.create(message="{{#is_alert}}@pagerduty-db{{/is_alert}} {{#is_warning}}@pagerduty-db{{/is_warning}}"),
            MonitorFactory.create(message="@pagerduty-db @pagerduty-api @webhook-incident-io"),
        ]

        stats = analyze_monitors(monitors)

        assert stats.services == {"db": 3, "api": 1}
        assert stats.webhooks == {"@webhook-incident-io": 1}
        assert stats.services_by_usage() == [("db", 3), ("api", 1)]

    def test_only_configured_provider_is_counted(self) -> None:
        monitors = [MonitorFactory.create(message="@pagerduty-db @opsgenie-ops")]

        stats = analyze_monitors(monitors, Provider.OPSGENIE)

        assert stats.services == {"ops": 1}
        assert stats.provider is Provider.OPSGENIE

    def test_empty_monitor_list(self) -> None:
        stats = analyze_monitors([])

        assert stats.total == 0
        assert stats.percentage(0) == "0.0%"

    def test_percentage(self) -> None:
        stats = MonitorStats(provider=Provider.PAGERDUTY, total=3)

        assert stats.percentage(1) == "33.3%"
        assert stats.percentage(3) == "100.0%"

    def test_webhooks_by_usage(self) -> None:
        stats = MonitorStats(provider=Provider.PAGERDUTY, webhooks={"@webhook-incident-io-a": 1, "@webhook-incident-io": 4})
        assert stats.webhooks_by_usage()[0] == ("@webhook-incident-io", 4)


@pytest.mark.unit
class TestMappingCoverage:
    """Test comparison of detected services with the mapping table."""

    def test_reports_unmapped_and_null_mappings(self) -> None:
        monitors = [MonitorFactory.create(message="@pagerduty-api-critical @pagerduty-db @pagerduty-new @pagerduty-new")]
        table = MappingTable(
            [MappingFactory.create("api-critical", "api-team"), MappingFactory.create("db", None)],
            Provider.PAGERDUTY,
        )

        coverage = check_mapping_coverage(analyze_monitors(monitors), table)

        assert coverage.unmapped_services == {"new": 2}
        assert coverage.null_mappings == {"db": 1}
        assert not coverage.complete

    def test_complete_coverage(self, standard_mappings) -> None:
        monitors = [MonitorFactory.create(message="@pagerduty-api-critical @pagerduty-database")]

        coverage = check_mapping_coverage(analyze_monitors(monitors), MappingTable(standard_mappings, Provider.PAGERDUTY))

        assert coverage.complete

    def test_without_mappings_everything_is_unmapped(self, sample_monitors) -> None:
        coverage = check_mapping_coverage(analyze_monitors(sample_monitors), None)

        assert coverage.unmapped_services == {"api-critical": 1, "database": 1}
