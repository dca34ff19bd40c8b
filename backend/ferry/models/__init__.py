# Models package
from .destination import DestinationConfig, PerTeamWebhookConfig, SingleWebhookConfig
from .mapping import MappingTable, ServiceMapping
from .migration import (
    MigrationOptions,
    MigrationResult,
    MigrationType,
    MonitorChange,
    MonitorError,
    MonitorFilter,
    MonitorOutcome,
    OutcomeStatus,
    ValidationReport,
)
from .monitor import Monitor, MonitorUpdate, Webhook

__all__ = [
    "Monitor", "MonitorUpdate", "Webhook",
    "ServiceMapping", "MappingTable",
    "DestinationConfig", "SingleWebhookConfig", "PerTeamWebhookConfig",
    "MigrationType", "MigrationOptions", "MigrationResult", "MonitorFilter",
    "MonitorOutcome", "MonitorChange", "MonitorError", "OutcomeStatus", "ValidationReport",
]
