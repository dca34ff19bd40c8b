"""
Test utilities for reducing redundancy and improving test maintainability.

This module provides shared factories and helpers for tests.

FACTORY SYSTEM OVERVIEW
======================

1. MonitorFactory - Datadog monitors with provider / incident.io markers
2. MappingFactory - Service-to-team mappings (the standard test set)
3. DestinationFactory - Single and per-team incident.io destination configs
4. FakeDatadogClient - In-memory Datadog client recording every call

USAGE PATTERNS
=============

Basic usage:
    from tests.utils import FakeDatadogClient, MappingFactory, MonitorFactory

    monitor = MonitorFactory.create(message="High CPU @pagerduty-api-critical")
    client = FakeDatadogClient(monitors=[monitor])
    service = MigrationService(client, DestinationFactory.single(), MappingFactory.standard())

Best practices:
- Override only the fields you need to customize
- Assert on ``client.update_calls`` / ``client.created_webhooks`` instead
  of mocking individual methods when testing the migration engine
"""

from typing import Dict, List, Optional

from ferry.integrations.datadog.exceptions import DatadogApiError
from ferry.models.destination import PerTeamWebhookConfig, SingleWebhookConfig
from ferry.models.mapping import ServiceMapping
from ferry.models.monitor import Monitor, MonitorUpdate, Webhook
from ferry.utils.markers import Provider

WEBHOOK_URL = "https://api.incident.io/v2/alert_events/http/01TEST"
WEBHOOK_TOKEN = "test-token"


class MonitorFactory:
    """Factory for Datadog monitors."""

    _next_id = 1000

    @classmethod
    def create(
        cls,
        message: str = "High CPU @pagerduty-api-critical",
        name: Optional[str] = None,
        tags: Optional[List[str]] = None,
        monitor_id: Optional[int] = None,
    ) -> Monitor:
        if monitor_id is None:
            cls._next_id += 1
            monitor_id = cls._next_id
        return Monitor(
            id=monitor_id,
            name=name or f"Test monitor {monitor_id}",
            message=message,
            tags=list(tags) if tags is not None else ["env:prod"],
        )

    @classmethod
    def api_payload(cls, monitor_id: int = 1, message: str = "Alert", **overrides) -> Dict:
        """Monitor object as returned by the Datadog API."""
        payload = {
            "id": monitor_id,
            "name": f"Monitor {monitor_id}",
            "message": message,
            "tags": ["env:prod"],
            "type": "metric alert",
            "query": "avg(last_5m):avg:system.cpu.user{*} > 90",
            "options": {"notify_no_data": False},
        }
        payload.update(overrides)
        return payload


class MappingFactory:
    """Factory for service mappings."""

    @staticmethod
    def create(
        service: str,
        team: Optional[str],
        metadata: Optional[Dict[str, str]] = None,
        provider: Provider = Provider.PAGERDUTY,
    ) -> ServiceMapping:
        key = "opsgenieService" if provider is Provider.OPSGENIE else "pagerdutyService"
        return ServiceMapping.model_validate({
            key: service,
            "incidentioTeam": team,
            "additionalMetadata": metadata or {},
        })

    @classmethod
    def standard(cls, provider: Provider = Provider.PAGERDUTY) -> List[ServiceMapping]:
        """api-critical / api-non-critical -> api-team, database -> platform-team."""
        return [
            cls.create("api-critical", "api-team", {"priority": "high", "service": "api"}, provider),
            cls.create("api-non-critical", "api-team", {"priority": "low", "service": "api"}, provider),
            cls.create("database", "platform-team", {"priority": "high", "service": "database"}, provider),
        ]


class DestinationFactory:
    """Factory for incident.io destination configs."""

    @staticmethod
    def single(add_team_tags: bool = False, provider: Provider = Provider.PAGERDUTY, **overrides) -> SingleWebhookConfig:
        values = {
            "source": provider,
            "webhook_url": WEBHOOK_URL,
            "webhook_token": WEBHOOK_TOKEN,
            "add_team_tags": add_team_tags,
        }
        values.update(overrides)
        return SingleWebhookConfig(**values)

    @staticmethod
    def per_team(provider: Provider = Provider.PAGERDUTY, **overrides) -> PerTeamWebhookConfig:
        values = {
            "source": provider,
            "webhook_url": WEBHOOK_URL,
            "webhook_token": WEBHOOK_TOKEN,
        }
        values.update(overrides)
        return PerTeamWebhookConfig(**values)


class FakeDatadogClient:
    """
    In-memory stand-in for DatadogClient.

    Monitors are stored by id; updates are applied to the stored copy so
    that a second run sees the result of the first. Every call is
    recorded for assertions.
    """

    def __init__(
        self,
        monitors: Optional[List[Monitor]] = None,
        existing_webhooks: Optional[List[str]] = None,
        failing_updates: Optional[Dict[int, str]] = None,
        failing_webhooks: Optional[List[str]] = None,
    ):
        self.monitors: Dict[int, Monitor] = {m.id: m for m in (monitors or [])}
        self.webhooks: Dict[str, Webhook] = {
            name: Webhook(name=name, url=WEBHOOK_URL) for name in (existing_webhooks or [])
        }
        self.failing_updates = failing_updates or {}
        self.failing_webhooks = failing_webhooks or []

        self.list_calls = 0
        self.update_calls: List[tuple] = []
        self.get_webhook_calls: List[str] = []
        self.created_webhooks: List[Webhook] = []

    async def list_monitors(self) -> List[Monitor]:
        self.list_calls += 1
        return list(self.monitors.values())

    async def update_monitor(self, monitor_id: int, update: MonitorUpdate) -> Monitor:
        self.update_calls.append((monitor_id, update))
        if monitor_id in self.failing_updates:
            error_text = self.failing_updates[monitor_id]
            raise DatadogApiError(
                f"Failed to update monitor {monitor_id}: {error_text}",
                status_code=400,
                error_text=error_text,
            )
        current = self.monitors[monitor_id]
        changes = update.to_payload()
        self.monitors[monitor_id] = current.model_copy(update=changes)
        return self.monitors[monitor_id]

    async def get_webhook(self, name: str) -> Optional[Webhook]:
        self.get_webhook_calls.append(name)
        return self.webhooks.get(name)

    async def create_webhook(self, webhook: Webhook) -> None:
        self.created_webhooks.append(webhook)
        if webhook.name in self.failing_webhooks:
            raise DatadogApiError(
                f"Failed to create webhook {webhook.name}: Forbidden",
                status_code=403,
                error_text="Forbidden",
            )
        self.webhooks[webhook.name] = webhook

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "FakeDatadogClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def created_webhook_names(self) -> List[str]:
        return [webhook.name for webhook in self.created_webhooks]

    @property
    def updated_monitor_ids(self) -> List[int]:
        return [monitor_id for monitor_id, _ in self.update_calls]
