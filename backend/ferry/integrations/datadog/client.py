"""
Datadog API client.

Thin async wrapper around the Datadog v1 monitor and webhooks
integration endpoints used by the migration. Deadlines live here (one
timeout per request); the migration services add no retry policy of
their own.
"""

from typing import Any, Dict, List, Optional

import httpx

from ferry.config.exceptions import ConfigurationError
from ferry.config.settings import Settings
from ferry.integrations.datadog.exceptions import (
    DatadogApiError,
    DatadogConnectivityError,
)
from ferry.models.monitor import Monitor, MonitorUpdate, Webhook
from ferry.utils.logger import get_module_logger

logger = get_module_logger(__name__)

MONITORS_PATH = "/api/v1/monitor"
WEBHOOKS_PATH = "/api/v1/integration/webhooks/configuration/webhooks"


def _error_text(response: httpx.Response) -> str:
    """Extract Datadog's error text from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict) and body.get("errors"):
        return "; ".join(str(e) for e in body["errors"])
    return response.text.strip() or response.reason_phrase


class DatadogClient:
    """Client for the Datadog monitors and webhooks integration APIs."""

    def __init__(
        self,
        api_key: str,
        app_key: str,
        site: str = "datadoghq.com",
        timeout: float = 30.0,
        page_size: int = 1000,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the Datadog client.

        Args:
            api_key: Datadog API key
            app_key: Datadog application key
            site: Datadog site, e.g. ``datadoghq.com`` or ``datadoghq.eu``
            timeout: Per-request timeout in seconds
            page_size: Monitors requested per page when listing
            http_client: Optional preconfigured client (tests, proxies)

        Raises:
            ConfigurationError: If either key is missing
        """
        if not api_key or not app_key:
            raise ConfigurationError(
                "Missing API credentials - both a Datadog API key and app key are required"
            )

        self.base_url = f"https://api.{site}"
        self.page_size = page_size
        self.headers = {
            "DD-API-KEY": api_key,
            "DD-APPLICATION-KEY": app_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        logger.debug(f"Created Datadog API client for {self.base_url}")

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "DatadogClient":
        """Create a client from application settings; keyword overrides win."""
        kwargs: Dict[str, Any] = {
            "api_key": settings.datadog_api_key,
            "app_key": settings.datadog_app_key,
            "site": settings.datadog_site,
            "timeout": settings.http_timeout,
            "page_size": settings.monitor_page_size,
        }
        kwargs.update({key: value for key, value in overrides.items() if value})
        return cls(**kwargs)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def list_monitors(self) -> List[Monitor]:
        """
        Fetch every monitor in the organisation.

        Returns:
            Monitors in the order Datadog returns them

        Raises:
            DatadogConnectivityError: If any page cannot be fetched
        """
        monitors: List[Monitor] = []
        page = 0
        while True:
            params = {"group_states": "all", "page": page, "page_size": self.page_size}
            try:
                response = await self.client.get(self._url(MONITORS_PATH), headers=self.headers, params=params)
            except httpx.HTTPError as e:
                raise DatadogConnectivityError(f"Failed to fetch monitors: {e}") from e

            if response.status_code != 200:
                raise DatadogConnectivityError(
                    f"Failed to fetch monitors: HTTP {response.status_code} - {_error_text(response)}",
                    context={"status_code": response.status_code, "page": page},
                )

            batch = response.json() or []
            monitors.extend(Monitor.from_api(item) for item in batch)
            logger.debug(f"Fetched page {page} with {len(batch)} monitors")

            if len(batch) < self.page_size:
                break
            page += 1

        logger.info(f"Fetched {len(monitors)} monitors from Datadog")
        return monitors

    async def update_monitor(self, monitor_id: int, update: MonitorUpdate) -> Monitor:
        """
        Update a monitor's message and/or tags.

        Raises:
            DatadogApiError: If the request fails or Datadog rejects it
        """
        payload = update.to_payload()
        logger.debug(f"Updating monitor {monitor_id} with payload: {payload}")

        try:
            response = await self.client.put(
                self._url(f"{MONITORS_PATH}/{monitor_id}"), headers=self.headers, json=payload
            )
        except httpx.HTTPError as e:
            raise DatadogApiError(f"Failed to update monitor {monitor_id}: {e}") from e

        if response.status_code != 200:
            error_text = _error_text(response)
            raise DatadogApiError(
                f"Failed to update monitor {monitor_id}: {error_text}",
                status_code=response.status_code,
                error_text=error_text,
            )

        return Monitor.from_api(response.json())

    async def get_webhook(self, name: str) -> Optional[Webhook]:
        """
        Look up a webhook integration by name.

        Returns:
            The webhook, or None if Datadog has no webhook with that name

        Raises:
            DatadogApiError: For failures other than 'not found'
        """
        logger.debug(f"Getting webhook: {name}")
        try:
            response = await self.client.get(self._url(f"{WEBHOOKS_PATH}/{name}"), headers=self.headers)
        except httpx.HTTPError as e:
            raise DatadogApiError(f"Failed to get webhook {name}: {e}") from e

        if response.status_code == 404:
            logger.debug(f"Webhook {name} not found")
            return None
        if response.status_code != 200:
            error_text = _error_text(response)
            raise DatadogApiError(
                f"Failed to get webhook {name}: {error_text}",
                status_code=response.status_code,
                error_text=error_text,
            )
        return Webhook.from_api(response.json())

    async def create_webhook(self, webhook: Webhook) -> None:
        """
        Create a webhook integration.

        Raises:
            DatadogApiError: If the request fails or Datadog rejects it
        """
        logger.debug(f"Creating webhook: {webhook.name}")
        try:
            response = await self.client.post(
                self._url(WEBHOOKS_PATH), headers=self.headers, json=webhook.to_api()
            )
        except httpx.HTTPError as e:
            raise DatadogApiError(f"Failed to create webhook {webhook.name}: {e}") from e

        if response.status_code not in (200, 201):
            error_text = _error_text(response)
            raise DatadogApiError(
                f"Failed to create webhook {webhook.name}: {error_text}",
                status_code=response.status_code,
                error_text=error_text,
            )
        logger.debug(f"Successfully created webhook: {webhook.name}")

    async def close(self) -> None:
        """Close the HTTP client only if we own it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "DatadogClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
