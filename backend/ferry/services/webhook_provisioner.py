"""
Webhook Provisioner

Ensures the Datadog webhook integrations that migrated monitors point
at exist before any monitor references them. One provisioner belongs to
one migration run: it remembers which webhooks are known to exist and
which could not be provisioned, so that each webhook is checked (and
created) at most once per run.
"""

import json
from typing import Dict, Optional, Set

from ferry.integrations.datadog.client import DatadogClient
from ferry.integrations.datadog.exceptions import DatadogError
from ferry.models.destination import DestinationConfig
from ferry.models.monitor import Webhook
from ferry.utils.logger import get_module_logger

logger = get_module_logger(__name__)

# Standard Datadog webhook payload understood by incident.io's Datadog alert source.
# The metadata object is left open so team and mapping metadata can be appended.
_PAYLOAD_HEAD = """{
  "alert_transition": "$ALERT_TRANSITION",
  "deduplication_key": "$AGGREG_KEY-$ALERT_CYCLE_KEY",
  "title": "$EVENT_TITLE",
  "description": "$EVENT_MSG",
  "source_url": "$LINK",
  "metadata": {
      "id": "$ID",
      "alert_metric": "$ALERT_METRIC",
      "alert_query": "$ALERT_QUERY",
      "alert_scope": "$ALERT_SCOPE",
      "alert_status": "$ALERT_STATUS",
      "alert_title": "$ALERT_TITLE",
      "alert_type": "$ALERT_TYPE",
      "alert_url": "$LINK",
      "alert_priority": "$ALERT_PRIORITY",
      "date": "$DATE",
      "event_type": "$EVENT_TYPE",
      "hostname": "$HOSTNAME",
      "last_updated": "$LAST_UPDATED",
      "logs_sample": $LOGS_SAMPLE,
      "org": {
          "id": "$ORG_ID",
          "name": "$ORG_NAME"
      },
      "snapshot_url": "$SNAPSHOT",
      "tags": "$TAGS\""""

_PAYLOAD_TAIL = """
  }
}"""

MISSING_TOKEN_HINT = (
    "Missing incident.io webhook token. You can either:\n"
    "- Add it to your config file under incidentioConfig.webhookToken, or\n"
    "- Set it in your .env file as INCIDENTIO_WEBHOOK_TOKEN to avoid storing it in your config"
)


def _json_string(value: str) -> str:
    """Quote a value for textual interpolation into the payload template."""
    return json.dumps(value, ensure_ascii=False)


def build_webhook_payload(team: Optional[str] = None, metadata: Optional[Dict[str, str]] = None) -> str:
    """
    Build the payload template for an incident.io webhook.

    The template is JSON-shaped text rather than JSON: ``$LOGS_SAMPLE``
    is substituted unquoted by Datadog at notification time.

    Args:
        team: Team name added as ``metadata.team``
        metadata: Extra ``metadata`` fields, one per key/value pair

    Returns:
        Payload template string
    """
    payload = _PAYLOAD_HEAD
    if team:
        payload += f',\n      "team": {_json_string(team)}'
    for key, value in (metadata or {}).items():
        payload += f",\n      {_json_string(key)}: {_json_string(value)}"
    return payload + _PAYLOAD_TAIL


def format_custom_headers(token: str) -> str:
    """Turn an incident.io token into Datadog's JSON-encoded custom headers."""
    if token.lstrip().startswith("{"):
        return token
    return json.dumps({"Authorization": f"Bearer {token}"})


class WebhookProvisioner:
    """
    Creates missing incident.io webhooks in Datadog, at most once per name per run.

    Failures are reported as ``False`` rather than raised: a webhook that
    cannot be created only affects the monitors that need it. A failed
    name is not retried later in the same run; later calls for it fail
    with the first failure message.
    """

    def __init__(self, client: DatadogClient, destination: DestinationConfig, dry_run: bool = False):
        """
        Initialize the provisioner for one run.

        Args:
            client: Datadog API client
            destination: Destination config supplying URL and token
            dry_run: Never call Datadog; every webhook is assumed to exist
        """
        self.client = client
        self.destination = destination
        self.dry_run = dry_run
        self._provisioned: Set[str] = set()
        self._failed: Dict[str, str] = {}
        self.last_failure: Optional[str] = None

    @property
    def provisioned(self) -> Set[str]:
        """Webhook names known to exist in this run."""
        return set(self._provisioned)

    @property
    def failed(self) -> Dict[str, str]:
        """Webhook names that could not be provisioned in this run, with the reason."""
        return dict(self._failed)

    async def ensure_exists(
        self,
        webhook_name: str,
        team: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> bool:
        """
        Make sure a webhook exists, creating it if needed.

        Args:
            webhook_name: Datadog webhook name (without the ``webhook-`` prefix)
            team: Team to embed in the payload of a newly created webhook
            metadata: Extra payload fields for a newly created webhook

        Returns:
            True if the webhook exists (or this is a dry run), False otherwise
        """
        self.last_failure = None

        if self.dry_run:
            logger.debug(f"Dry run: Skipping webhook creation for {webhook_name}")
            return True

        if webhook_name in self._provisioned:
            logger.debug(f"Webhook {webhook_name} was already provisioned in this run")
            return True

        if webhook_name in self._failed:
            self.last_failure = self._failed[webhook_name]
            logger.debug(f"Webhook {webhook_name} already failed in this run, not retrying")
            return False

        try:
            existing = await self.client.get_webhook(webhook_name)
        except DatadogError as e:
            logger.warning(f"Could not check webhook {webhook_name}: {e}")
            return self._fail(webhook_name, str(e))

        if existing is not None:
            logger.debug(f"Webhook {webhook_name} already exists")
            self._provisioned.add(webhook_name)
            return True

        if not self.destination.can_create_webhooks:
            reason = f"Missing webhook URL or token, cannot create webhook {webhook_name}"
            logger.warning(reason)
            if not self.destination.webhook_token:
                logger.warning(MISSING_TOKEN_HINT)
            return self._fail(webhook_name, reason)

        webhook = Webhook(
            name=webhook_name,
            url=self.destination.webhook_url,
            payload=build_webhook_payload(team, metadata),
            custom_headers=format_custom_headers(self.destination.webhook_token),
        )

        try:
            await self.client.create_webhook(webhook)
        except DatadogError as e:
            logger.error(f"Error creating webhook {webhook_name}: {e}")
            return self._fail(webhook_name, str(e))

        logger.info(f"Created webhook {webhook_name}")
        self._provisioned.add(webhook_name)
        return True

    def _fail(self, webhook_name: str, reason: str) -> bool:
        self._failed[webhook_name] = reason
        self.last_failure = reason
        return False
