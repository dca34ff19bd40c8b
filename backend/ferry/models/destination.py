"""
incident.io destination configuration.

Two shapes of destination are supported and modelled as a discriminated
union rather than one object full of optional flags:

- SingleWebhookConfig: every migrated monitor gets the shared
  ``@webhook-incident-io`` marker; teams can optionally be recorded as
  monitor tags.
- PerTeamWebhookConfig: every monitor gets one
  ``@webhook-incident-io-<team>`` marker per team its services map to.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ferry.utils.markers import Provider


class _WebhookConfigBase(BaseModel):
    """Fields shared by both destination shapes."""

    model_config = ConfigDict(frozen=True)

    source: Provider = Field(
        default=Provider.PAGERDUTY,
        description="Provider whose markers are migrated"
    )
    webhook_url: Optional[str] = Field(
        default=None,
        description="incident.io alert source URL; required only when a webhook must be created"
    )
    webhook_token: Optional[str] = Field(
        default=None,
        description="incident.io alert source token; required only when a webhook must be created"
    )

    @field_validator("webhook_url", "webhook_token", mode="after")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def can_create_webhooks(self) -> bool:
        return bool(self.webhook_url and self.webhook_token)


class SingleWebhookConfig(_WebhookConfigBase):
    """One shared incident.io webhook for all monitors."""

    mode: Literal["single"] = "single"
    add_team_tags: bool = Field(
        default=False,
        description="Tag monitors with <prefix>:<team> and mapping metadata"
    )
    team_tag_prefix: str = Field(default="team", min_length=1)

    @property
    def requires_team(self) -> bool:
        """Team tags need a well-formed team for every referenced service."""
        return self.add_team_tags

    def team_tag(self, team: str) -> str:
        return f"{self.team_tag_prefix}:{team}"


class PerTeamWebhookConfig(_WebhookConfigBase):
    """One incident.io webhook per team, created on demand."""

    mode: Literal["per_team"] = "per_team"

    @property
    def requires_team(self) -> bool:
        """Every referenced service must map to a well-formed team."""
        return True


DestinationConfig = Annotated[
    Union[SingleWebhookConfig, PerTeamWebhookConfig],
    Field(discriminator="mode"),
]
