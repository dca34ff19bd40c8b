"""
Service-to-team mapping models.

A mapping associates a PagerDuty or Opsgenie service (as it appears in
``@pagerduty-<service>`` markers) with the incident.io team that should
own its alerts, plus optional free-form metadata that ends up in team
tags or in the webhook payload.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ferry.utils.markers import Provider


class ServiceMapping(BaseModel):
    """
    One entry of the ``mappings`` list in the migration config file.

    Provider and Opsgenie service keys are separate namespaces: an entry
    keyed by ``pagerdutyService`` is invisible when migrating Opsgenie
    markers and vice versa.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    pagerduty_service: Optional[str] = Field(default=None, alias="pagerdutyService")
    opsgenie_service: Optional[str] = Field(default=None, alias="opsgenieService")
    incidentio_team: Optional[str] = Field(
        default=None,
        alias="incidentioTeam",
        description="incident.io team alias; null means 'known service, team not assigned yet'"
    )
    additional_metadata: Dict[str, str] = Field(
        default_factory=dict,
        alias="additionalMetadata",
        description="Extra key/value pairs added as tags or webhook payload fields"
    )

    @field_validator("incidentio_team", mode="after")
    @classmethod
    def blank_team_to_none(cls, v: Optional[str]) -> Optional[str]:
        """An empty or whitespace-only team counts as unassigned."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("additional_metadata", mode="before")
    @classmethod
    def stringify_metadata(cls, v):
        """YAML turns 'priority: 1' into an int; tags and payloads need strings."""
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(key): "" if value is None else str(value) for key, value in v.items()}
        return v

    def service_key(self, provider: Provider) -> Optional[str]:
        """Service key of this mapping in the given provider's namespace."""
        if Provider(provider) is Provider.OPSGENIE:
            return self.opsgenie_service
        return self.pagerduty_service

    @property
    def has_team(self) -> bool:
        return self.incidentio_team is not None

    def to_config_dict(self) -> Dict[str, object]:
        """Serialize in the config file's camelCase shape."""
        data: Dict[str, object] = {}
        if self.pagerduty_service is not None:
            data["pagerdutyService"] = self.pagerduty_service
        if self.opsgenie_service is not None:
            data["opsgenieService"] = self.opsgenie_service
        data["incidentioTeam"] = self.incidentio_team
        if self.additional_metadata:
            data["additionalMetadata"] = dict(self.additional_metadata)
        return data


class MappingTable:
    """
    Read-only lookup of service mappings for one provider.

    Lookups are exact-match on the provider's service key. When the same
    service is listed twice the first entry wins.
    """

    def __init__(self, mappings: Iterable[ServiceMapping], provider: Provider):
        self.provider = Provider(provider)
        self._mappings: List[ServiceMapping] = list(mappings)
        self._by_service: Dict[str, ServiceMapping] = {}
        for mapping in self._mappings:
            key = mapping.service_key(self.provider)
            if key and key not in self._by_service:
                self._by_service[key] = mapping

    def lookup(self, service_key: str) -> Optional[ServiceMapping]:
        """Return the mapping for ``service_key`` or None when the service is not mapped."""
        return self._by_service.get(service_key)

    def team_for(self, service_key: str) -> Optional[str]:
        mapping = self.lookup(service_key)
        return mapping.incidentio_team if mapping else None

    def metadata_for(self, service_key: str) -> Dict[str, str]:
        mapping = self.lookup(service_key)
        return dict(mapping.additional_metadata) if mapping else {}

    @property
    def services(self) -> List[str]:
        """Mapped service keys in config order."""
        return list(self._by_service)

    @property
    def mappings(self) -> List[ServiceMapping]:
        """All mapping entries, including those for the other provider."""
        return list(self._mappings)

    def __contains__(self, service_key: object) -> bool:
        return service_key in self._by_service

    def __len__(self) -> int:
        return len(self._by_service)
