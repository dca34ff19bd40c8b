"""
Datadog monitor and webhook data models for ferry.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Monitor(BaseModel):
    """
    Local, transient copy of a Datadog monitor definition.
    
    Only the fields the migration reads or writes are kept. Monitors are
    fetched fresh at the start of every run and never cached across runs.
    """
    
    id: int = Field(..., description="Datadog monitor ID")
    name: str = Field(default="", description="Monitor name")
    message: str = Field(default="", description="Notification message, including @-mentions")
    tags: List[str] = Field(default_factory=list, description="Monitor tags in key:value form")
    
    @field_validator("message", "name", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        """Datadog returns null for monitors created without a message."""
        return "" if v is None else v
    
    @field_validator("tags", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v
    
    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> Monitor:
        """Build a Monitor from a Datadog API monitor object, ignoring unknown fields."""
        return cls(
            id=payload["id"],
            name=payload.get("name"),
            message=payload.get("message"),
            tags=payload.get("tags"),
        )


class MonitorUpdate(BaseModel):
    """Partial monitor update; only fields that are set are sent to Datadog."""
    
    message: Optional[str] = None
    tags: Optional[List[str]] = None
    
    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Webhook(BaseModel):
    """
    A Datadog webhook integration pointing at incident.io.
    
    ``payload`` is the JSON-shaped template Datadog renders for every
    notification; ``custom_headers`` is the JSON-encoded header object
    carrying the incident.io token.
    """
    
    name: str = Field(..., min_length=1, description="Webhook name, referenced as @webhook-<name>")
    url: str = Field(..., description="incident.io alert source URL")
    payload: Optional[str] = Field(default=None, description="Payload template")
    custom_headers: Optional[str] = Field(default=None, description="JSON-encoded custom headers")
    encode_as: str = Field(default="json")
    
    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> Webhook:
        return cls(
            name=payload["name"],
            url=payload.get("url") or "",
            payload=payload.get("payload"),
            custom_headers=payload.get("custom_headers"),
            encode_as=payload.get("encode_as") or "json",
        )
    
    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
