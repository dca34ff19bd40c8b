"""
Migration run models: requested operation, options, per-monitor outcomes
and the aggregated run result.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Dict, List, Optional, Pattern

from pydantic import BaseModel, ConfigDict, Field, computed_field


class MigrationType(str, Enum):
    """Operations the migration engine can apply to monitors."""

    ADD_INCIDENTIO_WEBHOOK = "add_incidentio"
    REMOVE_INCIDENTIO_WEBHOOK = "remove_incidentio"
    REMOVE_PROVIDER = "remove_provider"


class OutcomeStatus(str, Enum):
    """
    Primary status of one monitor's reconciliation.

    ``update_failed`` means a change was computed but Datadog rejected
    the update; it is kept apart from ``unchanged`` (nothing to do, or
    the change could not be prepared) so callers never have to guess.
    """

    UPDATED = "updated"
    UNCHANGED = "unchanged"
    UPDATE_FAILED = "update_failed"


class MonitorFilter(BaseModel):
    """
    Pre-filter applied to the monitor list before reconciliation.

    Tags match when the monitor carries any of them; name and message
    patterns are case-insensitive regular expressions.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    tags: List[str] = Field(default_factory=list)
    name_pattern: Optional[Pattern] = None
    message_pattern: Optional[Pattern] = None

    @classmethod
    def from_strings(
        cls,
        tags: Optional[List[str]] = None,
        name: Optional[str] = None,
        message: Optional[str] = None,
    ) -> MonitorFilter:
        """Compile user-supplied patterns; raises re.error on an invalid pattern."""
        return cls(
            tags=[t for t in (tags or []) if t],
            name_pattern=re.compile(name, re.IGNORECASE) if name else None,
            message_pattern=re.compile(message, re.IGNORECASE) if message else None,
        )

    @property
    def is_empty(self) -> bool:
        return not self.tags and self.name_pattern is None and self.message_pattern is None


class MigrationOptions(BaseModel):
    """Options for one reconciliation run."""

    dry_run: bool = Field(default=False, description="Compute changes without calling Datadog")
    verbose: bool = Field(default=False, description="Include unchanged monitors with reasons")
    filter: Optional[MonitorFilter] = None


class MonitorOutcome(BaseModel):
    """Result of reconciling a single monitor."""

    monitor_id: int
    status: OutcomeStatus
    message: str = Field(..., description="Computed message (original message when nothing changed)")
    tags_before: Optional[List[str]] = None
    tags_after: Optional[List[str]] = Field(
        default=None,
        description="New tag list; set only when tags changed"
    )
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def updated(self) -> bool:
        return self.status == OutcomeStatus.UPDATED

    @property
    def tags_changed(self) -> bool:
        return self.tags_after is not None


class MonitorChange(BaseModel):
    """Per-monitor change record reported back to the caller."""

    id: int
    name: str
    status: OutcomeStatus
    before: str
    after: str
    reason: Optional[str] = None
    tags_before: Optional[List[str]] = None
    tags_after: Optional[List[str]] = None

    @property
    def added_tags(self) -> List[str]:
        if self.tags_before is None or self.tags_after is None:
            return []
        return [tag for tag in self.tags_after if tag not in self.tags_before]


class MonitorError(BaseModel):
    """An error attributed to a single monitor."""

    id: int
    error: str


class ValidationReport(BaseModel):
    """
    Pre-flight check of the services referenced by a set of monitors.

    Every referenced service lands in exactly one of ``mapped_services``,
    ``unmapped_services`` and ``null_mappings``. ``invalid_team_names`` is
    a subset of the mapped services and is only filled in when team
    identity is required.
    """

    referenced_services: List[str] = Field(default_factory=list)
    mapped_services: List[str] = Field(default_factory=list)
    unmapped_services: List[str] = Field(default_factory=list)
    null_mappings: List[str] = Field(default_factory=list)
    invalid_team_names: Dict[str, str] = Field(
        default_factory=dict,
        description="service -> offending team name"
    )
    team_required: bool = False

    @computed_field
    @property
    def valid(self) -> bool:
        if self.unmapped_services:
            return False
        if self.team_required and (self.null_mappings or self.invalid_team_names):
            return False
        return True

    def describe_invalid_team_names(self) -> List[str]:
        return [f'{service} → "{team}"' for service, team in self.invalid_team_names.items()]


class MigrationResult(BaseModel):
    """Aggregated result of a reconciliation run."""

    processed: int = 0
    updated: int = 0
    unchanged: int = Field(default=0, description="Monitors not updated, including failed updates")
    failed: int = Field(default=0, description="Monitors whose Datadog update was rejected")
    changes: List[MonitorChange] = Field(default_factory=list)
    errors: List[MonitorError] = Field(default_factory=list)
    validation_results: Optional[ValidationReport] = None
