"""
Pydantic models for alert webhook payloads and internal data structures.

This module defines the inbound payload shape, the per-request alert event
derived from it, and the request/response types exchanged with the work item
tracker.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


def _as_text(value: Any) -> Any:
    """Scalar identifiers (numbers, booleans) become strings."""
    if isinstance(value, (int, float, bool)):
        return str(value)
    return value


class AlertStatus(str, Enum):
    """Alert status enumeration."""
    FIRING = "firing"
    RESOLVED = "resolved"


class SubAlert(BaseModel):
    """Individual alert inside a grouped notification."""
    fingerprint: Optional[str] = Field(None, description="Alert fingerprint")
    status: Optional[str] = Field(None, description="Alert status")

    class Config:
        extra = "allow"

    @field_validator("fingerprint", mode="before")
    @classmethod
    def coerce_fingerprint(cls, value):
        return _as_text(value)


class WebhookPayload(BaseModel):
    """Grafana / AlertManager webhook payload.

    Every field is optional at parse time; completeness is checked by the
    reconciler so that missing fields produce a 400 instead of a schema error.
    Null collections are read as empty ones.
    """
    title: Optional[str] = Field(None, description="Notification title")
    message: Optional[str] = Field(None, description="Rendered notification message")
    groupKey: Optional[str] = Field(None, description="Group key")
    status: Optional[str] = Field(None, description="Group status")
    alerts: List[SubAlert] = Field(default_factory=list, description="List of alerts")
    commonAnnotations: Dict[str, Any] = Field(default_factory=dict, description="Common annotations")

    class Config:
        extra = "allow"

    @field_validator("groupKey", mode="before")
    @classmethod
    def coerce_group_key(cls, value):
        return _as_text(value)

    @field_validator("alerts", mode="before")
    @classmethod
    def null_alerts(cls, value):
        if value is None:
            return []
        if isinstance(value, list):
            return [{} if alert is None else alert for alert in value]
        return value

    @field_validator("commonAnnotations", mode="before")
    @classmethod
    def null_annotations(cls, value):
        return {} if value is None else value

    @property
    def alert_key(self) -> Optional[str]:
        """Group key, falling back to the fingerprint of the first alert."""
        if self.groupKey:
            return self.groupKey
        if self.alerts and self.alerts[0].fingerprint:
            return self.alerts[0].fingerprint
        return None

    @property
    def effective_status(self) -> Optional[str]:
        """Group status, falling back to the status of the first alert."""
        if self.status:
            return self.status
        if self.alerts:
            return self.alerts[0].status
        return None

    @property
    def summary(self) -> str:
        """Trimmed common summary annotation, empty when absent."""
        summary = self.commonAnnotations.get("summary")
        if not isinstance(summary, str):
            return ""
        return summary.strip()


class AlertEvent(BaseModel):
    """Validated alert notification, one per inbound request."""
    key: str = Field(..., description="Alert key identifying the recurring condition")
    status: Optional[str] = Field(None, description="firing, resolved or anything else")
    title: str = Field(..., description="Raw notification title")
    raw_message: str = Field(..., description="Raw notification message")
    summary: str = Field(default="", description="Common summary annotation")

    @property
    def is_resolved(self) -> bool:
        return self.status == AlertStatus.RESOLVED.value


class TicketRef(BaseModel):
    """Reference to a work item in the tracker."""
    id: int = Field(..., description="Work item ID")
    url: Optional[str] = Field(None, description="Work item API URL")


class WorkItemRequest(BaseModel):
    """Work item to create (or update) for a firing alert."""
    title: str = Field(..., description="Work item title")
    description: str = Field(..., description="Work item description (HTML)")


class CloseRequest(BaseModel):
    """Close every open work item carrying an alert ID."""
    alert_id: str = Field(..., description="Alert ID searched for in work item titles")
    reason: str = Field(default="Resolved", description="Closing reason")


class ReconcileAction(str, Enum):
    """What the reconciler did with an event."""
    TICKET_CREATED = "ticket_created"
    TICKET_UPDATED = "ticket_updated"
    TICKETS_CLOSED = "tickets_closed"


class ReconcileOutcome(BaseModel):
    """Result of reconciling one alert event."""
    alert_id: str = Field(..., description="Stable alert ID")
    action: ReconcileAction = Field(..., description="Action taken")
    tickets: List[TicketRef] = Field(default_factory=list, description="Work items touched")
    notified: bool = Field(default=False, description="Whether an email was sent")

    @property
    def message(self) -> str:
        """Human readable summary for the HTTP response."""
        if self.action == ReconcileAction.TICKETS_CLOSED:
            return (
                f"Alert resolved. {len(self.tickets)} work item(s) closed "
                f"for Alert ID: {self.alert_id}"
            )
        return (
            "Alert email sent and work item processed successfully. "
            f"Alert ID: {self.alert_id}"
        )
