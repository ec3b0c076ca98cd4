"""
Authority Domain Models

A principal is an opaque identity string; the registry compares principals
for equality and never looks inside them. The audit event is the public,
immutable record of one change to the authorization set.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from authority_registry.authority.events import AUTHORITY_EVENT_TYPES
from authority_registry.kernel.events import Event

Principal = str


class AuditKind(str, Enum):
    """What happened to the subject's authorization"""

    GRANTED = "GRANTED"
    REVOKED = "REVOKED"

    @property
    def event_type(self) -> str:
        """Event store type name for this kind"""
        return _EVENT_TYPE_BY_KIND[self]

    @classmethod
    def from_event_type(cls, event_type: str) -> "AuditKind":
        for kind, name in _EVENT_TYPE_BY_KIND.items():
            if name == event_type:
                return kind
        raise ValueError(f"Not an audit event type: {event_type}")


_EVENT_TYPE_BY_KIND = {
    AuditKind.GRANTED: "AuthorityGranted",
    AuditKind.REVOKED: "AuthorityRevoked",
}


class AuditEvent(BaseModel):
    """
    Immutable record of a successful grant or revoke

    Attributes:
        sequence: 1-based position in the registry stream
        actor: Principal that issued the change (the creator for bootstrap)
        subject: Principal whose authorization changed
        kind: GRANTED or REVOKED
        occurred_at: When the change was recorded
    """

    sequence: int
    actor: Principal
    subject: Principal
    kind: AuditKind
    occurred_at: datetime

    model_config = {"frozen": True}

    @classmethod
    def from_event(cls, event: Event) -> "AuditEvent":
        """Build the public audit record from a stored event"""
        kind = AuditKind.from_event_type(event.event_type)
        payload = AUTHORITY_EVENT_TYPES[event.event_type].model_validate(event.payload)
        return cls(
            sequence=event.version,
            actor=payload.actor,
            subject=payload.subject,
            kind=kind,
            occurred_at=event.occurred_at,
        )
