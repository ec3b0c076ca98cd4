"""
Stored event envelope

An Event is one line of the audit log as the store keeps it. The domain
payload (actor, subject, timestamps) lives in `payload`; the envelope only
carries what the store needs to order, key and route it.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Event(BaseModel):
    """
    Immutable, append-only audit fact

    version is the 1-based position in the stream and doubles as the
    audit sequence number. (stream_id, version) is unique in the store.
    """

    event_id: str
    stream_id: str
    event_type: str
    version: int = Field(..., ge=1)
    occurred_at: datetime
    payload: dict = Field(default_factory=dict)

    model_config = {"frozen": True}
