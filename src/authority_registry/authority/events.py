"""
Authority Events - Payloads of the audit log

Both events carry {actor, subject}; the envelope (kernel Event) adds the
stream version, timestamp and ids.
"""

from datetime import datetime

from pydantic import BaseModel


class AuthorityGranted(BaseModel):
    """
    A subject became authorized

    bootstrap is True only for the initializing grant, where the creator
    is its own grantor.
    """

    actor: str
    subject: str
    granted_at: datetime
    bootstrap: bool = False


class AuthorityRevoked(BaseModel):
    """A subject stopped being authorized"""

    actor: str
    subject: str
    revoked_at: datetime


AUTHORITY_EVENT_TYPES = {
    "AuthorityGranted": AuthorityGranted,
    "AuthorityRevoked": AuthorityRevoked,
}
