"""
Authority Commands - Intentions to change the authorization set

Commands can fail (NotAuthorized, invalid principal); the events they
produce cannot - those are facts that already happened.
"""

from pydantic import BaseModel, Field


class InitializeRegistry(BaseModel):
    """Seed the registry with its creator as the only authorized principal"""

    creator: str = Field(..., description="Principal that becomes the first authorized principal")


class GrantAuthority(BaseModel):
    """
    Authorize a subject

    The caller must be authorized at the time of the call. Granting an
    already authorized subject is a no-op.
    """

    caller: str = Field(..., description="Principal issuing the grant")
    subject: str = Field(..., description="Principal to authorize")


class RevokeAuthority(BaseModel):
    """
    Remove a subject's authorization

    The caller must be authorized. Revoking an unauthorized subject is a
    no-op. Nothing stops a caller from revoking itself or the last
    authorized principal.
    """

    caller: str = Field(..., description="Principal issuing the revoke")
    subject: str = Field(..., description="Principal to deauthorize")
