"""
Authority Module - Authorized-principal registry

- A flat set of authorized principals (no roles, no scopes)
- Only authorized principals may grant or revoke
- Every change is an audit event; no-ops leave no trace
- Nothing prevents revoking the last principal, which locks the registry
"""

from authority_registry.authority.models import AuditEvent, AuditKind, Principal
from authority_registry.authority.projections import AuthorizationSet

__all__ = [
    "AuditEvent",
    "AuditKind",
    "AuthorizationSet",
    "Principal",
]
