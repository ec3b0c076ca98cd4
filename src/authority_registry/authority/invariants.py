"""
Authority Invariants - Preconditions checked before any event is produced

These are pure functions: they read the projection and either return or
raise. Handlers call them first, so a failed check leaves no trace.
"""

from authority_registry.authority.projections import AuthorizationSet
from authority_registry.kernel.errors import (
    InvalidPrincipal,
    NotAuthorized,
    RegistryAlreadyInitialized,
)
from authority_registry.kernel.policy import RegistryPolicy


def require_authorized(
    authorization_set: AuthorizationSet, caller: str, operation: str
) -> None:
    """
    Guard for privileged calls: the caller must be authorized right now

    Applied identically at the start of grant and revoke, and available
    to embedders gating their own privileged operations.

    Args:
        authorization_set: Current projection
        caller: Principal attempting the operation
        operation: Name used in the error ("grant", "revoke", ...)

    Raises:
        NotAuthorized: If caller is not currently authorized
    """
    if not authorization_set.is_authorized(caller):
        raise NotAuthorized(caller, operation)


def validate_principal(principal: str, policy: RegistryPolicy) -> None:
    """
    Principals are opaque, but must be non-empty and bounded

    Raises:
        InvalidPrincipal: If empty or longer than policy.principal_max_length
    """
    if not principal or len(principal) > policy.principal_max_length:
        raise InvalidPrincipal(principal, policy.principal_max_length)


def validate_not_initialized(
    authorization_set: AuthorizationSet, stream_id: str
) -> None:
    """
    Initialization happens once per stream

    Raises:
        RegistryAlreadyInitialized: If the stream already has events
    """
    if authorization_set.is_initialized():
        raise RegistryAlreadyInitialized(stream_id)


def would_empty_authorized_set(
    authorization_set: AuthorizationSet, subject: str
) -> bool:
    """
    True if revoking subject leaves no authorized principal

    Used only to flag the lockout; the revoke still proceeds.
    """
    return (
        authorization_set.is_authorized(subject)
        and authorization_set.authorized_count() == 1
    )
