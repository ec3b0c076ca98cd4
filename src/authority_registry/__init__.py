"""
Authority Registry - Auditable authorized-principal registry

A flat set of authorized principals gating privileged operations in a
larger system, with an append-only, event-sourced audit trail of every
grant and revoke.

Fun fact: Access control lists date back to Multics in the late 1960s -
and Multics already kept an audit trail of who changed them.
"""

from authority_registry.authority.models import AuditEvent, AuditKind
from authority_registry.kernel.errors import NotAuthorized, RegistryAlreadyInitialized
from authority_registry.registry import AuthorityRegistry

__version__ = "0.1.0"
__all__ = [
    "AuthorityRegistry",
    "AuditEvent",
    "AuditKind",
    "NotAuthorized",
    "RegistryAlreadyInitialized",
    "__version__",
]
