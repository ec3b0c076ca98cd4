"""
Kernel - Core event sourcing infrastructure

The kernel provides the machinery the authority domain builds upon:
an append-only event store, snapshots, an audit bus, injectable time and
ids, structured logging and metrics.
"""

from authority_registry.kernel.errors import (
    DuplicateEventId,
    EventStoreError,
    InvalidPrincipal,
    NotAuthorized,
    RegistryAlreadyInitialized,
    RegistryError,
    StreamVersionConflict,
)
from authority_registry.kernel.events import Event
from authority_registry.kernel.ids import IdFactory, SequentialIdFactory, generate_id
from authority_registry.kernel.policy import RegistryPolicy
from authority_registry.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "IdFactory",
    "SequentialIdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Events & configuration
    "Event",
    "RegistryPolicy",
    # Errors
    "RegistryError",
    "EventStoreError",
    "DuplicateEventId",
    "StreamVersionConflict",
    "InvalidPrincipal",
    "NotAuthorized",
    "RegistryAlreadyInitialized",
]
