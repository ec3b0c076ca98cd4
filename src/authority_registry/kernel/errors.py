"""
Custom exceptions for Authority Registry

Well-defined error hierarchy enables precise error handling and
clear error messages for embedders and operators.

Fun fact: The word "audit" comes from the Latin "audire" (to hear) -
medieval accounts were read aloud to the auditors, who listened for errors!
"""


class RegistryError(Exception):
    """Base exception for all Authority Registry errors"""

    pass


class EventStoreError(RegistryError):
    """Base class for event store errors"""

    pass


class DuplicateEventId(EventStoreError):
    """
    Raised when an append reuses an event id already in the store

    Nothing is appended. Usually an id factory that restarted its sequence
    on a database that already has events.
    """

    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Event id {event_id} is already stored")


class StreamVersionConflict(EventStoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Indicates another writer appended to the registry stream first -
    the registry catches up on its next call; resubmit to retry.
    """

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )


# Authorization Errors


class NotAuthorized(RegistryError):
    """
    Raised when a caller attempts a privileged mutation without being
    currently authorized

    The triggering operation is aborted completely - no state change,
    no history append, no audit event.
    """

    def __init__(self, caller: str, operation: str) -> None:
        self.caller = caller
        self.operation = operation
        super().__init__(f"Caller {caller} is not authorized to {operation}")


class InvalidPrincipal(RegistryError):
    """Raised when a principal identifier is empty or exceeds the policy bound"""

    def __init__(self, principal: str, max_length: int) -> None:
        self.principal = principal
        self.max_length = max_length
        super().__init__(
            f"Principal identifier must be 1..{max_length} characters, "
            f"got {len(principal)}"
        )


class RegistryAlreadyInitialized(RegistryError):
    """Raised when initialize is called on a stream that already has events"""

    def __init__(self, stream_id: str) -> None:
        self.stream_id = stream_id
        super().__init__(f"Registry {stream_id} is already initialized")


# Keyed configuration collaborator errors (contract only)


class CollaboratorError(RegistryError):
    """Base class for errors reported by a keyed-configuration collaborator"""

    pass


class InvalidKey(CollaboratorError):
    """Raised by a keyed-configuration component for an unknown or malformed key"""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Invalid configuration key {key!r}")


class InvalidValueForKey(CollaboratorError):
    """Raised by a keyed-configuration component when a value is rejected for a key"""

    def __init__(self, key: str, value: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid value {value!r} for configuration key {key!r}")
