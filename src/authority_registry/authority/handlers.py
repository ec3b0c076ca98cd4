"""
Authority Handlers - Command→Event transformation

Handlers are the decision-making layer. They:
1. Read current state (from the AuthorizationSet projection)
2. Check the guard and other preconditions
3. Produce at most one event, or none for an idempotent no-op
4. Return events for the façade to append

Handlers never mutate the projection. The façade applies returned events
only after the event store has accepted them.
"""

from authority_registry.authority.commands import (
    GrantAuthority,
    InitializeRegistry,
    RevokeAuthority,
)
from authority_registry.authority.events import AuthorityGranted, AuthorityRevoked
from authority_registry.authority.invariants import (
    require_authorized,
    validate_not_initialized,
    validate_principal,
    would_empty_authorized_set,
)
from authority_registry.authority.projections import AuthorizationSet
from authority_registry.kernel.events import Event
from authority_registry.kernel.ids import IdFactory, default_id_factory
from authority_registry.kernel.logging import get_logger
from authority_registry.kernel.policy import RegistryPolicy
from authority_registry.kernel.time import TimeProvider

logger = get_logger(__name__)


class AuthorityCommandHandlers:
    """
    Command handlers for the authority registry

    Handlers depend on the projection passed in, not on storage, so they
    can be tested with a bare AuthorizationSet.
    """

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: RegistryPolicy,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Initialize handlers with dependencies

        Args:
            time_provider: For timestamps (injectable for testing)
            policy: Registry configuration
            id_factory: Event id source (defaults to UUIDv7-like ids)
        """
        self.time_provider = time_provider
        self.policy = policy
        self.id_factory = id_factory or default_id_factory

    def handle_initialize(
        self,
        command: InitializeRegistry,
        authorization_set: AuthorizationSet,
    ) -> list[Event]:
        """
        Handle InitializeRegistry command

        The creator is its own grantor: actor == subject == creator.

        Raises:
            InvalidPrincipal: If creator is empty or too long
            RegistryAlreadyInitialized: If the stream already has events
        """
        validate_principal(command.creator, self.policy)
        validate_not_initialized(authorization_set, self.policy.stream_id)

        now = self.time_provider.now()
        payload = AuthorityGranted(
            actor=command.creator,
            subject=command.creator,
            granted_at=now,
            bootstrap=True,
        ).model_dump(mode="json")

        return [self._event("AuthorityGranted", payload, authorization_set)]

    def handle_grant(
        self,
        command: GrantAuthority,
        authorization_set: AuthorizationSet,
    ) -> list[Event]:
        """
        Handle GrantAuthority command

        Returns:
            One AuthorityGranted event, or [] if the subject is already authorized

        Raises:
            NotAuthorized: If caller is not currently authorized
            InvalidPrincipal: If subject is empty or too long
        """
        require_authorized(authorization_set, command.caller, "grant")
        validate_principal(command.subject, self.policy)

        if authorization_set.is_authorized(command.subject):
            logger.debug("Grant is a no-op, subject already authorized")
            return []

        now = self.time_provider.now()
        payload = AuthorityGranted(
            actor=command.caller,
            subject=command.subject,
            granted_at=now,
        ).model_dump(mode="json")

        return [self._event("AuthorityGranted", payload, authorization_set)]

    def handle_revoke(
        self,
        command: RevokeAuthority,
        authorization_set: AuthorizationSet,
    ) -> list[Event]:
        """
        Handle RevokeAuthority command

        Self-revocation and revoking the last authorized principal are
        allowed. The latter locks the registry permanently; it is logged
        as a warning when the policy asks for it.

        Returns:
            One AuthorityRevoked event, or [] if the subject is not authorized

        Raises:
            NotAuthorized: If caller is not currently authorized
        """
        require_authorized(authorization_set, command.caller, "revoke")

        if not authorization_set.is_authorized(command.subject):
            logger.debug("Revoke is a no-op, subject not authorized")
            return []

        if self.policy.warn_on_lockout and would_empty_authorized_set(
            authorization_set, command.subject
        ):
            logger.warning(
                "Revoke removes the last authorized principal; registry will be locked out",
                stream_id=self.policy.stream_id,
                self_revoke=command.caller == command.subject,
            )

        now = self.time_provider.now()
        payload = AuthorityRevoked(
            actor=command.caller,
            subject=command.subject,
            revoked_at=now,
        ).model_dump(mode="json")

        return [self._event("AuthorityRevoked", payload, authorization_set)]

    def _event(
        self,
        event_type: str,
        payload: dict,
        authorization_set: AuthorizationSet,
    ) -> Event:
        return Event(
            event_id=self.id_factory.generate(),
            stream_id=self.policy.stream_id,
            event_type=event_type,
            version=authorization_set.version + 1,
            occurred_at=self.time_provider.now(),
            payload=payload,
        )
