"""
AuthorityRegistry - Main façade

The primary interface for embedding the registry. It hides the event
store, snapshot store, handlers and projection behind a small API.

Example:
    >>> from authority_registry import AuthorityRegistry
    >>> registry = AuthorityRegistry("authority.db")
    >>> registry.initialize("alice")
    >>> registry.grant("alice", "bob")
    >>> registry.list_authorized()
    ['alice', 'bob']
    >>> registry.revoke("bob", "alice")
    >>> registry.is_authorized("alice")
    False

Operations are sequential: each one is fully applied or fully rejected
before the next begins. A mutation is visible (projection, snapshot,
subscribers) only after its event has been appended.

Several instances may open the same database and stream. Each one
catches up with the stored stream before it checks a caller or answers a
query; subscribers only hear about events committed through their own
instance.
"""

import sqlite3
import time
import warnings
from pathlib import Path
from typing import Callable

from authority_registry.authority.commands import (
    GrantAuthority,
    InitializeRegistry,
    RevokeAuthority,
)
from authority_registry.authority.handlers import AuthorityCommandHandlers
from authority_registry.authority.invariants import require_authorized
from authority_registry.authority.models import AuditEvent, AuditKind, Principal
from authority_registry.authority.projections import AuthorizationSet
from authority_registry.kernel.bus import ALL_EVENTS, InProcessBus
from authority_registry.kernel.errors import NotAuthorized
from authority_registry.kernel.event_store import SQLiteEventStore
from authority_registry.kernel.events import Event
from authority_registry.kernel.ids import IdFactory, default_id_factory
from authority_registry.kernel.logging import LogOperation, get_logger
from authority_registry.kernel.metrics import (
    denials_total,
    grants_total,
    noop_commands_total,
    projection_rebuild_duration_seconds,
    revocations_total,
    track_command_duration,
    update_registry_metrics,
)
from authority_registry.kernel.policy import RegistryPolicy
from authority_registry.kernel.projection_store import SQLiteProjectionStore
from authority_registry.kernel.retry import retry_projection_rebuild
from authority_registry.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)

AuditSubscriber = Callable[[AuditEvent], None]


class AuthorityRegistry:
    """
    Authorized-principal registry with an append-only audit trail

    Provides:
    - initialize / grant / revoke (mutations, guarded)
    - is_authorized / list_authorized / legacy_status (reads)
    - audit_log / subscribe (audit trail)
    - require_authorized (the guard, for embedders)
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        policy: RegistryPolicy | None = None,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Open (or create) a registry backed by a SQLite database

        Args:
            sqlite_path: Path to SQLite database
            policy: Registry policy (uses defaults if None)
            time_provider: Time provider (uses real time if None)
            id_factory: Event id source (UUIDv7-like if None)
        """
        self.sqlite_path = Path(sqlite_path)
        self.policy = policy or RegistryPolicy()
        self.time_provider = time_provider or RealTimeProvider()
        self.id_factory = id_factory or default_id_factory

        self.event_store = SQLiteEventStore(self.sqlite_path)
        self.projection_store = SQLiteProjectionStore(self.sqlite_path)
        self.bus = InProcessBus()
        self.handlers = AuthorityCommandHandlers(
            self.time_provider, self.policy, self.id_factory
        )

        self.authorization_set = AuthorizationSet()
        self._rebuild_projections()

    @retry_projection_rebuild()
    def _rebuild_projections(self) -> None:
        """Load the snapshot (if any) and replay the events after it"""
        start = time.perf_counter()
        projection = AuthorizationSet()

        if self.policy.snapshot_enabled:
            snapshot = self.projection_store.load(self.policy.snapshot_name)
            if snapshot is not None:
                projection = AuthorizationSet.from_dict(snapshot.state)

        self.authorization_set = projection
        replayed = self._catch_up()
        projection_rebuild_duration_seconds.labels(
            projection_name="authorization_set"
        ).observe(time.perf_counter() - start)
        update_registry_metrics(
            self.policy.stream_id,
            projection.authorized_count(),
            projection.is_locked_out(),
        )
        logger.info(
            "Authorization set rebuilt",
            stream_id=self.policy.stream_id,
            version=projection.version,
            replayed_events=replayed,
        )

    def _catch_up(self) -> int:
        """Apply stream events newer than the projection, from any writer"""
        newer = self.event_store.load_stream(
            self.policy.stream_id, after_version=self.authorization_set.version
        )
        for event in newer:
            self.authorization_set.apply_event(event)
        if newer:
            logger.debug(
                "Caught up with stream",
                stream_id=self.policy.stream_id,
                applied_events=len(newer),
                version=self.authorization_set.version,
            )
        return len(newer)

    def refresh(self) -> None:
        """Catch up with the stream and republish the gauges"""
        self._catch_up()
        update_registry_metrics(
            self.policy.stream_id,
            self.authorization_set.authorized_count(),
            self.authorization_set.is_locked_out(),
        )

    def _save_snapshot(self) -> None:
        try:
            self.projection_store.save(
                self.policy.snapshot_name,
                self.authorization_set.to_dict(),
                position_version=self.authorization_set.version,
            )
        except (sqlite3.Error, OSError) as e:
            # The event is durable; a missing snapshot only means a longer replay
            logger.warning(
                "Snapshot save failed",
                stream_id=self.policy.stream_id,
                version=self.authorization_set.version,
                error=str(e),
            )

    def _commit(self, events: list[Event]) -> list[Event]:
        """
        Append events, then apply them, snapshot and notify subscribers

        If the append raises, nothing below it runs and the registry is
        unchanged. Once the append succeeds, nothing below it may fail the
        call.
        """
        if not events:
            return []

        appended = self.event_store.append(
            self.policy.stream_id, self.authorization_set.version, events
        )

        for event in appended:
            self.authorization_set.apply_event(event)

        if self.policy.snapshot_enabled:
            self._save_snapshot()

        update_registry_metrics(
            self.policy.stream_id,
            self.authorization_set.authorized_count(),
            self.authorization_set.is_locked_out(),
        )
        self.bus.publish_events(appended)
        return appended

    # Mutations

    @track_command_duration("InitializeRegistry")
    def initialize(self, creator: Principal) -> AuditEvent:
        """
        Seed the registry with creator as the sole authorized principal

        Args:
            creator: Initializing principal (becomes its own grantor)

        Returns:
            The bootstrap GRANTED audit event

        Raises:
            RegistryAlreadyInitialized: If the stream already has events
            InvalidPrincipal: If creator is empty or too long
        """
        command = InitializeRegistry(creator=creator)
        with LogOperation(logger, "initialize", creator=creator):
            self._catch_up()
            appended = self._commit(
                self.handlers.handle_initialize(command, self.authorization_set)
            )

        grants_total.inc()
        return AuditEvent.from_event(appended[0])

    @track_command_duration("GrantAuthority")
    def grant(self, caller: Principal, subject: Principal) -> AuditEvent | None:
        """
        Authorize subject on behalf of caller

        Returns:
            The GRANTED audit event, or None if subject was already authorized

        Raises:
            NotAuthorized: If caller is not currently authorized
            InvalidPrincipal: If subject is empty or too long
        """
        command = GrantAuthority(caller=caller, subject=subject)
        with LogOperation(logger, "grant", caller=caller, subject=subject):
            self._catch_up()
            try:
                events = self.handlers.handle_grant(command, self.authorization_set)
            except NotAuthorized:
                denials_total.labels(operation="grant").inc()
                raise
            appended = self._commit(events)

        if not appended:
            noop_commands_total.labels(operation="grant").inc()
            return None
        grants_total.inc()
        return AuditEvent.from_event(appended[0])

    @track_command_duration("RevokeAuthority")
    def revoke(self, caller: Principal, subject: Principal) -> AuditEvent | None:
        """
        Deauthorize subject on behalf of caller

        There is no protection against self-revocation or revoking the last
        authorized principal. After the set becomes empty every grant and
        revoke fails with NotAuthorized, permanently; check is_locked_out().

        Returns:
            The REVOKED audit event, or None if subject was not authorized

        Raises:
            NotAuthorized: If caller is not currently authorized
        """
        command = RevokeAuthority(caller=caller, subject=subject)
        with LogOperation(logger, "revoke", caller=caller, subject=subject):
            self._catch_up()
            try:
                events = self.handlers.handle_revoke(command, self.authorization_set)
            except NotAuthorized:
                denials_total.labels(operation="revoke").inc()
                raise
            appended = self._commit(events)

        if not appended:
            noop_commands_total.labels(operation="revoke").inc()
            return None
        revocations_total.inc()
        return AuditEvent.from_event(appended[0])

    # Guard

    def require_authorized(self, caller: Principal, operation: str = "perform this operation") -> None:
        """
        Raise NotAuthorized unless caller is currently authorized

        The same check grant and revoke apply, exposed for embedders that
        gate their own privileged operations.
        """
        self._catch_up()
        try:
            require_authorized(self.authorization_set, caller, operation)
        except NotAuthorized:
            denials_total.labels(operation=operation).inc()
            raise

    # Queries (each sees every event committed so far, by any instance)

    def is_authorized(self, principal: Principal) -> bool:
        """Current authorization of principal"""
        self._catch_up()
        return self.authorization_set.is_authorized(principal)

    def list_authorized(self) -> list[Principal]:
        """
        Authorized principals in grant order

        A principal that was revoked and granted again appears once per
        grant; deduplicate if a unique set is needed.
        """
        self._catch_up()
        return self.authorization_set.list_authorized()

    def legacy_status(self, principal: Principal) -> int:
        """Deprecated: 1 if authorized else 0. Use is_authorized()."""
        warnings.warn(
            "legacy_status() is deprecated, use is_authorized()",
            DeprecationWarning,
            stacklevel=2,
        )
        return 1 if self.is_authorized(principal) else 0

    def is_initialized(self) -> bool:
        self._catch_up()
        return self.authorization_set.is_initialized()

    def is_locked_out(self) -> bool:
        """True once no principal is left who could grant or revoke"""
        self._catch_up()
        return self.authorization_set.is_locked_out()

    def authorized_count(self) -> int:
        """Number of distinct authorized principals"""
        self._catch_up()
        return self.authorization_set.authorized_count()

    # Audit trail

    def audit_log(self) -> list[AuditEvent]:
        """Every grant and revoke, in the order they were recorded"""
        return [
            AuditEvent.from_event(event)
            for event in self.event_store.load_stream(self.policy.stream_id)
        ]

    def subscribe(
        self, handler: AuditSubscriber, kind: AuditKind | None = None
    ) -> None:
        """
        Receive each future audit event after it is committed

        Args:
            handler: Called with the AuditEvent
            kind: Restrict to GRANTED or REVOKED; None for both
        """
        event_type = kind.event_type if kind is not None else ALL_EVENTS

        def deliver(event: Event) -> None:
            handler(AuditEvent.from_event(event))

        self.bus.register_event_handler(event_type, deliver)
