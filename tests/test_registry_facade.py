"""
Tests for AuthorityRegistry façade - Public API

These tests drive the registry the way an embedding host would: grants,
revocations, enumeration, the audit trail and reopening a database.
"""

from datetime import timedelta

import pytest

from authority_registry import AuthorityRegistry, AuditKind, NotAuthorized
from authority_registry.authority.collaborators import Filed, file_value
from authority_registry.kernel.errors import (
    DuplicateEventId,
    InvalidKey,
    InvalidPrincipal,
    RegistryAlreadyInitialized,
)
from authority_registry.kernel.ids import SequentialIdFactory
from authority_registry.kernel.metrics import authorized_principals
from authority_registry.kernel.policy import RegistryPolicy
from authority_registry.kernel.time import TestTimeProvider


def test_registry_init_creates_database(temp_db):
    """Opening a registry creates the database file"""
    registry = AuthorityRegistry(temp_db)

    assert temp_db.exists()
    assert not registry.is_initialized()
    assert registry.list_authorized() == []
    assert registry.audit_log() == []


def test_initialize_authorizes_creator(registry):
    """Scenario: initialize, then the creator is the only authorized principal"""
    event = registry.initialize("creator")

    assert event.kind == AuditKind.GRANTED
    assert event.actor == "creator"
    assert event.subject == "creator"
    assert event.sequence == 1
    assert registry.is_authorized("creator")
    assert registry.list_authorized() == ["creator"]
    assert registry.is_initialized()
    assert not registry.is_locked_out()


def test_initialize_twice_rejected(bootstrapped):
    with pytest.raises(RegistryAlreadyInitialized):
        bootstrapped.initialize("someone-else")

    assert bootstrapped.list_authorized() == ["creator"]
    assert len(bootstrapped.audit_log()) == 1


def test_initialize_rejects_empty_creator(registry):
    with pytest.raises(InvalidPrincipal):
        registry.initialize("")

    assert not registry.is_initialized()


def test_grant_then_revoke_original_creator(bootstrapped):
    """Scenario: a grantee can revoke the principal that authorized it"""
    bootstrapped.grant("creator", "alice")
    event = bootstrapped.revoke("alice", "creator")

    assert event is not None
    assert event.kind == AuditKind.REVOKED
    assert event.actor == "alice"
    assert event.subject == "creator"
    assert not bootstrapped.is_authorized("creator")
    assert bootstrapped.is_authorized("alice")
    assert bootstrapped.list_authorized() == ["alice"]


def test_unauthorized_grant_rejected(bootstrapped):
    """Scenario: an unknown caller cannot grant, and nothing is recorded"""
    with pytest.raises(NotAuthorized) as exc_info:
        bootstrapped.grant("zed", "yan")

    assert exc_info.value.caller == "zed"
    assert not bootstrapped.is_authorized("yan")
    assert len(bootstrapped.audit_log()) == 1


def test_unauthorized_revoke_rejected(bootstrapped):
    with pytest.raises(NotAuthorized):
        bootstrapped.revoke("zed", "creator")

    assert bootstrapped.is_authorized("creator")
    assert len(bootstrapped.audit_log()) == 1


def test_regrant_appears_twice_in_enumeration(bootstrapped):
    """Scenario: grant, revoke, grant again lists the principal twice"""
    bootstrapped.grant("creator", "x")
    bootstrapped.revoke("creator", "x")
    bootstrapped.grant("creator", "x")

    assert bootstrapped.list_authorized() == ["creator", "x", "x"]
    assert bootstrapped.authorized_count() == 2
    assert bootstrapped.is_authorized("x")


def test_grant_is_idempotent(bootstrapped):
    """Scenario: granting an already authorized principal changes nothing"""
    first = bootstrapped.grant("creator", "alice")
    second = bootstrapped.grant("creator", "alice")

    assert first is not None
    assert second is None
    assert bootstrapped.list_authorized() == ["creator", "alice"]
    assert len(bootstrapped.audit_log()) == 2


def test_revoke_unauthorized_subject_is_noop(bootstrapped):
    assert bootstrapped.revoke("creator", "nobody") is None
    assert len(bootstrapped.audit_log()) == 1


def test_self_revoke_locks_out_registry(bootstrapped):
    """Scenario: revoking the last principal leaves the registry locked out"""
    event = bootstrapped.revoke("creator", "creator")

    assert event is not None
    assert bootstrapped.is_locked_out()
    assert bootstrapped.authorized_count() == 0
    assert bootstrapped.list_authorized() == []

    with pytest.raises(NotAuthorized):
        bootstrapped.grant("creator", "creator")
    with pytest.raises(NotAuthorized):
        bootstrapped.revoke("creator", "creator")


def test_grant_before_initialize_rejected(registry):
    with pytest.raises(NotAuthorized):
        registry.grant("creator", "alice")

    assert not registry.is_initialized()


def test_audit_log_records_every_change(bootstrapped, test_time: TestTimeProvider):
    start = test_time.now()
    test_time.advance_seconds(300)
    bootstrapped.grant("creator", "alice")
    test_time.advance_seconds(300)
    bootstrapped.revoke("alice", "creator")

    log = bootstrapped.audit_log()

    assert [e.sequence for e in log] == [1, 2, 3]
    assert [e.kind for e in log] == [AuditKind.GRANTED, AuditKind.GRANTED, AuditKind.REVOKED]
    assert [(e.actor, e.subject) for e in log] == [
        ("creator", "creator"),
        ("creator", "alice"),
        ("alice", "creator"),
    ]
    assert log[0].occurred_at == start
    assert log[2].occurred_at == start + timedelta(minutes=10)


def test_no_audit_event_for_failed_or_noop_calls(bootstrapped):
    bootstrapped.grant("creator", "creator")
    with pytest.raises(NotAuthorized):
        bootstrapped.grant("mallory", "mallory")
    with pytest.raises(InvalidPrincipal):
        bootstrapped.grant("creator", "")

    assert len(bootstrapped.audit_log()) == 1


def test_legacy_status_is_deprecated(bootstrapped):
    with pytest.warns(DeprecationWarning):
        assert bootstrapped.legacy_status("creator") == 1

    with pytest.warns(DeprecationWarning):
        assert bootstrapped.legacy_status("alice") == 0


def test_require_authorized(bootstrapped):
    bootstrapped.require_authorized("creator")

    with pytest.raises(NotAuthorized) as exc_info:
        bootstrapped.require_authorized("mallory", "file a value")
    assert exc_info.value.operation == "file a value"


# =============================================================================
# Subscribers
# =============================================================================


def test_subscriber_receives_committed_events(bootstrapped):
    received = []
    bootstrapped.subscribe(received.append)

    bootstrapped.grant("creator", "alice")
    bootstrapped.grant("creator", "alice")
    bootstrapped.revoke("alice", "creator")

    assert [(e.kind, e.subject) for e in received] == [
        (AuditKind.GRANTED, "alice"),
        (AuditKind.REVOKED, "creator"),
    ]
    assert [e.sequence for e in received] == [2, 3]


def test_subscriber_kind_filter(bootstrapped):
    revocations = []
    bootstrapped.subscribe(revocations.append, kind=AuditKind.REVOKED)

    bootstrapped.grant("creator", "alice")
    bootstrapped.revoke("creator", "alice")

    assert len(revocations) == 1
    assert revocations[0].kind == AuditKind.REVOKED
    assert revocations[0].subject == "alice"


def test_subscriber_not_called_on_failure(bootstrapped):
    received = []
    bootstrapped.subscribe(received.append)

    with pytest.raises(NotAuthorized):
        bootstrapped.grant("zed", "yan")

    assert received == []


def test_failing_subscriber_does_not_undo_change(bootstrapped):
    received = []

    def broken(event):
        raise RuntimeError("subscriber down")

    bootstrapped.subscribe(broken)
    bootstrapped.subscribe(received.append)

    event = bootstrapped.grant("creator", "alice")

    assert event is not None
    assert bootstrapped.is_authorized("alice")
    assert [e.subject for e in received] == ["alice"]


# =============================================================================
# Persistence
# =============================================================================


def test_reopen_rebuilds_from_snapshot(temp_db, test_time):
    first = AuthorityRegistry(temp_db, time_provider=test_time)
    first.initialize("creator")
    first.grant("creator", "x")
    first.revoke("creator", "x")
    first.grant("creator", "x")

    reopened = AuthorityRegistry(temp_db, time_provider=test_time)

    assert reopened.list_authorized() == ["creator", "x", "x"]
    assert reopened.authorization_set.version == 4
    assert reopened.projection_store.load("authorization_set:authority-registry") is not None


def test_reopen_without_snapshot_replays_events(temp_db, test_time):
    policy = RegistryPolicy(snapshot_enabled=False)
    first = AuthorityRegistry(temp_db, policy=policy, time_provider=test_time)
    first.initialize("creator")
    first.grant("creator", "alice")
    first.revoke("alice", "creator")

    assert first.projection_store.load(policy.snapshot_name) is None

    reopened = AuthorityRegistry(temp_db, policy=policy, time_provider=test_time)

    assert reopened.list_authorized() == ["alice"]
    assert not reopened.is_authorized("creator")
    assert reopened.is_initialized()


def test_reopen_with_lagging_snapshot_replays_the_rest(temp_db, test_time):
    """A snapshot older than the stream is completed from the events after it"""
    first = AuthorityRegistry(temp_db, time_provider=test_time)
    first.initialize("creator")

    unsnapshotted = AuthorityRegistry(
        temp_db, policy=RegistryPolicy(snapshot_enabled=False), time_provider=test_time
    )
    unsnapshotted.grant("creator", "alice")
    unsnapshotted.revoke("alice", "creator")

    snapshot = first.projection_store.load(first.policy.snapshot_name)
    assert snapshot is not None
    assert snapshot.position_version == 1

    reopened = AuthorityRegistry(temp_db, time_provider=test_time)

    assert reopened.list_authorized() == ["alice"]
    assert reopened.authorization_set.version == 3


def test_reopened_registry_rejects_second_initialize(temp_db, test_time):
    AuthorityRegistry(temp_db, time_provider=test_time).initialize("creator")

    reopened = AuthorityRegistry(temp_db, time_provider=test_time)

    with pytest.raises(RegistryAlreadyInitialized):
        reopened.initialize("creator")


def test_reopen_with_restarted_id_sequence_rejects_reused_ids(temp_db, test_time):
    """A reused event id is refused instead of being mistaken for a replay"""
    AuthorityRegistry(
        temp_db, time_provider=test_time, id_factory=SequentialIdFactory("id")
    ).initialize("creator")

    reopened = AuthorityRegistry(
        temp_db, time_provider=test_time, id_factory=SequentialIdFactory("id")
    )
    received = []
    reopened.subscribe(received.append)

    with pytest.raises(DuplicateEventId) as exc_info:
        reopened.grant("creator", "alice")

    assert exc_info.value.event_id == "id-000001"
    assert received == []
    assert not reopened.is_authorized("alice")
    assert reopened.list_authorized() == ["creator"]
    assert len(reopened.audit_log()) == 1

    # The next generated id is fresh, so the retry goes through
    event = reopened.grant("creator", "alice")
    assert event is not None
    assert event.sequence == 2
    assert reopened.list_authorized() == ["creator", "alice"]


def test_snapshot_failure_does_not_fail_committed_grant(bootstrapped, monkeypatch):
    """The event is durable once appended; a broken snapshot only costs replay"""
    received = []
    bootstrapped.subscribe(received.append)

    def broken_save(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(bootstrapped.projection_store, "save", broken_save)

    event = bootstrapped.grant("creator", "alice")

    assert event is not None
    assert event.subject == "alice"
    assert [e.subject for e in received] == ["alice"]
    assert bootstrapped.is_authorized("alice")
    assert len(bootstrapped.audit_log()) == 2

    monkeypatch.undo()
    reopened = AuthorityRegistry(bootstrapped.sqlite_path)
    assert reopened.list_authorized() == ["creator", "alice"]


def test_separate_streams_are_independent(temp_db, test_time):
    ops = AuthorityRegistry(
        temp_db, policy=RegistryPolicy(stream_id="ops"), time_provider=test_time
    )
    billing = AuthorityRegistry(
        temp_db, policy=RegistryPolicy(stream_id="billing"), time_provider=test_time
    )

    ops.initialize("alice")
    billing.initialize("bob")

    assert ops.list_authorized() == ["alice"]
    assert billing.list_authorized() == ["bob"]
    assert not ops.is_authorized("bob")


# =============================================================================
# Several instances on one stream
# =============================================================================


def test_instance_sees_changes_made_by_another(temp_db, test_time):
    first = AuthorityRegistry(temp_db, time_provider=test_time)
    first.initialize("creator")
    second = AuthorityRegistry(temp_db, time_provider=test_time)

    second.grant("creator", "bob")
    second.revoke("bob", "creator")

    assert not first.is_authorized("creator")
    assert first.is_authorized("bob")
    assert first.list_authorized() == ["bob"]

    with pytest.raises(NotAuthorized):
        first.grant("creator", "carol")

    event = first.grant("bob", "carol")
    assert event is not None
    assert event.sequence == 4
    assert second.list_authorized() == ["bob", "carol"]


def test_instance_guard_follows_another_instances_revocation(temp_db, test_time):
    first = AuthorityRegistry(temp_db, time_provider=test_time)
    first.initialize("creator")
    first.grant("creator", "alice")
    second = AuthorityRegistry(temp_db, time_provider=test_time)

    second.revoke("creator", "alice")

    with pytest.raises(NotAuthorized):
        first.require_authorized("alice")
    with pytest.raises(NotAuthorized):
        first.revoke("alice", "creator")
    assert first.is_authorized("creator")


def test_refresh_updates_gauges_from_another_instance(temp_db, test_time):
    policy = RegistryPolicy(stream_id="refresh-gauges")
    first = AuthorityRegistry(temp_db, policy=policy, time_provider=test_time)
    first.initialize("creator")
    second = AuthorityRegistry(temp_db, policy=policy, time_provider=test_time)

    second.grant("creator", "alice")
    second.grant("creator", "bob")
    # second published its own gauge; put back the stale value first holds
    authorized_principals.labels(stream_id="refresh-gauges").set(1)

    first.refresh()

    assert authorized_principals.labels(stream_id="refresh-gauges")._value.get() == 3
    assert first.authorization_set.version == 3


def test_subscriber_only_hears_its_own_instance(temp_db, test_time):
    first = AuthorityRegistry(temp_db, time_provider=test_time)
    first.initialize("creator")
    second = AuthorityRegistry(temp_db, time_provider=test_time)
    received = []
    first.subscribe(received.append)

    second.grant("creator", "alice")
    first.grant("creator", "bob")

    assert [e.subject for e in received] == ["bob"]
    assert [e.sequence for e in received] == [3]


# =============================================================================
# Enumeration order
# =============================================================================


def test_enumeration_keeps_grant_order_after_revoking_grantor(bootstrapped):
    """Revoking a grantor leaves the principals it authorized in place"""
    bootstrapped.grant("creator", "alice")
    bootstrapped.grant("alice", "bob")
    bootstrapped.revoke("creator", "alice")

    assert bootstrapped.list_authorized() == ["creator", "bob"]
    assert bootstrapped.is_authorized("bob")
    assert not bootstrapped.is_authorized("alice")


# =============================================================================
# Gating a keyed value store
# =============================================================================


class InMemoryValueStore:
    """Minimal keyed value store used as a gated collaborator"""

    def __init__(self):
        self.values: dict[str, str] = {}

    def set_value(self, key: str, value: str) -> None:
        if not key:
            raise InvalidKey(key)
        self.values[key] = value


def test_gated_store_accepts_authorized_caller(bootstrapped):
    store = InMemoryValueStore()

    filed = file_value(bootstrapped, store, "creator", "region", "eu-west")

    assert filed == Filed(key="region", value="eu-west")
    assert store.values == {"region": "eu-west"}


def test_gated_store_rejects_unauthorized_caller(bootstrapped):
    store = InMemoryValueStore()

    with pytest.raises(NotAuthorized) as exc_info:
        file_value(bootstrapped, store, "mallory", "region", "nowhere")

    assert exc_info.value.operation == "file a value"
    assert store.values == {}


def test_gated_store_errors_pass_through(bootstrapped):
    store = InMemoryValueStore()

    with pytest.raises(InvalidKey):
        file_value(bootstrapped, store, "creator", "", "1")


def test_gated_store_follows_revocation(bootstrapped):
    store = InMemoryValueStore()
    bootstrapped.grant("creator", "alice")
    file_value(bootstrapped, store, "alice", "a", "1")

    bootstrapped.revoke("creator", "alice")

    with pytest.raises(NotAuthorized):
        file_value(bootstrapped, store, "alice", "b", "2")
    assert store.values == {"a": "1"}
