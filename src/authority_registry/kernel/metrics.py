"""
Prometheus metrics collection for Authority Registry.

Provides observability into registry operations, denials and lockout state.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Core Event Store Metrics
# ============================================================================

events_appended_total = Counter(
    "authority_registry_events_appended_total",
    "Total number of events appended to the event store",
    ["stream_id", "event_type"],
)

events_loaded_total = Counter(
    "authority_registry_events_loaded_total",
    "Total number of events loaded from the event store",
    ["stream_id"],
)

stream_version_conflicts_total = Counter(
    "authority_registry_stream_version_conflicts_total",
    "Total number of optimistic locking version conflicts",
    ["stream_id"],
)

# ============================================================================
# Command Processing Metrics
# ============================================================================

command_duration_seconds = Histogram(
    "authority_registry_command_duration_seconds",
    "Duration of command processing in seconds",
    ["command_type"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

commands_processed_total = Counter(
    "authority_registry_commands_processed_total",
    "Total number of commands processed",
    ["command_type", "status"],  # status: success, failure
)

# ============================================================================
# Authorization Metrics
# ============================================================================

grants_total = Counter(
    "authority_registry_grants_total",
    "Total number of grants that changed the authorization set",
)

revocations_total = Counter(
    "authority_registry_revocations_total",
    "Total number of revocations that changed the authorization set",
)

noop_commands_total = Counter(
    "authority_registry_noop_commands_total",
    "Total number of idempotent grant/revoke calls that changed nothing",
    ["operation"],
)

denials_total = Counter(
    "authority_registry_denials_total",
    "Total number of privileged calls rejected with NotAuthorized",
    ["operation"],
)

authorized_principals = Gauge(
    "authority_registry_authorized_principals",
    "Number of distinct currently authorized principals",
    ["stream_id"],
)

locked_out = Gauge(
    "authority_registry_locked_out",
    "1 if the registry is initialized and no principal is authorized",
    ["stream_id"],
)

projection_rebuild_duration_seconds = Histogram(
    "authority_registry_projection_rebuild_duration_seconds",
    "Duration of projection rebuild in seconds",
    ["projection_name"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0),
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_command_duration(command_type: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track command processing duration and outcome.

    Args:
        command_type: Type of command being processed

    Returns:
        Decorated function that tracks duration
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                duration = time.perf_counter() - start
                command_duration_seconds.labels(command_type=command_type).observe(duration)
                commands_processed_total.labels(
                    command_type=command_type, status=status
                ).inc()

        return wrapper

    return decorator


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default: 9090)
    """
    start_http_server(port)


def update_registry_metrics(stream_id: str, authorized_count: int, is_locked_out: bool) -> None:
    """
    Update the authorization-set gauges for one registry stream.

    Args:
        stream_id: Registry stream identifier
        authorized_count: Distinct authorized principals
        is_locked_out: Whether the registry can no longer be mutated
    """
    authorized_principals.labels(stream_id=stream_id).set(authorized_count)
    locked_out.labels(stream_id=stream_id).set(1 if is_locked_out else 0)
