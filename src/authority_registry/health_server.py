"""
Health check HTTP server for liveness and readiness probes.

Readiness means the database answers queries. Health additionally reports
the registry state; a locked-out registry is reported as degraded because
no one can change it any more.
"""

import argparse
import sqlite3
from pathlib import Path
from typing import Any

from flask import Flask, jsonify

from authority_registry.kernel.logging import configure_logging, get_logger, is_production
from authority_registry.kernel.policy import RegistryPolicy
from authority_registry.registry import AuthorityRegistry

logger = get_logger(__name__)

app = Flask(__name__)

# Global state - set by initialize_health_server()
_db_path: Path | None = None
_registry: AuthorityRegistry | None = None


def initialize_health_server(
    db_path: str | Path, registry: AuthorityRegistry | None = None
) -> None:
    """
    Initialize the health server with database path and optional registry.

    Args:
        db_path: Path to SQLite database
        registry: Optional AuthorityRegistry for detailed health
    """
    global _db_path, _registry
    _db_path = Path(db_path)
    _registry = registry
    logger.info("Health server initialized", db_path=str(_db_path))


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Any, int]:
    """Liveness probe - the process is running."""
    return jsonify({"status": "alive", "service": "authority-registry"}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Any, int]:
    """
    Readiness probe - the event store is reachable.

    Returns 200 when the events table can be queried, 503 otherwise.
    """
    if _db_path is None:
        logger.error("Readiness check failed: DB path not initialized")
        return jsonify({"status": "not_ready", "reason": "database_path_not_initialized"}), 503

    if not _db_path.exists():
        logger.error("Readiness check failed: DB file does not exist", db_path=str(_db_path))
        return (
            jsonify(
                {
                    "status": "not_ready",
                    "reason": "database_file_not_found",
                    "db_path": str(_db_path),
                }
            ),
            503,
        )

    try:
        conn = sqlite3.connect(str(_db_path), timeout=1.0)
        try:
            event_count = conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.error("Readiness check failed: DB error", error=str(e))
        return (
            jsonify(
                {
                    "status": "not_ready",
                    "reason": "database_operational_error",
                    "error": str(e),
                }
            ),
            503,
        )

    logger.debug("Readiness check passed", event_count=event_count)
    return jsonify({"status": "ready", "database": "accessible", "event_count": event_count}), 200


@app.route("/health", methods=["GET"])
def detailed_health() -> tuple[Any, int]:
    """Detailed health - database statistics plus registry state if available."""
    health_data: dict[str, Any] = {
        "status": "healthy",
        "service": "authority-registry",
    }

    if _db_path and _db_path.exists():
        try:
            conn = sqlite3.connect(str(_db_path), timeout=1.0)
            try:
                event_count = conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
                stream_count = conn.execute(
                    "SELECT COUNT(DISTINCT stream_id) FROM events"
                ).fetchone()[0]
            finally:
                conn.close()

            health_data["database"] = {
                "status": "healthy",
                "path": str(_db_path),
                "event_count": event_count,
                "stream_count": stream_count,
            }
        except sqlite3.Error as e:
            logger.error("Database health check failed", error=str(e))
            health_data["database"] = {"status": "unhealthy", "error": str(e)}
            health_data["status"] = "degraded"
    else:
        health_data["database"] = {"status": "not_initialized"}
        health_data["status"] = "degraded"

    if _registry is not None:
        registry_state = {
            "stream_id": _registry.policy.stream_id,
            "initialized": _registry.is_initialized(),
            "authorized_count": _registry.authorized_count(),
            "locked_out": _registry.is_locked_out(),
        }
        health_data["registry"] = registry_state
        if registry_state["locked_out"] or not registry_state["initialized"]:
            health_data["status"] = "degraded"

    status_code = 200 if health_data["status"] == "healthy" else 503
    return jsonify(health_data), status_code


def run_health_server(port: int = 8080, debug: bool = False) -> None:
    """
    Run the health check server.

    Args:
        port: Port to listen on (default: 8080)
        debug: Enable Flask debug mode (default: False)
    """
    logger.info("Starting health check server", port=port)
    app.run(host="0.0.0.0", port=port, debug=debug)


def main(argv: list[str] | None = None) -> None:
    """Serve the probes for one registry database."""
    parser = argparse.ArgumentParser(description="Authority Registry Health Server")
    parser.add_argument("--db", required=True, help="Registry database path")
    parser.add_argument("--stream", default=None, help="Registry stream id")
    parser.add_argument("--port", type=int, default=8080, help="Port to listen on (default: 8080)")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    args = parser.parse_args(argv)

    configure_logging(json_output=is_production(), log_level="INFO")

    registry = None
    if Path(args.db).exists():
        policy = RegistryPolicy(stream_id=args.stream) if args.stream else RegistryPolicy()
        registry = AuthorityRegistry(args.db, policy=policy)
    initialize_health_server(args.db, registry=registry)
    run_health_server(port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
