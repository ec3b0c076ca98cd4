"""
Prometheus metrics server for Authority Registry.

Exposes registry metrics at /metrics. When --db is given, the registry is
opened and re-read every --refresh-seconds so the authorized-principal
and lockout gauges follow writes made by other processes.

Usage:
    python -m authority_registry.metrics_server --port 9090 --db authority.db
"""

import argparse
import time

from authority_registry.kernel.logging import configure_logging, get_logger
from authority_registry.kernel.metrics import start_metrics_server
from authority_registry.kernel.policy import RegistryPolicy
from authority_registry.registry import AuthorityRegistry

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Authority Registry Metrics Server")
    parser.add_argument(
        "--port",
        type=int,
        default=9090,
        help="Port to listen on (default: 9090)",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Registry database to load gauges from (optional)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--stream",
        type=str,
        default=None,
        help="Registry stream id (default: the policy default)",
    )
    parser.add_argument(
        "--refresh-seconds",
        type=float,
        default=15.0,
        help="How often to re-read the registry for the gauges (default: 15)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format (default: False)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Start the Prometheus metrics server and block until interrupted."""
    args = build_parser().parse_args(argv)

    configure_logging(json_output=args.json_logs, log_level=args.log_level)

    registry = None
    if args.db:
        policy = RegistryPolicy(stream_id=args.stream) if args.stream else RegistryPolicy()
        registry = AuthorityRegistry(args.db, policy=policy)

    logger.info(
        "Starting Prometheus metrics server",
        port=args.port,
        endpoint=f"http://0.0.0.0:{args.port}/metrics",
    )
    start_metrics_server(port=args.port)

    try:
        while True:
            time.sleep(args.refresh_seconds)
            # Other processes write the stream; pull their events into the gauges
            if registry is not None:
                registry.refresh()
    except KeyboardInterrupt:
        logger.info("Shutting down metrics server")


if __name__ == "__main__":
    main()
