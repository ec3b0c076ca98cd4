"""
Authority Registry CLI

Command-line interface for inspecting and administering a registry.

Usage:
    authority-registry init --creator alice --db authority.db
    authority-registry grant --caller alice --subject bob
    authority-registry revoke --caller alice --subject bob
    authority-registry check --principal bob
    authority-registry list
    authority-registry audit --json
"""

import json
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from authority_registry.kernel.errors import RegistryError
from authority_registry.kernel.logging import configure_logging, is_production
from authority_registry.kernel.policy import RegistryPolicy
from authority_registry.registry import AuthorityRegistry

configure_logging(json_output=is_production(), log_level="WARNING")

app = typer.Typer(
    name="authority-registry",
    help="Authority Registry - authorized principals with an audit trail",
    add_completion=False,
)

DEFAULT_DB = Path(".authority.db")

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", help="Database path"),
]
StreamOption = Annotated[
    Optional[str],
    typer.Option("--stream", help="Registry stream id"),
]


def get_registry(db_path: Optional[Path] = None, stream: Optional[str] = None) -> AuthorityRegistry:
    """Open an existing registry database"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'authority-registry init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    policy = RegistryPolicy(stream_id=stream) if stream else RegistryPolicy()
    return AuthorityRegistry(db, policy=policy)


def fail(error: RegistryError) -> None:
    """Report a rejected operation and exit non-zero"""
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(1)


@app.command()
def init(
    creator: Annotated[str, typer.Option("--creator", help="Initializing principal")],
    db: Annotated[Path, typer.Option(help="Database path")] = DEFAULT_DB,
    stream: StreamOption = None,
) -> None:
    """Initialize a registry stream and authorize its creator

    One database file can hold several registries, one per --stream.
    """
    created = not db.exists()
    policy = RegistryPolicy(stream_id=stream) if stream else RegistryPolicy()
    registry = AuthorityRegistry(db, policy=policy)
    try:
        registry.initialize(creator)
    except RegistryError as e:
        if created:
            db.unlink(missing_ok=True)
        fail(e)

    typer.echo(f"✓ Initialized registry: {db} (stream {policy.stream_id})")
    typer.echo(f"  Authorized: {creator}")


@app.command()
def grant(
    caller: Annotated[str, typer.Option("--caller", help="Authorized principal issuing the grant")],
    subject: Annotated[str, typer.Option("--subject", help="Principal to authorize")],
    db: DbOption = None,
    stream: StreamOption = None,
) -> None:
    """Authorize a principal"""
    registry = get_registry(db, stream)
    try:
        event = registry.grant(caller, subject)
    except RegistryError as e:
        fail(e)

    if event is None:
        typer.echo(f"= {subject} is already authorized (no change)")
    else:
        typer.echo(f"✓ Granted {subject} (by {caller}, sequence {event.sequence})")


@app.command()
def revoke(
    caller: Annotated[str, typer.Option("--caller", help="Authorized principal issuing the revoke")],
    subject: Annotated[str, typer.Option("--subject", help="Principal to deauthorize")],
    db: DbOption = None,
    stream: StreamOption = None,
) -> None:
    """Remove a principal's authorization"""
    registry = get_registry(db, stream)
    try:
        event = registry.revoke(caller, subject)
    except RegistryError as e:
        fail(e)

    if event is None:
        typer.echo(f"= {subject} is not authorized (no change)")
        return

    typer.echo(f"✓ Revoked {subject} (by {caller}, sequence {event.sequence})")
    if registry.is_locked_out():
        typer.echo(
            "WARNING: no authorized principal remains; the registry can no longer be changed",
            err=True,
        )


@app.command()
def check(
    principal: Annotated[str, typer.Option("--principal", help="Principal to check")],
    db: DbOption = None,
    stream: StreamOption = None,
) -> None:
    """Show whether a principal is authorized"""
    registry = get_registry(db, stream)
    if registry.is_authorized(principal):
        typer.echo(f"{principal}: authorized")
    else:
        typer.echo(f"{principal}: not authorized")


@app.command("list")
def list_authorized(
    db: DbOption = None,
    stream: StreamOption = None,
) -> None:
    """List authorized principals in grant order (re-grants repeat)"""
    registry = get_registry(db, stream)
    principals = registry.list_authorized()

    if not principals:
        typer.echo("No authorized principals (registry is locked out)")
        return

    typer.echo(f"Authorized Principals ({registry.authorized_count()}):")
    for principal in principals:
        typer.echo(f"  {principal}")


@app.command()
def audit(
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
    db: DbOption = None,
    stream: StreamOption = None,
) -> None:
    """Show the audit log"""
    registry = get_registry(db, stream)
    events = registry.audit_log()

    if as_json:
        typer.echo(json.dumps([e.model_dump(mode="json") for e in events], indent=2))
        return

    for event in events:
        typer.echo(
            f"{event.sequence:>6}  {event.occurred_at.isoformat()}  "
            f"{event.kind.value:<7}  {event.subject} (by {event.actor})"
        )


@app.command("legacy-status")
def legacy_status(
    principal: Annotated[str, typer.Option("--principal", help="Principal to check")],
    db: DbOption = None,
    stream: StreamOption = None,
) -> None:
    """Deprecated: print 1 if authorized else 0"""
    registry = get_registry(db, stream)
    typer.echo(str(registry.legacy_status(principal)))


if __name__ == "__main__":
    app()
