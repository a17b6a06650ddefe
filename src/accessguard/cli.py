from __future__ import annotations

import json
import logging
from typing import List, Optional

import typer

from accessguard import __version__
from accessguard.config import get_settings
from accessguard.exceptions import AccessGuardError, ConfigurationError, PolicyViolation

app = typer.Typer(add_completion=False, help="Access guard CLI")


@app.callback()
def _root() -> None:
    logging.basicConfig(
        level=get_settings().LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def version() -> None:
    typer.echo(__version__)


@app.command("init-db")
def init_db_command() -> None:
    """Create the reference store tables in DATABASE_URL."""
    from accessguard.database import init_db

    init_db(create_tables=True)
    typer.echo(f"Initialized {get_settings().DATABASE_URL}")


@app.command()
def query(
    sql: str = typer.Argument(..., help="SELECT returning id, object_type, fields"),
    user: Optional[str] = typer.Option(None, "--user", help="Principal user id"),
    roles: str = typer.Option("", "--roles", help="Comma-separated role names"),
    trust: Optional[str] = typer.Option(
        None, "--trust", help="restricted|elevated (default from settings)"
    ),
    require: List[str] = typer.Option(
        [], "--require", help="Critical field as Object.field (repeatable)"
    ),
    require_all: bool = typer.Option(
        False, "--require-all", help="Fail on any removed field"
    ),
) -> None:
    """
    Run a guarded query and print the resulting records as JSON.
    """
    from accessguard.database import get_db_session
    from accessguard.guard import GuardConfiguration, GuardedDataAccess
    from accessguard.store import AclPermissionEngine, SqlPersistenceEngine

    try:
        config = GuardConfiguration.from_settings()
        if trust:
            config.set_trust_level(trust)
        for entry in require:
            object_type, _, field_name = entry.partition(".")
            config.require_fields(object_type, [field_name] if field_name else [])
        if require_all:
            config.require_all_fields()
    except ConfigurationError as exc:
        typer.echo(exc.message, err=True)
        raise typer.Exit(code=1)

    role_list = [r.strip() for r in (roles or "").split(",") if r.strip()]

    with get_db_session() as session:
        acl = AclPermissionEngine(session, user_id=user, roles=role_list)
        access = GuardedDataAccess(SqlPersistenceEngine(session, acl), acl, config)
        try:
            records = access.query(sql)
        except PolicyViolation as exc:
            typer.echo(exc.message, err=True)
            raise typer.Exit(code=2)
        except AccessGuardError as exc:
            typer.echo(exc.message, err=True)
            raise typer.Exit(code=1)

    typer.echo(json.dumps([r.model_dump() for r in records], indent=2, default=str))


if __name__ == "__main__":  # pragma: no cover
    app()
