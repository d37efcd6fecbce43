"""CLI utilities for daily backup catalog setup and legacy data migration."""

# purpose: let administrators seed the backup catalog, migrate legacy records, and issue API tokens
# status: active
# depends_on: itops.database, itops.services.catalog, itops.services.completion

from __future__ import annotations

import json

import typer
from sqlalchemy.orm import Session

from .. import models
from ..auth import generate_api_token
from ..database import SessionLocal, init_db
from ..services import catalog
from ..services.completion import backfill_legacy_matrix

app = typer.Typer(help="Daily backup maintenance commands")


def seed_catalog() -> dict[str, int]:
    """Create the default disks, statuses, file types, and notification settings."""

    session = SessionLocal()
    try:
        created = catalog.seed_defaults(session)
        session.commit()
        return created
    finally:
        session.close()


def backfill_legacy(dry_run: bool = False) -> dict[str, int | bool]:
    """Move legacy fixed status columns into the file matrix."""

    session = SessionLocal()
    try:
        summary = backfill_legacy_matrix(session)
        if dry_run:
            session.rollback()
        else:
            session.commit()
        return {**summary, "dry_run": dry_run}
    finally:
        session.close()


def _create_user(
    session: Session,
    username: str,
    *,
    email: str | None = None,
    full_name: str | None = None,
    is_admin: bool = False,
) -> models.User:
    if session.query(models.User).filter(models.User.username == username).first():
        raise ValueError(f"User {username!r} already exists")
    user = models.User(
        username=username,
        email=email,
        full_name=full_name,
        is_admin=is_admin,
        api_token=generate_api_token(),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def create_user(
    username: str,
    *,
    email: str | None = None,
    full_name: str | None = None,
    is_admin: bool = False,
) -> dict[str, object]:
    session = SessionLocal()
    try:
        user = _create_user(
            session, username, email=email, full_name=full_name, is_admin=is_admin
        )
        return {
            "id": str(user.id),
            "username": user.username,
            "is_admin": user.is_admin,
            "api_token": user.api_token,
        }
    finally:
        session.close()


@app.command("init-db")
def init_db_command() -> None:
    """Create missing tables without running migrations."""

    init_db()
    typer.echo(json.dumps({"initialized": True}))


@app.command("seed")
def seed_command() -> None:
    """CLI wrapper for :func:`seed_catalog`."""

    typer.echo(json.dumps(seed_catalog()))


@app.command("backfill-legacy")
def backfill_legacy_command(
    dry_run: bool = typer.Option(False, help="Report what would be migrated without committing"),
) -> None:
    """CLI wrapper for :func:`backfill_legacy`."""

    typer.echo(json.dumps(backfill_legacy(dry_run=dry_run)))


@app.command("create-user")
def create_user_command(
    username: str,
    email: str = typer.Option(None, help="Email address for the email notification channel"),
    full_name: str = typer.Option(None, help="Display name used in completion notices"),
    admin: bool = typer.Option(False, help="Allow editing the backup configuration"),
) -> None:
    """Create a user and print its API token."""

    try:
        summary = create_user(username, email=email, full_name=full_name, is_admin=admin)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(json.dumps(summary))


if __name__ == "__main__":
    app()
