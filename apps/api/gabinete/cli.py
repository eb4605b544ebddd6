"""CLI tools for Gabinete administration."""

import sys
from contextlib import nullcontext

import click

from gabinete.db.enums import LogAction, LogModule, Role, UserStatus
from gabinete.db.models import User
from gabinete.db.session import SessionLocal
from gabinete.services import geo_service, import_service, user_service
from gabinete.services.audit_service import AuditLog
from gabinete.services.lifecycle_service import EntityLifecycle
from gabinete.services.timeline_service import Timeline
from gabinete.core.security import hash_password
from gabinete.utils.normalization import normalize_email, normalize_name

CLI_USER_AGENT = "gabinete-cli"


def _lifecycle(db) -> EntityLifecycle:
    audit = AuditLog(db, user_agent=CLI_USER_AGENT)
    return EntityLifecycle(db, audit, Timeline(db, audit))


def _require_actor(db, email: str) -> User:
    actor = user_service.get_user_by_email(db, email)
    if not actor or not actor.is_active:
        click.echo(f"❌ No active user with email {email}")
        sys.exit(1)
    if Role(actor.role) != Role.ADMIN:
        click.echo(f"❌ {email} is not an admin")
        sys.exit(1)
    return actor


@click.group()
def cli():
    """Gabinete CLI tools."""
    pass


@cli.command()
@click.option("--name", required=True, help="Full name")
@click.option("--email", required=True, help="Login email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def create_admin(name: str, email: str, password: str):
    """
    Create the first admin account.

    This is the bootstrap command for a fresh database; the admin can add
    the rest of the team from the control center afterwards.

    Example:
        python -m gabinete.cli create-admin --name "Ana Souza" --email "ana@gabinete.leg.br"
    """
    db = SessionLocal()
    try:
        if user_service.get_user_by_email(db, email):
            click.echo(f"❌ A user with email {email} already exists")
            return
        if len(password) < user_service.MIN_PASSWORD_LENGTH:
            click.echo(f"❌ Password must have at least {user_service.MIN_PASSWORD_LENGTH} characters")
            return

        admin = User(
            name=normalize_name(name),
            email=normalize_email(email),
            role=Role.ADMIN.value,
            status=UserStatus.ACTIVE.value,
            password_hash=hash_password(password),
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)

        # Bootstrap account records its own creation
        AuditLog(db, user_agent=CLI_USER_AGENT).log(
            LogAction.CREATE,
            LogModule.CONTROL_CENTER,
            admin.id,
            admin,
            meta={"name": admin.name, "role": admin.role, "source": "cli"},
        )
        click.echo(f"✓ Created admin: {admin.name} <{admin.email}>")
        click.echo(f"  ID: {admin.id}")
    finally:
        db.close()


@cli.command()
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--actor-email", required=True, help="Admin performing the import")
@click.option("--default-city", default="", help="City for rows without one")
@click.option("--default-state", default="", help="State (UF) for rows without one")
@click.option("--lookup-zip/--no-lookup-zip", default=False, help="Look up missing zip codes")
def import_constituents(
    csv_path: str, actor_email: str, default_city: str, default_state: str, lookup_zip: bool
):
    """Smart Import of constituents from a CSV file."""
    db = SessionLocal()
    try:
        actor = _require_actor(db, actor_email)
        with open(csv_path, "rb") as f:
            content = f.read()
        with geo_service.GeoClient() if lookup_zip else nullcontext() as geo_client:
            result = import_service.import_constituents_csv(
                _lifecycle(db),
                actor,
                content,
                default_city=default_city,
                default_state=default_state,
                geo_client=geo_client,
            )
        click.echo(f"✓ Created {result.created} constituents ({result.skipped} skipped)")
        for user in result.provisioned_users:
            click.echo(f"  + provisioned team member: {user.name}")
        if not result.audit_complete:
            click.echo("⚠️  Some audit entries could not be written, check the logs")
    finally:
        db.close()


@cli.command()
@click.option("--actor-email", required=True, help="Admin performing the reconciliation")
def reconcile_tags(actor_email: str):
    """Move responsible-name tags into the responsible field."""
    db = SessionLocal()
    try:
        actor = _require_actor(db, actor_email)
        result = import_service.reconcile_legacy_tags(_lifecycle(db), actor)
        click.echo(f"✓ Updated {result.updated} constituents")
        for user in result.provisioned_users:
            click.echo(f"  + provisioned team member: {user.name}")
    finally:
        db.close()


@cli.command()
@click.option("--actor-email", required=True, help="Admin performing the geocoding")
def geocode_constituents(actor_email: str):
    """Fill map coordinates for constituents with a zip code (about one per second)."""
    db = SessionLocal()
    try:
        actor = _require_actor(db, actor_email)
        result = geo_service.bulk_geocode(_lifecycle(db), actor)
        click.echo(
            f"✓ Processed {result.processed}: {result.updated} updated, {result.failed} failed"
        )
    finally:
        db.close()


if __name__ == "__main__":
    cli()
