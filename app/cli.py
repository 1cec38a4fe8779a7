"""CLI tools for SupportBase administration."""

import click
from sqlalchemy.exc import SQLAlchemyError

from app.core.security import create_session_token
from app.db.enums import AgentRole
from app.db.models import Agent
from app.db.session import SessionLocal
from app.services import ticket_threading_service
from app.utils.normalization import normalize_email


@click.group()
def cli():
    """SupportBase CLI tools."""
    pass


@cli.command()
def close_stale_tickets():
    """
    Close resolved tickets whose reopen window has lapsed.

    Safe to run on a schedule; tickets already closed are left alone.

    Example:
        python -m app.cli close-stale-tickets
    """
    db = SessionLocal()
    try:
        closed = ticket_threading_service.close_stale_resolved_tickets(db)
        click.echo(f"✓ Closed {closed} stale resolved ticket(s)")
    except SQLAlchemyError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--name", required=True, help="Display name")
@click.option("--email", required=True, help="Agent email address")
@click.option(
    "--role",
    type=click.Choice([r.value for r in AgentRole]),
    default=AgentRole.AGENT.value,
    show_default=True,
)
def create_agent(name: str, email: str, role: str):
    """
    Create a support agent.

    Example:
        python -m app.cli create-agent --name "Sam" --email "sam@example.com"
    """
    email_norm = normalize_email(email)
    if not email_norm:
        click.echo(f"❌ Invalid email: {email}")
        raise SystemExit(1)

    db = SessionLocal()
    try:
        if db.query(Agent).filter(Agent.email == email_norm).first():
            click.echo(f"❌ Agent already exists: {email_norm}")
            raise SystemExit(1)

        agent = Agent(name=name.strip(), email=email_norm, role=AgentRole(role))
        db.add(agent)
        db.commit()

        click.echo(f"✓ Created agent: {agent.name}")
        click.echo(f"  ID: {agent.id}")
        click.echo(f"  Role: {role}")
    except SQLAlchemyError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="Agent email to issue a token for")
def issue_token(email: str):
    """
    Print a session token for an agent (bearer header or ?token= on streams).

    Example:
        python -m app.cli issue-token --email "sam@example.com"
    """
    db = SessionLocal()
    try:
        agent = db.query(Agent).filter(Agent.email == normalize_email(email)).first()
        if not agent:
            click.echo(f"❌ Agent not found: {email}")
            raise SystemExit(1)
        if not agent.is_active:
            click.echo(f"❌ Agent is disabled: {email}")
            raise SystemExit(1)

        click.echo(create_session_token(agent.id, agent.role.value, agent.token_version))
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="Agent email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for an agent by bumping their token_version.

    Example:
        python -m app.cli revoke-sessions --email "sam@example.com"
    """
    db = SessionLocal()
    try:
        agent = db.query(Agent).filter(Agent.email == normalize_email(email)).first()
        if not agent:
            click.echo(f"❌ Agent not found: {email}")
            raise SystemExit(1)

        old_version = agent.token_version
        agent.token_version += 1
        db.commit()

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {agent.token_version}")
    except SQLAlchemyError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


if __name__ == "__main__":
    cli()
