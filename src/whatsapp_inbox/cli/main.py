"""
WhatsApp Inbox CLI

Command-line interface for WhatsApp inbox administration.

Commands:
- init-db: Create the inbox tables (development; use Alembic in production)
- create-account: Register a self-hosted bridge account for a tenant
- list-sessions: List device sessions of an account
- list-conversations: List conversations for a tenant
- reset-daily-counters: Zero the per-session daily message counters
"""

import asyncio
from typing import Optional
from uuid import UUID

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from inbox_core.logging import setup_logging

app = typer.Typer(
    name="whatsapp-inbox",
    help="WhatsApp Inbox CLI",
)

console = Console()


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL")):
    setup_logging(log_level)


def get_db():
    """Get database session."""
    from inbox_core.db import get_db as _get_db
    return next(_get_db())


def parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        rprint(f"[red]Invalid {label}: {value}[/red]")
        raise typer.Exit(1)


def admin_caller(tenant_id: UUID):
    """Caller used for CLI actions: licensed, with no user attached."""
    from inbox_core.settings import get_settings
    from whatsapp_inbox.contracts.context import CallerIdentity

    return CallerIdentity(
        user_id=None,
        tenant_id=tenant_id,
        licensed_modules=tuple(get_settings().WHATSAPP_MODULE_IDS),
    )


@app.command()
def init_db():
    """
    Create all inbox tables that do not exist yet.
    """
    from inbox_core.db import get_engine
    from whatsapp_inbox.persistence.models import WhatsAppBase

    WhatsAppBase.metadata.create_all(get_engine())
    rprint("[green]Tables created[/green]")


@app.command()
def create_account(
    tenant_id: str = typer.Argument(..., help="Tenant UUID"),
    base_url: str = typer.Argument(..., help="Bridge base URL (e.g., https://waha.example.com)"),
    api_key: Optional[str] = typer.Option(None, help="Bridge API key"),
    business_name: Optional[str] = typer.Option(None, help="Business display name"),
    phone: Optional[str] = typer.Option(None, help="Primary phone number (E.164)"),
):
    """
    Register a self-hosted bridge account.

    The bridge must answer its health endpoint before the account is stored.
    """
    tenant_uuid = parse_uuid(tenant_id, "tenant ID")

    from pydantic import ValidationError as PydanticValidationError

    from whatsapp_inbox.contracts.payloads import CreateAccountRequest
    from whatsapp_inbox.errors import InboxError
    from whatsapp_inbox.service.accounts import AccountService

    try:
        request = CreateAccountRequest(
            provider_base_url=base_url,
            provider_api_key=api_key,
            business_name=business_name,
            primary_phone=phone,
        )
    except PydanticValidationError as e:
        rprint(f"[red]Invalid input: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(1)

    db = get_db()

    try:
        service = AccountService(db)
        try:
            account = asyncio.run(service.create_account(admin_caller(tenant_uuid), request))
        except InboxError as e:
            rprint(f"[red]{e.message}[/red]")
            raise typer.Exit(1)

        rprint("[green]Account created[/green]")
        rprint(f"  ID: {account.id}")
        rprint(f"  Bridge: {account.provider_base_url}")
        rprint(f"  Status: {account.status}")

    finally:
        db.close()


@app.command()
def list_sessions(
    account_id: str = typer.Argument(..., help="Account UUID"),
):
    """
    List device sessions of an account.
    """
    account_uuid = parse_uuid(account_id, "account ID")

    db = get_db()

    try:
        from whatsapp_inbox.persistence.repo import WhatsAppRepository

        repo = WhatsAppRepository(db)
        sessions = repo.list_sessions(account_uuid)

        if not sessions:
            rprint("[yellow]No sessions found[/yellow]")
            raise typer.Exit(0)

        table = Table(title=f"Sessions for account {account_id[:8]}...")
        table.add_column("ID", style="dim")
        table.add_column("Instance")
        table.add_column("Device")
        table.add_column("Phone")
        table.add_column("Status")
        table.add_column("Sent today")
        table.add_column("Received today")

        for session in sessions:
            table.add_row(
                str(session.id)[:8] + "...",
                session.provider_session_id,
                session.device_name or "-",
                session.phone_number or "-",
                session.status,
                str(session.daily_sent_count),
                str(session.daily_recv_count),
            )

        console.print(table)

    finally:
        db.close()


@app.command()
def list_conversations(
    tenant_id: str = typer.Argument(..., help="Tenant UUID"),
    status: Optional[str] = typer.Option(None, help="Filter by status (open, closed, archived)"),
    limit: int = typer.Option(20, help="Maximum number of conversations to show"),
):
    """
    List conversations for a tenant.
    """
    tenant_uuid = parse_uuid(tenant_id, "tenant ID")

    db = get_db()

    try:
        from whatsapp_inbox.persistence.models import ConversationStatus
        from whatsapp_inbox.persistence.repo import WhatsAppRepository

        repo = WhatsAppRepository(db)

        status_filter = None
        if status:
            try:
                status_filter = ConversationStatus(status)
            except ValueError:
                rprint(f"[yellow]Unknown status: {status}[/yellow]")

        conversations = repo.list_conversations(
            tenant_id=tenant_uuid,
            status=status_filter,
            limit=limit,
        )

        if not conversations:
            rprint("[yellow]No conversations found[/yellow]")
            raise typer.Exit(0)

        table = Table(title=f"Conversations for tenant {tenant_id[:8]}...")
        table.add_column("ID", style="dim")
        table.add_column("Phone")
        table.add_column("Status")
        table.add_column("Unread")
        table.add_column("Last Message")

        for conv in conversations:
            identity = repo.get_identity_for_contact(conv.contact_id)
            table.add_row(
                str(conv.id)[:8] + "...",
                identity.whatsapp_number if identity else "-",
                conv.status,
                str(conv.unread_count),
                conv.last_message_at.strftime("%Y-%m-%d %H:%M") if conv.last_message_at else "-",
            )

        console.print(table)

    finally:
        db.close()


@app.command()
def reset_daily_counters(
    account_id: Optional[str] = typer.Option(None, help="Only reset sessions of this account"),
):
    """
    Zero daily sent/received counters (run once a day from cron).
    """
    account_uuid = parse_uuid(account_id, "account ID") if account_id else None

    db = get_db()

    try:
        from whatsapp_inbox.persistence.repo import WhatsAppRepository

        count = WhatsAppRepository(db).reset_daily_counters(account_uuid)
        db.commit()
        rprint(f"[green]Reset counters on {count} session(s)[/green]")

    except Exception:
        db.rollback()
        raise

    finally:
        db.close()


if __name__ == "__main__":
    app()
