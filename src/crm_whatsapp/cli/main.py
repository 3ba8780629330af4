"""
WhatsApp CLI

Command-line interface for pipeline administration.

Commands:
- init-db: Create the pipeline tables (development; use alembic in production)
- register-number: Register a workspace's WhatsApp number
- list-numbers: List registered numbers
- list-conversations: List conversations for a workspace
- send-test: Send a text message through the full send path
- replay-webhook: Re-process a logged webhook body
- translate-error: Show the user-facing message for a provider error code
- media-url: Resolve an inbound media ID to a download URL
"""

import asyncio
from typing import Optional
from uuid import UUID

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from crm_whatsapp.core.logging import setup_logging
from crm_whatsapp.core.settings import get_settings

app = typer.Typer(
    name="whatsapp-cli",
    help="WhatsApp CRM pipeline CLI",
)

console = Console()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
):
    setup_logging(log_level)


def get_db():
    """Get database session."""
    from crm_whatsapp.core.db import get_db as _get_db
    return next(_get_db())


def _parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        rprint(f"[red]Invalid {label}: {value}[/red]")
        raise typer.Exit(1)


@app.command()
def init_db():
    """
    Create all pipeline tables on DATABASE_URL.
    """
    from crm_whatsapp.core.db import get_engine
    from crm_whatsapp.persistence.models import WhatsAppBase

    WhatsAppBase.metadata.create_all(get_engine())
    rprint("[green]Tables created[/green]")


@app.command()
def register_number(
    workspace_id: str = typer.Argument(..., help="Workspace UUID"),
    phone_number_id: str = typer.Argument(..., help="WhatsApp phone number ID (Meta)"),
    waba_id: str = typer.Argument(..., help="WhatsApp Business Account ID"),
    display_number: str = typer.Argument(..., help="Display phone number (e.g., +5511999999999)"),
    access_token: str = typer.Option(..., help="Access token (encrypted if WHATSAPP_ENCRYPTION_KEY is set)"),
):
    """
    Register a workspace's WhatsApp Business number.

    The phone_number_id routes incoming webhooks to the workspace.
    """
    workspace_uuid = _parse_uuid(workspace_id, "workspace ID")
    settings = get_settings()

    db = get_db()

    try:
        from crm_whatsapp.persistence.repo import WhatsAppRepository
        from crm_whatsapp.routing.number_resolver import encrypt_access_token

        repo = WhatsAppRepository(db)

        existing = repo.get_number_by_phone_number_id(phone_number_id)
        if existing:
            rprint(f"[yellow]Number already registered for phone_number_id: {phone_number_id}[/yellow]")
            rprint(f"  Workspace: {existing.workspace_id}")
            rprint(f"  Status: {existing.status}")
            raise typer.Exit(1)

        if not settings.WHATSAPP_ENCRYPTION_KEY:
            rprint("[yellow]Warning: WHATSAPP_ENCRYPTION_KEY not set, storing token unencrypted[/yellow]")

        number = repo.create_number(
            workspace_id=workspace_uuid,
            phone_number_id=phone_number_id,
            waba_id=waba_id,
            display_number=display_number,
            access_token_encrypted=encrypt_access_token(access_token, settings.WHATSAPP_ENCRYPTION_KEY),
        )
        db.commit()

        rprint(f"[green]Successfully registered number:[/green]")
        rprint(f"  ID: {number.id}")
        rprint(f"  Workspace: {number.workspace_id}")
        rprint(f"  Display: {number.display_number}")
        rprint(f"  Phone Number ID: {number.phone_number_id}")

    finally:
        db.close()


@app.command()
def list_numbers(
    workspace_id: Optional[str] = typer.Option(None, help="Filter by workspace UUID"),
):
    """
    List registered WhatsApp numbers.
    """
    workspace_uuid = _parse_uuid(workspace_id, "workspace ID") if workspace_id else None

    db = get_db()

    try:
        from crm_whatsapp.persistence.repo import WhatsAppRepository

        numbers = WhatsAppRepository(db).list_numbers(workspace_uuid)

        if not numbers:
            rprint("[yellow]No numbers found[/yellow]")
            raise typer.Exit(0)

        table = Table(title="WhatsApp Numbers")
        table.add_column("ID", style="dim")
        table.add_column("Workspace", style="dim")
        table.add_column("Phone Number ID")
        table.add_column("Display")
        table.add_column("Status")

        for number in numbers:
            table.add_row(
                str(number.id),
                str(number.workspace_id)[:8] + "...",
                number.phone_number_id,
                number.display_number,
                number.status,
            )

        console.print(table)

    finally:
        db.close()


@app.command()
def list_conversations(
    workspace_id: str = typer.Argument(..., help="Workspace UUID"),
    status: Optional[str] = typer.Option(None, help="Filter by status (open, closed, pending)"),
    limit: int = typer.Option(20, help="Maximum number of conversations to show"),
):
    """
    List conversations for a workspace.
    """
    workspace_uuid = _parse_uuid(workspace_id, "workspace ID")

    db = get_db()

    try:
        from crm_whatsapp.persistence.models import ConversationStatus
        from crm_whatsapp.persistence.repo import WhatsAppRepository

        repo = WhatsAppRepository(db)

        status_filter = None
        if status:
            try:
                status_filter = ConversationStatus(status)
            except ValueError:
                rprint(f"[yellow]Unknown status: {status}[/yellow]")

        conversations = repo.list_conversations(
            workspace_id=workspace_uuid,
            status=status_filter,
            limit=limit,
        )

        if not conversations:
            rprint("[yellow]No conversations found[/yellow]")
            raise typer.Exit(0)

        table = Table(title=f"Conversations for workspace {workspace_id[:8]}...")
        table.add_column("ID", style="dim")
        table.add_column("Phone")
        table.add_column("Name")
        table.add_column("Status")
        table.add_column("Unread")
        table.add_column("Last Message")
        table.add_column("At")

        for conv in conversations:
            table.add_row(
                str(conv.id)[:8] + "...",
                conv.contact_phone,
                conv.contact_name or "-",
                conv.status,
                str(conv.unread_count),
                (conv.last_message_text or "-")[:40],
                conv.last_message_at.strftime("%Y-%m-%d %H:%M") if conv.last_message_at else "-",
            )

        console.print(table)

    finally:
        db.close()


@app.command()
def send_test(
    number_id: str = typer.Argument(..., help="Internal WhatsApp number UUID"),
    to: str = typer.Argument(..., help="Recipient phone number"),
    text: str = typer.Option("Hello from the WhatsApp CRM!", help="Message text"),
):
    """
    Send a test text message through the full send path.

    The message and conversation are stored like any API send.
    """
    number_uuid = _parse_uuid(number_id, "number ID")
    settings = get_settings()

    db = get_db()

    try:
        from crm_whatsapp.contracts.payloads import OutboundKind, SendMessageRequest
        from crm_whatsapp.providers import get_provider
        from crm_whatsapp.service.exceptions import PipelineError
        from crm_whatsapp.service.outbound_handler import OutboundDispatcher

        request = SendMessageRequest(
            whatsapp_number_id=number_uuid,
            to=to,
            message_type=OutboundKind.TEXT,
            content=text,
        )

        async def send():
            provider = get_provider()
            dispatcher = OutboundDispatcher(
                db,
                provider=provider,
                encryption_key=settings.WHATSAPP_ENCRYPTION_KEY,
            )
            try:
                return await dispatcher.send(request)
            finally:
                await provider.close()

        try:
            result = asyncio.run(send())
        except PipelineError as e:
            rprint(f"[red]Failed to send message[/red]")
            rprint(f"  Error: {e.message}")
            raise typer.Exit(1)

        rprint(f"[green]Message sent successfully![/green]")
        rprint(f"  Message ID: {result.message_id}")
        rprint(f"  Conversation: {result.message.conversation_id}")

    finally:
        db.close()


@app.command()
def replay_webhook(
    log_id: str = typer.Argument(..., help="Webhook log UUID"),
):
    """
    Re-process a logged webhook body.

    Units already stored are skipped, so replaying a body is safe.
    """
    log_uuid = _parse_uuid(log_id, "webhook log ID")

    db = get_db()

    try:
        from crm_whatsapp.persistence.repo import WhatsAppRepository
        from crm_whatsapp.service.inbound_handler import InboundIngestor

        log = WhatsAppRepository(db).get_webhook_log(log_uuid)
        if not log:
            rprint(f"[red]No webhook log found: {log_id}[/red]")
            raise typer.Exit(1)

        summary = InboundIngestor(db).process(log.payload, log)

        rprint(f"[green]Replayed webhook {log_id}[/green]")
        rprint(f"  Messages: {len(summary['messages'])}")
        rprint(f"  Statuses: {len(summary['statuses'])}")
        rprint(f"  Skipped changes: {summary['skipped_changes']}")
        if summary.get("error"):
            rprint(f"  [yellow]Error: {summary['error']}[/yellow]")

    finally:
        db.close()


@app.command()
def translate_error(
    code: int = typer.Argument(..., help="Graph API error code"),
    subcode: Optional[int] = typer.Option(None, help="Graph API error_subcode"),
    message: Optional[str] = typer.Option(None, help="Provider message (fallback)"),
    error_type: Optional[str] = typer.Option(None, "--type", help="Graph API error type"),
):
    """
    Show the user-facing message for a provider error.
    """
    from crm_whatsapp.providers.meta_cloud.errors import translate_provider_error

    rprint(translate_provider_error(code, subcode=subcode, message=message, error_type=error_type))


@app.command()
def media_url(
    number_id: str = typer.Argument(..., help="Internal WhatsApp number UUID"),
    media_id: str = typer.Argument(..., help="Media ID stored on an inbound message"),
):
    """
    Resolve an inbound media ID to a (short-lived) download URL.
    """
    number_uuid = _parse_uuid(number_id, "number ID")
    settings = get_settings()

    db = get_db()

    try:
        from crm_whatsapp.providers import get_provider
        from crm_whatsapp.routing.number_resolver import NumberResolver

        resolver = NumberResolver(db, encryption_key=settings.WHATSAPP_ENCRYPTION_KEY)
        number = resolver.resolve(number_uuid)
        if not number:
            rprint(f"[red]No WhatsApp number found: {number_id}[/red]")
            raise typer.Exit(1)

        access_token = resolver.get_access_token(number)
        if not access_token:
            rprint("[red]No access token configured for this number[/red]")
            raise typer.Exit(1)

        async def fetch():
            provider = get_provider()
            try:
                return await provider.get_media_url(media_id, access_token)
            finally:
                await provider.close()

        url = asyncio.run(fetch())
        if not url:
            rprint("[red]Could not resolve media URL[/red]")
            raise typer.Exit(1)

        rprint(url)

    finally:
        db.close()


if __name__ == "__main__":
    app()
