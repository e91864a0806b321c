"""
Helpdesk Notification Dispatcher

Three notifications, one per event kind:
- ticket created  -> every admin with an email
- ticket assigned -> the new assignee
- ticket closed   -> the reporter who filed it

Rendering is a pure function of the event. Delivery happens on a
background task fed by an in-process queue, so the request that produced
the event never waits on SMTP. Failures are logged and dropped.
"""

import asyncio
import html
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, List, Optional
from pydantic import BaseModel, Field

from ..config import DEFAULT_FROM_EMAIL, Settings
from ..errors import NotificationDeliveryFailure
from ..models.events import (
    EventType,
    TicketAssigned,
    TicketClosed,
    TicketCreated,
    TicketEvent,
)
from ..models.ticket import User

logger = logging.getLogger(__name__)


class Message(BaseModel):
    """A rendered notification, ready for the transport."""
    recipients: List[str] = Field(default_factory=list)
    subject: str
    html_body: str
    text_body: str


# =============================================================================
# RENDERING
# =============================================================================

def _name(user: Optional[User], fallback: str = "Unknown") -> str:
    return user.full_name if user else fallback


def _when(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC") if value else "n/a"


def _html_page(title: str, header_color: str, heading: str, paragraphs: List[str], details: List[tuple]) -> str:
    rows = "\n".join(
        f"<p><strong>{html.escape(label)}:</strong> {html.escape(str(value))}</p>"
        for label, value in details
    )
    body = "\n".join(f"<p>{html.escape(p)}</p>" for p in paragraphs)
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{html.escape(title)}</title>
    <style>
      body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
      .header {{ background-color: {header_color}; color: white; padding: 20px; }}
      .ticket-details {{ background-color: #f8f9fa; padding: 15px; margin: 15px 0; }}
    </style>
  </head>
  <body>
    <div class="header"><h1>{html.escape(heading)}</h1></div>
    {body}
    <div class="ticket-details">
{rows}
    </div>
    <p>Best regards,<br>Helpdesk System</p>
  </body>
</html>"""


def _text_page(paragraphs: List[str], details: List[tuple]) -> str:
    lines = list(paragraphs) + [""] + [f"{label}: {value}" for label, value in details]
    return "\n".join(lines + ["", "Helpdesk System"])


def render_ticket_created(event: TicketCreated) -> Message:
    ticket = event.ticket
    creator = event.creator
    details = [
        ("Ticket Number", ticket.ticket_number),
        ("Subject", ticket.subject),
        ("Priority", ticket.priority.value.upper()),
        ("Category", ticket.category.value),
        ("Created by", f"{_name(creator)} ({creator.email if creator and creator.email else 'no email'})"),
        ("Department", ticket.department or "Not specified"),
        ("Created", _when(ticket.created_at)),
        ("Description", ticket.description),
    ]
    paragraphs = [
        "A new support ticket has been created and requires attention.",
        "Please log in to the helpdesk portal to review and assign this ticket.",
    ]
    return Message(
        recipients=[r for r in event.recipients if r],
        subject=f"New Ticket Created: {ticket.subject}",
        html_body=_html_page("New Ticket Created", "#3b82f6", "New Support Ticket Created", paragraphs, details),
        text_body=_text_page(paragraphs, details)
    )


def render_ticket_assigned(event: TicketAssigned) -> Message:
    ticket = event.ticket
    assignee = event.assignee
    details = [
        ("Ticket Number", ticket.ticket_number),
        ("Subject", ticket.subject),
        ("Priority", ticket.priority.value.upper()),
        ("Category", ticket.category.value),
        ("Created by", _name(event.creator)),
        ("Created", _when(ticket.created_at)),
        ("Description", ticket.description),
    ]
    paragraphs = [
        f"Hello {assignee.first_name or assignee.full_name},",
        "A support ticket has been assigned to you. Please review the details below.",
    ]
    return Message(
        recipients=[assignee.email] if assignee.email else [],
        subject=f"Ticket Assigned: {ticket.subject}",
        html_body=_html_page("Ticket Assigned", "#3b82f6", "Ticket Assigned to You", paragraphs, details),
        text_body=_text_page(paragraphs, details)
    )


def render_ticket_closed(event: TicketClosed) -> Message:
    ticket = event.ticket
    creator = event.creator
    details = [
        ("Ticket Number", ticket.ticket_number),
        ("Subject", ticket.subject),
        ("Resolved by", _name(event.assignee, fallback="Support Team")),
        ("Closed", _when(ticket.closed_at)),
    ]
    greeting = (creator.first_name or creator.full_name) if creator else "there"
    paragraphs = [
        f"Hello {greeting},",
        "Your support ticket has been resolved and closed.",
        "If you need further assistance, please create a new ticket.",
    ]
    return Message(
        recipients=[creator.email] if creator and creator.email else [],
        subject=f"Ticket Closed: {ticket.subject}",
        html_body=_html_page("Ticket Closed", "#16a34a", "Ticket Resolved", paragraphs, details),
        text_body=_text_page(paragraphs, details)
    )


RENDERERS = {
    EventType.TICKET_CREATED: render_ticket_created,
    EventType.TICKET_ASSIGNED: render_ticket_assigned,
    EventType.TICKET_CLOSED: render_ticket_closed,
}


def render(event: TicketEvent) -> Message:
    return RENDERERS[event.type](event)


# =============================================================================
# TRANSPORT
# =============================================================================

class SmtpTransport:
    """Blocking SMTP delivery with STARTTLS. Run off the event loop."""

    def __init__(self, host: str, port: int, username: str = "", password: str = "", timeout: float = 30.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpTransport":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password
        )

    def send(self, sender: str, recipients: List[str], subject: str, html_body: str, text_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["From"] = sender
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(sender, recipients, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationDeliveryFailure(f"SMTP delivery to {recipients} failed: {e}") from e


# =============================================================================
# DISPATCHER
# =============================================================================

class NotificationDispatcher:
    """
    Consumes events from a queue on a background task.

    publish() never blocks and never raises. Nothing here is retried;
    a failed delivery is logged and the next event is processed.
    """

    def __init__(self, transport, sender: str = DEFAULT_FROM_EMAIL, enabled: bool = True):
        self.transport = transport
        self.sender = sender or DEFAULT_FROM_EMAIL
        self.enabled = enabled
        self.queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def publish(self, events: Iterable[TicketEvent]) -> None:
        """Queue events for the worker. Dropped when disabled or not started."""
        for event in events:
            if not self.enabled:
                logger.debug(f"Notifications disabled, dropping {event.type.value}")
                continue
            if not self.running:
                logger.warning(f"Notification dispatcher not running, dropping {event.type.value}")
                continue
            self.queue.put_nowait(event)

    async def start(self) -> None:
        if not self.running:
            self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")
            logger.info("Notification dispatcher started")

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self.queue.join()

    async def stop(self) -> None:
        """Drain the queue, then stop the worker."""
        if not self.running:
            return
        await self.queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Notification dispatcher stopped")

    async def deliver(self, event: TicketEvent) -> bool:
        """Render and send one event. Returns True if it was handed to the transport."""
        message = render(event)
        number = event.ticket.ticket_number

        if not message.recipients:
            logger.info(f"No recipient email for {event.type.value} on {number}, skipping notification")
            return False

        try:
            await asyncio.to_thread(
                self.transport.send,
                self.sender,
                message.recipients,
                message.subject,
                message.html_body,
                message.text_body
            )
        except NotificationDeliveryFailure as e:
            logger.error(f"Failed to send {event.type.value} notification for {number}: {e}")
            return False

        logger.info(f"Sent {event.type.value} notification for {number} to {', '.join(message.recipients)}")
        return True

    async def _run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await self.deliver(event)
            except Exception:
                logger.exception(f"Unexpected error delivering {event.type.value} notification")
            finally:
                self.queue.task_done()
