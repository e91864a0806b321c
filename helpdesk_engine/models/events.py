"""
Helpdesk Events

Emitted by the lifecycle engine after a state change has been committed,
consumed by the notification dispatcher.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from .ticket import Ticket, User


class EventType(str, Enum):
    TICKET_CREATED = "ticket_created"
    TICKET_ASSIGNED = "ticket_assigned"
    TICKET_CLOSED = "ticket_closed"


class TicketEvent(BaseModel):
    type: EventType
    ticket: Ticket
    creator: Optional[User] = None
    occurred_at: datetime = Field(default_factory=datetime.utcnow)


class TicketCreated(TicketEvent):
    """New ticket; addressed to every admin with an email on file."""
    type: EventType = EventType.TICKET_CREATED
    recipients: List[str] = Field(default_factory=list)


class TicketAssigned(TicketEvent):
    """Ticket handed to a new assignee; addressed to the assignee."""
    type: EventType = EventType.TICKET_ASSIGNED
    assignee: User


class TicketClosed(TicketEvent):
    """Ticket closed for the first time; addressed to the reporter."""
    type: EventType = EventType.TICKET_CLOSED
    assignee: Optional[User] = None
