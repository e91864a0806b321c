"""
Helpdesk Engine Services

Core business logic: access policy, numbering, storage, lifecycle,
stats and notifications.
"""

from .access import Action, can_access, require_access, require_admin, listing_filter
from .numbering import TicketNumberAllocator, format_ticket_number
from .store import TicketStore
from .lifecycle import LifecycleEngine, apply_changes
from .stats import StatsService
from .notifications import (
    Message,
    NotificationDispatcher,
    SmtpTransport,
    render,
)
from .helpdesk import HelpdeskService, build_helpdesk

__all__ = [
    # Access policy
    "Action", "can_access", "require_access", "require_admin", "listing_filter",

    # Ticket numbers
    "TicketNumberAllocator", "format_ticket_number",

    # Storage
    "TicketStore",

    # Lifecycle
    "LifecycleEngine", "apply_changes",

    # Stats
    "StatsService",

    # Notifications
    "Message", "NotificationDispatcher", "SmtpTransport", "render",

    # Boundary
    "HelpdeskService", "build_helpdesk",
]
