"""
Helpdesk Engine Models

Users, tickets, comments and the events derived from their changes.
"""

from .ticket import (
    # Enums
    Role,
    TicketStatus,
    Priority,
    Category,

    # Core models
    User,
    Ticket,
    Comment,

    # Supporting models
    Principal,
    CommentWithAuthor,
    TicketSummary,
    TicketDetail,
    TicketStats,
)
from .events import (
    EventType,
    TicketEvent,
    TicketCreated,
    TicketAssigned,
    TicketClosed,
)
from .requests import (
    CreateTicketRequest,
    UpdateTicketRequest,
    AddCommentRequest,
    UpdateRoleRequest,
    parse_request,
)

__all__ = [
    "Role", "TicketStatus", "Priority", "Category",
    "User", "Ticket", "Comment",
    "Principal", "CommentWithAuthor", "TicketSummary", "TicketDetail", "TicketStats",
    "EventType", "TicketEvent", "TicketCreated", "TicketAssigned", "TicketClosed",
    "CreateTicketRequest", "UpdateTicketRequest", "AddCommentRequest", "UpdateRoleRequest",
    "parse_request",
]
