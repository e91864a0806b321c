"""
Helpdesk Engine Repositories

Persistence backend used by the ticket store.
"""

from .memory import (
    InMemoryUserRepository,
    InMemoryTicketRepository,
    InMemoryCommentRepository,
)

__all__ = [
    "InMemoryUserRepository",
    "InMemoryTicketRepository",
    "InMemoryCommentRepository",
]
