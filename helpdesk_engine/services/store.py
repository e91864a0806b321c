"""
Helpdesk Ticket Store

Wraps the persistence backend (user, ticket and comment repositories).

Repositories are injected; any backend exposing the same coroutine methods
as helpdesk_engine.repositories.memory can be plugged in.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ..errors import ConflictError, NotFound
from ..models.ticket import (
    Comment,
    CommentWithAuthor,
    Role,
    Ticket,
    TicketDetail,
    TicketSummary,
    User,
)
from .numbering import TicketNumberAllocator

logger = logging.getLogger(__name__)


class TicketStore:
    """
    CRUD over tickets, comments and the user directory.

    Ticket creation draws a number from the allocator and inserts it; if
    the backend's uniqueness constraint rejects the number, a fresh one is
    drawn and the insert retried. Callers only see ConflictError once
    every attempt has collided.
    """

    DEFAULT_MAX_ATTEMPTS = 5

    def __init__(
        self,
        user_repo,
        ticket_repo,
        comment_repo,
        allocator: Optional[TicketNumberAllocator] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS
    ):
        self.users = user_repo
        self.tickets = ticket_repo
        self.comments = comment_repo
        self.allocator = allocator or TicketNumberAllocator(ticket_repo)
        self.max_attempts = max(1, max_attempts)

    # =========================================================================
    # Users
    # =========================================================================

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.users.get(user_id)

    async def require_user(self, user_id: str) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFound("user", user_id)
        return user

    async def upsert_user(self, user: User) -> User:
        return await self.users.upsert(user)

    async def list_users(self) -> List[User]:
        return await self.users.list_all()

    async def admin_emails(self) -> List[str]:
        return [
            u.email for u in await self.users.list_all()
            if u.role == Role.ADMIN and u.email
        ]

    async def set_user_role(self, user_id: str, role: Role) -> User:
        return await self.users.set_role(user_id, role)

    # =========================================================================
    # Tickets
    # =========================================================================

    async def get_ticket(self, ticket_id: int) -> Ticket:
        ticket = await self.tickets.get(ticket_id)
        if ticket is None:
            raise NotFound("ticket", ticket_id)
        return ticket

    async def list_tickets(self, created_by: Optional[str] = None) -> List[TicketSummary]:
        tickets = await self.tickets.list_all(created_by=created_by)
        people = await self.users.get_many(
            [t.created_by for t in tickets] +
            [t.assigned_to for t in tickets if t.assigned_to]
        )
        return [
            TicketSummary(
                **t.model_dump(),
                creator=people.get(t.created_by),
                assignee=people.get(t.assigned_to) if t.assigned_to else None
            )
            for t in tickets
        ]

    async def get_ticket_detail(self, ticket_id: int) -> TicketDetail:
        ticket = await self.get_ticket(ticket_id)
        creator = await self.users.get(ticket.created_by)
        assignee = await self.users.get(ticket.assigned_to) if ticket.assigned_to else None
        return TicketDetail(
            **ticket.model_dump(),
            creator=creator,
            assignee=assignee,
            comments=await self.list_comments(ticket_id)
        )

    async def create_ticket(
        self,
        subject: str,
        description: str,
        priority,
        category,
        created_by: str,
        department: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Ticket:
        now = now or datetime.utcnow()

        for attempt in range(1, self.max_attempts + 1):
            number = await self.allocator.allocate()
            draft = Ticket(
                ticket_number=number,
                subject=subject,
                description=description,
                priority=priority,
                category=category,
                department=department,
                created_by=created_by,
                created_at=now,
                updated_at=now
            )
            try:
                return await self.tickets.insert(draft)
            except ConflictError:
                logger.warning(
                    f"Ticket number {number} already taken "
                    f"(attempt {attempt}/{self.max_attempts}), retrying"
                )

        raise ConflictError(
            f"Could not allocate a unique ticket number after {self.max_attempts} attempts"
        )

    async def update_ticket(
        self,
        ticket_id: int,
        mutate: Callable[[Ticket], Ticket]
    ) -> Tuple[Ticket, Ticket]:
        """Run mutate against the committed row. Returns (prior, updated)."""
        return await self.tickets.update(ticket_id, mutate)

    async def delete_ticket(self, ticket_id: int) -> None:
        """Remove the ticket and cascade to its comments in one step."""
        removed = await self.tickets.delete(ticket_id)
        if removed is None:
            raise NotFound("ticket", ticket_id)
        logger.info(f"Deleted ticket {ticket_id} and {removed} comment(s)")

    async def all_tickets(self) -> List[Ticket]:
        return await self.tickets.list_all()

    # =========================================================================
    # Comments
    # =========================================================================

    async def add_comment(self, comment: Comment) -> Comment:
        return await self.comments.add(comment)

    async def list_comments(self, ticket_id: int) -> List[CommentWithAuthor]:
        comments = await self.comments.list_for_ticket(ticket_id)
        authors = await self.users.get_many(c.user_id for c in comments)
        return [
            CommentWithAuthor(**c.model_dump(), user=authors.get(c.user_id))
            for c in comments
        ]
