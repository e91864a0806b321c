"""
In-memory persistence backend.

Honours the same contract the engine expects from a relational store:
- ticket_number is unique (insert raises ConflictError on collision)
- the ticket sequence is atomically incremented and never rewinds
- update() runs read-modify-write on the committed row under a lock
- user emails are unique when present
- comments reference their ticket: adding one to a missing ticket fails,
  and deleting a ticket removes its comments in the same locked step

Records are copied on the way in and out so callers never share state
with the store.
"""

import asyncio
import itertools
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import ConflictError, NotFound
from ..models.ticket import Comment, Role, Ticket, User


class InMemoryUserRepository:
    """User directory keyed by the identity provider's id."""

    def __init__(self, users: Optional[Iterable[User]] = None):
        self._users: Dict[str, User] = {}
        self._lock = asyncio.Lock()
        for user in users or []:
            self._users[user.id] = user.model_copy(deep=True)

    async def get(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        return {
            uid: self._users[uid].model_copy(deep=True)
            for uid in set(user_ids)
            if uid in self._users
        }

    async def list_all(self) -> List[User]:
        users = sorted(
            self._users.values(),
            key=lambda u: ((u.first_name or "").lower(), u.id)
        )
        return [u.model_copy(deep=True) for u in users]

    async def upsert(self, user: User) -> User:
        """Insert, or update every field except id and created_at."""
        async with self._lock:
            self._check_email_unique(user)
            existing = self._users.get(user.id)
            if existing:
                stored = user.model_copy(
                    update={"created_at": existing.created_at, "updated_at": datetime.utcnow()},
                    deep=True
                )
            else:
                stored = user.model_copy(deep=True)
            self._users[user.id] = stored
            return stored.model_copy(deep=True)

    async def set_role(self, user_id: str, role: Role, keep_last_admin: bool = True) -> User:
        """
        Change a user's role atomically.

        With keep_last_admin, demoting the only remaining admin raises
        ConflictError instead of committing.
        """
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise NotFound("user", user_id)

            if keep_last_admin and user.role == Role.ADMIN and role != Role.ADMIN:
                admins = [u for u in self._users.values() if u.role == Role.ADMIN]
                if len(admins) <= 1:
                    raise ConflictError("Cannot remove the last remaining admin")

            stored = user.model_copy(update={"role": role, "updated_at": datetime.utcnow()})
            self._users[user_id] = stored
            return stored.model_copy(deep=True)

    def _check_email_unique(self, user: User) -> None:
        if not user.email:
            return
        for other in self._users.values():
            if other.id != user.id and other.email == user.email:
                raise ConflictError(f"Email {user.email} already registered")


class InMemoryTicketRepository:
    """Ticket table with a unique ticket_number column and a sequence."""

    def __init__(self, tickets: Optional[Iterable[Ticket]] = None):
        self._tickets: Dict[int, Ticket] = {}
        self._numbers: Dict[str, int] = {}
        # Shared with tables that reference tickets
        self.lock = asyncio.Lock()
        self._dependents: List["InMemoryCommentRepository"] = []

        for ticket in tickets or []:
            self._tickets[ticket.id] = ticket.model_copy(deep=True)
            self._numbers[ticket.ticket_number] = ticket.id

        self._ids = itertools.count(max(self._tickets, default=0) + 1)
        # Counts every ticket ever inserted, deleted ones included
        self._sequence = len(self._tickets)

    async def next_sequence(self) -> int:
        async with self.lock:
            self._sequence += 1
            return self._sequence

    async def insert(self, ticket: Ticket) -> Ticket:
        async with self.lock:
            if ticket.ticket_number in self._numbers:
                raise ConflictError(f"Ticket number {ticket.ticket_number} already exists")

            stored = ticket.model_copy(update={"id": next(self._ids)}, deep=True)
            self._tickets[stored.id] = stored
            self._numbers[stored.ticket_number] = stored.id
            return stored.model_copy(deep=True)

    async def get(self, ticket_id: int) -> Optional[Ticket]:
        ticket = self._tickets.get(ticket_id)
        return ticket.model_copy(deep=True) if ticket else None

    async def list_all(self, created_by: Optional[str] = None) -> List[Ticket]:
        """Newest first, optionally filtered by creator."""
        tickets = [
            t for t in self._tickets.values()
            if created_by is None or t.created_by == created_by
        ]
        tickets.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return [t.model_copy(deep=True) for t in tickets]

    async def update(
        self,
        ticket_id: int,
        mutate: Callable[[Ticket], Ticket]
    ) -> Tuple[Ticket, Ticket]:
        """
        Apply mutate() to the committed row and store the result.

        Returns (prior, updated). id and ticket_number cannot be changed.
        """
        async with self.lock:
            current = self._tickets.get(ticket_id)
            if current is None:
                raise NotFound("ticket", ticket_id)

            prior = current.model_copy(deep=True)
            updated = mutate(current.model_copy(deep=True))
            updated = updated.model_copy(
                update={"id": prior.id, "ticket_number": prior.ticket_number}
            )
            self._tickets[ticket_id] = updated
            return prior, updated.model_copy(deep=True)

    async def delete(self, ticket_id: int) -> Optional[int]:
        """
        Remove a ticket and every row that references it.

        Returns the number of dependent rows removed, or None if the ticket
        did not exist.
        """
        async with self.lock:
            ticket = self._tickets.pop(ticket_id, None)
            if ticket is None:
                return None
            # The number stays reserved; the sequence never rewinds
            return sum(table._purge(ticket_id) for table in self._dependents)

    def exists(self, ticket_id: int) -> bool:
        return ticket_id in self._tickets

    def add_dependent(self, table: "InMemoryCommentRepository") -> None:
        self._dependents.append(table)


class InMemoryCommentRepository:
    """Comment table keyed by id, with ticket_id referencing the ticket table."""

    def __init__(self, tickets: InMemoryTicketRepository, comments: Optional[Iterable[Comment]] = None):
        self._comments: Dict[int, Comment] = {}
        self._tickets = tickets
        self._lock = tickets.lock
        tickets.add_dependent(self)
        for comment in comments or []:
            self._comments[comment.id] = comment.model_copy(deep=True)
        self._ids = itertools.count(max(self._comments, default=0) + 1)

    async def add(self, comment: Comment) -> Comment:
        async with self._lock:
            if not self._tickets.exists(comment.ticket_id):
                raise NotFound("ticket", comment.ticket_id)
            stored = comment.model_copy(update={"id": next(self._ids)}, deep=True)
            self._comments[stored.id] = stored
            return stored.model_copy(deep=True)

    async def list_for_ticket(self, ticket_id: int) -> List[Comment]:
        """Newest first."""
        comments = [c for c in self._comments.values() if c.ticket_id == ticket_id]
        comments.sort(key=lambda c: (c.created_at, c.id), reverse=True)
        return [c.model_copy(deep=True) for c in comments]

    def _purge(self, ticket_id: int) -> int:
        # Caller holds the shared lock
        doomed = [cid for cid, c in self._comments.items() if c.ticket_id == ticket_id]
        for cid in doomed:
            del self._comments[cid]
        return len(doomed)
