"""
Unit tests for helpdesk_engine/repositories/memory.py
"""

import pytest

from helpdesk_engine.errors import NotFound
from helpdesk_engine.models import Comment, Ticket
from helpdesk_engine.repositories import InMemoryCommentRepository, InMemoryTicketRepository


@pytest.fixture
def tickets() -> InMemoryTicketRepository:
    return InMemoryTicketRepository([
        Ticket(
            id=1,
            ticket_number="TKT-0001",
            subject="Badge reader",
            description="Door stays locked",
            priority="medium",
            category="hardware",
            created_by="emp-e",
        )
    ])


@pytest.fixture
def comments(tickets) -> InMemoryCommentRepository:
    return InMemoryCommentRepository(tickets)


class TestTicketCommentReference:
    """Test the ticket_id reference between the two tables"""

    async def test_delete_removes_comments_in_same_step(self, tickets, comments):
        await comments.add(Comment(ticket_id=1, user_id="emp-e", content="First"))
        await comments.add(Comment(ticket_id=1, user_id="emp-e", content="Second"))

        assert await tickets.delete(1) == 2
        assert await comments.list_for_ticket(1) == []

    async def test_delete_missing_ticket(self, tickets):
        assert await tickets.delete(99) is None

    async def test_comment_on_deleted_ticket_is_rejected(self, tickets, comments):
        await tickets.delete(1)

        with pytest.raises(NotFound):
            await comments.add(Comment(ticket_id=1, user_id="emp-e", content="Too late"))
        assert await comments.list_for_ticket(1) == []
