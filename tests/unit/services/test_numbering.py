"""
Unit tests for ticket number allocation and collision retry
"""

import asyncio

import pytest

from helpdesk_engine.errors import ConflictError
from helpdesk_engine.repositories import (
    InMemoryCommentRepository,
    InMemoryTicketRepository,
    InMemoryUserRepository,
)
from helpdesk_engine.services.numbering import TicketNumberAllocator, format_ticket_number
from helpdesk_engine.services.store import TicketStore


class TestFormatTicketNumber:
    """Test TKT- formatting"""

    @pytest.mark.parametrize("sequence,expected", [
        (1, "TKT-0001"),
        (42, "TKT-0042"),
        (9999, "TKT-9999"),
        (10000, "TKT-10000"),
        (123456, "TKT-123456"),
    ])
    def test_pads_to_four_digits_without_truncating(self, sequence, expected):
        assert format_ticket_number(sequence) == expected

    def test_rejects_non_positive_sequence(self):
        with pytest.raises(ValueError):
            format_ticket_number(0)


class StuckSequenceRepository(InMemoryTicketRepository):
    """Hands out the same sequence value a few times, like a racing reader."""

    def __init__(self, stuck_value: int, repeats: int):
        super().__init__()
        self.stuck_value = stuck_value
        self.repeats = repeats

    async def next_sequence(self) -> int:
        if self.repeats > 0:
            self.repeats -= 1
            return self.stuck_value
        return await super().next_sequence()


def make_store(ticket_repo, max_attempts=5) -> TicketStore:
    return TicketStore(
        InMemoryUserRepository(),
        ticket_repo,
        InMemoryCommentRepository(ticket_repo),
        max_attempts=max_attempts
    )


def create(store, subject="Keyboard"):
    return store.create_ticket(
        subject=subject,
        description="Keys stick",
        priority="low",
        category="hardware",
        created_by="emp-e"
    )


class TestAllocator:
    """Test sequence-backed allocation"""

    async def test_allocates_consecutive_numbers(self):
        allocator = TicketNumberAllocator(InMemoryTicketRepository())
        assert await allocator.allocate() == "TKT-0001"
        assert await allocator.allocate() == "TKT-0002"

    async def test_numbers_of_deleted_tickets_are_not_reused(self):
        store = make_store(InMemoryTicketRepository())
        first = await create(store)
        await store.delete_ticket(first.id)

        second = await create(store)
        assert first.ticket_number == "TKT-0001"
        assert second.ticket_number == "TKT-0002"

    async def test_concurrent_creation_yields_distinct_numbers(self):
        store = make_store(InMemoryTicketRepository())
        tickets = await asyncio.gather(*[create(store, f"Ticket {i}") for i in range(25)])

        numbers = [t.ticket_number for t in tickets]
        assert len(set(numbers)) == 25


class TestCollisionRetry:
    """Test retry-on-conflict in the store"""

    async def test_collision_is_retried_transparently(self):
        repo = StuckSequenceRepository(stuck_value=1, repeats=2)
        store = make_store(repo)

        first = await create(store)
        second = await create(store)

        assert first.ticket_number == "TKT-0001"
        assert second.ticket_number != first.ticket_number

    async def test_conflict_surfaces_after_max_attempts(self):
        repo = StuckSequenceRepository(stuck_value=1, repeats=100)
        store = make_store(repo, max_attempts=3)
        await create(store)

        with pytest.raises(ConflictError):
            await create(store)

    async def test_repository_rejects_duplicate_numbers(self):
        repo = InMemoryTicketRepository()
        store = make_store(repo)
        ticket = await create(store)

        with pytest.raises(ConflictError):
            await repo.insert(ticket.model_copy(update={"id": None}))
