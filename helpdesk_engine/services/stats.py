"""
Helpdesk Stats Service

Ticket counts by status for the admin dashboard.
"""

from collections import Counter

from ..models.ticket import TicketStats, TicketStatus
from .store import TicketStore


class StatsService:

    def __init__(self, store: TicketStore):
        self.store = store

    async def get_stats(self) -> TicketStats:
        """
        Count tickets by status in a single pass over one snapshot.

        The four status counts always add up to total.
        """
        tickets = await self.store.all_tickets()
        counts = Counter(t.status for t in tickets)

        return TicketStats(
            total=len(tickets),
            open=counts[TicketStatus.OPEN],
            in_progress=counts[TicketStatus.IN_PROGRESS],
            resolved=counts[TicketStatus.RESOLVED],
            closed=counts[TicketStatus.CLOSED]
        )
