"""
Ticket number allocation.

TKT-0001, TKT-0042, ... TKT-10000. The sequence comes from the ticket
repository, which increments it atomically and never rewinds it, so
numbers of deleted tickets are not handed out again.
"""

PREFIX = "TKT-"
WIDTH = 4


def format_ticket_number(sequence: int) -> str:
    """Pad to WIDTH digits; longer numbers are kept whole."""
    if sequence < 1:
        raise ValueError(f"Ticket sequence must be positive, got {sequence}")
    return f"{PREFIX}{sequence:0{WIDTH}d}"


class TicketNumberAllocator:

    def __init__(self, ticket_repo):
        self.ticket_repo = ticket_repo

    async def allocate(self) -> str:
        sequence = await self.ticket_repo.next_sequence()
        return format_ticket_number(sequence)
