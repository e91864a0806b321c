"""
Helpdesk Lifecycle Engine

Statuses form a flat set: any status may move to any other. Transitions
matter only for two things:
- first-time stamping of resolved_at / closed_at (never overwritten)
- deciding which notifications a change triggers

Events are returned to the caller, which publishes them once the write
has been committed.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Tuple

from ..errors import NotFound, ValidationError
from ..models.events import TicketAssigned, TicketClosed, TicketCreated, TicketEvent
from ..models.requests import CreateTicketRequest, UpdateTicketRequest, parse_request
from ..models.ticket import Principal, Ticket, TicketStatus
from .access import Action, require_access
from .store import TicketStore


def apply_changes(ticket: Ticket, changes: Mapping[str, Any], now: datetime) -> Ticket:
    """
    Merge a partial update into ticket and derive timestamps.

    Only keys present in changes are touched. updated_at is always bumped.
    """
    update: Dict[str, Any] = dict(changes)
    new_status = changes.get("status")

    if (
        new_status == TicketStatus.RESOLVED
        and ticket.status != TicketStatus.RESOLVED
        and ticket.resolved_at is None
    ):
        update["resolved_at"] = now

    if (
        new_status == TicketStatus.CLOSED
        and ticket.status != TicketStatus.CLOSED
        and ticket.closed_at is None
    ):
        update["closed_at"] = now

    update["updated_at"] = now
    return ticket.model_copy(update=update)


def closes_ticket(prior: Ticket, changes: Mapping[str, Any]) -> bool:
    return changes.get("status") == TicketStatus.CLOSED and prior.status != TicketStatus.CLOSED


def assigns_ticket(prior: Ticket, changes: Mapping[str, Any]) -> bool:
    if "assigned_to" not in changes:
        return False
    new_assignee = changes["assigned_to"]
    return bool(new_assignee) and new_assignee != prior.assigned_to


class LifecycleEngine:
    """
    Validates and applies ticket changes.

    Access is checked before anything is written. The merge itself runs
    inside the store's update so the prior state it sees is the committed
    one, not the copy read for the access check.
    """

    def __init__(self, store: TicketStore, clock: Callable[[], datetime] = datetime.utcnow):
        self.store = store
        self.clock = clock

    async def create_ticket(
        self,
        fields: Mapping[str, Any],
        actor: Principal
    ) -> Tuple[Ticket, List[TicketEvent]]:
        """
        File a new ticket as actor.

        created_by is forced to the actor; status starts at open.
        """
        request = parse_request(CreateTicketRequest, fields, "Invalid ticket data")

        ticket = await self.store.create_ticket(
            subject=request.subject,
            description=request.description,
            priority=request.priority,
            category=request.category,
            department=request.department,
            created_by=actor.id,
            now=self.clock()
        )

        creator = await self.store.get_user(actor.id)
        recipients = await self.store.admin_emails()
        return ticket, [TicketCreated(ticket=ticket, creator=creator, recipients=recipients)]

    async def apply_update(
        self,
        ticket_id: int,
        fields: Mapping[str, Any],
        actor: Principal
    ) -> Tuple[Ticket, List[TicketEvent]]:
        """
        Apply a partial update as actor.

        Assignees may change status and details of their ticket; changing
        assigned_to additionally needs the assign right (admins only).
        """
        ticket = await self.store.get_ticket(ticket_id)
        require_access(actor, ticket, Action.UPDATE)

        request = parse_request(UpdateTicketRequest, fields, "Invalid update data")
        changes = request.model_dump(exclude_unset=True)

        if "assigned_to" in changes and changes["assigned_to"] != ticket.assigned_to:
            require_access(actor, ticket, Action.ASSIGN)
            if changes["assigned_to"]:
                await self._require_assignee(changes["assigned_to"])

        now = self.clock()
        prior, updated = await self.store.update_ticket(
            ticket_id,
            lambda current: apply_changes(current, changes, now)
        )

        events = await self._derive_events(prior, updated, changes)
        return updated, events

    # =========================================================================
    # Private methods
    # =========================================================================

    async def _require_assignee(self, user_id: str) -> None:
        try:
            await self.store.require_user(user_id)
        except NotFound as exc:
            raise ValidationError("Unknown assignee", fields=["assigned_to"]) from exc

    async def _derive_events(
        self,
        prior: Ticket,
        updated: Ticket,
        changes: Mapping[str, Any]
    ) -> List[TicketEvent]:
        events: List[TicketEvent] = []
        closing = closes_ticket(prior, changes)
        assigning = assigns_ticket(prior, changes)
        if not (closing or assigning):
            return events

        creator = await self.store.get_user(updated.created_by)
        assignee = await self.store.get_user(updated.assigned_to) if updated.assigned_to else None

        if closing:
            events.append(TicketClosed(ticket=updated, creator=creator, assignee=assignee))

        if assigning and assignee is not None:
            events.append(TicketAssigned(ticket=updated, creator=creator, assignee=assignee))

        return events
