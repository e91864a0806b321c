"""
Helpdesk Access Policy

A fixed policy table over a flat role model:

    action   | admin | creator | assignee
    ---------+-------+---------+---------
    read     |  yes  |   yes   |   yes
    comment  |  yes  |   yes   |   yes
    update   |  yes  |   no    |   yes
    assign   |  yes  |   no    |   no
    delete   |  yes  |   no    |   no

Listing, stats and the team directory are scoped separately below.
"""

from enum import Enum
from typing import Optional

from ..errors import AccessDenied
from ..models.ticket import Principal, Ticket


class Action(str, Enum):
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN = "assign"
    COMMENT = "comment"


def can_access(principal: Principal, ticket: Ticket, action: Action) -> bool:
    """Decide whether principal may perform action on ticket. Never raises."""
    if principal.is_admin:
        return True

    is_creator = principal.id == ticket.created_by
    is_assignee = ticket.assigned_to is not None and principal.id == ticket.assigned_to

    if action in (Action.READ, Action.COMMENT):
        return is_creator or is_assignee

    if action == Action.UPDATE:
        return is_assignee

    # DELETE and ASSIGN stay admin-only
    return False


def require_access(principal: Principal, ticket: Ticket, action: Action) -> None:
    """Raise AccessDenied unless the policy allows the action."""
    if not can_access(principal, ticket, action):
        raise AccessDenied()


def require_admin(principal: Principal) -> None:
    """Stats, team directory and role changes."""
    if not principal.is_admin:
        raise AccessDenied()


def listing_filter(principal: Principal) -> Optional[str]:
    """
    Creator filter for the ticket list.

    Admins see everything (None). Everyone else sees only what they filed;
    tickets assigned to them are reachable by direct read, not the list.
    """
    if principal.is_admin:
        return None
    return principal.id
