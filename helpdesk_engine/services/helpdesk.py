"""
Helpdesk Service

Boundary operations consumed by the HTTP layer. Every call takes the
calling principal; the access policy gates it, the store does the read or
write, and for mutations the lifecycle engine derives fields and events.
Events are published to the dispatcher only after the write returned.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional

from ..config import Settings
from ..errors import ConflictError, NotAuthenticated, ValidationError
from ..models.requests import AddCommentRequest, UpdateRoleRequest, parse_request
from ..models.ticket import (
    Comment,
    CommentWithAuthor,
    Principal,
    Role,
    Ticket,
    TicketDetail,
    TicketStats,
    TicketSummary,
    User,
)
from ..repositories.memory import (
    InMemoryCommentRepository,
    InMemoryTicketRepository,
    InMemoryUserRepository,
)
from .access import Action, listing_filter, require_access, require_admin
from .lifecycle import LifecycleEngine
from .notifications import NotificationDispatcher, SmtpTransport
from .stats import StatsService
from .store import TicketStore

logger = logging.getLogger(__name__)


class HelpdeskService:

    def __init__(
        self,
        store: TicketStore,
        engine: LifecycleEngine,
        stats: StatsService,
        dispatcher: NotificationDispatcher,
        bootstrap_admins: Iterable[str] = ()
    ):
        self.store = store
        self.engine = engine
        self.stats = stats
        self.notifications = dispatcher
        self.bootstrap_admins = set(bootstrap_admins)

    # =========================================================================
    # Identity
    # =========================================================================

    async def resolve_principal(self, user_id: Optional[str]) -> Principal:
        """
        Turn an authenticated user id into a principal.

        The role always comes from the directory, never from the caller.
        """
        if not user_id:
            raise NotAuthenticated()
        user = await self.store.get_user(user_id)
        if user is None:
            raise NotAuthenticated()
        return Principal(id=user.id, role=user.role)

    async def provision_user(self, user_id: str, claims: Mapping[str, Any]) -> User:
        """
        Upsert a directory entry from identity-provider claims on login.

        Profile fields are refreshed; role is never taken from claims and
        an existing role is preserved. Ids listed as bootstrap admins start
        out as admin.
        """
        existing = await self.store.get_user(user_id)
        if existing:
            role = existing.role
        elif user_id in self.bootstrap_admins:
            role = Role.ADMIN
        else:
            role = Role.EMPLOYEE

        user = User(
            id=user_id,
            email=claims.get("email") or None,
            first_name=claims.get("first_name"),
            last_name=claims.get("last_name"),
            profile_image_url=claims.get("profile_image_url"),
            department=claims.get("department", existing.department if existing else None),
            role=role,
            created_at=existing.created_at if existing else datetime.utcnow()
        )
        try:
            return await self.store.upsert_user(user)
        except ConflictError as exc:
            raise ValidationError(str(exc), fields=["email"]) from exc

    async def get_current_user(self, principal: Principal) -> User:
        return await self.store.require_user(principal.id)

    # =========================================================================
    # Tickets
    # =========================================================================

    async def list_tickets(self, principal: Principal) -> List[TicketSummary]:
        return await self.store.list_tickets(created_by=listing_filter(principal))

    async def get_ticket(self, principal: Principal, ticket_id: int) -> TicketDetail:
        detail = await self.store.get_ticket_detail(ticket_id)
        require_access(principal, detail, Action.READ)
        return detail

    async def create_ticket(self, principal: Principal, fields: Mapping[str, Any]) -> Ticket:
        ticket, events = await self.engine.create_ticket(fields, principal)
        logger.info(f"Ticket {ticket.ticket_number} created by {principal.id}")
        self.notifications.publish(events)
        return ticket

    async def update_ticket(
        self,
        principal: Principal,
        ticket_id: int,
        fields: Mapping[str, Any]
    ) -> Ticket:
        ticket, events = await self.engine.apply_update(ticket_id, fields, principal)
        self.notifications.publish(events)
        return ticket

    async def delete_ticket(self, principal: Principal, ticket_id: int) -> None:
        ticket = await self.store.get_ticket(ticket_id)
        require_access(principal, ticket, Action.DELETE)
        await self.store.delete_ticket(ticket_id)
        logger.info(f"Ticket {ticket.ticket_number} deleted by {principal.id}")

    # =========================================================================
    # Comments
    # =========================================================================

    async def list_comments(self, principal: Principal, ticket_id: int) -> List[CommentWithAuthor]:
        ticket = await self.store.get_ticket(ticket_id)
        require_access(principal, ticket, Action.READ)
        return await self.store.list_comments(ticket_id)

    async def add_comment(
        self,
        principal: Principal,
        ticket_id: int,
        content: Any,
        is_internal: bool = False
    ) -> Comment:
        ticket = await self.store.get_ticket(ticket_id)
        require_access(principal, ticket, Action.COMMENT)

        request = parse_request(
            AddCommentRequest,
            {"content": content, "is_internal": is_internal},
            "Invalid comment data"
        )
        return await self.store.add_comment(Comment(
            ticket_id=ticket_id,
            user_id=principal.id,
            content=request.content,
            is_internal=request.is_internal,
            created_at=self.engine.clock()
        ))

    # =========================================================================
    # Admin
    # =========================================================================

    async def get_stats(self, principal: Principal) -> TicketStats:
        require_admin(principal)
        return await self.stats.get_stats()

    async def list_team(self, principal: Principal) -> List[User]:
        require_admin(principal)
        return await self.store.list_users()

    async def update_user_role(self, principal: Principal, user_id: str, role: Any) -> User:
        """
        Change a user's role.

        Demoting the last remaining admin is rejected so admin-only
        operations always stay reachable.
        """
        require_admin(principal)
        request = parse_request(UpdateRoleRequest, {"role": role}, "Invalid role")

        try:
            user = await self.store.set_user_role(user_id, request.role)
        except ConflictError as exc:
            raise ValidationError(str(exc), fields=["role"]) from exc

        logger.info(f"User {user_id} role set to {user.role.value} by {principal.id}")
        return user


def build_helpdesk(
    settings: Settings,
    transport=None,
    user_repo=None,
    ticket_repo=None,
    comment_repo=None,
    clock: Optional[Callable[[], datetime]] = None
) -> HelpdeskService:
    """Wire store, engine, stats and dispatcher from settings."""
    if ticket_repo is None:
        ticket_repo = InMemoryTicketRepository()
    store = TicketStore(
        user_repo if user_repo is not None else InMemoryUserRepository(),
        ticket_repo,
        comment_repo if comment_repo is not None else InMemoryCommentRepository(ticket_repo),
        max_attempts=settings.ticket_number_max_attempts
    )
    engine = LifecycleEngine(store, clock=clock or datetime.utcnow)
    dispatcher = NotificationDispatcher(
        transport if transport is not None else SmtpTransport.from_settings(settings),
        sender=settings.from_email,
        enabled=settings.notifications_enabled
    )
    return HelpdeskService(
        store,
        engine,
        StatsService(store),
        dispatcher,
        bootstrap_admins=settings.bootstrap_admins
    )
