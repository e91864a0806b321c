"""
Helpdesk Ticket Model

Core records of the helpdesk:
1. User = Employee or admin, provisioned by the identity provider
2. Ticket = Support request filed by an employee
3. Comment = Threaded message on a ticket

Roles are a flat two-value enum, not a hierarchy.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, Enum):
    EMPLOYEE = "employee"
    ADMIN = "admin"


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Category(str, Enum):
    HARDWARE = "hardware"
    SOFTWARE = "software"
    NETWORK = "network"
    EMAIL = "email"
    ACCESS = "access"
    OTHER = "other"


# =============================================================================
# CORE MODELS
# =============================================================================

class User(BaseModel):
    """
    Directory entry for an employee or admin.

    The id is issued by the identity provider and never changes.
    Rows are upserted on login and by admin role changes, never deleted.
    """
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None

    role: Role = Role.EMPLOYEE
    department: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.last_name]
        return " ".join(p for p in parts if p) or self.email or self.id

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Ticket(BaseModel):
    """
    A support ticket.

    ticket_number is assigned once at creation and never reused.
    created_by never changes. resolved_at / closed_at are stamped on the
    first transition into their status and are never cleared.
    """
    id: Optional[int] = None  # Assigned by the store on insert
    ticket_number: str = Field(..., description="Human-readable ID, e.g. TKT-0042")

    subject: str
    description: str
    priority: Priority
    status: TicketStatus = TicketStatus.OPEN
    category: Category
    department: Optional[str] = None

    created_by: str
    assigned_to: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class Comment(BaseModel):
    """
    Message on a ticket thread.

    is_internal is reserved for admin-only notes; reads do not filter on it.
    """
    id: Optional[int] = None
    ticket_id: int
    user_id: str
    content: str = Field(..., min_length=1)
    is_internal: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)


# =============================================================================
# SUPPORTING MODELS
# =============================================================================

class Principal(BaseModel):
    """The authenticated caller of an operation."""
    model_config = ConfigDict(frozen=True)

    id: str
    role: Role = Role.EMPLOYEE

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class CommentWithAuthor(Comment):
    user: Optional[User] = None


class TicketSummary(Ticket):
    """Ticket joined with its creator and assignee, as listed."""
    creator: Optional[User] = None
    assignee: Optional[User] = None


class TicketDetail(TicketSummary):
    """Ticket with people and its comment thread, newest comment first."""
    comments: List[CommentWithAuthor] = Field(default_factory=list)


class TicketStats(BaseModel):
    """Ticket counts by status for the admin dashboard."""
    total: int = 0
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    closed: int = 0
