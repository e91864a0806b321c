"""
Helpdesk Request Models

Inbound payloads for the boundary operations. Unknown keys (created_by,
ticket_number, timestamps) are dropped, never applied.
"""

from typing import Any, Mapping, Optional, Type, TypeVar
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from .ticket import Category, Priority, Role, TicketStatus

M = TypeVar("M", bound=BaseModel)


class CreateTicketRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    subject: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    priority: Priority
    category: Category
    department: Optional[str] = None


class UpdateTicketRequest(BaseModel):
    """Partial update. Only keys present in the payload are applied."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    subject: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    priority: Optional[Priority] = None
    status: Optional[TicketStatus] = None
    category: Optional[Category] = None
    department: Optional[str] = None
    assigned_to: Optional[str] = None

    @field_validator("subject", "description", "priority", "status", "category", mode="before")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

    @field_validator("assigned_to", mode="before")
    @classmethod
    def blank_means_unassigned(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class AddCommentRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: str = Field(..., min_length=1)
    is_internal: bool = False

    @field_validator("content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class UpdateRoleRequest(BaseModel):
    role: Role


def parse_request(model: Type[M], data: Any, message: str = "Invalid data") -> M:
    """Validate data against model, raising our ValidationError with field names."""
    if isinstance(data, model):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError(message, fields=["body"])

    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as exc:
        fields = sorted({
            ".".join(str(part) for part in err["loc"]) or "body"
            for err in exc.errors()
        })
        raise ValidationError(message, fields=fields) from exc
