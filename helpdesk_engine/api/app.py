"""
Helpdesk API

FastAPI application with:
- Ticket CRUD gated by the access policy
- Threaded comments
- Admin dashboard stats and team management
- Identity provisioning hook for the login flow

The identity provider sits in front of this app and forwards the
authenticated user id in the X-User-Id header.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..config import Settings, configure_logging, load_settings
from ..errors import (
    AccessDenied,
    ConflictError,
    NotAuthenticated,
    NotFound,
    ValidationError,
)
from ..models import Principal
from ..services import HelpdeskService, build_helpdesk

logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ProvisionRequest(BaseModel):
    sub: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_service(request: Request) -> HelpdeskService:
    return request.app.state.helpdesk


def get_identity(x_user_id: Optional[str] = Header(None)) -> str:
    """The user id vouched for by the identity provider, even before provisioning."""
    if not x_user_id:
        raise NotAuthenticated()
    return x_user_id


async def get_principal(
    x_user_id: Optional[str] = Header(None),
    service: HelpdeskService = Depends(get_service)
) -> Principal:
    return await service.resolve_principal(x_user_id)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": exc.message, "errors": exc.fields}
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        fields = sorted({
            ".".join(str(part) for part in err["loc"] if part != "body") or "body"
            for err in exc.errors()
        })
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Invalid data", "errors": fields}
        )

    @app.exception_handler(NotAuthenticated)
    async def not_authenticated(request: Request, exc: NotAuthenticated):
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"message": "Unauthorized"})

    @app.exception_handler(AccessDenied)
    async def access_denied(request: Request, exc: AccessDenied):
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"message": "Access denied"})

    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"message": str(exc)})

    @app.exception_handler(ConflictError)
    async def conflict(request: Request, exc: ConflictError):
        logger.error(f"Conflict on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"message": "Conflict, please retry"})

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal server error"}
        )


# =============================================================================
# APP SETUP
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    service: Optional[HelpdeskService] = None
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    helpdesk = service or build_helpdesk(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await helpdesk.notifications.start()
        try:
            yield
        finally:
            await helpdesk.notifications.stop()

    app = FastAPI(
        title="Helpdesk Engine",
        description="Ticket tracker with role-gated lifecycle and email notifications",
        version=__version__,
        lifespan=lifespan
    )
    app.state.helpdesk = helpdesk

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "helpdesk-engine",
            "version": __version__
        }

    # =========================================================================
    # AUTH ENDPOINTS
    # =========================================================================

    @app.get("/api/auth/user")
    async def current_user(
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        return await service.get_current_user(principal)

    @app.post("/api/auth/provision")
    async def provision_user(
        request: ProvisionRequest,
        identity: str = Depends(get_identity),
        service: HelpdeskService = Depends(get_service)
    ):
        """
        Upsert the directory entry for a freshly authenticated user.

        Called by the identity layer after a successful login. Callers may
        only provision their own entry.
        """
        if request.sub != identity:
            raise AccessDenied()
        claims = request.model_dump(exclude={"sub"}, exclude_unset=True)
        return await service.provision_user(request.sub, claims)

    # =========================================================================
    # TICKET ENDPOINTS
    # =========================================================================

    @app.get("/api/tickets")
    async def list_tickets(
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        """Admins get every ticket; everyone else the tickets they filed."""
        return await service.list_tickets(principal)

    @app.post("/api/tickets", status_code=status.HTTP_201_CREATED)
    async def create_ticket(
        data: Dict[str, Any],
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        return await service.create_ticket(principal, data)

    @app.get("/api/tickets/{ticket_id}")
    async def get_ticket(
        ticket_id: int,
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        return await service.get_ticket(principal, ticket_id)

    @app.patch("/api/tickets/{ticket_id}")
    async def update_ticket(
        ticket_id: int,
        data: Dict[str, Any],
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        return await service.update_ticket(principal, ticket_id, data)

    @app.delete("/api/tickets/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_ticket(
        ticket_id: int,
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        await service.delete_ticket(principal, ticket_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # =========================================================================
    # COMMENT ENDPOINTS
    # =========================================================================

    @app.get("/api/tickets/{ticket_id}/comments")
    async def list_comments(
        ticket_id: int,
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        return await service.list_comments(principal, ticket_id)

    @app.post("/api/tickets/{ticket_id}/comments", status_code=status.HTTP_201_CREATED)
    async def add_comment(
        ticket_id: int,
        data: Dict[str, Any],
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        return await service.add_comment(
            principal,
            ticket_id,
            data.get("content"),
            is_internal=data.get("is_internal", False)
        )

    # =========================================================================
    # ADMIN ENDPOINTS
    # =========================================================================

    @app.get("/api/stats")
    async def get_stats(
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        return await service.get_stats(principal)

    @app.get("/api/team")
    async def list_team(
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        return await service.list_team(principal)

    @app.patch("/api/team/{user_id}/role")
    async def update_user_role(
        user_id: str,
        data: Dict[str, Any],
        principal: Principal = Depends(get_principal),
        service: HelpdeskService = Depends(get_service)
    ):
        return await service.update_user_role(principal, user_id, data.get("role"))


# =============================================================================
# RUN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("helpdesk_engine.api.app:create_app", factory=True, host="0.0.0.0", port=8000)
