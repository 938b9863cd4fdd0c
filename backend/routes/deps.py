"""Request-scoped dependencies shared by the API routers."""
from typing import Optional

from fastapi import Depends, Header, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants import UserRole
from app.exceptions import PermissionDenied
from database.connection import get_db
from database.repository import AidStore
from database.schemas import SessionContext
from services.allocation_service import BeneficiaryLocks
from services.fraud_monitor import NotificationFeed
from utils.identifiers import require_uuid


async def get_store(db: AsyncSession = Depends(get_db)) -> AidStore:
    return AidStore(db)


async def get_session_context(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_region_id: Optional[str] = Header(None),
) -> SessionContext:
    """Build the caller's session from the X-User-* headers."""
    if not x_user_id or not x_user_role:
        raise PermissionDenied("Not signed in")
    try:
        role = UserRole(x_user_role.lower())
    except ValueError:
        raise PermissionDenied(f"Unknown role: {x_user_role}")
    user_id = require_uuid(x_user_id, "user_id")
    region_id = require_uuid(x_region_id, "region_id") if x_region_id else None
    try:
        return SessionContext(user_id=user_id, role=role, region_id=region_id)
    except PydanticValidationError:
        raise PermissionDenied("Malformed session")


async def require_admin(session: SessionContext = Depends(get_session_context)) -> SessionContext:
    if session.role != UserRole.ADMIN:
        raise PermissionDenied("Administrator access required")
    return session


async def require_disburser(session: SessionContext = Depends(get_session_context)) -> SessionContext:
    if session.role != UserRole.DISBURSER:
        raise PermissionDenied("Disburser access required")
    if not session.region_id:
        raise PermissionDenied("Disburser session has no region")
    return session


def get_notification_feed(request: Request) -> NotificationFeed:
    return request.app.state.notifications


def get_allocation_locks(request: Request) -> BeneficiaryLocks:
    return request.app.state.allocation_locks
