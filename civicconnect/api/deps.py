import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from civicconnect.core.config import settings
from civicconnect.core.exceptions import ForbiddenError, UnauthorizedError
from civicconnect.core.security import decode_access_token
from civicconnect.crud.user import get_user
from civicconnect.db.session import get_db
from civicconnect.models import User
from civicconnect.schemas import TokenPayload
from civicconnect.services.notifications import NotificationDispatcher
from civicconnect.services.storage import PhotoStorage

logger = logging.getLogger("civicconnect.auth")

# auto_error is off so a missing header is reported as 401, not 403
bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(settings.notification_config())


@lru_cache
def get_storage() -> PhotoStorage:
    return PhotoStorage(settings.UPLOAD_DIR, settings.MAX_UPLOAD_SIZE)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to a user. The user row is read on every request
    so role changes apply immediately.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("No token provided")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        logger.warning("Rejected token: invalid or expired")
        raise UnauthorizedError("Could not validate credentials")

    try:
        token_data = TokenPayload(**payload)
    except ValueError:
        logger.warning("Rejected token: malformed payload")
        raise UnauthorizedError("Could not validate credentials")
    if token_data.sub is None:
        logger.warning("Rejected token: no subject")
        raise UnauthorizedError("Could not validate credentials")

    user = await get_user(db, id=token_data.sub)
    if not user:
        logger.warning(f"Rejected token: user {token_data.sub} not found")
        raise UnauthorizedError("User not found")
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    if not current_user.is_active:
        raise UnauthorizedError("Account is not active")
    return current_user


async def get_current_staff_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Staff-or-admin policy."""
    if not current_user.role.is_staff:
        raise ForbiddenError("Staff or admin access required")
    return current_user


async def get_current_admin_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Admin-only policy."""
    if not current_user.role.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user


def ensure_self_or_admin(current_user: User, user_id: int) -> None:
    if current_user.id != user_id and not current_user.role.is_admin:
        raise ForbiddenError("Permission denied")


def ensure_can_view_issue(current_user: User, reporter_id: int) -> None:
    """Citizens only see the issues they reported."""
    if not current_user.role.is_staff and reporter_id != current_user.id:
        raise ForbiddenError("Not enough permissions")
