from datetime import timedelta
from typing import Any
import logging

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from civicconnect.api.deps import get_current_active_user
from civicconnect.core.config import settings
from civicconnect.core.exceptions import UnauthorizedError, ValidationError
from civicconnect.core.security import create_access_token
from civicconnect.crud.user import authenticate_user, create_user, get_user_by_email
from civicconnect.db.session import get_db
from civicconnect.models import User
from civicconnect.schemas import Token, UserBrief, UserCreate
from civicconnect.schemas import User as UserSchema

logger = logging.getLogger("civicconnect.auth")

router = APIRouter()


def issue_token(user: User) -> dict:
    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return {
        "access_token": create_access_token(subject=user.id, expires_delta=expires),
        "token_type": "bearer",
        "user": UserBrief.model_validate(user),
    }


@router.post("/auth/login", response_model=Token)
async def login_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Exchange email and password for a bearer token.
    The OAuth2 username field carries the email address.
    """
    email = form_data.username
    user = await authenticate_user(db, email=email, password=form_data.password)
    if not user:
        logger.warning(f"Login rejected: bad credentials for email={email}")
        raise UnauthorizedError("Incorrect email or password")
    if not user.is_active:
        logger.warning(f"Login rejected: deactivated account user_id={user.id}")
        raise UnauthorizedError("Account is not active")

    logger.info(f"Login: user_id={user.id}, role={user.role.value}")
    return issue_token(user)


@router.post("/auth/register", response_model=UserSchema, status_code=status.HTTP_201_CREATED)
async def register_user(
    user_in: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Sign up as a citizen. Staff and admin roles are granted by an admin.
    """
    if await get_user_by_email(db, email=user_in.email):
        logger.warning(f"Registration rejected: {user_in.email} already registered")
        raise ValidationError("Email already registered")

    user = await create_user(db, obj_in=user_in)
    logger.info(f"Citizen registered: user_id={user.id}")
    return user


@router.get("/auth/me", response_model=UserBrief)
async def read_identity(
    current_user: User = Depends(get_current_active_user),
) -> Any:
    return current_user
