from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from civicconnect.api.deps import (
    ensure_self_or_admin,
    get_current_active_user,
    get_current_staff_user,
)
from civicconnect.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from civicconnect.crud.user import get_staff_users, get_user, get_users, update_user
from civicconnect.db.session import get_db
from civicconnect.models import User, UserRole
from civicconnect.schemas import User as UserSchema, UserUpdate

router = APIRouter()


@router.get("/users/me", response_model=UserSchema)
async def read_user_me(
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """
    Get current user.
    """
    return current_user


@router.get("/users", response_model=List[UserSchema])
async def read_users(
    role: Optional[UserRole] = None,
    current_user: User = Depends(get_current_staff_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Retrieve users. Only accessible to staff and admins.
    """
    return await get_users(db, role=role)


@router.get("/users/staff", response_model=List[UserSchema])
async def read_staff_users(
    current_user: User = Depends(get_current_staff_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Staff and admin accounts, for assignment dropdowns.
    """
    return await get_staff_users(db)


@router.get("/users/{user_id}", response_model=UserSchema)
async def read_user(
    user_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Get a specific user by id. Citizens can only read themselves.
    """
    if not current_user.role.is_staff:
        ensure_self_or_admin(current_user, user_id)
    user = await get_user(db, id=user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


@router.put("/users/{user_id}", response_model=UserSchema)
async def update_user_by_id(
    user_id: int,
    user_in: UserUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Update a user. Users can update themselves; admins can update anyone
    and are the only ones allowed to change roles or deactivate accounts.
    """
    ensure_self_or_admin(current_user, user_id)

    update_data = user_in.model_dump(exclude_unset=True)
    if ("role" in update_data or "is_active" in update_data) and not current_user.role.is_admin:
        raise ForbiddenError("Only admins can change roles or account status")
    for field in ("role", "is_active", "full_name"):
        if field in update_data and update_data[field] is None:
            raise ValidationError(f"{field} cannot be null")
    if not update_data:
        raise ValidationError("No fields to update")

    user = await get_user(db, id=user_id)
    if not user:
        raise NotFoundError("User not found")
    return await update_user(db, db_obj=user, obj_in=update_data)
