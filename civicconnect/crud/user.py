from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicconnect.core.security import get_password_hash, verify_password
from civicconnect.models import User, UserRole
from civicconnect.schemas import UserCreate, UserUpdate


async def get_user(db: AsyncSession, id: int) -> Optional[User]:
    """
    Get a user by ID.
    """
    result = await db.execute(select(User).filter(User.id == id))
    return result.scalars().first()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """
    Get a user by email.
    """
    result = await db.execute(select(User).filter(User.email == email))
    return result.scalars().first()


async def get_users(db: AsyncSession, role: Optional[UserRole] = None) -> List[User]:
    """
    Get all users, newest first, optionally filtered by role.
    """
    query = select(User)
    if role:
        query = query.filter(User.role == role)
    result = await db.execute(query.order_by(User.created_at.desc(), User.id.desc()))
    return result.scalars().all()


async def get_staff_users(db: AsyncSession) -> List[User]:
    """
    Get active staff and admin users, ordered by name.
    """
    result = await db.execute(
        select(User)
        .filter(User.role.in_([UserRole.STAFF, UserRole.ADMIN]), User.is_active.is_(True))
        .order_by(User.full_name)
    )
    return result.scalars().all()


async def create_user(
    db: AsyncSession, obj_in: UserCreate, role: UserRole = UserRole.CITIZEN
) -> User:
    """
    Create a new user.
    """
    db_obj = User(
        email=obj_in.email,
        hashed_password=get_password_hash(obj_in.password),
        full_name=obj_in.full_name,
        phone=obj_in.phone,
        address=obj_in.address,
        role=role,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def update_user(
    db: AsyncSession, db_obj: User, obj_in: Union[UserUpdate, Dict[str, Any]]
) -> User:
    """
    Update a user.
    """
    if isinstance(obj_in, dict):
        update_data = obj_in
    else:
        update_data = obj_in.model_dump(exclude_unset=True)

    if "password" in update_data:
        password = update_data.pop("password")
        if password:
            update_data["hashed_password"] = get_password_hash(password)

    for field, value in update_data.items():
        setattr(db_obj, field, value)

    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
    """
    Authenticate a user by email and password.
    """
    user = await get_user_by_email(db, email=email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
