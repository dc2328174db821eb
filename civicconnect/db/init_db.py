import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from civicconnect.core.config import settings
from civicconnect.core.security import get_password_hash
from civicconnect.db.base_class import Base
from civicconnect.models import User, UserRole

# Imported so every table is registered on Base.metadata
from civicconnect.models import Issue, Comment, Notification  # noqa: F401

logger = logging.getLogger("civicconnect.db")


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables initialized")


async def create_initial_data(session: AsyncSession) -> None:
    """Create the first admin account if it doesn't exist yet."""
    result = await session.execute(
        select(User).filter(User.email == settings.FIRST_ADMIN_EMAIL)
    )
    admin = result.scalars().first()

    if not admin:
        admin_user = User(
            email=settings.FIRST_ADMIN_EMAIL,
            hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
            full_name=settings.FIRST_ADMIN_NAME,
            role=UserRole.ADMIN,
            is_active=True,
        )
        session.add(admin_user)
        await session.commit()
        logger.info(f"Admin user created: {admin_user!r} email={settings.FIRST_ADMIN_EMAIL}")

    logger.info("Initial data created")
