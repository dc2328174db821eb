import os
import tempfile

# Settings are read at import time, so the environment has to be ready first
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="civicconnect-uploads-"))
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from civicconnect.api.deps import get_dispatcher, get_storage
from civicconnect.core.config import NotificationConfig
from civicconnect.core.exceptions import DeliveryError
from civicconnect.core.security import create_access_token, get_password_hash
from civicconnect.db.base_class import Base
from civicconnect.db.session import get_db
from civicconnect.models import User, UserRole
from civicconnect.services.notifications import NotificationChannel, NotificationDispatcher
from civicconnect.services.storage import PhotoStorage

PASSWORD = "Password123"
PASSWORD_HASH = get_password_hash(PASSWORD)


class RecordingChannel(NotificationChannel):
    """Delivery channel that remembers what it was asked to send."""

    def __init__(self, name: str, attribute: str, fail: bool = False):
        self.name = name
        self.attribute = attribute
        self.fail = fail
        self.sent = []

    def recipient_for(self, user):
        return getattr(user, self.attribute)

    async def send(self, recipient, subject, message):
        if self.fail:
            raise DeliveryError(self.name, "provider unavailable")
        self.sent.append((recipient, subject, message))
        return True


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_channel():
    return RecordingChannel("email", "email")


@pytest.fixture
def sms_channel():
    return RecordingChannel("sms", "phone")


@pytest.fixture
def dispatcher(email_channel, sms_channel):
    return NotificationDispatcher(NotificationConfig(), channels=[email_channel, sms_channel])


@pytest.fixture
def storage(tmp_path):
    return PhotoStorage(str(tmp_path / "uploads"), max_size=1024 * 1024)


async def create_user(session_factory, full_name, email, role=UserRole.CITIZEN, phone=None):
    async with session_factory() as session:
        user = User(
            full_name=full_name,
            email=email,
            phone=phone,
            hashed_password=PASSWORD_HASH,
            role=role,
            is_active=True,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest.fixture
async def citizen(session_factory):
    return await create_user(
        session_factory, "Jane Citizen", "jane@example.com", phone="+15550000001"
    )


@pytest.fixture
async def other_citizen(session_factory):
    return await create_user(session_factory, "Omar Other", "omar@example.com")


@pytest.fixture
async def staff(session_factory):
    return await create_user(session_factory, "Sam Staff", "sam@city.gov", role=UserRole.STAFF)


@pytest.fixture
async def admin(session_factory):
    return await create_user(session_factory, "Ada Admin", "ada@city.gov", role=UserRole.ADMIN)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


@pytest.fixture
async def client(session_factory, dispatcher, storage):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
