import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("ACCOUNT_CLEANUP_ENABLED", "false")

from typing import AsyncGenerator, Dict, List

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from mwss.auth.schemas import ROLE_ADMIN
from mwss.auth.security import create_access_token, hash_password
from mwss.core.models import Admin
from mwss.db.session import Base, get_db
from mwss.main import app
from mwss.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from mwss.notifications.sinks import Notification


ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPass123"


class RecordingSink:
    """Collects every notification handed over by the dispatcher."""

    def __init__(self) -> None:
        self.sent: List[Notification] = []

    async def send(self, notification: Notification) -> None:
        self.sent.append(notification)


@pytest.fixture()
async def engine(tmp_path):
    """File-backed SQLite so concurrent sessions get their own connections."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        future=True,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
async def dispatcher(sink: RecordingSink) -> AsyncGenerator[NotificationDispatcher, None]:
    dispatcher = NotificationDispatcher(sink, max_queue_size=100)
    dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


@pytest.fixture()
async def client(
    session_factory: async_sessionmaker,
    dispatcher: NotificationDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; each request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def admin(db_session: AsyncSession) -> Admin:
    admin = Admin(
        email=ADMIN_EMAIL,
        password_hash=hash_password(ADMIN_PASSWORD),
        full_name="A1",
    )
    db_session.add(admin)
    await db_session.commit()
    await db_session.refresh(admin)
    return admin


@pytest.fixture()
def admin_headers(admin: Admin) -> Dict[str, str]:
    token = create_access_token(subject={"sub": str(admin.id), "role": ROLE_ADMIN})
    return {"Authorization": f"Bearer {token}"}
