import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SUBMISSION_RATE_LIMIT"] = "1000/minute"
os.environ["NOTIFICATION_CC_EMAILS"] = "secretariat@csec-sg.fr, rh-groupe@csec-sg.fr"
os.environ["MAIL_FROM_NAME"] = "CSEC SG – Détachements"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from typing import Dict

import pytest
from httpx import ASGITransport, AsyncClient

from detachements.core.database import session_manager
from detachements.core.security import create_jwt_token
from detachements.main import app
from detachements.services.AdminUserStore import AdminUserStore
from detachements.services.NotificationSink import RecordingNotificationSink, get_notification_sink
from tests.factories import ADMIN_EMAIL, ADMIN_PASSWORD

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def database():
    """Fresh in-memory database for every test."""
    await session_manager.init(TEST_DATABASE_URL)
    yield session_manager
    await session_manager.close()


@pytest.fixture
async def db_session(database):
    async with database.get_session() as session:
        yield session


@pytest.fixture
def sink():
    """Capture notifications instead of sending them."""
    recording = RecordingNotificationSink()
    app.dependency_overrides[get_notification_sink] = lambda: recording
    yield recording
    app.dependency_overrides.pop(get_notification_sink, None)


@pytest.fixture
async def async_client(database, sink):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def admin(db_session):
    return await AdminUserStore(db_session).create(
        email=ADMIN_EMAIL,
        password=ADMIN_PASSWORD,
        full_name="Sébastien Delgado",
        title="Secrétaire Adjoint – CSEC SG",
        phone="06 00 00 00 00",
    )


@pytest.fixture
def admin_headers(admin) -> Dict[str, str]:
    token = create_jwt_token({"sub": admin.admin_id, "email": admin.email})
    return {"Authorization": f"Bearer {token}"}

