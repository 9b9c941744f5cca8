import io
import os
import tempfile

import httpx
import pytest
import pytest_asyncio
from PIL import Image

# Configure the app before any waydown module reads settings
_tmp_dir = tempfile.mkdtemp(prefix="waydown-tests-")
os.environ["APP_DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["APP_MEDIA_ROOT"] = os.path.join(_tmp_dir, "media")
os.environ["APP_STORAGE_BACKEND"] = "local"
os.environ["APP_RATE_LIMIT_ENABLED"] = "false"
os.environ["APP_DEBUG"] = "false"
os.environ["APP_JWT_SECRET_KEY"] = "test-secret"


@pytest_asyncio.fixture
async def database():
    """Fresh tables for every test"""
    from waydown.database import create_tables, drop_tables, engine

    await create_tables()
    yield
    await drop_tables()
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    from waydown.database import AsyncSessionLocal

    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client(database):
    from waydown.main import app
    from waydown.services.rate_limit import general_limiter, like_comment_limiter, strict_limiter

    for limiter in (general_limiter, strict_limiter, like_comment_limiter):
        limiter.reset()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register(client, username: str, password: str = "secret123") -> dict:
    """Register a user and return the auth response body"""
    response = await client.post("/api/auth/register", json={
        "email": f"{username.lower()}@example.com",
        "password": password,
        "display_name": username,
    })
    assert response.status_code == 201, response.text
    return response.json()


async def make_admin(user_id: int) -> None:
    from sqlalchemy import update

    from waydown.database import AsyncSessionLocal
    from waydown.models import User

    async with AsyncSessionLocal() as session:
        await session.execute(update(User).where(User.id == user_id).values(is_admin=True))
        await session.commit()


def png_bytes(size=(32, 32), color=(200, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


SPOT_FORM = {
    "name": "Hidden Falls",
    "content": "A quiet waterfall at the end of a forest trail.",
    "latitude": "12.9716",
    "longitude": "77.5946",
    "city": "Bengaluru",
    "tags": ["Nature", "Waterfalls"],
    "difficulty": "Moderate",
    "best_time_to_visit": "Monsoon",
}


async def create_spot(client, token: str, **overrides) -> dict:
    form = {**SPOT_FORM, **overrides}
    response = await client.post("/api/spots/", data=form, headers=auth(token))
    assert response.status_code == 201, response.text
    return response.json()["spot"]


async def approve(client, admin_token: str, spot_id: int) -> dict:
    response = await client.patch(f"/api/spots/{spot_id}/status",
                                  json={"status": "approved"}, headers=auth(admin_token))
    assert response.status_code == 200, response.text
    return response.json()["spot"]



def media_files(folder: str) -> set:
    """Paths of stored files under a media folder"""
    root = os.path.join(os.environ["APP_MEDIA_ROOT"], folder)
    found = set()
    for dirpath, _, filenames in os.walk(root):
        found.update(os.path.join(dirpath, name) for name in filenames)
    return found


@pytest.fixture
def events(monkeypatch):
    """(room, event, data) for every realtime emit, in order"""
    from waydown.services.realtime import manager

    recorded = []
    original_emit = manager.emit

    async def recording_emit(room, event, data):
        recorded.append((room, event, data))
        return await original_emit(room, event, data)

    monkeypatch.setattr(manager, "emit", recording_emit)
    return recorded
