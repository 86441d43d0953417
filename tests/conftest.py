import os
import tempfile

os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["REDIS_URL"] = ""
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="chatwave-uploads-"))

import pytest
from uuid import UUID
from beanie import init_beanie
from bson import Binary
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient
from chatwave_app.db import MODELS
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.utils.password import hash_password
from chatwave_app.users.utils.token_generate import create_access_token
from chatwave_app.chating.realtime.presence import presence


class FakeWebSocket:
    """Records every frame the server pushes to it."""

    def __init__(self):
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        self.sent.append(data)

    def events(self, name):
        return [frame["data"] for frame in self.sent if frame["type"] == name]


@pytest.fixture(autouse=True)
async def db():
    # same codec options as the lifespan client in chatwave_app.db
    client = AsyncMongoMockClient(uuidRepresentation="standard", tz_aware=True)
    await init_beanie(database=client["chatwave_test"], document_models=MODELS)
    yield client
    presence.clear()


async def _make_user(email: str, first_name: str, last_name: str) -> UserModel:
    user = UserModel(
        email=email,
        password=hash_password("secret123"),
        first_name=first_name,
        last_name=last_name,
        profile_setup=True,
    )
    await user.insert()
    return user


@pytest.fixture
async def alice():
    return await _make_user("alice@example.com", "Alice", "Archer")


@pytest.fixture
async def bob():
    return await _make_user("bob@example.com", "Bob", "Baker")


@pytest.fixture
async def carol():
    return await _make_user("carol@example.com", "Carol", "Cole")


def bson_id(value: UUID) -> Binary:
    """Ids as stored by Beanie, for queries that go straight to the collection."""
    return Binary.from_uuid(value)


def auth_headers(user: UserModel) -> dict:
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client():
    from chatwave_app.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def connect(user: UserModel) -> FakeWebSocket:
    """Register a fake live socket for `user` in the presence registry."""
    ws = FakeWebSocket()
    presence.register(str(user.id), f"conn-{user.id}", ws)
    return ws
