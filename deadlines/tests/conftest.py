"""
Test fixtures - in-memory SQLite database, fake queue broker + HTTP client
"""
import json

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from deadlines.api.deps import get_dispatcher, get_signature_verifier
from deadlines.database import Base, get_db
from deadlines.exceptions import InvalidSignatureError
from deadlines.main import app
from deadlines.models import Project, Todo, User
from deadlines.schemas import ActionResult
from deadlines.services.queue import QueueClient, TaskDispatcher

TEAM = "team_alpha"
OTHER_TEAM = "team_beta"
VALID_SIGNATURE = "valid-signature"


class FakeBroker:
    """Stands in for QStash: records publishes and reuses message ids per dedup id"""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.message_ids: dict[str, str] = {}
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(500, json={"error": "broker unavailable"})
        self.requests.append(request)
        dedup_id = request.headers["Upstash-Deduplication-Id"]
        message_id = self.message_ids.setdefault(dedup_id, f"msg_{len(self.message_ids) + 1}")
        return httpx.Response(201, json={"messageId": message_id})

    @property
    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


class FakeVerifier:
    def verify(self, signature: str, body: str):
        if signature != VALID_SIGNATURE:
            raise InvalidSignatureError("signature mismatch")


class FakeApiClient:
    """
    Records every call the reconciler makes, synchronously at call time,
    and answers with a canned ActionResult (or raises ``error``) when the
    request is awaited.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.result = ActionResult.ok()
        self.error: Exception = None
        self.snapshot = []

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def method(*args):
            self.calls.append((name, *args))
            return self._respond()
        return method

    async def _respond(self) -> ActionResult:
        if self.error is not None:
            raise self.error
        return self.result

    async def fetch_todos(self, team_id: str):
        self.calls.append(("fetch_todos", team_id))
        return list(self.snapshot)

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Two users, a project per team and a few todos"""
    ada = User(id="user_ada", name="Ada", email="ada@example.com")
    bob = User(id="user_bob", name="Bob", email="bob@example.com")
    launch = Project(name="Launch", color="#ff0000", team_id=TEAM)
    elsewhere = Project(name="Elsewhere", color="#00ff00", team_id=OTHER_TEAM)
    db_session.add_all([ada, bob, launch, elsewhere])
    await db_session.commit()

    todos = [
        Todo(text="Write brief", team_id=TEAM, project_id=launch.id),
        Todo(text="Book venue", team_id=TEAM, project_id=launch.id),
        Todo(text="Send invites", team_id=TEAM),
        Todo(text="Other team task", team_id=OTHER_TEAM, project_id=elsewhere.id),
    ]
    db_session.add_all(todos)
    await db_session.commit()
    for obj in [launch, elsewhere, *todos]:
        await db_session.refresh(obj)

    return {
        "ada": ada,
        "bob": bob,
        "launch": launch,
        "elsewhere": elsewhere,
        "todos": todos[:3],
        "other_todo": todos[3],
    }


@pytest.fixture()
def broker():
    return FakeBroker()


@pytest_asyncio.fixture()
async def dispatcher(broker):
    queue = QueueClient(
        base_url="https://qstash.test",
        token="test-token",
        callback_url="https://deadlines.test/api/queue",
        transport=httpx.MockTransport(broker.handler),
    )
    yield TaskDispatcher(queue)
    await queue.aclose()


@pytest_asyncio.fixture()
async def client(db_session, seed_data, dispatcher):
    """httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_signature_verifier] = lambda: FakeVerifier()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def api():
    return FakeApiClient()
