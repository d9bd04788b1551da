"""Shared test fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient

from promptarena.config import settings
from promptarena.db.engine import create_db_engine, create_schema, create_session_factory
from promptarena.security.identity import Identity, create_access_token

TEST_ENCRYPTION_KEY = "test-encryption-secret-do-not-use"
TEST_OPENAI_KEY = "sk-test-0123456789abcdefghij"


class FakeChatClient:
    """Records every call; fails when ``fail_when(messages)`` is true."""

    def __init__(self, fail_when=None):
        self.fail_when = fail_when
        self.calls = []
        self.api_keys = []

    async def chat_completion(self, model, messages, options=None):
        self.calls.append({"model": model, "messages": list(messages), "options": dict(options or {})})
        if self.fail_when is not None and self.fail_when(messages):
            raise RuntimeError("provider exploded")
        return f"reply to: {messages[-1]['content']}"

    def factory(self, api_key):
        self.api_keys.append(api_key)
        return self


@pytest.fixture(autouse=True)
def encryption_key(monkeypatch):
    """Every test runs with a server encryption secret unless it removes it."""
    monkeypatch.setattr(settings, "encryption_key", TEST_ENCRYPTION_KEY)
    monkeypatch.setattr(settings, "invite_flow_enabled", True)
    return TEST_ENCRYPTION_KEY


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_db_engine("sqlite+aiosqlite:///")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a test database session."""
    async with create_session_factory(db_engine)() as session:
        yield session


@pytest.fixture
def fake_llm():
    return FakeChatClient()


@pytest.fixture
def app(db_engine, fake_llm):
    """Create a test application instance with in-memory DB and a fake LLM."""
    from promptarena.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = create_session_factory(db_engine)
    _app.state.llm_client_factory = fake_llm.factory
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    """Build Bearer headers for an identity: ``auth_headers("usr_alice", "alice@example.com")``."""

    def _headers(user_id: str, email: str | None = None, name: str | None = None) -> dict:
        token = create_access_token(Identity(id=user_id, email=email, name=name))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def alice(client, auth_headers):
    """Alice, signed in, with a personal workspace provisioned.

    Returns ``(headers, org_id)``.
    """
    headers = auth_headers("usr_alice", "alice@example.com", "Alice")
    r = await client.get("/api/orgs", headers=headers)
    assert r.status_code == 200
    return headers, r.json()[0]["id"]


@pytest.fixture
def switch_alice_to_new_org(client, alice):
    """Create another workspace for Alice and make it the active org; returns its id."""
    headers, _ = alice

    async def _switch(name: str = "Second Workspace") -> str:
        r = await client.post("/api/orgs", json={"name": name}, headers=headers)
        assert r.status_code == 201, r.text
        org_id = r.json()["id"]
        r = await client.post(f"/api/orgs/{org_id}/switch", headers=headers)
        assert r.status_code == 200, r.text
        return org_id

    return _switch


@pytest.fixture
async def openai_key(client, alice):
    """Store an OpenAI key for Alice's workspace."""
    headers, _ = alice
    r = await client.post(
        "/api/user/api-keys",
        json={"provider": "openai", "apiKey": TEST_OPENAI_KEY},
        headers=headers,
    )
    assert r.status_code == 200
    return TEST_OPENAI_KEY
