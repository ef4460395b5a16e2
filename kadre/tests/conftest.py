import os
import tempfile
from pathlib import Path

_DB_PATH = Path(tempfile.mkdtemp(prefix="kadre-tests-")) / "kadre_test.db"

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["CRON_SECRET"] = "cron-secret"
os.environ["SUPABASE_JWT_SECRET"] = "test-secret"
os.environ["SENTRY_DSN"] = ""
os.environ.pop("OPENAI_API_KEY", None)

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from kadre import db  # noqa: E402
from kadre.config import get_settings  # noqa: E402
from kadre.llm import ModelTurn  # noqa: E402
from kadre.store import CoachStore  # noqa: E402

JWT_SECRET = "test-secret"


class FakeLLM:
    """Scripted stand-in for ``LLMClient``.

    ``responder`` maps a prompt to the completion text (or an exception to
    raise); ``turns`` is a list of ``ModelTurn``s or a callable taking the
    1-based call number.
    """

    def __init__(self, responder=None, turns=None):
        self.responder = responder or (lambda prompt: "")
        self.turns = turns if turns is not None else []
        self.prompts = []
        self.conversations = []

    async def complete(self, prompt, *, tier="fast", max_tokens=500, system=None):
        self.prompts.append({"prompt": prompt, "tier": tier, "max_tokens": max_tokens})
        result = self.responder(prompt)
        if isinstance(result, Exception):
            raise result
        return result

    async def converse(self, history, *, tools=(), system=None, tier="reasoning", max_tokens=2000):
        self.conversations.append({"history": history, "tools": list(tools), "system": system, "tier": tier})
        if callable(self.turns):
            return self.turns(len(self.conversations))
        if not self.turns:
            return ModelTurn(text="")
        return self.turns.pop(0)


@pytest.fixture(autouse=True)
def _settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture(autouse=True)
async def database():
    async with db.engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    try:
        yield db
    finally:
        await db.engine.dispose()


@pytest.fixture
def store():
    return CoachStore()


@pytest.fixture
def seed(store):
    async def _seed(*rows):
        inserted = await store.insert(rows)
        return inserted[0] if len(inserted) == 1 else inserted

    return _seed


@pytest.fixture
def fake_llm():
    return FakeLLM


@pytest.fixture
def auth_headers():
    def _headers(coach_id: str, email: str = "coach@example.com") -> dict:
        token = jwt.encode({"sub": coach_id, "email": email}, JWT_SECRET, algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def api():
    from kadre import main

    llm = FakeLLM()
    main.app.dependency_overrides[main.get_llm] = lambda: llm
    transport = ASGITransport(app=main.app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        client.llm = llm
        yield client
    main.app.dependency_overrides.clear()
