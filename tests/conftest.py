import os

os.environ.setdefault("ANALYSIS_BACKOFF_SECONDS", "0")

import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from therapy_copilot.main import app
from therapy_copilot.database import get_db
from therapy_copilot.api.deps import get_llm_client
from therapy_copilot.models import Base, User, Therapist, Client
from therapy_copilot.llm.prompts import (
    ANALYSIS_SYSTEM,
    RISK_ASSESSMENT_SYSTEM,
    CLIENT_VIEW_SYSTEM,
    SESSION_SUMMARY_SYSTEM,
)

# In-memory SQLite shared across connections
TEST_DATABASE_URL = "sqlite+aiosqlite://"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
test_async_session = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


SAMPLE_ANALYSIS = {
    "concerns": [
        {
            "text": "Persistent low mood and sadness",
            "severity": "MODERATE",
            "excerpts": [{"text": "I've felt down for weeks"}],
        },
        {"text": "Difficulty sleeping through the night", "severity": "LOW", "excerpts": []},
    ],
    "themes": ["work stress", "isolation"],
    "goals": [{"text": "Improve sleep routine", "timeline": "short-term", "excerpts": []}],
    "interventions": [{"name": "CBT", "rationale": "Address negative thought patterns"}],
    "homework": [{"task": "Keep a sleep diary", "rationale": "Track sleep patterns"}],
    "strengths": [{"text": "Strong family support", "excerpts": []}],
    "risk_indicators": [],
}

SAMPLE_CLIENT_VIEW = {
    "summary": "We talked about how you have been feeling.",
    "your_goals": ["Sleep better"],
    "what_we_are_doing": ["Learning to notice unhelpful thoughts"],
    "your_homework": ["Write down when you go to bed"],
    "your_strengths": ["Your family is there for you"],
    "next_time": "We will look at your sleep diary together.",
}

SAMPLE_SUMMARY = {
    "therapist_summary": "Client presented with low mood and sleep disturbance.",
    "client_summary": "Today we talked about your mood and sleep.",
}


class FakeLLM:
    """Scripted stand-in for OpenRouterClient, keyed on the system prompt."""

    model = "fake/model"

    def __init__(self):
        self.responses = {
            "analysis": SAMPLE_ANALYSIS,
            "risk": {"risks": []},
            "client_view": SAMPLE_CLIENT_VIEW,
            "summary": SAMPLE_SUMMARY,
        }
        self.failures: set[str] = set()
        self.calls: list[str] = []

    @staticmethod
    def _kind(messages: list[dict]) -> str:
        system = messages[0]["content"]
        if system == ANALYSIS_SYSTEM:
            return "analysis"
        if system == RISK_ASSESSMENT_SYSTEM:
            return "risk"
        if system == CLIENT_VIEW_SYSTEM:
            return "client_view"
        if system == SESSION_SUMMARY_SYSTEM:
            return "summary"
        raise AssertionError("unexpected prompt")

    async def complete_json(self, messages, temperature: float = 0.2, **kwargs):
        kind = self._kind(messages)
        self.calls.append(kind)
        if kind in self.failures:
            raise ValueError(f"{kind} service unavailable")
        return self.responses[kind]


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_async_session() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession, fake_llm: FakeLLM) -> AsyncGenerator[AsyncClient, None]:
    """Test client with database session and LLM overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm_client] = lambda: fake_llm

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_therapist(db: AsyncSession, email: str) -> Therapist:
    user = User(email=email, role="THERAPIST")
    db.add(user)
    await db.flush()
    therapist = Therapist(user_id=user.id, specialty="CBT")
    db.add(therapist)
    await db.commit()
    return therapist


@pytest.fixture
async def therapist(db_session: AsyncSession) -> Therapist:
    return await _create_therapist(db_session, "therapist@example.com")


@pytest.fixture
async def other_therapist(db_session: AsyncSession) -> Therapist:
    return await _create_therapist(db_session, "other@example.com")


@pytest.fixture
async def client_profile(db_session: AsyncSession, therapist: Therapist) -> Client:
    user = User(email="client@example.com", role="CLIENT")
    db_session.add(user)
    await db_session.flush()
    profile = Client(user_id=user.id, therapist_id=therapist.id, display_name="Alex")
    db_session.add(profile)
    await db_session.commit()
    return profile


def auth(profile) -> dict:
    """Bearer header for a Therapist or Client profile."""
    return {"Authorization": f"Bearer {profile.user_id}"}


@pytest.fixture
def therapist_headers(therapist: Therapist) -> dict:
    return auth(therapist)


@pytest.fixture
def client_headers(client_profile: Client) -> dict:
    return auth(client_profile)


@pytest.fixture
def other_therapist_headers(other_therapist: Therapist) -> dict:
    return auth(other_therapist)
