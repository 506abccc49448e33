"""
Shared fixtures for Assignment Engine tests.

Each test gets its own SQLite job store in a temporary directory and a
scripted text generator, so no database server or Ollama instance is needed.
"""
from __future__ import annotations

import os
import re
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override DATABASE_URL *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine never point at Postgres.
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_assignment_engine.db"
)

from app.database import Base, get_db  # noqa: E402
from app.exceptions import GenerationError  # noqa: E402
from app.main import app  # noqa: E402
from app.models import database_models  # noqa: E402,F401
from app.models.schemas import AssignmentRequest  # noqa: E402
from app.routers.assignments import get_assignment_service  # noqa: E402
from app.services.assignment_service import AssignmentService  # noqa: E402
from app.services.job_tracker import JobTracker  # noqa: E402

_WORDS_RE = re.compile(r"approximately (\d+)")


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class FakeTextGenerator:
    """
    Scripted stand-in for the LLM.

    By default answers with as many words as the prompt asks for
    ("approximately N words"), scaled by *length_factor*.  Set *fail_on_call*
    to raise GenerationError on that (1-based) call.
    """

    def __init__(
        self,
        length_factor: float = 1.0,
        fixed_words: Optional[int] = None,
        fail_on_call: Optional[int] = None,
        response_text: Optional[str] = None,
    ) -> None:
        self.length_factor = length_factor
        self.fixed_words = fixed_words
        self.fail_on_call = fail_on_call
        self.response_text = response_text
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str, request: AssignmentRequest) -> str:
        self.prompts.append(prompt)
        if self.fail_on_call is not None and self.calls == self.fail_on_call:
            raise GenerationError("model overloaded")
        if self.response_text is not None:
            return self.response_text

        if self.fixed_words is not None:
            words = self.fixed_words
        else:
            match = _WORDS_RE.search(prompt)
            words = int(int(match.group(1)) * self.length_factor) if match else 100
        return " ".join(["lorem"] * max(1, words))


def make_request(**overrides) -> AssignmentRequest:
    """A valid request; keyword overrides use snake_case field names."""
    data = dict(
        name="Ada Obi",
        matric="2021/ABC-123",
        department="Computer Science",
        course_code="CSC401",
        course_title="Software Engineering",
        lecturer_in_charge="Dr. Bello",
        number_of_pages=2,
        word_count=None,
        question="Discuss the impact of agile methods on software quality in Nigeria.",
        file_type="docx",
    )
    data.update(overrides)
    return AssignmentRequest(**data)


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """A fresh SQLite job store per test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}", echo=False, poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def tracker(session_factory) -> JobTracker:
    return JobTracker(session_factory)


@pytest.fixture
def generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def service(generator, tracker) -> AssignmentService:
    return AssignmentService(generator=generator, tracker=tracker)


@pytest_asyncio.fixture
async def client(service, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the service and DB
    dependencies overridden to use the per-test store and fake generator.
    """

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_assignment_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
