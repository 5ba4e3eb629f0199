"""
Pytest fixtures for CertPath tests.

Every test gets its own SQLite file database, so separate sessions (and the
in-process app) see each other's commits.
"""

import os
import random
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List, Optional

# Point the application's module-level engine at a throwaway file before
# anything from certpath is imported.
_tmp_dir = tempfile.mkdtemp(prefix="certpath-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_tmp_dir}/app.db")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from certpath.config import Settings, get_settings
from certpath.database import build_engine, build_session_maker
from certpath.engines.assessment import AssessmentService, SubmittedAnswer
from certpath.kernel.models import Base
from certpath.kernel.models.assessment import Assessment
from certpath.kernel.models.question import CompetencyLevel, Question, step_for_level
from certpath.kernel.models.user import User, UserRole
from certpath.kernel.stores.question_store import QuestionPool
from certpath.schemas.question import IndexAnswer, QuestionCreate

get_settings.cache_clear()

START = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
COMPETENCIES = ["Grammar", "Vocabulary", "Reading Comprehension", "Digital Literacy"]


class FakeClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    """Seeded so failures reproduce; tests still assert properties, not sequences."""
    return random.Random(20260105)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        submission_grace_seconds=30,
        certificate_validity_days=None,
    )


@pytest_asyncio.fixture(scope="function")
async def db_engine(test_settings: Settings):
    """Create a test database engine on a fresh SQLite file."""
    engine = build_engine(test_settings.database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_maker(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def service(db_session, clock, rng, test_settings) -> AssessmentService:
    return AssessmentService(db_session, clock=clock, rng=rng, settings=test_settings)


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory for committed users."""

    async def _make(email: Optional[str] = None, **fields) -> User:
        user = User(
            id=uuid.uuid4(),
            email=email or f"student-{uuid.uuid4().hex[:8]}@example.com",
            full_name=fields.pop("full_name", "Test Student"),
            role=fields.pop("role", UserRole.STUDENT.value),
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def student(make_user) -> User:
    return await make_user("student@example.com")


@pytest.fixture
def make_questions(db_session: AsyncSession):
    """Factory for committed questions of one level; the correct option is always index 0."""

    async def _make(level: CompetencyLevel, count: int, is_active: bool = True) -> List[Question]:
        items = [
            QuestionCreate(
                competency=COMPETENCIES[i % len(COMPETENCIES)],
                level=level,
                step=step_for_level(level),
                prompt=f"{level.value} question {i + 1}",
                options=["right", "wrong 1", "wrong 2", "wrong 3"],
                correct_answer=IndexAnswer(index=0),
                is_active=is_active,
            )
            for i in range(count)
        ]
        questions = await QuestionPool(db_session).add_questions(items)
        await db_session.commit()
        return questions

    return _make


@pytest_asyncio.fixture
async def question_pool(make_questions) -> List[Question]:
    """15 active questions per level: enough for every step's target."""
    questions: List[Question] = []
    for level in CompetencyLevel:
        questions.extend(await make_questions(level, 15))
    return questions


def build_answers(assessment: Assessment, correct: int) -> List[SubmittedAnswer]:
    """Answer every question; the first `correct` ones right (index 0), the rest wrong."""
    return [
        SubmittedAnswer(question_id=uuid.UUID(qid), selected_index=0 if i < correct else 1)
        for i, qid in enumerate(assessment.question_ids)
    ]


@pytest.fixture
def complete_step(service: AssessmentService, db_session: AsyncSession, clock: FakeClock):
    """Run request -> start -> submit for a step with a given number of correct answers."""

    async def _complete(user: User, step: int, correct: int):
        assessment = await service.request_assessment(user.id, step)
        await service.begin_assessment(assessment.id)
        clock.advance(minutes=1)
        result = await service.submit_assessment(assessment.id, build_answers(assessment, correct))
        await db_session.commit()
        clock.advance(minutes=1)
        return result

    return _complete
