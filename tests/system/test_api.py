"""
System tests: the HTTP API in-process against a per-test SQLite file.
Covers the assessment flow end to end plus the error mapping.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from certpath.database import get_db
from certpath.kernel.models.question import CompetencyLevel
from certpath.main import app

API = "/api/v1"


@pytest_asyncio.fixture
async def client(session_maker):
    """Async client whose request sessions come from the test database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_db, None)


async def _create_assessment(client: AsyncClient, user_id, step: int = 1) -> dict:
    r = await client.post(f"{API}/users/{user_id}/assessments", json={"step": step})
    assert r.status_code == 201, r.text
    return r.json()


async def _answer_all(client: AsyncClient, assessment_id: str, correct: bool = True) -> dict:
    detail = (await client.get(f"{API}/assessments/{assessment_id}")).json()
    answers = [
        {"question_id": q["id"], "selected_index": 0 if correct else 1}
        for q in detail["questions"]
    ]
    r = await client.post(f"{API}/assessments/{assessment_id}/submit", json={"answers": answers})
    assert r.status_code == 200, r.text
    return r.json()


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        r = await client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        r = await client.get("/health", headers={"X-Request-ID": "trace-123"})
        assert r.headers["X-Request-ID"] == "trace-123"


class TestAssessmentFlow:
    @pytest.mark.asyncio
    async def test_full_step_one(self, client, student, question_pool):
        created = await _create_assessment(client, student.id)
        assert created["status"] == "pending"
        assert created["question_count"] == 20

        detail = (await client.get(f"{API}/assessments/{created['id']}")).json()
        assert detail["remaining_seconds"] == 20 * 60
        assert all("correct_index" not in q for q in detail["questions"])

        r = await client.post(f"{API}/assessments/{created['id']}/start")
        assert r.status_code == 200
        assert r.json()["status"] == "in_progress"

        result = await _answer_all(client, created["id"])
        assert result["assessment"]["percentage"] == 100.0
        assert result["assessment"]["achieved_level"] == "A2"
        assert result["assessment"]["can_proceed_to_next"] is True
        assert result["certificate"]["level"] == "A2"
        assert len(result["answers"]) == 20

        detail = (await client.get(f"{API}/assessments/{created['id']}")).json()
        assert detail["remaining_seconds"] == 0
        assert all(q["correct_index"] == 0 for q in detail["questions"])

        progress = (await client.get(f"{API}/users/{student.id}/progress")).json()
        assert progress["current_level"] == "A2"
        assert progress["completed_steps"] == [1]
        assert progress["next_available_step"] == 2
        assert progress["history"][0]["certificate_id"] == result["certificate"]["id"]

        listed = (await client.get(f"{API}/users/{student.id}/assessments")).json()
        assert [a["id"] for a in listed] == [created["id"]]

    @pytest.mark.asyncio
    async def test_double_submit_conflict(self, client, student, question_pool):
        created = await _create_assessment(client, student.id)
        await _answer_all(client, created["id"])

        r = await client.post(f"{API}/assessments/{created['id']}/submit", json={"answers": []})
        assert r.status_code == 409
        assert r.json()["code"] == "already_completed"

    @pytest.mark.asyncio
    async def test_hard_fail_locks_step_one(self, client, student, question_pool):
        created = await _create_assessment(client, student.id)
        result = await _answer_all(client, created["id"], correct=False)
        assert result["assessment"]["percentage"] == 0.0
        assert result["certificate"] is None

        r = await client.post(f"{API}/users/{student.id}/assessments", json={"step": 1})
        assert r.status_code == 403
        assert r.json() == {
            "detail": "Retakes not allowed for Step 1 after failure",
            "code": "ineligible_step",
        }
        progress = (await client.get(f"{API}/users/{student.id}/progress")).json()
        assert progress["can_retake"] is False
        assert progress["next_available_step"] is None

    @pytest.mark.asyncio
    async def test_expire_before_time_conflict(self, client, student, question_pool):
        created = await _create_assessment(client, student.id)
        await client.post(f"{API}/assessments/{created['id']}/start")

        r = await client.post(f"{API}/assessments/{created['id']}/expire")
        assert r.status_code == 409
        assert r.json()["code"] == "invalid_transition"


class TestErrors:
    @pytest.mark.asyncio
    async def test_step_two_forbidden(self, client, student, question_pool):
        r = await client.post(f"{API}/users/{student.id}/assessments", json={"step": 2})
        assert r.status_code == 403
        assert "Must complete Step 1" in r.json()["detail"]

    @pytest.mark.asyncio
    async def test_invalid_step(self, client, student, question_pool):
        r = await client.post(f"{API}/users/{student.id}/assessments", json={"step": 7})
        assert r.status_code == 400
        assert r.json()["code"] == "invalid_step"

    @pytest.mark.asyncio
    async def test_empty_pool(self, client, student, make_questions):
        await make_questions(CompetencyLevel.C1, 3)
        r = await client.post(f"{API}/users/{student.id}/assessments", json={"step": 1})
        assert r.status_code == 422
        assert r.json()["code"] == "empty_question_pool"

    @pytest.mark.asyncio
    async def test_unknown_user(self, client):
        r = await client.get(f"{API}/users/00000000-0000-0000-0000-000000000000/progress")
        assert r.status_code == 404
        assert r.json()["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_negative_answer_index(self, client, student, question_pool):
        created = await _create_assessment(client, student.id)
        detail = (await client.get(f"{API}/assessments/{created['id']}")).json()
        r = await client.post(
            f"{API}/assessments/{created['id']}/submit",
            json={"answers": [{"question_id": detail["questions"][0]["id"], "selected_index": -1}]},
        )
        assert r.status_code == 422
        assert r.json()["errors"][0]["field"].endswith("selected_index")


class TestCertificates:
    @pytest.mark.asyncio
    async def test_verify_and_revoke(self, client, student, question_pool):
        created = await _create_assessment(client, student.id)
        certificate = (await _answer_all(client, created["id"]))["certificate"]

        listed = (await client.get(f"{API}/users/{student.id}/certificates")).json()
        assert [c["id"] for c in listed] == [certificate["id"]]

        r = await client.get(f"{API}/certificates/{certificate['certificate_number'].lower()}")
        assert r.status_code == 200
        assert r.json()["is_valid"] is True

        r = await client.post(f"{API}/certificates/{certificate['id']}/revoke", json={"reason": "fraud"})
        assert r.status_code == 200
        assert r.json()["status"] == "revoked"
        assert r.json()["is_valid"] is False

        r = await client.post(f"{API}/certificates/{certificate['id']}/revoke")
        assert r.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_number(self, client):
        r = await client.get(f"{API}/certificates/CP-A1-0-00000")
        assert r.status_code == 404
