"""Integration tests for certificate issuance, numbering and revocation."""

import asyncio
import random
import re
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from certpath.config import Settings
from certpath.engines.assessment.certificate_issuer import CertificateIssuer
from certpath.exceptions import InvalidTransitionError, PersistenceError
from certpath.kernel.models.assessment import Assessment, AssessmentStatus
from certpath.kernel.models.base import as_utc
from certpath.kernel.models.certificate import Certificate, CertificateStatus
from certpath.kernel.models.question import CompetencyLevel
from certpath.kernel.stores.user_store import UserProgressionStore
from certpath.schemas.certificate import CertificateResponse

NUMBER_PATTERN = re.compile(r"^CP-B1-[0-9A-Z]+-[0-9A-Z]{5}$")


class ZeroRandom(random.Random):
    """Always draws the first alphabet character, so every suffix is 00000."""

    def choice(self, seq):
        return seq[0]


async def _completed_assessment(session, user, questions, level="B1", percentage=40.0) -> Assessment:
    assessment = Assessment(
        user_id=user.id,
        step=2,
        levels=["B1", "B2"],
        question_ids=[str(q.id) for q in questions],
        time_limit_minutes=len(questions),
        status=AssessmentStatus.COMPLETED.value,
        percentage=percentage,
        score=int(len(questions) * percentage / 100),
        achieved_level=level,
        certificate_level=level,
        answers=[],
    )
    session.add(assessment)
    await session.flush()
    return assessment


async def _certificate_count(session, assessment_id) -> int:
    result = await session.execute(
        select(func.count()).select_from(Certificate).where(Certificate.assessment_id == assessment_id)
    )
    return result.scalar_one()


@pytest.fixture
def issuer(db_session, clock, test_settings) -> CertificateIssuer:
    return CertificateIssuer(db_session, rng=random.Random(7), clock=clock, settings=test_settings)


class TestIssue:
    @pytest.mark.asyncio
    async def test_issuing_twice_leaves_one_certificate(self, issuer, db_session, student, make_questions):
        questions = await make_questions(CompetencyLevel.B1, 6)
        assessment = await _completed_assessment(db_session, student, questions)

        first = await issuer.issue_if_earned(assessment)
        second = await issuer.issue_if_earned(assessment)

        assert first is not None
        assert second.id == first.id
        assert await _certificate_count(db_session, assessment.id) == 1

    @pytest.mark.asyncio
    async def test_concurrent_issue_leaves_one_certificate(
        self, db_session, session_maker, student, make_questions, clock, test_settings
    ):
        questions = await make_questions(CompetencyLevel.B1, 6)
        assessment = await _completed_assessment(db_session, student, questions)
        await db_session.commit()

        async def _issue(seed: int) -> uuid.UUID:
            async with session_maker() as session:
                issuer = CertificateIssuer(session, rng=random.Random(seed), clock=clock, settings=test_settings)
                loaded = await session.get(Assessment, assessment.id)
                certificate = await issuer.issue_if_earned(loaded)
                await session.commit()
                return certificate.id

        first, second = await asyncio.gather(_issue(1), _issue(2))

        assert first == second
        async with session_maker() as check:
            assert await _certificate_count(check, assessment.id) == 1

    @pytest.mark.asyncio
    async def test_certificate_contents(self, issuer, db_session, student, make_questions, clock):
        questions = await make_questions(CompetencyLevel.B1, 6)
        assessment = await _completed_assessment(db_session, student, questions)

        certificate = await issuer.issue_if_earned(assessment)

        assert NUMBER_PATTERN.match(certificate.certificate_number)
        assert certificate.level == "B1"
        assert certificate.step == 2
        assert certificate.score == 40.0
        assert certificate.user_id == student.id
        assert certificate.competencies == sorted({q.competency for q in questions})
        assert certificate.valid_until is None
        assert certificate.is_valid_at(clock.now) is True

    @pytest.mark.asyncio
    async def test_no_certificate_without_level(self, issuer, db_session, student, make_questions):
        questions = await make_questions(CompetencyLevel.B1, 4)
        assessment = await _completed_assessment(db_session, student, questions, percentage=10.0)
        assessment.certificate_level = None

        assert await issuer.issue_if_earned(assessment) is None

    @pytest.mark.asyncio
    async def test_no_certificate_before_completion(self, issuer, db_session, student, make_questions):
        questions = await make_questions(CompetencyLevel.B1, 4)
        assessment = await _completed_assessment(db_session, student, questions)
        assessment.status = AssessmentStatus.IN_PROGRESS.value

        assert await issuer.issue_if_earned(assessment) is None

    @pytest.mark.asyncio
    async def test_validity_window(self, db_session, student, make_questions, clock, test_settings):
        settings = test_settings.model_copy(update={"certificate_validity_days": 365})
        issuer = CertificateIssuer(db_session, rng=random.Random(1), clock=clock, settings=settings)
        questions = await make_questions(CompetencyLevel.B1, 4)
        assessment = await _completed_assessment(db_session, student, questions)

        certificate = await issuer.issue_if_earned(assessment)

        assert as_utc(certificate.valid_until) == clock.now + timedelta(days=365)
        assert certificate.is_valid_at(clock.now + timedelta(days=364)) is True
        assert certificate.is_valid_at(clock.now + timedelta(days=366)) is False

    @pytest.mark.asyncio
    async def test_history_entry_linked(self, issuer, db_session, student, make_questions, clock):
        questions = await make_questions(CompetencyLevel.B1, 4)
        assessment = await _completed_assessment(db_session, student, questions)
        users = UserProgressionStore(db_session)
        await users.append_history(student.id, assessment.id, 2, 40.0, "B1", clock.now)

        certificate = await issuer.issue_if_earned(assessment)

        history = await users.history_for(student.id)
        assert history[0].certificate_id == certificate.id


class TestNumbering:
    @pytest.mark.asyncio
    async def test_number_collision_is_retried(self, db_session, student, make_questions, clock, test_settings):
        questions = await make_questions(CompetencyLevel.B1, 4)
        taken = await _completed_assessment(db_session, student, questions)
        fresh = await _completed_assessment(db_session, student, questions)

        # Same seed: the second issuer's first number is the one already taken
        existing = await CertificateIssuer(
            db_session, rng=random.Random(99), clock=clock, settings=test_settings
        ).issue_if_earned(taken)
        issuer = CertificateIssuer(db_session, rng=random.Random(99), clock=clock, settings=test_settings)

        certificate = await issuer.issue_if_earned(fresh)

        assert certificate.assessment_id == fresh.id
        assert certificate.certificate_number != existing.certificate_number

    @pytest.mark.asyncio
    async def test_attempts_exhausted(self, db_session, student, make_questions, clock, test_settings):
        questions = await make_questions(CompetencyLevel.B1, 4)
        taken = await _completed_assessment(db_session, student, questions)
        fresh = await _completed_assessment(db_session, student, questions)
        issuer = CertificateIssuer(db_session, rng=ZeroRandom(), clock=clock, settings=test_settings)
        await issuer.issue_if_earned(taken)

        with pytest.raises(PersistenceError):
            await issuer.issue_if_earned(fresh)

    @pytest.mark.asyncio
    async def test_number_format(self, db_session, clock, test_settings):
        issuer = CertificateIssuer(db_session, rng=ZeroRandom(), clock=clock, settings=test_settings)
        number = issuer.generate_certificate_number("c2", clock.now)
        prefix, level, stamp, suffix = number.split("-")
        assert (prefix, level, suffix) == ("CP", "C2", "00000")
        assert int(stamp, 36) == int(clock.now.timestamp() * 1000)

    @pytest.mark.asyncio
    async def test_prefix_from_settings(self, db_session, clock):
        settings = Settings(_env_file=None, certificate_prefix="dc")
        issuer = CertificateIssuer(db_session, rng=ZeroRandom(), clock=clock, settings=settings)
        assert issuer.generate_certificate_number("A1").startswith("DC-A1-")


class TestLookupAndRevoke:
    @pytest.mark.asyncio
    async def test_find_by_number_ignores_case(self, issuer, db_session, student, make_questions):
        questions = await make_questions(CompetencyLevel.B1, 4)
        certificate = await issuer.issue_if_earned(await _completed_assessment(db_session, student, questions))

        found = await issuer.find_by_number(certificate.certificate_number.lower())

        assert found.id == certificate.id
        assert await issuer.find_by_number("CP-XX-0-00000") is None

    @pytest.mark.asyncio
    async def test_revoke_once(self, issuer, db_session, student, make_questions, clock):
        questions = await make_questions(CompetencyLevel.B1, 4)
        certificate = await issuer.issue_if_earned(await _completed_assessment(db_session, student, questions))

        revoked = await issuer.revoke(certificate.id, "issued in error")

        assert revoked.status == CertificateStatus.REVOKED.value
        assert revoked.revoked_reason == "issued in error"
        assert revoked.revoked_at == clock.now
        assert revoked.is_valid_at(clock.now) is False

        with pytest.raises(InvalidTransitionError):
            await issuer.revoke(certificate.id, "again")

    @pytest.mark.asyncio
    async def test_list_for_user(self, issuer, db_session, student, make_user, make_questions):
        other = await make_user()
        questions = await make_questions(CompetencyLevel.B1, 4)
        mine = await issuer.issue_if_earned(await _completed_assessment(db_session, student, questions))
        await issuer.issue_if_earned(await _completed_assessment(db_session, other, questions))

        listed = await issuer.list_for_user(student.id)

        assert [c.id for c in listed] == [mine.id]
        assert await issuer.list_for_user(uuid.uuid4()) == []


class TestCertificateResponse:
    @pytest.mark.asyncio
    async def test_active_certificate_serializes(self, issuer, db_session, student, make_questions, clock):
        questions = await make_questions(CompetencyLevel.B1, 4)
        certificate = await issuer.issue_if_earned(await _completed_assessment(db_session, student, questions))

        response = CertificateResponse.from_certificate(certificate, clock.now)

        assert response.is_valid is True
        assert response.certificate_number == certificate.certificate_number
        assert response.model_dump(mode="json")["is_valid"] is True

    @pytest.mark.asyncio
    async def test_revoked_certificate_is_not_valid(self, issuer, db_session, student, make_questions, clock):
        questions = await make_questions(CompetencyLevel.B1, 4)
        certificate = await issuer.issue_if_earned(await _completed_assessment(db_session, student, questions))
        revoked = await issuer.revoke(certificate.id)

        response = CertificateResponse.from_certificate(revoked, clock.now)

        assert response.is_valid is False
        assert response.status == CertificateStatus.REVOKED.value
