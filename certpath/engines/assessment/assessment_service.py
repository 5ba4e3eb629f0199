"""
Assessment Service - the caller-facing operations of the engine.

Each method is one unit of work on the given session: the caller (the API
request dependency, a script, a test) commits or rolls back.
"""

import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from certpath.config import Settings, get_settings
from certpath.engines.assessment.certificate_issuer import CertificateIssuer
from certpath.engines.assessment.grader import SubmittedAnswer
from certpath.engines.assessment.progression_gate import ProgressionGate
from certpath.engines.assessment.state_machine import AssessmentStateMachine
from certpath.exceptions import AssessmentExpiredError, NotFoundError, translate_db_errors
from certpath.kernel.models.assessment import Assessment
from certpath.kernel.models.base import utcnow
from certpath.kernel.models.certificate import Certificate
from certpath.kernel.models.question import Question
from certpath.kernel.stores.user_store import UserProgression
from certpath.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class SubmissionResult:
    """A completed assessment and the certificate it earned, if any."""

    assessment: Assessment
    certificate: Optional[Certificate] = None


@dataclass
class AssessmentDetail:
    """An assessment with its questions in assessment order and time left."""

    assessment: Assessment
    questions: List[Question] = field(default_factory=list)
    remaining_seconds: int = 0


@dataclass
class ProgressReport:
    progression: UserProgression
    next_available_step: Optional[int]


class AssessmentService:
    """
    Facade over the state machine, progression gate and certificate issuer.

    Usage:
        service = AssessmentService(session)
        assessment = await service.request_assessment(user_id, step=1)
        await service.begin_assessment(assessment.id)
        result = await service.submit_assessment(assessment.id, answers)
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.clock = clock or utcnow
        self.settings = settings or get_settings()
        self.state_machine = AssessmentStateMachine(session, self.clock, rng, self.settings)
        self.gate = ProgressionGate(session)
        self.issuer = CertificateIssuer(session, clock=self.clock, settings=self.settings)

    async def request_assessment(self, user_id: uuid.UUID, step: int) -> Assessment:
        """Authorize the step for the user and create a pending assessment."""
        with translate_db_errors("request_assessment"):
            await self.gate.authorize(user_id, step)
            return await self.state_machine.create(user_id, step)

    async def begin_assessment(self, assessment_id: uuid.UUID) -> Assessment:
        with translate_db_errors("begin_assessment"):
            return await self.state_machine.start(assessment_id)

    async def submit_assessment(
        self,
        assessment_id: uuid.UUID,
        answers: Sequence[SubmittedAnswer],
    ) -> SubmissionResult:
        """
        Score, update progression and issue the certificate in one unit of work.

        A late submission expires the assessment; that expiry is committed
        before AssessmentExpiredError propagates.
        """
        with translate_db_errors("submit_assessment"):
            try:
                assessment = await self.state_machine.submit(assessment_id, answers)
            except AssessmentExpiredError:
                await self.session.commit()
                raise

            user = await self.gate.users.get_user(assessment.user_id)
            await self.gate.record_completion(user, assessment)
            certificate = await self.issuer.issue_if_earned(assessment)
            return SubmissionResult(assessment=assessment, certificate=certificate)

    async def expire_assessment(self, assessment_id: uuid.UUID) -> Assessment:
        with translate_db_errors("expire_assessment"):
            return await self.state_machine.expire(assessment_id)

    async def expire_overdue(self) -> List[Assessment]:
        with translate_db_errors("expire_overdue"):
            return await self.state_machine.expire_overdue()

    async def get_assessment(self, assessment_id: uuid.UUID) -> AssessmentDetail:
        with translate_db_errors("get_assessment"):
            assessment = await self.state_machine.assessments.find_by_id(assessment_id)
            ids = [uuid.UUID(qid) for qid in assessment.question_ids]
            by_id = await self.state_machine.questions.get_many(ids)
            return AssessmentDetail(
                assessment=assessment,
                questions=[by_id[qid] for qid in ids if qid in by_id],
                remaining_seconds=self.state_machine.remaining_seconds(assessment),
            )

    async def list_assessments(self, user_id: uuid.UUID) -> List[Assessment]:
        with translate_db_errors("list_assessments"):
            await self.gate.users.get_user(user_id)
            return await self.state_machine.assessments.list_for_user(user_id)

    async def get_progress(self, user_id: uuid.UUID) -> ProgressReport:
        with translate_db_errors("get_progress"):
            progression = await self.gate.users.get_user_progression(user_id)
            return ProgressReport(
                progression=progression,
                next_available_step=self.gate.next_eligible_step(progression),
            )

    async def list_certificates(self, user_id: uuid.UUID) -> List[Certificate]:
        with translate_db_errors("list_certificates"):
            await self.gate.users.get_user(user_id)
            return await self.issuer.list_for_user(user_id)

    async def verify_certificate(self, certificate_number: str) -> Certificate:
        with translate_db_errors("verify_certificate"):
            certificate = await self.issuer.find_by_number(certificate_number)
            if certificate is None:
                raise NotFoundError("Certificate", certificate_number)
            return certificate

    async def revoke_certificate(self, certificate_id: uuid.UUID, reason: Optional[str] = None) -> Certificate:
        with translate_db_errors("revoke_certificate"):
            return await self.issuer.revoke(certificate_id, reason)
