"""
State machine for the Assessment lifecycle.

    pending ──start──> in_progress ──submit──> completed
       │                    │
       └──────submit────────┼──────────────────> completed
                            └──expire──> expired

completed and expired are terminal. Every update goes through the
assessment's version column, so two writers racing on the same row cannot
both succeed.
"""

import random
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from certpath.config import Settings, get_settings
from certpath.engines.assessment.grader import GradedSubmission, Grader, SubmittedAnswer
from certpath.engines.assessment.question_selector import select_questions, target_count
from certpath.engines.assessment.scoring_policy import ScoringPolicy, calculate_percentage
from certpath.exceptions import (
    AssessmentAlreadyCompletedError,
    AssessmentExpiredError,
    InvalidStepError,
    InvalidTransitionError,
)
from certpath.kernel.events.event_store import EventStore
from certpath.kernel.events.event_types import (
    AssessmentCompletedEvent,
    AssessmentCreatedEvent,
    AssessmentEvent,
)
from certpath.kernel.models.assessment import TERMINAL_STATUSES, Assessment, AssessmentStatus
from certpath.kernel.models.base import as_utc, utcnow
from certpath.kernel.models.event_log import EventType
from certpath.kernel.models.question import STEP_LEVELS, VALID_STEPS, Question
from certpath.kernel.stores.assessment_store import AssessmentStore
from certpath.kernel.stores.question_store import QuestionPool
from certpath.logging_config import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]

# Valid transitions: (from_status, to_status) -> action that triggers it
_TRANSITIONS: Dict[Tuple[str, str], str] = {
    (AssessmentStatus.PENDING.value, AssessmentStatus.IN_PROGRESS.value): "start",
    (AssessmentStatus.PENDING.value, AssessmentStatus.COMPLETED.value): "submit",
    (AssessmentStatus.IN_PROGRESS.value, AssessmentStatus.COMPLETED.value): "submit",
    (AssessmentStatus.IN_PROGRESS.value, AssessmentStatus.EXPIRED.value): "expire",
}


def valid_transitions(from_status: str) -> List[str]:
    """Return list of valid target statuses from given status."""
    return sorted({t for (f, t) in _TRANSITIONS if f == from_status})


def can_transition(from_status: str, to_status: str) -> bool:
    return (from_status, to_status) in _TRANSITIONS


def remaining_seconds(assessment: Assessment, now: datetime) -> int:
    """
    Seconds left on the assessment's timer.

    Full budget while pending, 0 once terminal, otherwise the budget minus
    elapsed time clamped at 0.
    """
    budget = assessment.time_limit_minutes * 60
    status = assessment.status_enum
    if status in TERMINAL_STATUSES:
        return 0
    if status == AssessmentStatus.PENDING or assessment.started_at is None:
        return budget
    elapsed = (now - as_utc(assessment.started_at)).total_seconds()
    return max(0, int(budget - elapsed))


class AssessmentStateMachine:
    """Performs assessment transitions with audit logging."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.clock = clock or utcnow
        self.rng = rng or random.Random()
        self.settings = settings or get_settings()
        self.assessments = AssessmentStore(session)
        self.questions = QuestionPool(session)
        self.event_store = EventStore(session)

    def _deadline(self, assessment: Assessment, grace_seconds: int = 0) -> Optional[datetime]:
        if assessment.started_at is None:
            return None
        return as_utc(assessment.started_at) + timedelta(
            minutes=assessment.time_limit_minutes, seconds=grace_seconds
        )

    def _require(self, assessment: Assessment, to_status: AssessmentStatus, action: str) -> None:
        if not can_transition(assessment.status, to_status.value):
            raise InvalidTransitionError(assessment.id, assessment.status, action)

    async def create(
        self,
        user_id: uuid.UUID,
        step: int,
        candidates: Optional[Sequence[Question]] = None,
    ) -> Assessment:
        """
        Create a pending assessment for an already-authorized step.

        Args:
            user_id: The user taking the assessment
            step: 1, 2 or 3
            candidates: Question pool to draw from; defaults to the active
                questions of the step's levels

        Returns:
            The new pending Assessment
        """
        if step not in VALID_STEPS:
            raise InvalidStepError(step)
        levels = [level.value for level in STEP_LEVELS[step]]
        if candidates is None:
            candidates = await self.questions.find_questions(step, levels)

        selected = select_questions(candidates, step, self.rng)
        now = self.clock()
        assessment = Assessment(
            user_id=user_id,
            step=step,
            levels=levels,
            question_ids=[str(q.id) for q in selected],
            time_limit_minutes=len(selected),
            status=AssessmentStatus.PENDING.value,
            answers=[],
            created_at=now,
            updated_at=now,
        )
        await self.assessments.create(assessment)

        await self.event_store.log_from_model(
            event_type=EventType.ASSESSMENT_CREATED,
            entity_type="assessment",
            entity_id=assessment.id,
            user_id=user_id,
            payload_model=AssessmentCreatedEvent(
                step=step,
                status=assessment.status,
                levels=levels,
                question_count=len(selected),
                target_count=target_count(step),
                time_limit_minutes=assessment.time_limit_minutes,
            ),
        )
        logger.info(
            "Assessment created",
            extra={"assessment_id": str(assessment.id), "step": step, "questions": len(selected)},
        )
        return assessment

    async def start(self, assessment_id: uuid.UUID) -> Assessment:
        """pending -> in_progress. One running attempt per user and step."""
        assessment = await self.assessments.find_by_id(assessment_id)
        self._require(assessment, AssessmentStatus.IN_PROGRESS, "start")
        now = self.clock()

        grace = self.settings.submission_grace_seconds
        for other in await self.assessments.find_in_progress(assessment.user_id, assessment.step):
            if other.id == assessment.id:
                continue
            deadline = self._deadline(other, grace)
            if deadline is not None and now < deadline:
                raise InvalidTransitionError(
                    assessment.id,
                    assessment.status,
                    "start",
                    f"Another step {assessment.step} assessment is already in progress",
                )
            await self._mark_expired(other, now)

        assessment.status = AssessmentStatus.IN_PROGRESS.value
        assessment.started_at = now
        assessment.updated_at = now
        await self._save(assessment, "start", AssessmentStatus.PENDING.value)

        await self.event_store.log_from_model(
            event_type=EventType.ASSESSMENT_STARTED,
            entity_type="assessment",
            entity_id=assessment.id,
            user_id=assessment.user_id,
            payload_model=AssessmentEvent(step=assessment.step, status=assessment.status),
        )
        return assessment

    async def submit(
        self,
        assessment_id: uuid.UUID,
        answers: Sequence[SubmittedAnswer],
    ) -> Assessment:
        """
        Score a submission and complete the assessment.

        Raises:
            AssessmentAlreadyCompletedError: already completed, or another
                submission won the race
            AssessmentExpiredError: expired, or arrived after the time
                limit plus grace (the assessment is expired as a side effect)
        """
        assessment = await self.assessments.find_by_id(assessment_id)
        status = assessment.status_enum
        if status == AssessmentStatus.COMPLETED:
            raise AssessmentAlreadyCompletedError(assessment.id)
        if status == AssessmentStatus.EXPIRED:
            raise AssessmentExpiredError(assessment.id, from_status=status.value)
        self._require(assessment, AssessmentStatus.COMPLETED, "submit")

        now = self.clock()
        deadline = self._deadline(assessment, self.settings.submission_grace_seconds)
        if deadline is not None and now > deadline:
            await self._mark_expired(assessment, now)
            logger.info(
                "Late submission rejected",
                extra={"assessment_id": str(assessment.id), "deadline": deadline.isoformat()},
            )
            raise AssessmentExpiredError(assessment.id)

        question_ids = [uuid.UUID(qid) for qid in assessment.question_ids]
        questions = await self.questions.get_many(question_ids)
        graded = Grader.grade(question_ids, questions, answers)
        if graded.ignored:
            logger.warning(
                "Ignored answers for questions outside the assessment",
                extra={"assessment_id": str(assessment.id), "ignored": len(graded.ignored)},
            )

        self._apply_result(assessment, graded, now)
        await self._save(assessment)

        await self.event_store.log_from_model(
            event_type=EventType.ASSESSMENT_COMPLETED,
            entity_type="assessment",
            entity_id=assessment.id,
            user_id=assessment.user_id,
            payload_model=AssessmentCompletedEvent(
                step=assessment.step,
                status=assessment.status,
                score=assessment.score,
                total_questions=graded.total_questions,
                percentage=assessment.percentage,
                achieved_level=assessment.achieved_level,
                certificate_level=assessment.certificate_level,
                can_proceed_to_next=assessment.can_proceed_to_next,
                ignored_answers=len(graded.ignored),
            ),
        )
        logger.info(
            "Assessment completed",
            extra={
                "assessment_id": str(assessment.id),
                "step": assessment.step,
                "percentage": assessment.percentage,
                "achieved_level": assessment.achieved_level,
            },
        )
        return assessment

    def _apply_result(self, assessment: Assessment, graded: GradedSubmission, now: datetime) -> None:
        percentage = calculate_percentage(graded.correct, graded.total_questions)
        outcome = ScoringPolicy.determine_outcome(assessment.step, percentage)

        assessment.answers = [record.model_dump(mode="json") for record in graded.records]
        assessment.score = graded.correct
        assessment.percentage = percentage
        assessment.achieved_level = outcome.achieved_level.value if outcome.achieved_level else None
        assessment.certificate_level = (
            outcome.certificate_level.value if outcome.certificate_level else None
        )
        assessment.can_proceed_to_next = outcome.can_proceed_to_next
        assessment.status = AssessmentStatus.COMPLETED.value
        assessment.completed_at = now
        assessment.updated_at = now

    async def expire(self, assessment_id: uuid.UUID) -> Assessment:
        """in_progress -> expired, only once the timer has run out. No scoring."""
        assessment = await self.assessments.find_by_id(assessment_id)
        self._require(assessment, AssessmentStatus.EXPIRED, "expire")
        now = self.clock()
        left = remaining_seconds(assessment, now)
        if left > 0:
            raise InvalidTransitionError(
                assessment.id,
                assessment.status,
                "expire",
                f"Assessment still has {left} seconds remaining",
            )
        await self._mark_expired(assessment, now)
        return assessment

    async def expire_overdue(self) -> List[Assessment]:
        """Expire every in-progress assessment past its time limit plus grace."""
        now = self.clock()
        overdue = await self.assessments.find_overdue(now, self.settings.submission_grace_seconds)
        for assessment in overdue:
            await self._mark_expired(assessment, now)
        if overdue:
            logger.info("Expired overdue assessments", extra={"count": len(overdue)})
        return overdue

    def remaining_seconds(self, assessment: Assessment, now: Optional[datetime] = None) -> int:
        return remaining_seconds(assessment, now or self.clock())

    async def _mark_expired(self, assessment: Assessment, now: datetime) -> None:
        from_status = assessment.status
        assessment.status = AssessmentStatus.EXPIRED.value
        assessment.expired_at = now
        assessment.updated_at = now
        await self._save(assessment, "expire", from_status)

        await self.event_store.log_from_model(
            event_type=EventType.ASSESSMENT_EXPIRED,
            entity_type="assessment",
            entity_id=assessment.id,
            user_id=assessment.user_id,
            payload_model=AssessmentEvent(
                step=assessment.step,
                status=assessment.status,
                metadata={"from_status": from_status},
            ),
        )
        logger.info("Assessment expired", extra={"assessment_id": str(assessment.id)})

    async def _save(
        self,
        assessment: Assessment,
        action: str = "submit",
        from_status: Optional[str] = None,
    ) -> None:
        # A failed flush expires the instance; read what the errors need first
        assessment_id = assessment.id
        step = assessment.step
        from_status = from_status or assessment.status
        try:
            await self.assessments.update(assessment)
        except StaleDataError:
            await self.session.rollback()
            logger.info(
                "Concurrent update lost the version check",
                extra={"assessment_id": str(assessment_id), "action": action},
            )
            if action == "submit":
                raise AssessmentAlreadyCompletedError(assessment_id) from None
            raise InvalidTransitionError(
                assessment_id,
                from_status,
                action,
                "Assessment was changed by another request",
            ) from None
        except IntegrityError:
            # Only a second in_progress row for the same user and step trips the index
            await self.session.rollback()
            logger.info(
                "Concurrent start lost the in-progress slot",
                extra={"assessment_id": str(assessment_id), "step": step},
            )
            raise InvalidTransitionError(
                assessment_id,
                from_status,
                action,
                f"Another step {step} assessment is already in progress",
            ) from None
