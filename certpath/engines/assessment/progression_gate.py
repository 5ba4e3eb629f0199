"""
Progression Gate - decides which step a user may attempt.

Step 1 is open until a hard fail (< 25 %) locks it; steps 2 and 3 open when
the most recent completed attempt at the previous step scored 75 % or more.
The lockout is permanent: nothing in the engine sets can_retake back to True.
"""

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from certpath.engines.assessment.scoring_policy import ScoringPolicy
from certpath.exceptions import IneligibleStepError, InvalidStepError
from certpath.kernel.events.event_store import EventStore
from certpath.kernel.events.event_types import RetakeLockedEvent
from certpath.kernel.models.assessment import Assessment, AssessmentStatus
from certpath.kernel.models.event_log import EventType
from certpath.kernel.models.question import VALID_STEPS
from certpath.kernel.models.user import User
from certpath.kernel.stores.user_store import UserProgression, UserProgressionStore
from certpath.logging_config import get_logger

logger = get_logger(__name__)

STEP_1_LOCKED_REASON = "Retakes not allowed for Step 1 after failure"


def _unlocked(progression: UserProgression, step: int) -> bool:
    """Whether `step` is open by virtue of the previous step's latest result."""
    if step == 1:
        return progression.can_retake
    return progression.latest_proceed.get(step - 1, False)


class ProgressionGate:
    """Step eligibility and the progression side effects of a completed assessment."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserProgressionStore(session)
        self.event_store = EventStore(session)

    @staticmethod
    def next_eligible_step(progression: UserProgression) -> Optional[int]:
        """Highest step the user may attempt now, or None when locked out entirely."""
        for step in sorted(VALID_STEPS, reverse=True):
            if step > 1 and _unlocked(progression, step):
                return step
        return 1 if progression.can_retake else None

    @staticmethod
    def check_step(progression: UserProgression, step: int) -> None:
        """
        Raise IneligibleStepError unless `step` may be attempted.

        Step 1 stays reachable after the lockout only while a later step is
        unlocked, so a user who already advanced is never stranded.
        """
        if step not in VALID_STEPS:
            raise InvalidStepError(step)

        if step == 1:
            if not progression.can_retake and ProgressionGate.next_eligible_step(progression) is None:
                raise IneligibleStepError(step, STEP_1_LOCKED_REASON)
            return

        if not _unlocked(progression, step):
            raise IneligibleStepError(
                step,
                f"Must complete Step {step - 1} with 75% or higher to access Step {step}",
            )

    async def authorize(self, user_id: uuid.UUID, step: int) -> UserProgression:
        """Load the user's progression and check the step against it."""
        progression = await self.users.get_user_progression(user_id)
        self.check_step(progression, step)
        return progression

    async def record_completion(self, user: User, assessment: Assessment) -> None:
        """
        Apply a completed assessment to the user's progression.

        - step-1 hard fail: can_retake = False, permanently
        - achieved level: current_level, completed_steps, history entry
        """
        if assessment.status != AssessmentStatus.COMPLETED.value:
            raise ValueError("Only completed assessments update progression")

        patch = {"last_assessment_at": assessment.completed_at}

        if ScoringPolicy.is_hard_fail(assessment.step, assessment.percentage) and user.can_retake:
            patch["can_retake"] = False
            await self.event_store.log_from_model(
                event_type=EventType.RETAKE_LOCKED,
                entity_type="user",
                entity_id=user.id,
                user_id=user.id,
                payload_model=RetakeLockedEvent(
                    assessment_id=assessment.id,
                    percentage=assessment.percentage,
                ),
            )
            logger.warning(
                "Step 1 retakes locked",
                extra={"user_id": str(user.id), "percentage": assessment.percentage},
            )

        if assessment.achieved_level is not None:
            patch["current_level"] = assessment.achieved_level
            patch["completed_steps"] = list(user.completed_steps or []) + [assessment.step]
            await self.users.append_history(
                user_id=user.id,
                assessment_id=assessment.id,
                step=assessment.step,
                score=assessment.percentage,
                level=assessment.achieved_level,
                recorded_at=assessment.completed_at,
            )
            await self.event_store.log(
                event_type=EventType.LEVEL_ACHIEVED,
                entity_type="user",
                entity_id=user.id,
                user_id=user.id,
                payload={
                    "assessment_id": assessment.id,
                    "step": assessment.step,
                    "level": assessment.achieved_level,
                },
            )

        await self.users.update_user_progression(user.id, patch)
