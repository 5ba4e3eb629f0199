"""
Error taxonomy for the assessment engine.

Every engine operation either returns a result or raises one of these;
the API layer maps them to HTTP responses in one place (certpath.main).
"""

import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError


class AssessmentEngineError(Exception):
    """Base class for all engine errors."""

    code = "assessment_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class IneligibleStepError(AssessmentEngineError):
    """Step not unlocked for the user, or step-1 retake forbidden after lockout."""

    code = "ineligible_step"

    def __init__(self, step: int, reason: str):
        self.step = step
        self.reason = reason
        super().__init__(reason)


class InvalidStepError(AssessmentEngineError, ValueError):
    """Step outside 1..3."""

    code = "invalid_step"

    def __init__(self, step: Any):
        self.step = step
        super().__init__(f"Valid step (1, 2, or 3) is required, got {step!r}")


class InvalidTransitionError(AssessmentEngineError):
    """Requested lifecycle transition is not legal from the current status."""

    code = "invalid_transition"

    def __init__(
        self,
        assessment_id: uuid.UUID,
        from_status: str,
        action: str,
        message: Optional[str] = None,
    ):
        self.assessment_id = assessment_id
        self.from_status = from_status
        self.action = action
        super().__init__(message or f"Cannot {action} assessment in status '{from_status}'")


class AssessmentAlreadyCompletedError(InvalidTransitionError):
    """Submission on a completed assessment. The losing side of a race sees this."""

    code = "already_completed"

    def __init__(self, assessment_id: uuid.UUID):
        super().__init__(assessment_id, "completed", "submit", "Assessment already completed")


class AssessmentExpiredError(InvalidTransitionError):
    """Submission arrived after the time limit and grace period."""

    code = "expired"

    def __init__(self, assessment_id: uuid.UUID, from_status: str = "in_progress"):
        super().__init__(assessment_id, from_status, "submit", "Assessment time limit has expired")


class EmptyQuestionPoolError(AssessmentEngineError):
    """No questions available for the requested step/levels."""

    code = "empty_question_pool"

    def __init__(self, step: int, levels: Sequence[str]):
        self.step = step
        self.levels = list(levels)
        super().__init__(f"No questions available for step {step} ({', '.join(self.levels)})")


class NotFoundError(AssessmentEngineError):
    """Unknown assessment, user, question or certificate."""

    code = "not_found"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with ID {entity_id} not found")


class PersistenceError(AssessmentEngineError):
    """Store unavailable or write failed; the whole operation may be retried."""

    code = "persistence_error"


@contextmanager
def translate_db_errors(operation: str) -> Iterator[None]:
    """Re-raise SQLAlchemy failures as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise PersistenceError(f"{operation} failed: {exc.__class__.__name__}") from exc
