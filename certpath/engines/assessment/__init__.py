"""
Assessment Progression Engine.

Three sequential steps (A1/A2, B1/B2, C1/C2); each completed assessment is
banded into a certified level and decides whether the next step opens.
"""

from certpath.engines.assessment.assessment_service import (
    AssessmentDetail,
    AssessmentService,
    ProgressReport,
    SubmissionResult,
)
from certpath.engines.assessment.certificate_issuer import CertificateIssuer
from certpath.engines.assessment.grader import AnswerRecord, Grader, GradedSubmission, SubmittedAnswer
from certpath.engines.assessment.progression_gate import ProgressionGate
from certpath.engines.assessment.question_selector import TARGET_QUESTION_COUNTS, select_questions
from certpath.engines.assessment.scoring_policy import (
    ScoringOutcome,
    ScoringPolicy,
    calculate_percentage,
    determine_outcome,
)
from certpath.engines.assessment.state_machine import (
    AssessmentStateMachine,
    can_transition,
    remaining_seconds,
    valid_transitions,
)

__all__ = [
    "AssessmentDetail",
    "AssessmentService",
    "ProgressReport",
    "SubmissionResult",
    "CertificateIssuer",
    "AnswerRecord",
    "Grader",
    "GradedSubmission",
    "SubmittedAnswer",
    "ProgressionGate",
    "TARGET_QUESTION_COUNTS",
    "select_questions",
    "ScoringOutcome",
    "ScoringPolicy",
    "calculate_percentage",
    "determine_outcome",
    "AssessmentStateMachine",
    "can_transition",
    "remaining_seconds",
    "valid_transitions",
]
