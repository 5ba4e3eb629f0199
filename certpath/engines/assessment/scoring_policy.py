"""
Scoring Policy - maps (step, percentage correct) to a level outcome.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from certpath.exceptions import InvalidStepError
from certpath.kernel.models.question import CompetencyLevel


class ScoringOutcome(BaseModel):
    """Result of banding a percentage for one step."""

    model_config = ConfigDict(frozen=True)

    achieved_level: Optional[CompetencyLevel] = None
    can_proceed_to_next: bool = False
    certificate_level: Optional[CompetencyLevel] = None


class ScoringPolicy:
    """
    Threshold bands per step. Lower bounds are inclusive, so 25, 50 and 75
    belong to the upper band.

    Step 1 (A1/A2):
    - < 25: no level, no certificate (hard fail, locks step-1 retakes)
    - [25, 50): A1
    - [50, 75): A2
    - >= 75: A2, may proceed to step 2

    Step 2 (B1/B2), floor A2:
    - < 25: remains A2, no certificate
    - [25, 50): B1
    - [50, 75): B2
    - >= 75: B2, may proceed to step 3

    Step 3 (C1/C2), floor B2:
    - < 25: remains B2, no certificate
    - [25, 50): C1
    - >= 50: C2 (terminal step, never proceeds)
    """

    HARD_FAIL_BELOW = 25.0
    HIGH_LEVEL_FROM = 50.0
    PROCEED_FROM = 75.0

    @classmethod
    def determine_outcome(cls, step: int, percentage: float) -> ScoringOutcome:
        if not 0.0 <= percentage <= 100.0:
            raise ValueError(f"percentage must be within [0, 100], got {percentage}")

        if step == 1:
            if percentage < cls.HARD_FAIL_BELOW:
                return ScoringOutcome()
            if percentage < cls.HIGH_LEVEL_FROM:
                return _certified(CompetencyLevel.A1)
            if percentage < cls.PROCEED_FROM:
                return _certified(CompetencyLevel.A2)
            return _certified(CompetencyLevel.A2, proceed=True)

        if step == 2:
            if percentage < cls.HARD_FAIL_BELOW:
                return ScoringOutcome(achieved_level=CompetencyLevel.A2)
            if percentage < cls.HIGH_LEVEL_FROM:
                return _certified(CompetencyLevel.B1)
            if percentage < cls.PROCEED_FROM:
                return _certified(CompetencyLevel.B2)
            return _certified(CompetencyLevel.B2, proceed=True)

        if step == 3:
            if percentage < cls.HARD_FAIL_BELOW:
                return ScoringOutcome(achieved_level=CompetencyLevel.B2)
            if percentage < cls.HIGH_LEVEL_FROM:
                return _certified(CompetencyLevel.C1)
            return _certified(CompetencyLevel.C2)

        raise InvalidStepError(step)

    @classmethod
    def is_hard_fail(cls, step: int, percentage: float) -> bool:
        """Step-1 score low enough to lock further step-1 attempts."""
        return step == 1 and percentage < cls.HARD_FAIL_BELOW


def _certified(level: CompetencyLevel, proceed: bool = False) -> ScoringOutcome:
    return ScoringOutcome(achieved_level=level, can_proceed_to_next=proceed, certificate_level=level)


def calculate_percentage(correct: int, total: int) -> float:
    """100 * correct / total, unrounded; 0.0 for an empty assessment."""
    if total <= 0:
        return 0.0
    return 100.0 * correct / total


def determine_outcome(step: int, percentage: float) -> ScoringOutcome:
    """Module-level shortcut for ScoringPolicy.determine_outcome."""
    return ScoringPolicy.determine_outcome(step, percentage)
