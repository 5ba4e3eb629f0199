"""
Question selection for a new assessment.
"""

import math
import random
from typing import Dict, List, Sequence

from certpath.exceptions import EmptyQuestionPoolError, InvalidStepError
from certpath.kernel.models.question import STEP_LEVELS, Question
from certpath.logging_config import get_logger

logger = get_logger(__name__)

# Questions drawn per step
TARGET_QUESTION_COUNTS: Dict[int, int] = {1: 20, 2: 25, 3: 30}


def target_count(step: int) -> int:
    try:
        return TARGET_QUESTION_COUNTS[step]
    except KeyError:
        raise InvalidStepError(step) from None


def select_questions(
    candidates: Sequence[Question],
    step: int,
    rng: random.Random,
) -> List[Question]:
    """
    Draw up to the step's target from the candidate pool.

    Each of the step's two levels contributes ceil(target / 2) random
    questions, or all of its questions when it has fewer. The combined set
    is shuffled and trimmed to the target (odd targets overshoot by one).

    Raises:
        InvalidStepError: step outside 1..3
        EmptyQuestionPoolError: no candidate belongs to the step's levels
    """
    target = target_count(step)
    levels = [level.value for level in STEP_LEVELS[step]]
    per_level = math.ceil(target / len(levels))

    selected: List[Question] = []
    for level in levels:
        available = [q for q in candidates if q.level == level]
        if len(available) < per_level:
            logger.warning(
                "Question pool shortfall",
                extra={"step": step, "level": level, "available": len(available), "wanted": per_level},
            )
        selected.extend(rng.sample(available, min(per_level, len(available))))

    if not selected:
        raise EmptyQuestionPoolError(step, levels)

    rng.shuffle(selected)
    return selected[:target]
