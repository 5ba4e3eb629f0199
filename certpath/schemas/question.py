"""
Pydantic schemas for question ingestion and display.
"""

import uuid
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from certpath.kernel.models.question import CompetencyLevel, QuestionDifficulty, STEP_LEVELS


class IndexAnswer(BaseModel):
    """Correct option given by zero-based position."""

    kind: Literal["index"] = "index"
    index: int = Field(ge=0)


class TextAnswer(BaseModel):
    """Correct option given by its exact text."""

    kind: Literal["text"] = "text"
    text: str


CorrectAnswer = Annotated[Union[IndexAnswer, TextAnswer], Field(discriminator="kind")]


class QuestionCreate(BaseModel):
    """Question as supplied by content management or a seed file."""

    competency: str = Field(min_length=1, max_length=255)
    level: CompetencyLevel
    step: int
    prompt: str = Field(min_length=1, max_length=1000)
    options: List[str] = Field(min_length=2, max_length=6)
    correct_answer: CorrectAnswer
    explanation: Optional[str] = Field(default=None, max_length=500)
    difficulty: QuestionDifficulty = QuestionDifficulty.MEDIUM
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True

    @model_validator(mode="after")
    def _check_consistency(self) -> "QuestionCreate":
        if self.step not in STEP_LEVELS:
            raise ValueError(f"step must be 1, 2, or 3, got {self.step}")
        if self.level not in STEP_LEVELS[self.step]:
            raise ValueError(f"level {self.level.value} does not belong to step {self.step}")
        # Raises for an out-of-range index or unknown option text
        self.correct_index()
        return self

    def correct_index(self) -> int:
        """Normalize the correct answer to an option index."""
        answer = self.correct_answer
        if isinstance(answer, IndexAnswer):
            if answer.index >= len(self.options):
                raise ValueError("Correct answer index is out of bounds")
            return answer.index
        try:
            return self.options.index(answer.text)
        except ValueError:
            raise ValueError("Correct answer text not found in options") from None


class QuestionPublic(BaseModel):
    """Question as shown to a candidate - no answer key."""

    id: uuid.UUID
    competency: str
    level: str
    step: int
    prompt: str
    options: List[str]
    difficulty: str


class QuestionReview(QuestionPublic):
    """Question with answer key, shown once an assessment is over."""

    correct_index: int
    explanation: Optional[str] = None
