"""
Pydantic schemas for API request/response validation.
"""

from certpath.schemas.common import ErrorResponse, HealthResponse
from certpath.schemas.question import (
    CorrectAnswer,
    IndexAnswer,
    QuestionCreate,
    QuestionPublic,
    QuestionReview,
    TextAnswer,
)

__all__ = [
    # Common
    "ErrorResponse",
    "HealthResponse",
    # Question
    "CorrectAnswer",
    "IndexAnswer",
    "QuestionCreate",
    "QuestionPublic",
    "QuestionReview",
    "TextAnswer",
]
