"""
Grader - matches submitted answers against an assessment's answer key.
"""

import uuid
from typing import Dict, List, Mapping, Sequence

from pydantic import BaseModel, Field

from certpath.kernel.models.question import Question


class SubmittedAnswer(BaseModel):
    """One answer as sent by the caller."""

    question_id: uuid.UUID
    selected_index: int = Field(..., ge=0)


class AnswerRecord(BaseModel):
    """One graded answer as stored on the assessment."""

    question_id: uuid.UUID
    selected_index: int
    is_correct: bool


class GradedSubmission(BaseModel):
    """Outcome of grading a submission against the assessment's questions."""

    records: List[AnswerRecord]
    correct: int
    total_questions: int
    ignored: List[uuid.UUID] = []


class Grader:
    """
    Index-only grading.

    - Answers for questions that are not part of the assessment are ignored.
    - Several answers for the same question: the last one wins.
    - Unanswered questions count as wrong; the denominator is always the
      assessment's full question count.
    """

    @classmethod
    def grade(
        cls,
        question_ids: Sequence[uuid.UUID],
        questions: Mapping[uuid.UUID, Question],
        answers: Sequence[SubmittedAnswer],
    ) -> GradedSubmission:
        """
        Grade answers for an assessment.

        Args:
            question_ids: The assessment's ordered question ids
            questions: Question records keyed by id (must cover question_ids)
            answers: Submitted answers, in submission order

        Returns:
            GradedSubmission with one record per answered question, in
            assessment order
        """
        allowed = set(question_ids)
        latest: Dict[uuid.UUID, int] = {}
        ignored: List[uuid.UUID] = []
        for answer in answers:
            if answer.question_id not in allowed:
                ignored.append(answer.question_id)
                continue
            latest[answer.question_id] = answer.selected_index

        records = []
        for qid in question_ids:
            if qid not in latest:
                continue
            selected = latest[qid]
            question = questions.get(qid)
            is_correct = question is not None and selected == question.correct_index
            records.append(
                AnswerRecord(question_id=qid, selected_index=selected, is_correct=is_correct)
            )

        return GradedSubmission(
            records=records,
            correct=sum(1 for r in records if r.is_correct),
            total_questions=len(question_ids),
            ignored=ignored,
        )
