"""Unit tests for answer grading and question selection."""

import random
import uuid
from collections import Counter

import pytest

from certpath.engines.assessment.grader import Grader, SubmittedAnswer
from certpath.engines.assessment.question_selector import TARGET_QUESTION_COUNTS, select_questions
from certpath.exceptions import EmptyQuestionPoolError, InvalidStepError
from certpath.kernel.models.question import Question, step_for_level, CompetencyLevel


def _question(level: str, correct_index: int = 0) -> Question:
    return Question(
        id=uuid.uuid4(),
        competency="Grammar",
        level=level,
        step=step_for_level(CompetencyLevel(level)),
        prompt="?",
        options=["a", "b", "c", "d"],
        correct_index=correct_index,
    )


def _pool(**counts) -> list:
    return [_question(level) for level, n in counts.items() for _ in range(n)]


class TestGrader:
    def test_counts_matching_indices(self):
        questions = [_question("A1", correct_index=2) for _ in range(4)]
        ids = [q.id for q in questions]
        answers = [
            SubmittedAnswer(question_id=ids[0], selected_index=2),
            SubmittedAnswer(question_id=ids[1], selected_index=0),
            SubmittedAnswer(question_id=ids[2], selected_index=2),
        ]
        graded = Grader.grade(ids, {q.id: q for q in questions}, answers)
        assert graded.correct == 2
        assert graded.total_questions == 4
        assert len(graded.records) == 3

    def test_last_answer_wins(self):
        question = _question("A1", correct_index=1)
        answers = [
            SubmittedAnswer(question_id=question.id, selected_index=1),
            SubmittedAnswer(question_id=question.id, selected_index=3),
        ]
        graded = Grader.grade([question.id], {question.id: question}, answers)
        assert graded.correct == 0
        assert graded.records[0].selected_index == 3

    def test_foreign_answers_ignored(self):
        question = _question("A1")
        stray = uuid.uuid4()
        answers = [
            SubmittedAnswer(question_id=stray, selected_index=0),
            SubmittedAnswer(question_id=question.id, selected_index=0),
        ]
        graded = Grader.grade([question.id], {question.id: question}, answers)
        assert graded.correct == 1
        assert graded.ignored == [stray]

    def test_empty_submission(self):
        question = _question("A1")
        graded = Grader.grade([question.id], {question.id: question}, [])
        assert graded.correct == 0
        assert graded.records == []

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            SubmittedAnswer(question_id=uuid.uuid4(), selected_index=-1)


class TestSelectQuestions:
    def test_full_pool_hits_target(self):
        pool = _pool(A1=15, A2=15)
        selected = select_questions(pool, 1, random.Random(1))
        assert len(selected) == TARGET_QUESTION_COUNTS[1]
        assert len({q.id for q in selected}) == len(selected)
        assert {q.id for q in selected} <= {q.id for q in pool}

    def test_balanced_between_levels(self):
        selected = select_questions(_pool(A1=15, A2=15), 1, random.Random(2))
        assert Counter(q.level for q in selected) == {"A1": 10, "A2": 10}

    def test_odd_target_trimmed(self):
        selected = select_questions(_pool(B1=20, B2=20), 2, random.Random(3))
        assert len(selected) == 25
        counts = Counter(q.level for q in selected)
        assert counts["B1"] <= 13 and counts["B2"] <= 13

    def test_short_pool_takes_everything(self):
        pool = _pool(A1=12, A2=3)
        selected = select_questions(pool, 1, random.Random(4))
        assert Counter(q.level for q in selected) == {"A1": 10, "A2": 3}

    def test_plentiful_level_does_not_cover_shortfall(self):
        selected = select_questions(_pool(A1=5, A2=30), 1, random.Random(8))
        assert len(selected) == 15
        assert Counter(q.level for q in selected) == {"A1": 5, "A2": 10}

    def test_other_levels_never_drawn(self):
        pool = _pool(A1=5, B1=10, C2=10)
        selected = select_questions(pool, 1, random.Random(5))
        assert {q.level for q in selected} == {"A1"}

    def test_empty_pool(self):
        with pytest.raises(EmptyQuestionPoolError):
            select_questions(_pool(B1=10), 1, random.Random(6))

    def test_invalid_step(self):
        with pytest.raises(InvalidStepError):
            select_questions(_pool(A1=10), 5, random.Random(7))
