"""Quiz grading: completeness checks, scoring, and pass thresholds."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from .models import QuestionSet, QuizAttempt

DEFAULT_PASS_THRESHOLD = 80


class PreconditionError(Exception):
    """Raised when a transition is disabled because required data is missing."""


class IncompleteSubmissionError(PreconditionError):
    """Raised when a quiz is submitted with unanswered questions."""

    def __init__(self, unanswered: list[int]) -> None:
        self.unanswered = unanswered
        super().__init__(f"Unanswered question(s): {', '.join(str(index + 1) for index in unanswered)}")


def score_percent(correct: int, total: int) -> int:
    """Return `correct / total` as a whole percentage, halves rounded up."""
    if total <= 0:
        raise ValueError("A quiz needs at least one question.")
    return (200 * correct + total) // (2 * total)


def required_correct(total: int, threshold: int = DEFAULT_PASS_THRESHOLD) -> int:
    """Return the number of correct answers needed to reach `threshold` percent."""
    needed = -(-total * threshold // 100)
    # Half-up rounding can pass one answer short of the exact ceiling.
    while needed > 0 and score_percent(needed - 1, total) >= threshold:
        needed -= 1
    return needed


def unanswered_questions(questions: QuestionSet, answers: Mapping[int, int]) -> list[int]:
    return [index for index in range(len(questions)) if index not in answers]


def grade(
    module_id: str,
    questions: QuestionSet,
    answers: Mapping[int, int],
    timestamp: datetime,
    threshold: int = DEFAULT_PASS_THRESHOLD,
) -> QuizAttempt:
    """Grade a fully answered question set."""
    missing = unanswered_questions(questions, answers)
    if missing:
        raise IncompleteSubmissionError(missing)

    correct = sum(1 for index, question in enumerate(questions) if answers[index] == question.correct_option_index)
    percent = score_percent(correct, len(questions))
    return QuizAttempt(
        module_id=module_id,
        answers=dict(answers),
        correct_count=correct,
        total_questions=len(questions),
        score_percent=percent,
        passed=percent >= threshold,
        timestamp=timestamp,
    )
