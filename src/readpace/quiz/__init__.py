"""Comprehension quizzes: question validation, scoring and results."""

from .manager import GradeResult, QuizManager
from .scoring import score_answers, validate_answers, validate_questions

__all__ = [
    "GradeResult",
    "QuizManager",
    "score_answers",
    "validate_answers",
    "validate_questions",
]
