"""Comprehension quiz scoring.

Pure functions: grading never touches storage, and malformed input is
always rejected with ValidationError rather than clamped or treated as a
wrong answer.
"""

from typing import Any, Protocol, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..db.schemas import Question
from ..errors import ValidationError

OPTION_COUNT = 4


class Gradable(Protocol):
    """Anything with options and a correct option index."""

    options: list[str]
    correct_index: int


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_answers(answers: Sequence[Any], questions: Sequence[Gradable]) -> None:
    """Check an answer set against the questions it targets.

    Raises:
        ValidationError: On a length mismatch or an out-of-range index
    """
    if not questions:
        raise ValidationError("No questions to grade")

    if len(answers) != len(questions):
        raise ValidationError(f"Expected {len(questions)} answers, got {len(answers)}")

    for i, (answer, question) in enumerate(zip(answers, questions), start=1):
        option_count = len(question.options)
        if not _is_index(answer) or not 0 <= answer < option_count:
            raise ValidationError(
                f"Answer {i}: must be an option index between 0 and {option_count - 1}, got {answer!r}"
            )


def count_correct(answers: Sequence[int], questions: Sequence[Gradable]) -> int:
    """Number of answers matching the correct option."""
    return sum(1 for answer, q in zip(answers, questions) if answer == q.correct_index)


def percent(correct: int, total: int) -> int:
    """Integer percentage of correct answers.

    Exact when ``total`` divides 100 (with five questions every score is a
    multiple of 20); otherwise rounded half up to the nearest integer.
    """
    if 100 % total == 0:
        return correct * (100 // total)
    return (200 * correct + total) // (2 * total)


def score_answers(answers: Sequence[int], questions: Sequence[Gradable]) -> int:
    """Grade an answer set, returning the score as an integer percentage.

    Args:
        answers: Chosen option index per question
        questions: Questions in the same order

    Raises:
        ValidationError: If the submission is malformed
    """
    validate_answers(answers, questions)
    return percent(count_correct(answers, questions), len(questions))


def validate_questions(
    raw: Sequence[Any], expected_count: int, option_count: int = OPTION_COUNT
) -> list[Question]:
    """Check a question set produced by an external generator.

    Accepts dicts with ``prompt``, ``options`` and ``correct_index`` (or
    ``correctIndex``), or Question instances.

    Returns:
        Questions numbered from 1 in the given order

    Raises:
        ValidationError: If the set or any question is malformed
    """
    if not isinstance(raw, (list, tuple)) or len(raw) != expected_count:
        got = len(raw) if isinstance(raw, (list, tuple)) else type(raw).__name__
        raise ValidationError(f"Expected {expected_count} questions, got {got}")

    questions = []
    for i, item in enumerate(raw, start=1):
        if isinstance(item, Question):
            item = item.model_dump()
        if not isinstance(item, dict):
            raise ValidationError(f"Question {i}: must be an object")

        prompt = item.get("prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationError(f"Question {i}: prompt is required and must be a string")

        options = item.get("options")
        if not isinstance(options, list) or len(options) != option_count:
            raise ValidationError(f"Question {i}: must have exactly {option_count} options")

        correct_index = item.get("correct_index", item.get("correctIndex"))
        if not _is_index(correct_index) or not 0 <= correct_index < option_count:
            raise ValidationError(
                f"Question {i}: correct_index must be between 0 and {option_count - 1}"
            )

        try:
            questions.append(
                Question(
                    index=i,
                    prompt=prompt.strip(),
                    options=[str(o) for o in options],
                    correct_index=correct_index,
                )
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Question {i}: {e}") from e

    return questions
