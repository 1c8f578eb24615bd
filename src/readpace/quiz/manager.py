"""Quiz manager: stores generated question sets and grades answers once."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

from ..config import Config, get_config
from ..db.schemas import ComprehensionResultResponse, Question
from ..db.sqlite import Database, get_db
from ..errors import NotFoundError
from .scoring import count_correct, score_answers, validate_questions

logger = logging.getLogger(__name__)


@dataclass
class GradeResult:
    """Outcome of grading a session's answers."""

    session_id: str
    score_percent: int
    correct_count: int
    total_questions: int
    answers: list[int] = field(default_factory=list)
    correct: list[bool] = field(default_factory=list)
    completed_at: Optional[datetime] = None

    @property
    def passed(self) -> bool:
        """At least half the questions answered correctly."""
        return self.score_percent >= 50


class QuizManager:
    """Manages comprehension question sets and results."""

    def __init__(self, db: Optional[Database] = None, config: Optional[Config] = None):
        """Initialize quiz manager.

        Args:
            db: Database instance
            config: Configuration with question and option counts
        """
        self.db = db or get_db()
        self.config = config or get_config()

    def save_questions(self, session_id: str, questions: Sequence[Any]) -> list[Question]:
        """Store a generated question set for a session.

        If the session already has questions they are returned unchanged,
        so regenerating never replaces a set that may already be answered.

        Args:
            session_id: Session the questions are about
            questions: Generator output (dicts or Question instances)

        Returns:
            The stored question set

        Raises:
            NotFoundError: If the session does not exist
            ValidationError: If the question set is malformed
        """
        self._ensure_session(session_id)

        existing = self.db.get_questions(session_id)
        if existing:
            logger.debug("Session %s already has questions", session_id)
            return [Question.model_validate(q) for q in existing]

        validated = validate_questions(
            questions, self.config.question_count, self.config.option_count
        )
        rows = self.db.create_questions(session_id, [q.model_dump() for q in validated])
        logger.info("Stored %d questions for session %s", len(rows), session_id)
        return [Question.model_validate(q) for q in rows]

    def get_questions(self, session_id: str) -> list[Question]:
        """Get the question set for a session.

        Raises:
            NotFoundError: If the session has no questions
        """
        rows = self.db.get_questions(session_id)
        if not rows:
            raise NotFoundError(f"No questions found for session: {session_id}")
        return [Question.model_validate(q) for q in rows]

    def grade_answers(self, session_id: str, answers: Sequence[int]) -> GradeResult:
        """Grade a submission and record the result.

        Args:
            session_id: Session being answered
            answers: Chosen option index per question

        Returns:
            GradeResult with score and per-question correctness

        Raises:
            NotFoundError: If the session or its questions do not exist
            ValidationError: If the submission is malformed
            StateError: If the session already has a result
        """
        self._ensure_session(session_id)
        questions = self.get_questions(session_id)

        answers = list(answers)
        score = score_answers(answers, questions)
        result = self.db.create_result(session_id, answers, score)

        logger.info("Graded session %s: %d%%", session_id, score)
        return GradeResult(
            session_id=session_id,
            score_percent=score,
            correct_count=count_correct(answers, questions),
            total_questions=len(questions),
            answers=answers,
            correct=[a == q.correct_index for a, q in zip(answers, questions)],
            completed_at=datetime.fromisoformat(result.completed_at),
        )

    def get_result(self, session_id: str) -> Optional[ComprehensionResultResponse]:
        """Get the recorded result for a session, if answered."""
        result = self.db.get_result(session_id)
        if result is None:
            return None
        return ComprehensionResultResponse.model_validate(result)

    def _ensure_session(self, session_id: str) -> None:
        if self.db.get_session_record(session_id) is None:
            raise NotFoundError(f"Session not found: {session_id}")
