"""
Ordered question collection used by game sessions.
"""
import logging
from typing import Iterator, List, Optional

from .errors import EmptyBankError, InvalidQuestionError
from .models import Question

logger = logging.getLogger(__name__)


class QuestionBank:
    """Mutable ordered sequence of questions with unique ids."""

    MIN_OPTIONS = 2
    # Options are shown as letters A-H
    MAX_OPTIONS = 8

    def __init__(self, questions: Optional[List[Question]] = None):
        self._questions: List[Question] = []
        for question in questions or []:
            self.add(question)

    def next(self, index: int) -> Question:
        """
        Return the question at ``index`` modulo the bank length.

        Raises:
            EmptyBankError: If the bank holds no questions
        """
        if not self._questions:
            raise EmptyBankError("Question bank is empty")
        return self._questions[index % len(self._questions)]

    def add(self, question: Question) -> None:
        """
        Validate and append a question.

        Raises:
            InvalidQuestionError: If the prompt or any option is empty, the
                option count is outside MIN_OPTIONS-MAX_OPTIONS, the correct
                index is out of range or the id is already used
        """
        self.validate_question(question)
        if self.get(question.id) is not None:
            raise InvalidQuestionError(f"Duplicate question id: {question.id}")
        self._questions.append(question)
        logger.debug(f"Added question {question.id} ({len(self._questions)} in bank)")

    def remove(self, question_id: str) -> bool:
        """Remove a question by id. Returns False if it was not present."""
        for i, question in enumerate(self._questions):
            if question.id == question_id:
                del self._questions[i]
                logger.debug(f"Removed question {question_id}")
                return True
        return False

    def clear(self) -> None:
        self._questions.clear()

    def get(self, question_id: str) -> Optional[Question]:
        for question in self._questions:
            if question.id == question_id:
                return question
        return None

    def questions(self) -> List[Question]:
        return list(self._questions)

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(list(self._questions))

    @classmethod
    def validate_question(cls, question: Question) -> None:
        if not isinstance(question.text, str) or not question.text.strip():
            raise InvalidQuestionError("Question prompt cannot be empty")
        if not isinstance(question.options, list) or len(question.options) < cls.MIN_OPTIONS:
            raise InvalidQuestionError(f"A question needs at least {cls.MIN_OPTIONS} options")
        if len(question.options) > cls.MAX_OPTIONS:
            raise InvalidQuestionError(f"A question can have at most {cls.MAX_OPTIONS} options")
        for i, option in enumerate(question.options):
            if not isinstance(option, str) or not option.strip():
                raise InvalidQuestionError(f"Option {i + 1} cannot be empty")
        if (isinstance(question.correct_index, bool) or not isinstance(question.correct_index, int)
                or not 0 <= question.correct_index < len(question.options)):
            raise InvalidQuestionError(
                f"Correct index {question.correct_index!r} is out of range for "
                f"{len(question.options)} options"
            )
