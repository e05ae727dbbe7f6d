"""
Instant grading rules for exam answers
Choice questions: option identity match
Short answers: normalized exact match, or pending manual grading
"""
import logging
from typing import Any, List, NamedTuple, Optional, Set, Tuple

from quizroom.errors import ValidationError
from quizroom.models.question import MANUAL_GRADING, QUESTION_TYPES, Question

logger = logging.getLogger(__name__)


class Grade(NamedTuple):
    """Verdict for one answer; is_correct is None while pending"""
    is_correct: Optional[bool]
    points: int
    feedback: str

    @property
    def is_pending(self) -> bool:
        return self.is_correct is None


def _norm_id(value: Any) -> str:
    return str(value).strip().lower()


def _split_ids(value: str) -> List[str]:
    return [_norm_id(part) for part in value.split(",") if part.strip()]


class GradingService:
    """
    Stateless grader shared by answer upserts and summary recomputation

    Strategy:
    - single_choice / true_false: submitted option id equals the correct one
    - multi_select: submitted id set equals the correct id set, order ignored
    - short_answer: trimmed, case-insensitive exact match; the manual
      grading marker always yields a pending verdict
    """

    CHOICE_TYPES = ("single_choice", "true_false")

    def normalize_answer(self, question: Question, raw_answer: Any) -> Tuple[Optional[str], Optional[str]]:
        """
        Validate a raw client payload and return its canonical stored form

        Args:
            question: Question being answered
            raw_answer: Option id, comma-joined/listed option ids, or free text

        Returns:
            Tuple of (selected_options, answer_text); exactly one is set

        Raises:
            ValidationError: unknown type, wrong payload shape, unknown option
        """
        q_type = question.question_type
        if q_type not in QUESTION_TYPES:
            raise ValidationError(f"Unsupported question type: {q_type}")

        if q_type == "short_answer":
            if not isinstance(raw_answer, str):
                raise ValidationError("Short answers must be text")
            return None, raw_answer

        if isinstance(raw_answer, (list, tuple)):
            if not all(isinstance(item, str) for item in raw_answer):
                raise ValidationError("Option identifiers must be strings")
            submitted = [_norm_id(item) for item in raw_answer if item.strip()]
        elif isinstance(raw_answer, str):
            submitted = _split_ids(raw_answer)
        else:
            raise ValidationError("Choice answers must be option identifiers")

        if not submitted:
            raise ValidationError("No option selected")

        known = {_norm_id(option.id) for option in question.options}
        unknown = [option_id for option_id in submitted if option_id not in known]
        if unknown:
            raise ValidationError(f"Unknown option for this question: {unknown[0]}")

        unique_ids = sorted(set(submitted))
        if q_type in self.CHOICE_TYPES and len(unique_ids) != 1:
            raise ValidationError("Exactly one option must be selected")

        return ",".join(unique_ids), None

    def grade(self, question: Question, response: Optional[str]) -> Grade:
        """
        Grade a stored response against the question's current key

        Args:
            question: Question with its options loaded
            response: Canonical response (Answer.response), None if blank

        Returns:
            Grade(is_correct, points, feedback)
        """
        q_type = question.question_type
        if q_type not in QUESTION_TYPES:
            raise ValidationError(f"Unsupported question type: {q_type}")

        if q_type in self.CHOICE_TYPES:
            is_correct = self._grade_single(question, response)
        elif q_type == "multi_select":
            is_correct = self._grade_multi(question, response)
        else:
            # The marker is checked before any comparison so no typed answer can match it
            if question.correct_answer == MANUAL_GRADING:
                return Grade(None, 0, "Awaiting manual grading")
            is_correct = self._grade_short_answer(question, response)

        if is_correct:
            return Grade(True, question.points, "Correct!")
        return Grade(False, 0, "Incorrect")

    def _grade_single(self, question: Question, response: Optional[str]) -> bool:
        if response is None:
            return False
        correct = self._correct_ids(question)
        return len(correct) == 1 and _norm_id(response) in correct

    def _grade_multi(self, question: Question, response: Optional[str]) -> bool:
        if response is None:
            return False
        correct = self._correct_ids(question)
        return bool(correct) and set(_split_ids(response)) == correct

    def _grade_short_answer(self, question: Question, response: Optional[str]) -> bool:
        if response is None or question.correct_answer is None:
            return False
        return response.strip().lower() == question.correct_answer.strip().lower()

    def _correct_ids(self, question: Question) -> Set[str]:
        return {_norm_id(option.id) for option in question.options if option.is_correct}


# Global instance
grading_service = GradingService()
