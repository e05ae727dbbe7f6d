"""
Authorization guard - ownership checks run before any engine operation

Identity arrives already validated from the gateway; this module only
decides whether that principal may touch a given quiz or result.
"""
import logging
from dataclasses import dataclass

from quizroom.errors import Forbidden
from quizroom.models import Quiz, Result

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Opaque, pre-authenticated caller"""
    id: str
    role: str  # "teacher" | "student"

    @property
    def is_teacher(self) -> bool:
        return self.role == "teacher"

    @property
    def is_student(self) -> bool:
        return self.role == "student"


def ensure_quiz_owner(principal: Principal, quiz: Quiz) -> None:
    """Only the teacher who owns the quiz may control or inspect it"""
    if not principal.is_teacher or quiz.teacher_id != principal.id:
        logger.warning(f"Quiz access denied: principal={principal.id}, quiz={quiz.id}")
        raise Forbidden("You do not own this quiz")


def ensure_result_owner(principal: Principal, result: Result) -> None:
    """A student may only act on their own attempt"""
    if not principal.is_student or result.student_id != principal.id:
        logger.warning(f"Result access denied: principal={principal.id}, result={result.id}")
        raise Forbidden("This attempt belongs to another student")


def ensure_result_access(principal: Principal, result: Result, quiz: Quiz) -> None:
    """Teachers reach a result through their quiz, students through ownership"""
    if principal.is_teacher:
        ensure_quiz_owner(principal, quiz)
    else:
        ensure_result_owner(principal, result)
