"""
Database models package
"""
from quizroom.models.quiz import Quiz, QuizRoster
from quizroom.models.question import Question, QuestionOption, MANUAL_GRADING
from quizroom.models.result import Result
from quizroom.models.answer import Answer
from quizroom.models.violation import Violation, KickRecord
from quizroom.models.invalid_entry import InvalidEntry

__all__ = [
    "Quiz",
    "QuizRoster",
    "Question",
    "QuestionOption",
    "MANUAL_GRADING",
    "Result",
    "Answer",
    "Violation",
    "KickRecord",
    "InvalidEntry",
]
