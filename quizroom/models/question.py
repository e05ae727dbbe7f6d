"""
Question and option models - read-only for the engine
"""
from sqlalchemy import Column, String, Integer, Boolean, Text, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from quizroom.database import Base
import uuid


# Reserved canonical answer meaning "a teacher grades this by hand"
MANUAL_GRADING = "MANUAL_GRADING"

QUESTION_TYPES = ("single_choice", "true_false", "multi_select", "short_answer")


class Question(Base):
    """
    Questions table - one quiz, one type, optional per-question time limit
    """
    __tablename__ = "questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False)
    points = Column(Integer, nullable=False, default=1)
    time_limit_seconds = Column(Integer)
    correct_answer = Column(Text)  # short answers only

    quiz = relationship("Quiz", back_populates="questions")
    options = relationship(
        "QuestionOption",
        back_populates="question",
        order_by="QuestionOption.position",
        cascade="all, delete-orphan",
    )

    @property
    def requires_manual_grading(self) -> bool:
        return self.question_type == "short_answer" and self.correct_answer == MANUAL_GRADING

    def __repr__(self):
        return f"<Question(id={self.id}, type={self.question_type}, points={self.points})>"


class QuestionOption(Base):
    """
    Options for choice questions, each flagged correct or incorrect
    """
    __tablename__ = "question_options"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id = Column(Uuid, ForeignKey("questions.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    option_text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)

    question = relationship("Question", back_populates="options")

    def __repr__(self):
        return f"<QuestionOption(id={self.id}, correct={self.is_correct})>"
