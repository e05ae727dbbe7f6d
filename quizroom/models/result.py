"""
Result model - one student's attempt at one quiz
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from quizroom.database import Base
from quizroom.utils.clock import utcnow
import uuid


RESULT_STATUSES = ("waiting", "in_progress", "submitted", "kicked", "graded")


class Result(Base):
    """
    Results table - attempt lifecycle plus denormalized score cache

    score, total_points and correct_count are rewritten from the stored
    answers at submit time; kicked is a status, is_paused/is_blocked are
    independent teacher-controlled facets.
    """
    __tablename__ = "results"
    __table_args__ = (UniqueConstraint("student_id", "quiz_id", name="uq_result_student_quiz"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(String(64), nullable=False, index=True)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="waiting")
    started_at = Column(DateTime)
    submitted_at = Column(DateTime)
    score = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)
    correct_count = Column(Integer, nullable=False, default=0)
    is_paused = Column(Boolean, nullable=False, default=False)
    is_blocked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    quiz = relationship("Quiz")
    answers = relationship("Answer", back_populates="result", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Result(id={self.id}, student_id={self.student_id}, status={self.status})>"
