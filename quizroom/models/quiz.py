"""
Quiz model - exam lifecycle, room code and authoritative timing
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from quizroom.database import Base
from quizroom.utils.clock import utcnow
import uuid


class Quiz(Base):
    """
    Quizzes table - authored externally, status and timing owned by the engine

    start_time stays NULL until the quiz enters 'started' and is never
    rewritten afterwards; time adjustments change duration_minutes only.
    """
    __tablename__ = "quizzes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    room_code = Column(String(12), unique=True, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, default=30)
    timer_mode = Column(String(20), nullable=False, default="exam")  # exam | question
    status = Column(String(20), nullable=False, default="draft")
    start_time = Column(DateTime)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    questions = relationship(
        "Question",
        back_populates="quiz",
        order_by="Question.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Quiz(id={self.id}, room_code={self.room_code}, status={self.status})>"


class QuizRoster(Base):
    """
    Quiz roster - students allowed to join, maintained by the import collaborator
    """
    __tablename__ = "quiz_roster"
    __table_args__ = (UniqueConstraint("quiz_id", "student_id", name="uq_roster_quiz_student"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id"), nullable=False, index=True)
    student_id = Column(String(64), nullable=False)

    def __repr__(self):
        return f"<QuizRoster(quiz_id={self.quiz_id}, student_id={self.student_id})>"
