"""
Invalid entry log - refused attempts to join a quiz room
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
from quizroom.database import Base
from quizroom.utils.clock import utcnow
import uuid


class InvalidEntry(Base):
    """
    Invalid entries table - append-only audit of refused joins
    """
    __tablename__ = "invalid_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id"), nullable=False, index=True)
    student_id = Column(String(64), nullable=False)
    reason = Column(String(20), nullable=False)  # not_joinable | not_on_roster
    quiz_status = Column(String(20))
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<InvalidEntry(quiz_id={self.quiz_id}, student_id={self.student_id}, reason={self.reason})>"
