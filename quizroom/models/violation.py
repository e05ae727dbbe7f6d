"""
Violation log and kick records - append-only anti-cheat history
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, Uuid
from quizroom.database import Base
from quizroom.utils.clock import utcnow
import uuid


VIOLATION_TYPES = ("tab_switch", "page_leave", "minimize", "other")


class Violation(Base):
    """
    Violations table - one row per reported infraction, never updated

    violation_count is the running count for the result; the unique key
    makes two concurrent reports collide instead of sharing a count.
    """
    __tablename__ = "violations"
    __table_args__ = (UniqueConstraint("result_id", "violation_count", name="uq_violation_result_count"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    result_id = Column(Uuid, ForeignKey("results.id"), nullable=False, index=True)
    student_id = Column(String(64), nullable=False)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id"), nullable=False, index=True)
    violation_type = Column(String(20), nullable=False)
    violation_count = Column(Integer, nullable=False)
    details = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<Violation(result_id={self.result_id}, type={self.violation_type}, count={self.violation_count})>"


class KickRecord(Base):
    """
    Kick records - written once when a result crosses the violation threshold
    """
    __tablename__ = "kick_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    result_id = Column(Uuid, ForeignKey("results.id"), unique=True, nullable=False)
    student_id = Column(String(64), nullable=False)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id"), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    violation_count = Column(Integer, nullable=False)
    kicked_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<KickRecord(result_id={self.result_id}, count={self.violation_count})>"
