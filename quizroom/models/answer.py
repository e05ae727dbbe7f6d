"""
Answer model - one row per (result, question), overwritten on re-submission
"""
from sqlalchemy import Column, String, Integer, Boolean, Text, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from quizroom.database import Base
from quizroom.utils.clock import utcnow
import uuid


class Answer(Base):
    """
    Answers table - canonical response, instant-grading verdict and timing

    is_correct is NULL while a manually graded question awaits the teacher.
    """
    __tablename__ = "answers"
    __table_args__ = (UniqueConstraint("result_id", "question_id", name="uq_answer_result_question"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    result_id = Column(Uuid, ForeignKey("results.id"), nullable=False, index=True)
    question_id = Column(Uuid, ForeignKey("questions.id"), nullable=False)
    selected_options = Column(String(1024))  # sorted, comma-joined option ids
    answer_text = Column(Text)
    is_correct = Column(Boolean)
    points_awarded = Column(Integer, nullable=False, default=0)
    is_manually_graded = Column(Boolean, nullable=False, default=False)
    time_taken_seconds = Column(Integer, nullable=False, default=0)
    answered_at = Column(DateTime, default=utcnow)

    result = relationship("Result", back_populates="answers")
    question = relationship("Question")

    @property
    def response(self):
        return self.answer_text if self.selected_options is None else self.selected_options

    def __repr__(self):
        return f"<Answer(result_id={self.result_id}, question_id={self.question_id}, correct={self.is_correct})>"
