"""
Answer store - one answer per (result, question), upsert semantics
"""
import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from quizroom.models import Answer, Result
from quizroom.services.grading_service import Grade
from quizroom.utils.clock import utcnow

logger = logging.getLogger(__name__)


class AnswerStore:
    """
    Persistence for student answers

    Callers hold the owning Result's row lock, so the read-then-write in
    upsert cannot interleave with another writer for the same result; the
    (result_id, question_id) unique key backs that up at the database.
    """

    def get(self, db: Session, result_id: UUID, question_id: UUID) -> Optional[Answer]:
        return db.query(Answer).filter(
            Answer.result_id == result_id,
            Answer.question_id == question_id
        ).first()

    def for_result(self, db: Session, result_id: UUID) -> List[Answer]:
        return db.query(Answer).filter(Answer.result_id == result_id).all()

    def by_question(self, db: Session, result_id: UUID) -> Dict[UUID, Answer]:
        return {answer.question_id: answer for answer in self.for_result(db, result_id)}

    def upsert(
        self,
        db: Session,
        result: Result,
        question_id: UUID,
        selected_options: Optional[str],
        answer_text: Optional[str],
        grade: Grade,
        time_taken: int = 0
    ) -> Answer:
        """
        Insert or overwrite the answer for this question

        A re-submission replaces the response, the verdict and any earlier
        teacher grade; it never adds a second row.
        """
        answer = self.get(db, result.id, question_id)
        created = answer is None

        if created:
            answer = Answer(result_id=result.id, question_id=question_id)
            db.add(answer)

        answer.selected_options = selected_options
        answer.answer_text = answer_text
        answer.is_correct = grade.is_correct
        answer.points_awarded = grade.points
        answer.is_manually_graded = False
        answer.time_taken_seconds = max(int(time_taken or 0), 0)
        answer.answered_at = utcnow()

        db.flush()

        logger.info(
            f"Answer {'stored' if created else 'overwritten'}: result={result.id}, "
            f"question={question_id}, correct={grade.is_correct}"
        )
        return answer


# Global instance
answer_store = AnswerStore()
