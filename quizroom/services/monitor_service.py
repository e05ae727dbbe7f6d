"""
Live monitor - read-only aggregation for the teacher dashboard
"""
import logging
from collections import defaultdict
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy.orm import Session

from quizroom.models import Answer, Question, Result
from quizroom.services.violation_service import violation_service

logger = logging.getLogger(__name__)


class MonitorService:
    """Point-in-time ranking of every attempt under a quiz"""

    def get_live_stats(self, db: Session, quiz_id: UUID) -> Dict[str, Any]:
        """
        Get per-student progress for one quiz

        Args:
            db: Database session
            quiz_id: Quiz UUID

        Returns:
            Dictionary with question count and ranked student rows
        """
        total_questions = db.query(Question.id).filter(Question.quiz_id == quiz_id).count()
        results = db.query(Result).filter(Result.quiz_id == quiz_id).all()
        result_ids = [r.id for r in results]

        answers_by_result = defaultdict(list)
        if result_ids:
            answers = db.query(Answer).filter(Answer.result_id.in_(result_ids)).all()
            for answer in answers:
                answers_by_result[answer.result_id].append(answer)

        violation_counts = violation_service.counts_for_quiz(db, quiz_id)

        students = [
            self._student_row(result, answers_by_result[result.id], total_questions, violation_counts.get(result.id, 0))
            for result in results
        ]
        students.sort(key=self._rank_key)

        return {
            "quiz_id": quiz_id,
            "total_questions": total_questions,
            "total_students": len(students),
            "students": students,
        }

    def _student_row(
        self,
        result: Result,
        answers: List[Answer],
        total_questions: int,
        violation_count: int
    ) -> Dict[str, Any]:
        answered = len(answers)
        correct = sum(1 for a in answers if a.is_correct is True)
        wrong = sum(1 for a in answers if a.is_correct is False)
        time_spent = sum(a.time_taken_seconds or 0 for a in answers)
        percentage = round(correct / total_questions * 100, 1) if total_questions else 0.0

        return {
            "result_id": result.id,
            "student_id": result.student_id,
            "status": result.status,
            "label": self.status_label(result, answered),
            "answered": answered,
            "correct": correct,
            "wrong": wrong,
            "pending": answered - correct - wrong,
            "time_spent_seconds": time_spent,
            "percentage": percentage,
            "violation_count": violation_count,
            "is_paused": bool(result.is_paused),
            "is_blocked": bool(result.is_blocked),
            "submitted_at": result.submitted_at,
        }

    @staticmethod
    def status_label(result: Result, answered: int) -> str:
        if result.is_blocked:
            return "Blocked"
        if result.status == "kicked":
            return "Kicked"
        if result.is_paused:
            return "Paused"
        if result.status in ("submitted", "graded"):
            return "Finished"
        if answered == 0:
            return "Started"
        return "In Progress"

    @staticmethod
    def _rank_key(row: Dict[str, Any]):
        finished = row["status"] in ("submitted", "graded")
        return (
            0 if finished else 1,
            -row["correct"],
            row["time_spent_seconds"],
            -row["answered"],
            str(row["result_id"]),
        )


# Global instance
monitor_service = MonitorService()
