"""
Anti-cheat violation tracking

Each report appends one Violation row with the next running count for the
attempt; reaching the threshold kicks the student and writes a KickRecord.
"""
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizroom.config import settings
from quizroom.errors import Forbidden, ResultTerminal, ValidationError
from quizroom.models import KickRecord, Result, Violation
from quizroom.models.violation import VIOLATION_TYPES
from quizroom.services.quiz_service import quiz_service
from quizroom.services.result_service import SUBMITTED_STATUSES, result_service

logger = logging.getLogger(__name__)


WARNING_MESSAGES = {
    "tab_switch": "Switching tabs during the exam is not allowed.",
    "page_leave": "Leaving the exam page is not allowed.",
    "minimize": "Minimizing the exam window is not allowed.",
    "other": "Suspicious activity was detected.",
}


class ViolationService:
    """Records violations and applies the kick threshold"""

    def __init__(self, threshold: Optional[int] = None):
        self._threshold = threshold

    @property
    def threshold(self) -> int:
        return self._threshold or settings.VIOLATION_KICK_THRESHOLD

    def current_count(self, db: Session, result_id: UUID) -> int:
        count = db.query(func.max(Violation.violation_count)).filter(
            Violation.result_id == result_id
        ).scalar()
        return count or 0

    def record_violation(
        self,
        db: Session,
        student_id: str,
        quiz_id: UUID,
        violation_type: str,
        details: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Record one violation for the student's attempt

        Creates an in-progress attempt if the student has none yet. A report
        against an already kicked attempt returns the kicked outcome without
        adding a row.

        Returns:
            Outcome dictionary: action ('warning' | 'kicked'), count,
            remaining warnings and the message to show the student
        """
        if violation_type not in VIOLATION_TYPES:
            raise ValidationError(
                f"Invalid violation type: {violation_type}. Expected one of {', '.join(VIOLATION_TYPES)}"
            )

        quiz = quiz_service.get_quiz(db, quiz_id)
        if result_service.find(db, student_id, quiz.id) is None and not quiz_service.is_on_roster(db, quiz.id, student_id):
            raise Forbidden("Access Denied: You are not on the roster for this quiz.")
        result, _ = result_service.get_or_create(db, student_id, quiz.id, "in_progress")

        try:
            return self._append(db, result.id, violation_type, details)
        except IntegrityError:
            # Lost the race for this count; the next read sees the winner's row
            db.rollback()
            logger.warning(f"Violation count collision on result {result.id}; retrying")
            return self._append(db, result.id, violation_type, details)

    def _append(self, db: Session, result_id: UUID, violation_type: str, details: Optional[str]) -> Dict[str, Any]:
        result = result_service.lock_result(db, result_id)
        current = self.current_count(db, result.id)

        if result.status == "kicked":
            db.commit()
            return self._outcome(result, "kicked", current, violation_type)
        if result.is_blocked:
            raise Forbidden("Access Revoked: You have been blocked by the instructor.")
        if result.status in SUBMITTED_STATUSES:
            raise ResultTerminal(f"This attempt is already {result.status}")

        count = current + 1
        db.add(Violation(
            result_id=result.id,
            student_id=result.student_id,
            quiz_id=result.quiz_id,
            violation_type=violation_type,
            violation_count=count,
            details=details,
        ))
        db.flush()

        if count >= self.threshold:
            result_service.transition(result, "kicked")
            db.add(KickRecord(
                result_id=result.id,
                student_id=result.student_id,
                quiz_id=result.quiz_id,
                reason=f"Reached {count} violations (last: {violation_type})",
                violation_count=count,
            ))
            db.commit()
            logger.warning(f"Student {result.student_id} kicked from quiz {result.quiz_id} after {count} violations")
            return self._outcome(result, "kicked", count, violation_type)

        db.commit()
        logger.info(f"Violation {count}/{self.threshold} recorded: result={result.id}, type={violation_type}")
        return self._outcome(result, "warning", count, violation_type)

    def _outcome(self, result: Result, action: str, count: int, violation_type: str) -> Dict[str, Any]:
        remaining = max(0, self.threshold - count)

        if action == "kicked":
            message = f"You have been removed from the exam after {count} violations."
        else:
            plural = "s" if remaining != 1 else ""
            message = (
                f"{WARNING_MESSAGES[violation_type]} "
                f"{remaining} warning{plural} left before you are removed from the exam."
            )

        return {
            "action": action,
            "result_id": result.id,
            "violation_count": count,
            "remaining_warnings": remaining,
            "message": message,
        }

    def list_violations(self, db: Session, quiz_id: UUID) -> List[Violation]:
        return (
            db.query(Violation)
            .filter(Violation.quiz_id == quiz_id)
            .order_by(Violation.created_at.desc(), Violation.violation_count.desc())
            .all()
        )

    def counts_for_quiz(self, db: Session, quiz_id: UUID) -> Dict[UUID, int]:
        """Highest recorded count per result, for the live monitor"""
        rows = (
            db.query(Violation.result_id, func.max(Violation.violation_count))
            .filter(Violation.quiz_id == quiz_id)
            .group_by(Violation.result_id)
            .all()
        )
        return {result_id: count for result_id, count in rows}


# Global instance
violation_service = ViolationService()
