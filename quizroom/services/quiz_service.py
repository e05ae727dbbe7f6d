"""
Quiz lifecycle service
draft -> active -> started -> finished, forward only
"""
import logging
import random
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from quizroom.config import settings
from quizroom.errors import Forbidden, InvalidStateTransition, NotFound, ValidationError
from quizroom.models import InvalidEntry, Question, Quiz, QuizRoster
from quizroom.services.result_service import result_service
from quizroom.services.timer_sync import QuizTiming, build_snapshot
from quizroom.utils.cache import cache_service
from quizroom.utils.clock import utcnow

logger = logging.getLogger(__name__)


QUIZ_STATUSES = ("draft", "active", "started", "finished")
JOINABLE_STATUSES = ("active", "started")


class QuizService:
    """
    Owns quiz status, the one-time start stamp and live duration changes

    Status and duration writes lock the quiz row so two teachers pressing
    "start" together cannot stamp start_time twice.
    """

    def get_quiz(self, db: Session, quiz_id: UUID) -> Quiz:
        quiz = db.query(Quiz).filter(Quiz.id == quiz_id, Quiz.is_deleted.is_(False)).first()
        if not quiz:
            raise NotFound("Quiz not found")
        return quiz

    def _lock_quiz(self, db: Session, quiz_id: UUID) -> Quiz:
        quiz = (
            db.query(Quiz)
            .filter(Quiz.id == quiz_id, Quiz.is_deleted.is_(False))
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not quiz:
            raise NotFound("Quiz not found")
        return quiz

    def find_by_room_code(self, db: Session, room_code: str) -> Quiz:
        """
        Look up a live quiz by its public room code

        Raises:
            NotFound: no non-deleted quiz uses this code
        """
        code = (room_code or "").strip().upper()
        quiz = db.query(Quiz).filter(Quiz.room_code == code, Quiz.is_deleted.is_(False)).first()
        if not code or not quiz:
            raise NotFound("Invalid room code")
        return quiz

    def is_on_roster(self, db: Session, quiz_id: UUID, student_id: str) -> bool:
        return db.query(QuizRoster.id).filter(
            QuizRoster.quiz_id == quiz_id,
            QuizRoster.student_id == student_id
        ).first() is not None

    def set_status(self, db: Session, quiz_id: UUID, new_status: str) -> Quiz:
        """
        Move a quiz forward through its lifecycle

        Re-applying the current status is a no-op; entering 'started'
        stamps start_time exactly once.

        Raises:
            ValidationError: unknown status, or quiz not ready to open
            InvalidStateTransition: backward move
        """
        if new_status not in QUIZ_STATUSES:
            raise ValidationError(f"Invalid status: {new_status}")

        quiz = self._lock_quiz(db, quiz_id)
        current = quiz.status

        if new_status == current:
            logger.info(f"Quiz {quiz.id} already {current}; nothing to do")
            db.commit()
            return quiz

        if QUIZ_STATUSES.index(new_status) < QUIZ_STATUSES.index(current):
            raise InvalidStateTransition(f"Cannot move quiz from {current} back to {new_status}")

        if new_status in JOINABLE_STATUSES:
            self._ensure_ready(db, quiz, new_status)

        quiz.status = new_status
        if new_status == "started" and quiz.start_time is None:
            quiz.start_time = utcnow()

        db.commit()
        cache_service.invalidate_quiz(quiz.id)

        logger.info(f"Quiz {quiz.id} status: {current} -> {new_status} (start_time={quiz.start_time})")
        return quiz

    def _ensure_ready(self, db: Session, quiz: Quiz, new_status: str) -> None:
        question_count = db.query(Question.id).filter(Question.quiz_id == quiz.id).count()
        if question_count == 0:
            raise ValidationError(
                f"Cannot {new_status} quiz without questions. Please add at least one question."
            )

        roster_count = db.query(QuizRoster.id).filter(QuizRoster.quiz_id == quiz.id).count()
        if roster_count == 0:
            raise ValidationError(
                f"Cannot {new_status} quiz without assigned students. Please assign a roster."
            )

    def adjust_time(self, db: Session, quiz_id: UUID, delta_minutes: int) -> Dict[str, Any]:
        """
        Extend or shorten a running exam

        Only duration_minutes changes. A change that would put the deadline
        at or before the current server time, or below the minimum
        duration, is rejected rather than clamped.

        Returns:
            Dictionary with new duration, applied delta and new deadline
        """
        if isinstance(delta_minutes, bool) or not isinstance(delta_minutes, int) or delta_minutes == 0:
            raise ValidationError("Adjustment must be a non-zero number of minutes")

        quiz = self._lock_quiz(db, quiz_id)
        if quiz.status != "started":
            raise InvalidStateTransition("Can only adjust time for a started quiz")

        now = utcnow()
        new_duration = quiz.duration_minutes + delta_minutes
        if new_duration < settings.MIN_DURATION_MINUTES:
            raise ValidationError(
                f"Duration cannot drop below {settings.MIN_DURATION_MINUTES} minute(s)"
            )

        new_end = quiz.start_time + timedelta(minutes=new_duration)
        if new_end <= now:
            elapsed_minutes = (now - quiz.start_time).total_seconds() / 60
            raise ValidationError(
                f"Adjustment would end the exam in the past ({elapsed_minutes:.1f} minutes already elapsed)"
            )

        old_duration = quiz.duration_minutes
        quiz.duration_minutes = new_duration
        db.commit()
        cache_service.invalidate_quiz(quiz.id)

        logger.info(f"Quiz {quiz.id} duration adjusted: {old_duration} -> {new_duration} min")

        return {
            "quiz_id": quiz.id,
            "new_duration": new_duration,
            "adjustment_applied": delta_minutes,
            "ends_at": new_end,
        }

    def expire_if_elapsed(self, db: Session, quiz: Quiz, now: Optional[datetime] = None) -> bool:
        """
        Finish a started quiz whose deadline has passed

        Returns:
            True if this call moved the quiz to 'finished'
        """
        now = now or utcnow()
        if not QuizTiming.from_quiz(quiz).has_elapsed(now):
            return False

        locked = self._lock_quiz(db, quiz.id)
        if locked.status != "started":
            db.commit()
            return False

        locked.status = "finished"
        db.commit()
        cache_service.invalidate_quiz(locked.id)

        logger.info(f"Quiz {locked.id} auto-finished: deadline passed")
        return True

    def get_quiz_status(self, db: Session, quiz_id: UUID) -> Dict[str, Any]:
        """
        Status poll: quiz status plus the timer-sync triple

        Served from the timing cache when possible; an elapsed cached
        snapshot always falls through to the database so expiry is applied.
        """
        now = utcnow()
        key = cache_service.quiz_status_key(quiz_id)

        cached = cache_service.get(key)
        if cached:
            timing = QuizTiming(**cached)
            if not timing.has_elapsed(now):
                return build_snapshot(timing, now)

        quiz = self.get_quiz(db, quiz_id)
        self.expire_if_elapsed(db, quiz, now)

        timing = QuizTiming.from_quiz(quiz)
        cache_service.set(key, timing.to_dict())
        return build_snapshot(timing, now)

    def join(self, db: Session, student_id: str, room_code: str) -> Dict[str, Any]:
        """
        Student join flow: room code, expiry, status gate, roster, attempt

        Returns:
            Join payload with the result id and the current timer snapshot
        """
        quiz = self.find_by_room_code(db, room_code)
        self.expire_if_elapsed(db, quiz)

        if quiz.status not in JOINABLE_STATUSES:
            logger.warning(f"Join refused: quiz {quiz.id} is {quiz.status}, student={student_id}")
            self._record_invalid_entry(db, quiz, student_id, "not_joinable")
            raise Forbidden("Exam is not yet active or has already finished.")

        if not self.is_on_roster(db, quiz.id, student_id):
            logger.warning(f"Join refused: student {student_id} not on roster of quiz {quiz.id}")
            self._record_invalid_entry(db, quiz, student_id, "not_on_roster")
            raise Forbidden("Access Denied: You are not on the roster for this quiz.")

        result = result_service.enter(db, student_id, quiz.id)

        return {
            "quiz_id": quiz.id,
            "quiz_title": quiz.title,
            "result_id": result.id,
            "result_status": result.status,
            "timer": build_snapshot(QuizTiming.from_quiz(quiz)),
        }

    def _record_invalid_entry(self, db: Session, quiz: Quiz, student_id: str, reason: str) -> None:
        """Commit at once; the join is refused right after"""
        db.add(InvalidEntry(quiz_id=quiz.id, student_id=student_id, reason=reason, quiz_status=quiz.status))
        db.commit()

    def list_invalid_entries(self, db: Session, quiz_id: UUID) -> List[InvalidEntry]:
        return (
            db.query(InvalidEntry)
            .filter(InvalidEntry.quiz_id == quiz_id)
            .order_by(InvalidEntry.created_at.desc())
            .all()
        )

    def get_exam_questions(self, db: Session, quiz_id: UUID, student_id: str) -> List[Dict[str, Any]]:
        """
        Questions for a running exam, without answer keys

        The order is shuffled per student but stable across reloads.
        """
        quiz = self.get_quiz(db, quiz_id)
        if quiz.status != "started":
            raise Forbidden("Questions are only available while the exam is running")

        questions = list(quiz.questions)
        random.Random(f"{quiz.id}:{student_id}").shuffle(questions)

        return [
            {
                "id": q.id,
                "question_text": q.question_text,
                "question_type": q.question_type,
                "points": q.points,
                "time_limit_seconds": q.time_limit_seconds,
                "options": [{"id": o.id, "option_text": o.option_text} for o in q.options],
            }
            for q in questions
        ]


# Global instance
quiz_service = QuizService()
