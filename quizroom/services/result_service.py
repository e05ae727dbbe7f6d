"""
Result lifecycle service - one student's attempt at one quiz

waiting -> in_progress -> submitted -> graded, with kicked reachable from
any state before submission. Pause and block are independent facets.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizroom.errors import Forbidden, InvalidStateTransition, NotFound, ResultTerminal, ValidationError
from quizroom.models import Answer, Question, Quiz, QuizRoster, Result
from quizroom.models.result import RESULT_STATUSES
from quizroom.services.answer_store import answer_store
from quizroom.services.grading_service import Grade, grading_service
from quizroom.services.timer_sync import QuizTiming
from quizroom.utils.clock import utcnow

logger = logging.getLogger(__name__)


RESULT_TRANSITIONS = {
    "waiting": ("in_progress", "kicked"),
    "in_progress": ("submitted", "kicked"),
    "submitted": ("graded",),
    "kicked": (),
    "graded": (),
}
TERMINAL_STATUSES = ("submitted", "graded", "kicked")
SUBMITTED_STATUSES = ("submitted", "graded")
CONTROL_ACTIONS = ("pause", "resume", "block")


class ResultService:
    """
    Owns Result rows: creation, answers, submission, teacher controls

    Every mutation re-reads the result under a row lock and commits once,
    so autosaves, violation reports and finish calls for the same attempt
    are applied one after another.
    """

    # ------------------------------------------------------------------
    # Lookup and locking
    # ------------------------------------------------------------------

    def get_result(self, db: Session, result_id: UUID) -> Result:
        result = db.query(Result).filter(Result.id == result_id).first()
        if not result:
            raise NotFound("Result not found")
        return result

    def find(self, db: Session, student_id: str, quiz_id: UUID) -> Optional[Result]:
        return db.query(Result).filter(
            Result.student_id == student_id,
            Result.quiz_id == quiz_id
        ).first()

    def lock_result(self, db: Session, result_id: UUID) -> Result:
        result = (
            db.query(Result)
            .filter(Result.id == result_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not result:
            raise NotFound("Result not found")
        return result

    def transition(self, result: Result, new_status: str) -> None:
        """
        Apply one status change, validated against the transition table

        Raises:
            InvalidStateTransition: move not allowed from the current status
        """
        allowed = RESULT_TRANSITIONS.get(result.status, ())
        if new_status not in allowed:
            raise InvalidStateTransition(f"Cannot move attempt from {result.status} to {new_status}")

        logger.info(f"Result {result.id}: {result.status} -> {new_status}")
        result.status = new_status

    def _ensure_mutable(self, result: Result, allow_paused: bool = False) -> None:
        if result.status in TERMINAL_STATUSES:
            raise ResultTerminal(f"This attempt is already {result.status}")
        if result.is_blocked:
            raise Forbidden("Access Revoked: You have been blocked by the instructor.")
        if result.is_paused and not allow_paused:
            raise Forbidden("Your exam has been paused by the instructor.")

    def get_or_create(self, db: Session, student_id: str, quiz_id: UUID, status: str) -> Tuple[Result, bool]:
        """
        Fetch the attempt for (student, quiz) or create it with the given status

        Two concurrent creators hit the unique key; the loser rolls back and
        returns the winner's row, so a retried join never duplicates.

        Returns:
            Tuple of (result, created)
        """
        existing = self.find(db, student_id, quiz_id)
        if existing:
            return existing, False

        result = Result(
            student_id=student_id,
            quiz_id=quiz_id,
            status=status,
            started_at=utcnow() if status == "in_progress" else None,
        )
        db.add(result)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            existing = self.find(db, student_id, quiz_id)
            if existing is None:
                raise
            logger.info(f"Concurrent join for student {student_id}; reusing result {existing.id}")
            return existing, False

        logger.info(f"Result created: {result.id} (student={student_id}, quiz={quiz_id}, status={status})")
        return result, True

    # ------------------------------------------------------------------
    # Student flow
    # ------------------------------------------------------------------

    def enter(self, db: Session, student_id: str, quiz_id: UUID) -> Result:
        """Join the waiting room; idempotent per (student, quiz)"""
        existing = self.find(db, student_id, quiz_id)
        if existing and existing.is_blocked:
            raise Forbidden("Access Revoked: You have been blocked by the instructor.")
        if existing:
            return existing

        result, _ = self.get_or_create(db, student_id, quiz_id, "waiting")
        return result

    def start(self, db: Session, student_id: str, quiz_id: UUID) -> Tuple[Result, str]:
        """
        Begin or resume answering

        Returns:
            Tuple of (result, "started" | "resumed")
        """
        quiz = db.query(Quiz).filter(Quiz.id == quiz_id, Quiz.is_deleted.is_(False)).first()
        if not quiz:
            raise NotFound("Quiz not found")

        existing = self.find(db, student_id, quiz_id)
        if existing:
            self._ensure_mutable(existing, allow_paused=True)

        if quiz.status != "started":
            raise InvalidStateTransition("The exam has not started yet")

        if existing is None:
            on_roster = db.query(QuizRoster.id).filter(
                QuizRoster.quiz_id == quiz.id,
                QuizRoster.student_id == student_id
            ).first()
            if not on_roster:
                raise Forbidden("Access Denied: You are not on the roster for this quiz.")
            existing, created = self.get_or_create(db, student_id, quiz_id, "in_progress")
            if created:
                return existing, "started"

        result = self.lock_result(db, existing.id)
        self._ensure_mutable(result, allow_paused=True)

        if result.status == "waiting":
            self.transition(result, "in_progress")
            result.started_at = utcnow()
            db.commit()
            return result, "started"

        db.commit()
        return result, "resumed"

    def record_answer(
        self,
        db: Session,
        result_id: UUID,
        question_id: UUID,
        raw_answer: Any,
        time_taken: int = 0
    ) -> Tuple[Answer, Grade]:
        """
        Grade and upsert one answer

        Raises:
            ResultTerminal: attempt submitted, graded or kicked
            Forbidden: attempt blocked/paused, or exam not running
            NotFound: question not part of this quiz
            ValidationError: malformed payload
        """
        result = self.lock_result(db, result_id)
        self._ensure_mutable(result)

        quiz = result.quiz
        if quiz.status != "started" or QuizTiming.from_quiz(quiz).has_elapsed(utcnow()):
            raise Forbidden("Answers are only accepted while the exam is running")

        question = db.query(Question).filter(
            Question.id == question_id,
            Question.quiz_id == result.quiz_id
        ).first()
        if not question:
            raise NotFound("Question not found in this quiz")

        selected_options, answer_text = grading_service.normalize_answer(question, raw_answer)
        grade = grading_service.grade(question, selected_options if selected_options is not None else answer_text)

        if result.status == "waiting":
            self.transition(result, "in_progress")
            result.started_at = utcnow()

        answer = answer_store.upsert(
            db, result, question.id, selected_options, answer_text, grade, time_taken
        )
        db.commit()
        return answer, grade

    def finish(self, db: Session, result_id: UUID) -> Dict[str, Any]:
        """
        Submit the attempt; a repeated call returns the stored summary

        The score is re-derived from the stored answers here, never summed
        from the per-answer cache.
        """
        result = self.lock_result(db, result_id)

        if result.status in SUBMITTED_STATUSES:
            db.commit()
            logger.info(f"Finish repeated for result {result.id}; returning stored summary")
            return self.get_result_summary(db, result)

        if result.status == "kicked":
            raise ResultTerminal("This attempt was closed after repeated violations")
        if result.is_blocked:
            raise Forbidden("Access Revoked: You have been blocked by the instructor.")
        if result.is_paused:
            raise Forbidden("Your exam has been paused by the instructor.")
        if result.status == "waiting":
            raise InvalidStateTransition("The exam has not been started for this attempt")

        summary = self.calculate_summary(db, result)

        self.transition(result, "submitted")
        result.score = summary["score"]
        result.total_points = summary["total_points"]
        result.correct_count = summary["correct_answers"]
        result.submitted_at = utcnow()
        db.commit()

        logger.info(
            f"Result {result.id} submitted: {summary['score']}/{summary['total_points']}, "
            f"pending={summary['pending_count']}"
        )
        return self.get_result_summary(db, result)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def calculate_summary(self, db: Session, result: Result) -> Dict[str, int]:
        """
        Re-grade every stored answer against the quiz's current questions

        Manually graded questions count toward the score only once a
        teacher grade exists; until then they are reported as pending.
        """
        questions = db.query(Question).filter(Question.quiz_id == result.quiz_id).all()
        answers = answer_store.by_question(db, result.id)

        score = 0
        total_points = 0
        correct = 0
        answered = 0
        pending = 0

        for question in questions:
            total_points += question.points
            answer = answers.get(question.id)
            if answer is None:
                continue
            answered += 1

            if question.requires_manual_grading:
                if answer.is_manually_graded:
                    score += answer.points_awarded
                    correct += 1 if answer.points_awarded > 0 else 0
                else:
                    pending += 1
                continue

            grade = grading_service.grade(question, answer.response)
            if grade.is_correct:
                score += grade.points
                correct += 1

        return {
            "score": score,
            "total_points": total_points,
            "correct_answers": correct,
            "total_questions": len(questions),
            "answered": answered,
            "pending_count": pending,
        }

    def grade_manually(self, db: Session, result_id: UUID, question_id: UUID, points: int) -> Dict[str, Any]:
        """
        Record a teacher's grade for a manually graded answer

        The result moves to 'graded' once no pending answers remain.
        """
        result = self.lock_result(db, result_id)
        if result.status not in SUBMITTED_STATUSES:
            raise InvalidStateTransition("Answers can only be graded after the attempt is submitted")

        question = db.query(Question).filter(
            Question.id == question_id,
            Question.quiz_id == result.quiz_id
        ).first()
        if not question:
            raise NotFound("Question not found in this quiz")
        if not question.requires_manual_grading:
            raise ValidationError("This question is graded automatically")

        if isinstance(points, bool) or not isinstance(points, int) or not 0 <= points <= question.points:
            raise ValidationError(f"Score ({points}) must be between 0 and {question.points}")

        answer = answer_store.get(db, result.id, question.id)
        if not answer:
            raise NotFound("The student did not answer this question")

        answer.points_awarded = points
        answer.is_correct = points > 0
        answer.is_manually_graded = True
        db.flush()

        summary = self.calculate_summary(db, result)
        result.score = summary["score"]
        result.correct_count = summary["correct_answers"]
        if summary["pending_count"] == 0 and result.status == "submitted":
            self.transition(result, "graded")

        db.commit()
        logger.info(f"Manual grade saved: result={result.id}, question={question.id}, points={points}")
        return self.get_result_summary(db, result)

    # ------------------------------------------------------------------
    # Teacher controls
    # ------------------------------------------------------------------

    def set_pause_block(
        self,
        db: Session,
        result_id: UUID,
        paused: Optional[bool] = None,
        blocked: Optional[bool] = None
    ) -> Result:
        """
        Pause/resume or block an attempt

        Pause is reversible; block is permanent within the engine.
        """
        result = self.lock_result(db, result_id)

        if blocked is False and result.is_blocked:
            raise Forbidden("A blocked attempt cannot be unblocked")
        if paused is not None and result.status in TERMINAL_STATUSES:
            raise ResultTerminal(f"Cannot pause an attempt that is already {result.status}")

        if paused is not None:
            result.is_paused = paused
        if blocked:
            result.is_blocked = True

        db.commit()
        logger.info(f"Result {result.id} control: paused={result.is_paused}, blocked={result.is_blocked}")
        return result

    def control(self, db: Session, result_id: UUID, action: str) -> Result:
        if action == "pause":
            return self.set_pause_block(db, result_id, paused=True)
        if action == "resume":
            return self.set_pause_block(db, result_id, paused=False)
        if action == "block":
            return self.set_pause_block(db, result_id, blocked=True)
        raise ValidationError(f"Invalid action: {action}. Expected one of {', '.join(CONTROL_ACTIONS)}")

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------

    def get_attempt_status(self, result: Result) -> Dict[str, Any]:
        return {
            "result_id": result.id,
            "status": result.status,
            "is_paused": bool(result.is_paused),
            "is_blocked": bool(result.is_blocked),
        }

    def get_result_summary(self, db: Session, result: Result) -> Dict[str, Any]:
        live = self.calculate_summary(db, result)
        submitted = result.status in SUBMITTED_STATUSES

        return {
            "result_id": result.id,
            "quiz_id": result.quiz_id,
            "student_id": result.student_id,
            "status": result.status,
            "score": result.score if submitted else live["score"],
            "total_points": result.total_points if submitted else live["total_points"],
            "correct_answers": result.correct_count if submitted else live["correct_answers"],
            "total_questions": live["total_questions"],
            "answered": live["answered"],
            "pending_count": live["pending_count"],
            "has_manual_grading": live["pending_count"] > 0,
            "is_paused": bool(result.is_paused),
            "is_blocked": bool(result.is_blocked),
            "started_at": result.started_at,
            "submitted_at": result.submitted_at,
        }

    def list_results(self, db: Session, quiz_id: UUID, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = db.query(Result).filter(Result.quiz_id == quiz_id)
        if status is not None:
            if status not in RESULT_STATUSES:
                raise ValidationError(f"Unknown attempt status: {status}")
            query = query.filter(Result.status == status)
        results = query.all()
        # Newest submissions first, unsubmitted attempts last
        results.sort(key=lambda r: (r.submitted_at is None, -(r.submitted_at.timestamp() if r.submitted_at else 0)))
        return [self.get_result_summary(db, r) for r in results]

    def get_result_details(self, db: Session, result: Result) -> Dict[str, Any]:
        """Per-question breakdown for the grading board and export"""
        questions = (
            db.query(Question)
            .filter(Question.quiz_id == result.quiz_id)
            .order_by(Question.position)
            .all()
        )
        answers = answer_store.by_question(db, result.id)

        breakdown = []
        for question in questions:
            answer = answers.get(question.id)
            breakdown.append({
                "question_id": question.id,
                "question_text": question.question_text,
                "question_type": question.question_type,
                "max_points": question.points,
                "requires_manual_grading": question.requires_manual_grading,
                "response": answer.response if answer else None,
                "is_correct": answer.is_correct if answer else None,
                "points_awarded": answer.points_awarded if answer else 0,
                "is_manually_graded": bool(answer.is_manually_graded) if answer else False,
                "time_taken_seconds": answer.time_taken_seconds if answer else 0,
                "answered_at": answer.answered_at if answer else None,
            })

        return {
            "result": self.get_result_summary(db, result),
            "answers": breakdown,
        }


# Global instance
result_service = ResultService()
