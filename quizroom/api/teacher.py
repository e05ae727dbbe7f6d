"""
Teacher control and monitoring API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging

from quizroom.api.deps import get_current_teacher
from quizroom.database import get_db
from quizroom.schemas.result import (
    AdjustTimeRequest,
    AdjustTimeResponse,
    AttemptStatus,
    ControlRequest,
    InvalidEntryRecord,
    LiveStatsResponse,
    ManualGradeRequest,
    QuizStatusUpdate,
    QuizStatusUpdateResponse,
    ResultDetails,
    ResultSummary,
    ViolationRecord,
)
from quizroom.services.authorization_service import Principal, ensure_quiz_owner, ensure_result_access
from quizroom.services.monitor_service import monitor_service
from quizroom.services.quiz_service import quiz_service
from quizroom.services.result_service import result_service
from quizroom.services.violation_service import violation_service


router = APIRouter(prefix="/api/teacher", tags=["teacher"])
logger = logging.getLogger(__name__)


def _owned_quiz(db: Session, quiz_id: UUID, teacher: Principal):
    quiz = quiz_service.get_quiz(db, quiz_id)
    ensure_quiz_owner(teacher, quiz)
    return quiz


def _owned_result(db: Session, result_id: UUID, teacher: Principal):
    result = result_service.get_result(db, result_id)
    ensure_result_access(teacher, result, result.quiz)
    return result


@router.post("/quizzes/{quiz_id}/status", response_model=QuizStatusUpdateResponse)
async def set_quiz_status(
    quiz_id: UUID,
    request: QuizStatusUpdate,
    teacher: Principal = Depends(get_current_teacher),
    db: Session = Depends(get_db)
):
    """
    Move the quiz forward: draft -> active -> started -> finished

    Starting stamps the shared start time once.
    """
    _owned_quiz(db, quiz_id, teacher)
    quiz = quiz_service.set_status(db, quiz_id, request.status)
    return QuizStatusUpdateResponse(
        quiz_id=quiz.id,
        status=quiz.status,
        start_time=quiz.start_time,
        duration_minutes=quiz.duration_minutes
    )


@router.post("/quizzes/{quiz_id}/adjust-time", response_model=AdjustTimeResponse)
async def adjust_time(
    quiz_id: UUID,
    request: AdjustTimeRequest,
    teacher: Principal = Depends(get_current_teacher),
    db: Session = Depends(get_db)
):
    """
    Extend (positive) or shorten (negative) a running exam

    Students see the new deadline within one poll interval.
    """
    _owned_quiz(db, quiz_id, teacher)
    return AdjustTimeResponse(**quiz_service.adjust_time(db, quiz_id, request.minutes))


@router.get("/quizzes/{quiz_id}/monitoring", response_model=LiveStatsResponse)
async def get_live_stats(
    quiz_id: UUID,
    teacher: Principal = Depends(get_current_teacher),
    db: Session = Depends(get_db)
):
    """Ranked live progress of every student in the quiz"""
    quiz = _owned_quiz(db, quiz_id, teacher)
    return LiveStatsResponse(**monitor_service.get_live_stats(db, quiz.id))


@router.get("/quizzes/{quiz_id}/results", response_model=List[ResultSummary])
async def list_results(
    quiz_id: UUID,
    status: Optional[str] = None,
    teacher: Principal = Depends(get_current_teacher),
    db: Session = Depends(get_db)
):
    """Attempts for the quiz, optionally narrowed to one status"""
    quiz = _owned_quiz(db, quiz_id, teacher)
    return [ResultSummary(**summary) for summary in result_service.list_results(db, quiz.id, status)]


@router.get("/quizzes/{quiz_id}/violations", response_model=List[ViolationRecord])
async def list_violations(
    quiz_id: UUID,
    teacher: Principal = Depends(get_current_teacher),
    db: Session = Depends(get_db)
):
    quiz = _owned_quiz(db, quiz_id, teacher)
    return violation_service.list_violations(db, quiz.id)


@router.get("/quizzes/{quiz_id}/invalid-entries", response_model=List[InvalidEntryRecord])
async def list_invalid_entries(
    quiz_id: UUID,
    teacher: Principal = Depends(get_current_teacher),
    db: Session = Depends(get_db)
):
    """Refused join attempts: wrong status or not on the roster"""
    quiz = _owned_quiz(db, quiz_id, teacher)
    return quiz_service.list_invalid_entries(db, quiz.id)


@router.post("/results/{result_id}/control", response_model=AttemptStatus)
async def control_attempt(
    result_id: UUID,
    request: ControlRequest,
    teacher: Principal = Depends(get_current_teacher),
    db: Session = Depends(get_db)
):
    """Pause, resume or block one student's attempt"""
    _owned_result(db, result_id, teacher)
    result = result_service.control(db, result_id, request.action)
    logger.info(f"Teacher {teacher.id} applied '{request.action}' to result {result_id}")
    return AttemptStatus(**result_service.get_attempt_status(result))


@router.get("/results/{result_id}", response_model=ResultDetails)
async def get_result_details(
    result_id: UUID,
    teacher: Principal = Depends(get_current_teacher),
    db: Session = Depends(get_db)
):
    result = _owned_result(db, result_id, teacher)
    return ResultDetails(**result_service.get_result_details(db, result))


@router.post("/results/{result_id}/grade", response_model=ResultSummary)
async def grade_answer(
    result_id: UUID,
    request: ManualGradeRequest,
    teacher: Principal = Depends(get_current_teacher),
    db: Session = Depends(get_db)
):
    """Award points for a manually graded short answer"""
    _owned_result(db, result_id, teacher)
    return ResultSummary(**result_service.grade_manually(db, result_id, request.question_id, request.points))
