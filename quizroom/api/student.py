"""
Student exam-flow API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import logging

from quizroom.api.deps import get_current_student
from quizroom.database import get_db
from quizroom.errors import Forbidden
from quizroom.schemas.exam import (
    AnswerRequest,
    AnswerResponse,
    EnterRequest,
    EnterResponse,
    ExamQuestion,
    FinishRequest,
    QuizStatusResponse,
    StartRequest,
    StartResponse,
    ViolationRequest,
    ViolationResponse,
)
from quizroom.schemas.result import AttemptStatus, ResultSummary
from quizroom.services.authorization_service import Principal, ensure_result_owner
from quizroom.services.quiz_service import quiz_service
from quizroom.services.result_service import result_service
from quizroom.services.violation_service import violation_service


router = APIRouter(prefix="/api/student", tags=["student"])
logger = logging.getLogger(__name__)


@router.post("/enter", response_model=EnterResponse)
async def enter_quiz(
    request: EnterRequest,
    student: Principal = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """
    Join a quiz by room code

    - Quiz must be active or started
    - Student must be on the quiz roster
    - Retries return the same attempt
    """
    payload = quiz_service.join(db, student.id, request.room_code)
    logger.info(f"Student {student.id} joined quiz {payload['quiz_id']} (result={payload['result_id']})")
    return EnterResponse(**payload)


@router.post("/start", response_model=StartResponse)
async def start_exam(
    request: StartRequest,
    student: Principal = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """Begin answering, or resume after a reload"""
    result, action = result_service.start(db, student.id, request.quiz_id)
    return StartResponse(
        result_id=result.id,
        status=result.status,
        action=action,
        started_at=result.started_at
    )


@router.get("/quizzes/{quiz_id}/status", response_model=QuizStatusResponse)
async def get_quiz_status(
    quiz_id: UUID,
    student: Principal = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """
    Status poll: quiz status plus (start_time, duration_minutes, server_time)

    Clients compute their deadline from these three values only.
    """
    return QuizStatusResponse(**quiz_service.get_quiz_status(db, quiz_id))


@router.get("/quizzes/{quiz_id}/questions", response_model=List[ExamQuestion])
async def get_exam_questions(
    quiz_id: UUID,
    student: Principal = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """Questions for the running exam, shuffled per student, without answers"""
    if result_service.find(db, student.id, quiz_id) is None:
        raise Forbidden("Join the quiz before requesting its questions")
    return quiz_service.get_exam_questions(db, quiz_id, student.id)


@router.post("/answer", response_model=AnswerResponse)
async def submit_answer(
    request: AnswerRequest,
    student: Principal = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """
    Autosave one answer with instant feedback

    Re-submitting the same question overwrites the earlier answer.
    """
    result = result_service.get_result(db, request.result_id)
    ensure_result_owner(student, result)

    answer, grade = result_service.record_answer(
        db, result.id, request.question_id, request.answer, request.time_taken
    )
    return AnswerResponse(
        answer_id=answer.id,
        question_id=answer.question_id,
        is_correct=grade.is_correct,
        points_awarded=grade.points,
        feedback=grade.feedback
    )


@router.post("/finish", response_model=ResultSummary)
async def finish_exam(
    request: FinishRequest,
    student: Principal = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """Submit the attempt; calling again returns the stored summary"""
    result = result_service.get_result(db, request.result_id)
    ensure_result_owner(student, result)
    return ResultSummary(**result_service.finish(db, result.id))


@router.post("/violations", response_model=ViolationResponse)
async def report_violation(
    request: ViolationRequest,
    student: Principal = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """
    Report a client-detected violation

    The third violation removes the student from the exam; further
    reports after that return the same outcome.
    """
    outcome = violation_service.record_violation(
        db, student.id, request.quiz_id, request.violation_type, request.details
    )
    return ViolationResponse(**outcome)


@router.get("/results/{result_id}", response_model=ResultSummary)
async def get_result(
    result_id: UUID,
    student: Principal = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    result = result_service.get_result(db, result_id)
    ensure_result_owner(student, result)
    return ResultSummary(**result_service.get_result_summary(db, result))


@router.get("/results/{result_id}/status", response_model=AttemptStatus)
async def get_attempt_status(
    result_id: UUID,
    student: Principal = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """Pause/block poll"""
    result = result_service.get_result(db, result_id)
    ensure_result_owner(student, result)
    return AttemptStatus(**result_service.get_attempt_status(result))
