"""
Pydantic schemas for results, teacher controls and the live monitor
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID


class ResultSummary(BaseModel):
    """Score summary for one attempt"""
    result_id: UUID
    quiz_id: UUID
    student_id: str
    status: str
    score: int
    total_points: int
    correct_answers: int
    total_questions: int
    answered: int
    pending_count: int
    has_manual_grading: bool
    is_paused: bool
    is_blocked: bool
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None


class AttemptStatus(BaseModel):
    """Pause/block poll for the student client"""
    result_id: UUID
    status: str
    is_paused: bool
    is_blocked: bool


class AnswerDetail(BaseModel):
    question_id: UUID
    question_text: str
    question_type: str
    max_points: int
    requires_manual_grading: bool
    response: Optional[str] = None
    is_correct: Optional[bool] = None
    points_awarded: int
    is_manually_graded: bool
    time_taken_seconds: int
    answered_at: Optional[datetime] = None


class ResultDetails(BaseModel):
    result: ResultSummary
    answers: List[AnswerDetail]


class QuizStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(draft|active|started|finished)$")


class QuizStatusUpdateResponse(BaseModel):
    quiz_id: UUID
    status: str
    start_time: Optional[datetime] = None
    duration_minutes: int

    class Config:
        from_attributes = True


class AdjustTimeRequest(BaseModel):
    minutes: int = Field(..., description="Signed minutes to add (negative shortens the exam)")


class AdjustTimeResponse(BaseModel):
    quiz_id: UUID
    new_duration: int
    adjustment_applied: int
    ends_at: datetime


class ControlRequest(BaseModel):
    action: str = Field(..., pattern="^(pause|resume|block)$")


class ManualGradeRequest(BaseModel):
    question_id: UUID
    points: int = Field(..., ge=0)


class ViolationRecord(BaseModel):
    id: UUID
    result_id: UUID
    student_id: str
    violation_type: str
    violation_count: int
    details: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvalidEntryRecord(BaseModel):
    """One refused join attempt"""
    id: UUID
    student_id: str
    reason: str
    quiz_status: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StudentProgress(BaseModel):
    """One row of the live monitor"""
    result_id: UUID
    student_id: str
    status: str
    label: str
    answered: int
    correct: int
    wrong: int
    pending: int
    time_spent_seconds: int
    percentage: float
    violation_count: int
    is_paused: bool
    is_blocked: bool
    submitted_at: Optional[datetime] = None


class LiveStatsResponse(BaseModel):
    quiz_id: UUID
    total_questions: int
    total_students: int
    students: List[StudentProgress]
