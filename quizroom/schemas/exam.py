"""
Pydantic schemas for the student exam flow
"""
from pydantic import BaseModel, Field
from typing import List, Optional, Union
from datetime import datetime
from uuid import UUID


class QuizStatusResponse(BaseModel):
    """Timer snapshot returned by every status poll"""
    quiz_id: UUID
    status: str
    timer_mode: str
    start_time: Optional[datetime] = None
    duration_minutes: int
    server_time: datetime
    ends_at: Optional[datetime] = None
    remaining_seconds: int
    poll_interval_seconds: int
    debounce_seconds: int
    drift_tolerance_seconds: int


class EnterRequest(BaseModel):
    """Join a quiz by its room code"""
    room_code: str = Field(..., min_length=1, max_length=12, description="Room code shown by the teacher")


class EnterResponse(BaseModel):
    quiz_id: UUID
    quiz_title: str
    result_id: UUID
    result_status: str
    timer: QuizStatusResponse


class StartRequest(BaseModel):
    quiz_id: UUID


class StartResponse(BaseModel):
    result_id: UUID
    status: str
    action: str  # started | resumed
    started_at: Optional[datetime] = None


class ExamOption(BaseModel):
    id: UUID
    option_text: str


class ExamQuestion(BaseModel):
    """Question as shown to a student: no answer key"""
    id: UUID
    question_text: str
    question_type: str
    points: int
    time_limit_seconds: Optional[int] = None
    options: List[ExamOption] = []


class AnswerRequest(BaseModel):
    """
    One answer autosave

    Choice questions send option ids (a list, or a comma-joined string);
    short answers send text.
    """
    result_id: UUID
    question_id: UUID
    answer: Union[List[str], str]
    time_taken: int = Field(0, ge=0, description="Seconds spent on the question")


class AnswerResponse(BaseModel):
    answer_id: UUID
    question_id: UUID
    is_correct: Optional[bool] = None
    points_awarded: int
    feedback: str


class FinishRequest(BaseModel):
    result_id: UUID


class ViolationRequest(BaseModel):
    quiz_id: UUID
    violation_type: str = Field(..., pattern="^(tab_switch|page_leave|minimize|other)$")
    details: Optional[str] = Field(None, max_length=500)


class ViolationResponse(BaseModel):
    action: str  # warning | kicked
    result_id: UUID
    violation_count: int
    remaining_warnings: int
    message: str
