"""
Request dependencies shared by the student and teacher routers
"""
from fastapi import Header, HTTPException
from typing import Optional
from quizroom.services.authorization_service import Principal


async def get_current_teacher(x_teacher_id: Optional[str] = Header(None)) -> Principal:
    """Teacher identity forwarded by the auth gateway"""
    if not x_teacher_id:
        raise HTTPException(status_code=401, detail="Teacher authentication required")
    return Principal(id=x_teacher_id, role="teacher")


async def get_current_student(x_student_id: Optional[str] = Header(None)) -> Principal:
    """Student identity forwarded by the auth gateway"""
    if not x_student_id:
        raise HTTPException(status_code=401, detail="Student authentication required")
    return Principal(id=x_student_id, role="student")
