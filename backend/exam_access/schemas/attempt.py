from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class AttemptCompletion(BaseModel):
    passed: bool
    score: Optional[float] = None
    attempt_session_id: Optional[str] = None


class AttemptRecordResponse(BaseModel):
    id: int
    student_id: str
    exam_id: str
    attempt_session_id: Optional[str] = None
    attempt_number: int
    passed: bool
    score: Optional[float] = None
    completed_at: datetime

    class Config:
        from_attributes = True


class AttemptSessionResponse(BaseModel):
    id: str
    student_id: str
    exam_id: str
    status: str
    started_at: datetime
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttemptSummary(BaseModel):
    exam_id: str
    default_max_attempts: int
    additional_attempts: int
    total_attempts: int
    used_attempts: int
    remaining_attempts: int
    has_paid_for_additional_attempts: bool
    total_payments: int
