from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List


class SuspensionDecision(BaseModel):
    should_suspend: bool
    reason: Optional[str] = None
    incident_count: int
    effective_threshold: int


class SuspensionResponse(BaseModel):
    id: int
    student_id: str
    exam_id: str
    attempt_session_id: Optional[str] = None
    reason: str
    incident_ids: List[int] = []
    suspension_time: datetime
    removed: bool
    removed_at: Optional[datetime] = None
    removed_by: Optional[str] = None

    class Config:
        from_attributes = True


class SuspensionRemoval(BaseModel):
    suspension: SuspensionResponse
    already_removed: bool
    message: str


class RemoveByPairRequest(BaseModel):
    student_id: str
    exam_id: str


class SuspensionStats(BaseModel):
    total_suspensions: int
    active_suspensions: int
    removed_suspensions: int


class SuspensionList(BaseModel):
    suspensions: List[SuspensionResponse]
    stats: SuspensionStats
