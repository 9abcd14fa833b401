from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict


class IncidentCreate(BaseModel):
    exam_id: str
    attempt_session_id: str
    incident_type: str = Field(..., min_length=1)
    detail: Optional[str] = None
    # proctors report on behalf of a student; students omit it
    student_id: Optional[str] = None


class IncidentResponse(BaseModel):
    id: int
    student_id: str
    exam_id: str
    attempt_session_id: str
    incident_type: str
    detail: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class IncidentReport(BaseModel):
    """What the proctoring source gets back after reporting one incident."""
    incident: IncidentResponse
    incident_count: int
    effective_threshold: int
    enable_auto_suspend: bool
    suspended: bool
    suspension_created: bool = False
    suspension_id: Optional[int] = None
    warning_only: bool = False
    # false when the session was already submitted: recorded for audit, not evaluated
    session_open: bool = True


class IncidentTimelineEntry(BaseModel):
    timestamp: datetime
    type: str


class IncidentStatistics(BaseModel):
    total_incidents: int
    by_type: Dict[str, int]
    timeline: List[IncidentTimelineEntry]
