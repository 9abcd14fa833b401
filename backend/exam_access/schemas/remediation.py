from enum import Enum
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class RemediationKind(str, Enum):
    SUSPENSION_LIFT = "suspension_lift"
    ATTEMPT_RESET = "attempt_reset"


class RemediationRequest(BaseModel):
    payment_id: str
    student_id: str
    exam_id: str
    kind: RemediationKind


class RemediationGrantResponse(BaseModel):
    id: int
    source_payment_id: str
    student_id: str
    exam_id: str
    kind: RemediationKind
    extra_attempts: int
    extra_incident_allowance: int
    suspension_id: Optional[int] = None
    warning: Optional[str] = None
    applied_at: datetime

    class Config:
        from_attributes = True


class RemediationResult(BaseModel):
    grant: RemediationGrantResponse
    already_applied: bool = False
    # set when the grant was recorded but nothing was restricted at the time
    warning: Optional[str] = None
