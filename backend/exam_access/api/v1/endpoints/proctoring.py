from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from ....core.database import get_db
from ....schemas.incident import IncidentCreate, IncidentReport, IncidentStatistics
from ....services.incident_service import IncidentLedger
from ....services.proctoring_service import ProctoringService
from ...deps import Actor, get_current_actor, resolve_student

router = APIRouter()


@router.post("/incidents", response_model=IncidentReport)
def report_incident(
    incident: IncidentCreate,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Record a proctoring incident and suspend the exam when the threshold is crossed"""
    student_id = resolve_student(actor, incident.student_id)
    return ProctoringService(db).report_incident(
        student_id=student_id,
        exam_id=incident.exam_id,
        attempt_session_id=incident.attempt_session_id,
        incident_type=incident.incident_type,
        detail=incident.detail,
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )


@router.get("/statistics/{exam_id}", response_model=IncidentStatistics)
def get_incident_statistics(
    exam_id: str,
    student_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Incident totals per type and a timeline for one student and exam"""
    student_id = resolve_student(actor, student_id)
    return IncidentLedger(db).statistics(student_id, exam_id)
