from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List

from ....core.database import get_db
from ....schemas.attempt import AttemptCompletion, AttemptRecordResponse, AttemptSummary
from ....services.attempt_service import AttemptTracker
from ....services.policy_service import PolicyResolver
from ...deps import Actor, get_current_actor, resolve_student

router = APIRouter()


@router.post("/{exam_id}/complete", response_model=AttemptRecordResponse)
def complete_attempt(
    exam_id: str,
    completion: AttemptCompletion,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return AttemptTracker(db).record_completion(
        actor.id,
        exam_id,
        passed=completion.passed,
        score=completion.score,
        attempt_session_id=completion.attempt_session_id,
    )


@router.get("/{exam_id}/summary", response_model=AttemptSummary)
def get_attempt_summary(
    exam_id: str,
    student_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Attempts used, granted and remaining for the dashboard"""
    student_id = resolve_student(actor, student_id)
    policy = PolicyResolver(db).resolve_for_student(student_id, exam_id)
    return AttemptTracker(db).summary(student_id, exam_id, policy)


@router.get("/{exam_id}", response_model=List[AttemptRecordResponse])
def list_attempts(
    exam_id: str,
    student_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    student_id = resolve_student(actor, student_id)
    return AttemptTracker(db).list_attempts(student_id, exam_id)
