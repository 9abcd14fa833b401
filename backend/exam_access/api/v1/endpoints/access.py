from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from ....core.database import get_db
from ....schemas.access import AccessDecision, AttemptStartResponse
from ....schemas.attempt import AttemptSessionResponse
from ....services.access_service import AccessDecisionService
from ...deps import Actor, get_current_actor, resolve_student

router = APIRouter()


@router.get("/{exam_id}", response_model=AccessDecision)
def get_access_decision(
    exam_id: str,
    student_id: Optional[str] = Query(None),
    payment_pending: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """May the student start or continue this exam right now?"""
    student_id = resolve_student(actor, student_id)
    decision = AccessDecisionService(db).evaluate(student_id, exam_id)
    return decision.display(payment_pending)


@router.post("/{exam_id}/start", response_model=AttemptStartResponse)
def start_attempt(
    exam_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Open a new attempt session or resume the open one. 403 with the decision otherwise."""
    decision, session = AccessDecisionService(db).start_attempt(actor.id, exam_id)
    return AttemptStartResponse(
        decision=decision,
        session=AttemptSessionResponse.model_validate(session),
    )
