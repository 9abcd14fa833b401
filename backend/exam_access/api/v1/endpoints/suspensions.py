from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List

from ....core.database import get_db
from ....schemas.suspension import (
    SuspensionList,
    SuspensionRemoval,
    SuspensionResponse,
    RemoveByPairRequest,
)
from ....services.suspension_service import SuspensionManager
from ...deps import Actor, get_current_actor, get_current_admin, resolve_student

router = APIRouter()


def _removal(suspension, already_removed: bool) -> SuspensionRemoval:
    message = "Suspension was already removed" if already_removed else "Suspension removed successfully"
    return SuspensionRemoval(
        suspension=SuspensionResponse.model_validate(suspension),
        already_removed=already_removed,
        message=message,
    )


@router.get("", response_model=SuspensionList)
def list_suspensions(
    active_only: bool = Query(False),
    admin: Actor = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """All suspensions, newest first, with totals (admin only)"""
    suspensions, stats = SuspensionManager(db).list_all(active_only=active_only)
    return SuspensionList(
        suspensions=[SuspensionResponse.model_validate(s) for s in suspensions],
        stats=stats,
    )


@router.get("/history/{exam_id}", response_model=List[SuspensionResponse])
def get_suspension_history(
    exam_id: str,
    student_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    student_id = resolve_student(actor, student_id)
    return SuspensionManager(db).history(student_id, exam_id)


@router.post("/remove", response_model=SuspensionRemoval)
def remove_active_suspension(
    request: RemoveByPairRequest,
    admin: Actor = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Lift the current suspension of a student for an exam (admin only)"""
    suspension, already_removed = SuspensionManager(db).remove_active(
        request.student_id, request.exam_id, removed_by=f"admin:{admin.id}"
    )
    return _removal(suspension, already_removed)


@router.post("/{suspension_id}/remove", response_model=SuspensionRemoval)
def remove_suspension(
    suspension_id: int,
    admin: Actor = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Lift a suspension by id. Removing an already removed suspension is a no-op."""
    suspension, already_removed = SuspensionManager(db).remove(suspension_id, removed_by=f"admin:{admin.id}")
    return _removal(suspension, already_removed)
