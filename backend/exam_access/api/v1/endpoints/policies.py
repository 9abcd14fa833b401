from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional

from ....core.database import get_db
from ....schemas.policy import (
    Policy,
    PolicyOverride,
    PolicyOverrideUpdate,
    ResolvedPolicy,
    BatchCreate,
    BatchResponse,
    StudentBatchAssign,
    StudentBatchResponse,
)
from ....services.policy_service import PolicyAdminService, PolicyResolver
from ...deps import Actor, get_current_admin

router = APIRouter()


@router.get("/global", response_model=Policy)
def get_global_policy(
    admin: Actor = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    return PolicyAdminService(db).get_global_defaults()


@router.put("/global", response_model=Policy)
def update_global_policy(
    update: PolicyOverride,
    admin: Actor = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Partial update of the global defaults. Unset fields keep their value."""
    return PolicyAdminService(db).update_global_defaults(update, updated_by=admin.id)


@router.post("/batches", response_model=BatchResponse)
def create_batch(
    batch: BatchCreate,
    admin: Actor = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    return PolicyAdminService(db).create_batch(batch)


@router.put("/batches/{batch_id}", response_model=BatchResponse)
def update_batch_policy(
    batch_id: int,
    update: PolicyOverrideUpdate,
    admin: Actor = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    try:
        return PolicyAdminService(db).update_batch_policy(batch_id, update)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.put("/students/{student_id}/batch", response_model=StudentBatchResponse)
def assign_student_batch(
    student_id: str,
    assignment: StudentBatchAssign,
    admin: Actor = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    return PolicyAdminService(db).assign_student(student_id, assignment.batch_id)


@router.get("/resolve", response_model=ResolvedPolicy)
def resolve_policy(
    exam_id: str = Query(...),
    batch_id: Optional[int] = Query(None),
    admin: Actor = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Effective policy and its version token for an exam and batch"""
    return PolicyResolver(db).resolve_with_version(exam_id, batch_id)
