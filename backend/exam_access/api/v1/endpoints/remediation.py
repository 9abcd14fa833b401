from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ....core.database import get_db
from ....schemas.remediation import RemediationRequest, RemediationResult
from ....services.remediation_service import RemediationGateway
from ...deps import Actor, require_roles

router = APIRouter()


@router.post("/apply", response_model=RemediationResult)
def apply_remediation(
    request: RemediationRequest,
    actor: Actor = Depends(require_roles("payment_service", "admin")),
    db: Session = Depends(get_db)
):
    """Apply a verified payment. Replays of the same payment id return the original grant."""
    return RemediationGateway(db).apply(
        request.payment_id,
        request.student_id,
        request.exam_id,
        request.kind,
    )
