import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.database import transaction, acquire_pair_lock
from ..models.remediation import RemediationGrant
from ..schemas.remediation import RemediationKind, RemediationResult, RemediationGrantResponse
from .attempt_service import AttemptTracker
from .policy_service import PolicyResolver
from .suspension_service import SuspensionManager

logger = logging.getLogger(__name__)

NO_ACTIVE_SUSPENSION = "Grant recorded but no active suspension existed for this student and exam"
ATTEMPTS_STILL_REMAINING = "Grant recorded while the student still had attempts remaining"


class RemediationGateway:
    """Turns a verified payment into exactly one grant.

    Payment authenticity is the caller's responsibility. Idempotency rests on
    the unique ``source_payment_id`` column, so retries landing on different
    instances still produce a single grant.
    """

    def __init__(
        self,
        db: Session,
        resolver: Optional[PolicyResolver] = None,
        suspensions: Optional[SuspensionManager] = None,
        attempts: Optional[AttemptTracker] = None,
    ):
        self.db = db
        self.resolver = resolver or PolicyResolver(db)
        self.suspensions = suspensions or SuspensionManager(db)
        self.attempts = attempts or AttemptTracker(db)

    def get_grant(self, payment_id: str) -> Optional[RemediationGrant]:
        return self.db.query(RemediationGrant).filter(RemediationGrant.source_payment_id == payment_id).first()

    def apply(self, payment_id: str, student_id: str, exam_id: str, kind: RemediationKind) -> RemediationResult:
        kind = RemediationKind(kind)

        existing = self.get_grant(payment_id)
        if existing is not None:
            return self._already_applied(existing, student_id, exam_id, kind)

        policy = self.resolver.resolve_for_student(student_id, exam_id)

        with transaction(self.db):
            acquire_pair_lock(self.db, student_id, exam_id)

            grant = RemediationGrant(
                source_payment_id=payment_id,
                student_id=student_id,
                exam_id=exam_id,
                kind=kind.value,
            )
            if kind == RemediationKind.ATTEMPT_RESET:
                # advisory only: attempts and payments may race
                if self.attempts.remaining(student_id, exam_id, policy) > 0:
                    grant.warning = ATTEMPTS_STILL_REMAINING
                grant.extra_attempts = policy.additional_attempts_after_payment
            else:
                grant.extra_incident_allowance = policy.additional_security_incidents_after_removal

            self.db.add(grant)
            try:
                self.db.flush()
            except IntegrityError:
                self.db.rollback()
                replayed = self.get_grant(payment_id)
                if replayed is None:
                    raise
                return self._already_applied(replayed, student_id, exam_id, kind)

            if kind == RemediationKind.SUSPENSION_LIFT:
                active = self.suspensions.get_active(student_id, exam_id)
                if active is not None and self.suspensions.close(active, removed_by=f"payment:{payment_id}"):
                    grant.suspension_id = active.id
                else:
                    grant.warning = NO_ACTIVE_SUSPENSION

        self.db.refresh(grant)
        if grant.warning:
            logger.warning(
                f"Remediation {kind.value} for payment {payment_id} ({student_id}/{exam_id}): {grant.warning}"
            )
        else:
            logger.info(f"Remediation {kind.value} applied for payment {payment_id} ({student_id}/{exam_id})")

        return RemediationResult(
            grant=RemediationGrantResponse.model_validate(grant),
            already_applied=False,
            warning=grant.warning,
        )

    def _already_applied(
        self, grant: RemediationGrant, student_id: str, exam_id: str, kind: RemediationKind
    ) -> RemediationResult:
        if (grant.student_id, grant.exam_id, grant.kind) != (student_id, exam_id, kind.value):
            logger.warning(
                f"Payment {grant.source_payment_id} replayed with different target "
                f"{student_id}/{exam_id}/{kind.value}; original grant kept"
            )
        else:
            logger.info(f"Payment {grant.source_payment_id} already applied, replay ignored")
        return RemediationResult(
            grant=RemediationGrantResponse.model_validate(grant),
            already_applied=True,
            warning=grant.warning,
        )
