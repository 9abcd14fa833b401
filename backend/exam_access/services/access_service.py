import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import transaction, acquire_pair_lock
from ..core.errors import AccessDenied
from ..models.attempt import AttemptSession
from ..schemas.access import AccessDecision, AccessState, Remediation
from .attempt_service import AttemptTracker
from .incident_service import IncidentLedger
from .policy_service import PolicyResolver
from .suspension_service import SuspensionManager

logger = logging.getLogger(__name__)


class AccessDecisionService:
    """Single answer to "may this student start or continue this exam now?".

    The state is always derived from stored attempts, suspensions and grants.
    """

    def __init__(
        self,
        db: Session,
        resolver: Optional[PolicyResolver] = None,
        attempts: Optional[AttemptTracker] = None,
        suspensions: Optional[SuspensionManager] = None,
        ledger: Optional[IncidentLedger] = None,
        block_retake_after_pass: Optional[bool] = None,
    ):
        self.db = db
        self.resolver = resolver or PolicyResolver(db)
        self.attempts = attempts or AttemptTracker(db)
        self.ledger = ledger or IncidentLedger(db)
        self.suspensions = suspensions or SuspensionManager(db, scope=self.ledger.scope)
        if block_retake_after_pass is None:
            block_retake_after_pass = settings.block_retake_after_pass
        self.block_retake_after_pass = block_retake_after_pass

    def evaluate(self, student_id: str, exam_id: str) -> AccessDecision:
        policy = self.resolver.resolve_for_student(student_id, exam_id)
        used = self.attempts.attempts_used(student_id, exam_id)
        total = self.attempts.total_allowed(student_id, exam_id, policy)
        remaining = max(0, total - used)

        base = dict(
            student_id=student_id,
            exam_id=exam_id,
            policy=policy,
            attempts_used=used,
            total_allowed_attempts=total,
            remaining_attempts=remaining,
        )

        suspension = self.suspensions.get_active(student_id, exam_id)
        if suspension is not None:
            return AccessDecision(
                **base,
                state=AccessState.SUSPENDED,
                message=f"{suspension.reason.rstrip('.')}. Pay to lift the suspension or contact an administrator.",
                remediation=Remediation.PAY_TO_LIFT,
                suspension_id=suspension.id,
                suspension_reason=suspension.reason,
                suspension_time=suspension.suspension_time,
                incident_count=self.ledger.count(student_id, exam_id, suspension.attempt_session_id),
            )

        if remaining <= 0:
            return AccessDecision(
                **base,
                state=AccessState.EXHAUSTED_ATTEMPTS,
                message=f"Maximum attempts ({total}) reached for this exam. Pay to reset your attempts.",
                remediation=Remediation.PAY_TO_RESET,
            )

        open_session = self.attempts.get_open_session(student_id, exam_id)
        if open_session is not None:
            return AccessDecision(
                **base,
                state=AccessState.IN_PROGRESS,
                message="Attempt in progress",
                current_attempt_number=used + 1,
                attempt_session_id=open_session.id,
                incident_count=self.ledger.count(student_id, exam_id, open_session.id),
            )

        if self.block_retake_after_pass and self.attempts.has_passed(student_id, exam_id):
            return AccessDecision(
                **base,
                state=AccessState.PASSED,
                message="You have passed this exam",
            )

        return AccessDecision(
            **base,
            state=AccessState.ELIGIBLE,
            message=f"{remaining} of {total} attempts remaining",
            current_attempt_number=used + 1,
        )

    def start_attempt(self, student_id: str, exam_id: str) -> Tuple[AccessDecision, AttemptSession]:
        """Open a new attempt session, or resume the one already in progress."""
        with transaction(self.db):
            acquire_pair_lock(self.db, student_id, exam_id)
            decision = self.evaluate(student_id, exam_id)

            if decision.state == AccessState.IN_PROGRESS:
                return decision, self.db.get(AttemptSession, decision.attempt_session_id)

            if decision.state != AccessState.ELIGIBLE:
                logger.info(f"Start denied for {student_id}/{exam_id}: {decision.state.value}")
                raise AccessDenied(decision.message, decision.model_dump(mode="json"))

            try:
                session = self.attempts.start_session(student_id, exam_id)
            except IntegrityError:
                # another request opened a session first
                self.db.rollback()
                session = self.attempts.get_open_session(student_id, exam_id)
                if session is None:
                    raise
            else:
                logger.info(f"Attempt session {session.id} started for {student_id}/{exam_id}")

        return self.evaluate(student_id, exam_id), session
