import logging
from typing import Optional, List, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.database import transaction
from ..core.errors import SuspensionNotFound, StorageUnavailable
from ..models.incident import SecurityIncident
from ..models.suspension import Suspension
from ..schemas.policy import Policy
from ..schemas.suspension import SuspensionDecision, SuspensionStats
from ..utils.timezone import local_now_naive
from .incident_service import validate_scope

logger = logging.getLogger(__name__)


class SuspensionManager:
    """Per (student, exam) state machine: Active <-> Suspended.

    At most one open suspension exists per pair. The unique partial index on
    ``suspensions`` is the final arbiter when two writers race to open one.
    """

    def __init__(self, db: Session, scope: Optional[str] = None):
        self.db = db
        self.scope = validate_scope(scope)

    def get_active(self, student_id: str, exam_id: str) -> Optional[Suspension]:
        return (
            self.db.query(Suspension)
            .filter(
                Suspension.student_id == student_id,
                Suspension.exam_id == exam_id,
                Suspension.removed.is_(False),
            )
            .order_by(Suspension.suspension_time.desc(), Suspension.id.desc())
            .first()
        )

    def is_actively_suspended(self, student_id: str, exam_id: str) -> bool:
        return self.get_active(student_id, exam_id) is not None

    def removed_count(self, student_id: str, exam_id: str, attempt_session_id: Optional[str] = None) -> int:
        query = self.db.query(func.count(Suspension.id)).filter(
            Suspension.student_id == student_id,
            Suspension.exam_id == exam_id,
            Suspension.removed.is_(True),
        )
        if self.scope == "session" and attempt_session_id is not None:
            query = query.filter(Suspension.attempt_session_id == attempt_session_id)
        return query.scalar() or 0

    def total_count(self, student_id: str, exam_id: str) -> int:
        return (
            self.db.query(func.count(Suspension.id))
            .filter(Suspension.student_id == student_id, Suspension.exam_id == exam_id)
            .scalar()
            or 0
        )

    def effective_threshold(
        self, student_id: str, exam_id: str, policy: Policy, attempt_session_id: Optional[str] = None
    ) -> int:
        """Incidents allowed before suspension, raised once per lifted suspension in scope."""
        lifted = self.removed_count(student_id, exam_id, attempt_session_id)
        return policy.max_security_incidents + lifted * policy.additional_security_incidents_after_removal

    def evaluate(
        self,
        student_id: str,
        exam_id: str,
        incident_count: int,
        policy: Policy,
        attempt_session_id: Optional[str] = None,
    ) -> SuspensionDecision:
        threshold = self.effective_threshold(student_id, exam_id, policy, attempt_session_id)
        if not policy.enable_auto_suspend or incident_count <= threshold:
            return SuspensionDecision(
                should_suspend=False,
                incident_count=incident_count,
                effective_threshold=threshold,
            )

        previous = self.total_count(student_id, exam_id)
        if previous > 0:
            reason = (
                f"Repeatedly exceeded maximum allowed security incidents ({threshold}). "
                f"This is suspension #{previous + 1}."
            )
        else:
            reason = f"Exceeded maximum allowed security incidents ({threshold})"

        return SuspensionDecision(
            should_suspend=True,
            reason=reason,
            incident_count=incident_count,
            effective_threshold=threshold,
        )

    def open(
        self,
        student_id: str,
        exam_id: str,
        reason: str,
        incidents: List[SecurityIncident],
        attempt_session_id: Optional[str] = None,
    ) -> Tuple[Suspension, bool]:
        """Open a suspension unless one is already open. Returns ``(suspension, created)``.

        Runs inside the caller's transaction. Losing the race against a
        concurrent writer rolls that transaction back and returns the winner.
        """
        existing = self.get_active(student_id, exam_id)
        if existing is not None:
            return existing, False

        suspension = Suspension(
            student_id=student_id,
            exam_id=exam_id,
            attempt_session_id=attempt_session_id,
            reason=reason,
            removed=False,
        )
        suspension.incidents = list(incidents)
        self.db.add(suspension)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_active(student_id, exam_id)
            if existing is None:
                raise StorageUnavailable("Suspension insert conflicted but no active suspension was found")
            logger.info(f"Concurrent suspension for {student_id}/{exam_id} already open: {existing.id}")
            return existing, False

        logger.info(
            f"Suspension {suspension.id} opened for {student_id}/{exam_id} "
            f"with {len(incidents)} incidents: {reason}"
        )
        return suspension, True

    def close(self, suspension: Suspension, removed_by: str) -> bool:
        """Mark an open suspension removed inside the caller's transaction.

        Conditional on ``removed`` still being false, so of two concurrent
        closers exactly one gets ``True``.
        """
        updated = (
            self.db.query(Suspension)
            .filter(Suspension.id == suspension.id, Suspension.removed.is_(False))
            .update(
                {
                    Suspension.removed: True,
                    Suspension.removed_at: local_now_naive(),
                    Suspension.removed_by: removed_by,
                },
                synchronize_session=False,
            )
        )
        self.db.refresh(suspension)
        if updated:
            logger.info(f"Suspension {suspension.id} removed by {removed_by}")
        return bool(updated)

    def remove(self, suspension_id: int, removed_by: str) -> Tuple[Suspension, bool]:
        """Returns ``(suspension, already_removed)``. Removing twice is not an error."""
        with transaction(self.db):
            suspension = self.db.get(Suspension, suspension_id)
            if suspension is None:
                raise SuspensionNotFound(f"Suspension {suspension_id} not found", {"suspension_id": suspension_id})
            already_removed = suspension.removed or not self.close(suspension, removed_by)

        if already_removed:
            logger.info(f"Suspension {suspension_id} already removed, nothing to do")
        self.db.refresh(suspension)
        return suspension, already_removed

    def remove_active(self, student_id: str, exam_id: str, removed_by: str) -> Tuple[Suspension, bool]:
        active = self.get_active(student_id, exam_id)
        if active is None:
            raise SuspensionNotFound(
                "No active suspension found for this student and exam",
                {"student_id": student_id, "exam_id": exam_id},
            )
        return self.remove(active.id, removed_by)

    def history(self, student_id: str, exam_id: str) -> List[Suspension]:
        """Oldest first."""
        return (
            self.db.query(Suspension)
            .filter(Suspension.student_id == student_id, Suspension.exam_id == exam_id)
            .order_by(Suspension.suspension_time, Suspension.id)
            .all()
        )

    def list_all(self, active_only: bool = False) -> Tuple[List[Suspension], SuspensionStats]:
        query = self.db.query(Suspension)
        if active_only:
            query = query.filter(Suspension.removed.is_(False))
        suspensions = query.order_by(Suspension.suspension_time.desc(), Suspension.id.desc()).all()

        total = self.db.query(func.count(Suspension.id)).scalar() or 0
        active = self.db.query(func.count(Suspension.id)).filter(Suspension.removed.is_(False)).scalar() or 0
        stats = SuspensionStats(
            total_suspensions=total,
            active_suspensions=active,
            removed_suspensions=total - active,
        )
        return suspensions, stats
