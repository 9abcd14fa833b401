import logging
import uuid
from typing import Optional, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.database import transaction, acquire_pair_lock
from ..core.errors import AttemptConflict
from ..models.attempt import AttemptSession, AttemptRecord
from ..models.remediation import RemediationGrant
from ..schemas.attempt import AttemptSummary
from ..schemas.policy import Policy
from ..schemas.remediation import RemediationKind
from ..utils.timezone import local_now_naive

logger = logging.getLogger(__name__)


class AttemptTracker:
    def __init__(self, db: Session):
        self.db = db

    def attempts_used(self, student_id: str, exam_id: str) -> int:
        return (
            self.db.query(func.count(AttemptRecord.id))
            .filter(AttemptRecord.student_id == student_id, AttemptRecord.exam_id == exam_id)
            .scalar()
            or 0
        )

    def attempt_reset_grants(self, student_id: str, exam_id: str) -> List[RemediationGrant]:
        return (
            self.db.query(RemediationGrant)
            .filter(
                RemediationGrant.student_id == student_id,
                RemediationGrant.exam_id == exam_id,
                RemediationGrant.kind == RemediationKind.ATTEMPT_RESET.value,
            )
            .all()
        )

    def granted_extra_attempts(self, student_id: str, exam_id: str) -> int:
        """Sum over every attempt-reset grant. Grants stack and never expire."""
        return (
            self.db.query(func.coalesce(func.sum(RemediationGrant.extra_attempts), 0))
            .filter(
                RemediationGrant.student_id == student_id,
                RemediationGrant.exam_id == exam_id,
                RemediationGrant.kind == RemediationKind.ATTEMPT_RESET.value,
            )
            .scalar()
            or 0
        )

    def total_allowed(self, student_id: str, exam_id: str, policy: Policy) -> int:
        return policy.max_attempts + self.granted_extra_attempts(student_id, exam_id)

    def remaining(self, student_id: str, exam_id: str, policy: Policy) -> int:
        return max(0, self.total_allowed(student_id, exam_id, policy) - self.attempts_used(student_id, exam_id))

    def has_passed(self, student_id: str, exam_id: str) -> bool:
        return (
            self.db.query(AttemptRecord.id)
            .filter(
                AttemptRecord.student_id == student_id,
                AttemptRecord.exam_id == exam_id,
                AttemptRecord.passed.is_(True),
            )
            .first()
            is not None
        )

    def list_attempts(self, student_id: str, exam_id: str) -> List[AttemptRecord]:
        return (
            self.db.query(AttemptRecord)
            .filter(AttemptRecord.student_id == student_id, AttemptRecord.exam_id == exam_id)
            .order_by(AttemptRecord.attempt_number)
            .all()
        )

    def record_for_session(self, attempt_session_id: str) -> Optional[AttemptRecord]:
        return (
            self.db.query(AttemptRecord)
            .filter(AttemptRecord.attempt_session_id == attempt_session_id)
            .first()
        )

    def get_open_session(self, student_id: str, exam_id: str) -> Optional[AttemptSession]:
        return (
            self.db.query(AttemptSession)
            .filter(
                AttemptSession.student_id == student_id,
                AttemptSession.exam_id == exam_id,
                AttemptSession.status == "in_progress",
            )
            .first()
        )

    def start_session(self, student_id: str, exam_id: str) -> AttemptSession:
        """Stage a new in-progress session in the caller's transaction."""
        session = AttemptSession(
            id=str(uuid.uuid4()),
            student_id=student_id,
            exam_id=exam_id,
            status="in_progress",
        )
        self.db.add(session)
        self.db.flush()
        return session

    def record_completion(
        self,
        student_id: str,
        exam_id: str,
        passed: bool,
        score: Optional[float] = None,
        attempt_session_id: Optional[str] = None,
    ) -> AttemptRecord:
        with transaction(self.db):
            acquire_pair_lock(self.db, student_id, exam_id)

            if attempt_session_id is not None:
                session = self.db.get(AttemptSession, attempt_session_id)
                if session is not None and (session.student_id, session.exam_id) != (student_id, exam_id):
                    session = None
            else:
                session = self.get_open_session(student_id, exam_id)

            if session is not None:
                existing = self.record_for_session(session.id)
                if existing is not None:
                    logger.info(
                        f"Attempt session {session.id} already recorded as #{existing.attempt_number}, "
                        f"replay ignored"
                    )
                    return existing

            record = AttemptRecord(
                student_id=student_id,
                exam_id=exam_id,
                attempt_session_id=session.id if session else None,
                attempt_number=self.attempts_used(student_id, exam_id) + 1,
                passed=passed,
                score=score,
            )
            self.db.add(record)
            try:
                self.db.flush()
            except IntegrityError as e:
                if session is not None:
                    session_id = session.id
                    self.db.rollback()
                    existing = self.record_for_session(session_id)
                    if existing is not None:
                        return existing
                raise AttemptConflict(
                    "Another submission for this exam was recorded at the same time",
                    {"student_id": student_id, "exam_id": exam_id},
                ) from e

            if session is not None and session.status == "in_progress":
                session.status = "submitted"
                session.ended_at = local_now_naive()

        self.db.refresh(record)
        logger.info(
            f"Attempt #{record.attempt_number} recorded for {student_id}/{exam_id}: "
            f"passed={passed} score={score}"
        )
        return record

    def summary(self, student_id: str, exam_id: str, policy: Policy) -> AttemptSummary:
        grants = self.attempt_reset_grants(student_id, exam_id)
        additional = sum(grant.extra_attempts for grant in grants)
        used = self.attempts_used(student_id, exam_id)
        total = policy.max_attempts + additional
        return AttemptSummary(
            exam_id=exam_id,
            default_max_attempts=policy.max_attempts,
            additional_attempts=additional,
            total_attempts=total,
            used_attempts=used,
            remaining_attempts=max(0, total - used),
            has_paid_for_additional_attempts=len(grants) > 0,
            total_payments=len(grants),
        )
