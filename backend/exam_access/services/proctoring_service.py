import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.database import transaction, acquire_pair_lock
from ..core.errors import AttemptSessionNotFound
from ..models.attempt import AttemptSession
from ..schemas.incident import IncidentReport, IncidentResponse
from .incident_service import IncidentLedger
from .policy_service import PolicyResolver
from .suspension_service import SuspensionManager

logger = logging.getLogger(__name__)


class ProctoringService:
    """Entry point for the proctoring signal source: record, evaluate, maybe suspend."""

    def __init__(
        self,
        db: Session,
        resolver: Optional[PolicyResolver] = None,
        ledger: Optional[IncidentLedger] = None,
        suspensions: Optional[SuspensionManager] = None,
    ):
        self.db = db
        self.resolver = resolver or PolicyResolver(db)
        self.ledger = ledger or IncidentLedger(db)
        self.suspensions = suspensions or SuspensionManager(db, scope=self.ledger.scope)

    def _get_session(self, student_id: str, exam_id: str, attempt_session_id: str) -> AttemptSession:
        session = self.db.get(AttemptSession, attempt_session_id)
        if session is None or (session.student_id, session.exam_id) != (student_id, exam_id):
            raise AttemptSessionNotFound(
                f"Attempt session {attempt_session_id} not found for this student and exam",
                {"attempt_session_id": attempt_session_id, "student_id": student_id, "exam_id": exam_id},
            )
        return session

    def report_incident(
        self,
        student_id: str,
        exam_id: str,
        attempt_session_id: str,
        incident_type: str,
        detail: Optional[str] = None,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> IncidentReport:
        """Record an incident for an attempt session of this student and exam.

        Late signals for a session that is no longer in progress are kept for
        audit but never open a suspension.
        """
        session = self._get_session(student_id, exam_id, attempt_session_id)
        policy = self.resolver.resolve_for_student(student_id, exam_id)

        # the incident is durable before any suspension work, even if that work fails
        with transaction(self.db):
            incident = self.ledger.append(
                student_id, exam_id, attempt_session_id, incident_type, detail, user_agent, ip_address
            )
        incident_payload = IncidentResponse.model_validate(incident)

        with transaction(self.db):
            acquire_pair_lock(self.db, student_id, exam_id)

            session_open = session.status == "in_progress"
            count = self.ledger.count(student_id, exam_id, attempt_session_id)
            created = False
            if session_open:
                decision = self.suspensions.evaluate(student_id, exam_id, count, policy, attempt_session_id)
                threshold = decision.effective_threshold
                active = self.suspensions.get_active(student_id, exam_id)
                if active is None and decision.should_suspend:
                    incidents = self.ledger.incidents_in_scope(student_id, exam_id, attempt_session_id)
                    active, created = self.suspensions.open(
                        student_id, exam_id, decision.reason, incidents, attempt_session_id
                    )
            else:
                threshold = self.suspensions.effective_threshold(student_id, exam_id, policy, attempt_session_id)
                active = self.suspensions.get_active(student_id, exam_id)
            suspension_id = active.id if active is not None else None

        if session_open:
            logger.info(
                f"Incident {incident_payload.incident_type} for {student_id}/{exam_id} "
                f"session {attempt_session_id}: {count}/{threshold}, "
                f"suspended={suspension_id is not None}"
            )
        else:
            logger.warning(
                f"Late incident {incident_payload.incident_type} for {student_id}/{exam_id} "
                f"on {session.status} session {attempt_session_id}: recorded, not evaluated"
            )

        return IncidentReport(
            incident=incident_payload,
            incident_count=count,
            effective_threshold=threshold,
            enable_auto_suspend=policy.enable_auto_suspend,
            suspended=suspension_id is not None,
            suspension_created=created,
            suspension_id=suspension_id,
            warning_only=not policy.enable_auto_suspend,
            session_open=session_open,
        )
