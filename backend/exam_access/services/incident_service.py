import logging
import re
from typing import Optional, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import transaction
from ..core.errors import InvalidIncidentType
from ..models.incident import SecurityIncident
from ..schemas.incident import IncidentStatistics, IncidentTimelineEntry

logger = logging.getLogger(__name__)

KNOWN_INCIDENT_TYPES = (
    "exit-fullscreen",
    "tab-switch",
    "browser-close",
    "browser-minimize",
    "copy-attempt",
    "dev-tools-open",
    "multiple-windows",
    "network-change",
    "screenshot-attempt",
    "camera-inactive",
    "multiple-faces",
    "no-face-detected",
    "other",
)

INCIDENT_SCOPES = ("session", "exam")

_TAG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def normalize_incident_type(raw: str) -> str:
    """``TAB_SWITCH`` and ``tab switch`` both become ``tab-switch``. Unknown tags are allowed."""
    tag = (raw or "").strip().lower().replace("_", "-").replace(" ", "-")
    if not _TAG_PATTERN.match(tag):
        raise InvalidIncidentType(f"Invalid incident type: {raw!r}", {"incident_type": raw})
    return tag


def validate_scope(scope: Optional[str]) -> str:
    scope = scope or settings.incident_count_scope
    if scope not in INCIDENT_SCOPES:
        raise ValueError(f"incident_count_scope must be one of {INCIDENT_SCOPES}, got {scope!r}")
    return scope


class IncidentLedger:
    """Append-only log of proctoring incidents with a per-scope running count."""

    def __init__(self, db: Session, scope: Optional[str] = None):
        self.db = db
        self.scope = validate_scope(scope)

    def _scoped(self, query, student_id: str, exam_id: str, attempt_session_id: Optional[str]):
        query = query.filter(
            SecurityIncident.student_id == student_id,
            SecurityIncident.exam_id == exam_id,
        )
        if self.scope == "session" and attempt_session_id is not None:
            query = query.filter(SecurityIncident.attempt_session_id == attempt_session_id)
        return query

    def append(
        self,
        student_id: str,
        exam_id: str,
        attempt_session_id: str,
        incident_type: str,
        detail: Optional[str] = None,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> SecurityIncident:
        """Stage one incident in the current transaction. The caller commits."""
        incident = SecurityIncident(
            student_id=student_id,
            exam_id=exam_id,
            attempt_session_id=attempt_session_id,
            incident_type=normalize_incident_type(incident_type),
            detail=detail,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        self.db.add(incident)
        self.db.flush()
        return incident

    def count(self, student_id: str, exam_id: str, attempt_session_id: Optional[str] = None) -> int:
        query = self._scoped(self.db.query(func.count(SecurityIncident.id)), student_id, exam_id, attempt_session_id)
        return query.scalar() or 0

    def incidents_in_scope(
        self, student_id: str, exam_id: str, attempt_session_id: Optional[str] = None
    ) -> List[SecurityIncident]:
        query = self._scoped(self.db.query(SecurityIncident), student_id, exam_id, attempt_session_id)
        return query.order_by(SecurityIncident.id).all()

    def record(
        self,
        student_id: str,
        exam_id: str,
        attempt_session_id: str,
        incident_type: str,
        detail: Optional[str] = None,
    ) -> int:
        """Durably append an incident and return the count in scope after the write."""
        with transaction(self.db):
            self.append(student_id, exam_id, attempt_session_id, incident_type, detail)
        return self.count(student_id, exam_id, attempt_session_id)

    def statistics(self, student_id: str, exam_id: str) -> IncidentStatistics:
        incidents = (
            self.db.query(SecurityIncident)
            .filter(SecurityIncident.student_id == student_id, SecurityIncident.exam_id == exam_id)
            .order_by(SecurityIncident.timestamp, SecurityIncident.id)
            .all()
        )

        by_type = {}
        timeline = []
        for incident in incidents:
            by_type[incident.incident_type] = by_type.get(incident.incident_type, 0) + 1
            timeline.append(IncidentTimelineEntry(timestamp=incident.timestamp, type=incident.incident_type))

        return IncidentStatistics(total_incidents=len(incidents), by_type=by_type, timeline=timeline)
