"""
Tests for the incident ledger
"""
import pytest

from exam_access.core.errors import InvalidIncidentType
from exam_access.models.incident import SecurityIncident
from exam_access.services.incident_service import IncidentLedger, normalize_incident_type, validate_scope


class TestIncidentTypes:

    @pytest.mark.parametrize("raw,expected", [
        ("tab-switch", "tab-switch"),
        ("TAB_SWITCH", "tab-switch"),
        ("Exit Fullscreen", "exit-fullscreen"),
        ("eye-tracking-lost", "eye-tracking-lost"),
    ])
    def test_normalization(self, raw, expected):
        assert normalize_incident_type(raw) == expected

    @pytest.mark.parametrize("raw", ["", "-tab", "tab/switch", "   "])
    def test_rejected(self, raw):
        with pytest.raises(InvalidIncidentType):
            normalize_incident_type(raw)

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValueError):
            validate_scope("forever")


class TestIncidentLedger:
    """Tests for IncidentLedger"""

    def test_record_returns_running_count(self, db):
        ledger = IncidentLedger(db, scope="session")
        assert ledger.record("student-1", "exam-1", "session-a", "tab-switch") == 1
        assert ledger.record("student-1", "exam-1", "session-a", "copy-attempt", "ctrl+c") == 2

    def test_session_scope_resets_per_session(self, db):
        ledger = IncidentLedger(db, scope="session")
        for _ in range(3):
            ledger.record("student-1", "exam-1", "session-a", "tab-switch")

        assert ledger.record("student-1", "exam-1", "session-b", "tab-switch") == 1
        assert ledger.count("student-1", "exam-1", "session-a") == 3

    def test_exam_scope_accumulates_across_sessions(self, db):
        ledger = IncidentLedger(db, scope="exam")
        for _ in range(3):
            ledger.record("student-1", "exam-1", "session-a", "tab-switch")

        assert ledger.record("student-1", "exam-1", "session-b", "tab-switch") == 4

    def test_pairs_are_isolated(self, db):
        ledger = IncidentLedger(db, scope="exam")
        ledger.record("student-1", "exam-1", "session-a", "tab-switch")
        ledger.record("student-2", "exam-1", "session-c", "tab-switch")
        ledger.record("student-1", "exam-2", "session-d", "tab-switch")

        assert ledger.count("student-1", "exam-1") == 1

    def test_invalid_type_is_not_recorded(self, db):
        ledger = IncidentLedger(db)
        with pytest.raises(InvalidIncidentType):
            ledger.record("student-1", "exam-1", "session-a", "tab/switch")
        assert db.query(SecurityIncident).count() == 0

    def test_statistics(self, db):
        ledger = IncidentLedger(db)
        ledger.record("student-1", "exam-1", "session-a", "tab-switch")
        ledger.record("student-1", "exam-1", "session-a", "TAB_SWITCH")
        ledger.record("student-1", "exam-1", "session-a", "multiple-faces")

        stats = ledger.statistics("student-1", "exam-1")

        assert stats.total_incidents == 3
        assert stats.by_type == {"tab-switch": 2, "multiple-faces": 1}
        assert [entry.type for entry in stats.timeline] == ["tab-switch", "tab-switch", "multiple-faces"]
