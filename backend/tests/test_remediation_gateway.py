"""
Tests for payment-driven remediation
"""
import pytest

from exam_access.models.remediation import RemediationGrant
from exam_access.schemas.remediation import RemediationKind
from exam_access.services.attempt_service import AttemptTracker
from exam_access.services.incident_service import IncidentLedger
from exam_access.services.remediation_service import (
    RemediationGateway,
    NO_ACTIVE_SUSPENSION,
    ATTEMPTS_STILL_REMAINING,
)
from exam_access.services.suspension_service import SuspensionManager


def suspend(db, student_id="student-1", exam_id="exam-1", session_id="session-a"):
    ledger = IncidentLedger(db)
    for _ in range(6):
        ledger.record(student_id, exam_id, session_id, "tab-switch")
    manager = SuspensionManager(db)
    suspension, _ = manager.open(
        student_id, exam_id, "Exceeded maximum allowed security incidents (5)",
        ledger.incidents_in_scope(student_id, exam_id, session_id), session_id,
    )
    db.commit()
    return suspension


def exhaust(db, student_id="student-1", exam_id="exam-1", count=3):
    tracker = AttemptTracker(db)
    for _ in range(count):
        tracker.record_completion(student_id, exam_id, passed=False)


class TestSuspensionLift:

    def test_lift_closes_active_suspension(self, db):
        suspension = suspend(db)

        result = RemediationGateway(db).apply("pay-1", "student-1", "exam-1", RemediationKind.SUSPENSION_LIFT)

        assert result.already_applied is False
        assert result.warning is None
        assert result.grant.suspension_id == suspension.id
        assert result.grant.extra_incident_allowance == 3
        db.refresh(suspension)
        assert suspension.removed is True
        assert suspension.removed_by == "payment:pay-1"

    def test_lift_without_suspension_is_recorded_with_warning(self, db):
        result = RemediationGateway(db).apply("pay-1", "student-1", "exam-1", "suspension_lift")

        assert result.warning == NO_ACTIVE_SUSPENSION
        assert result.grant.suspension_id is None
        assert db.query(RemediationGrant).count() == 1


class TestAttemptReset:

    def test_reset_grants_extra_attempts(self, db, policy):
        exhaust(db)
        gateway = RemediationGateway(db)

        result = gateway.apply("pay-1", "student-1", "exam-1", RemediationKind.ATTEMPT_RESET)

        assert result.warning is None
        assert result.grant.extra_attempts == 2
        assert AttemptTracker(db).remaining("student-1", "exam-1", policy) == 2

    def test_reset_with_attempts_remaining_still_applies(self, db, policy):
        result = RemediationGateway(db).apply("pay-1", "student-1", "exam-1", RemediationKind.ATTEMPT_RESET)

        assert result.warning == ATTEMPTS_STILL_REMAINING
        assert AttemptTracker(db).remaining("student-1", "exam-1", policy) == 5

    def test_two_payments_stack(self, db, policy):
        exhaust(db)
        gateway = RemediationGateway(db)
        gateway.apply("pay-1", "student-1", "exam-1", RemediationKind.ATTEMPT_RESET)
        gateway.apply("pay-2", "student-1", "exam-1", RemediationKind.ATTEMPT_RESET)

        assert AttemptTracker(db).remaining("student-1", "exam-1", policy) == 4


class TestIdempotency:

    def test_replay_returns_original_grant(self, db, policy):
        exhaust(db)
        gateway = RemediationGateway(db)

        first = gateway.apply("pay-1", "student-1", "exam-1", RemediationKind.ATTEMPT_RESET)
        second = gateway.apply("pay-1", "student-1", "exam-1", RemediationKind.ATTEMPT_RESET)

        assert first.already_applied is False
        assert second.already_applied is True
        assert second.grant.id == first.grant.id
        assert db.query(RemediationGrant).count() == 1
        assert AttemptTracker(db).remaining("student-1", "exam-1", policy) == 2

    def test_replay_with_different_target_keeps_original(self, db):
        gateway = RemediationGateway(db)
        first = gateway.apply("pay-1", "student-1", "exam-1", RemediationKind.ATTEMPT_RESET)
        second = gateway.apply("pay-1", "student-2", "exam-9", RemediationKind.SUSPENSION_LIFT)

        assert second.already_applied is True
        assert second.grant.student_id == "student-1"
        assert second.grant.kind == RemediationKind.ATTEMPT_RESET
        assert second.grant.id == first.grant.id
