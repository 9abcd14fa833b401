"""
Tests for the HTTP surface
"""
import pytest


def report_incidents(client, headers, count, session_id, exam_id="exam-1"):
    responses = []
    for _ in range(count):
        responses.append(client.post(
            "/api/v1/proctoring/incidents",
            json={"exam_id": exam_id, "attempt_session_id": session_id, "incident_type": "tab-switch"},
            headers=headers,
        ))
    return responses


class TestHealthEndpoints:

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["database"] == "healthy"
        assert data["services"]["cache"] == "disabled"

    def test_root_endpoint(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "Exam Access Policy Engine"


class TestIdentity:

    def test_missing_identity_rejected(self, client):
        response = client.get("/api/v1/access/exam-1")
        assert response.status_code == 401

    def test_unknown_role_rejected(self, client):
        response = client.get("/api/v1/access/exam-1", headers={"X-User-Id": "x", "X-User-Role": "wizard"})
        assert response.status_code == 403

    def test_student_cannot_read_other_student(self, client, student_headers):
        response = client.get("/api/v1/access/exam-1", params={"student_id": "student-2"}, headers=student_headers)
        assert response.status_code == 403

    def test_student_cannot_remove_suspension(self, client, student_headers):
        response = client.post("/api/v1/suspensions/1/remove", headers=student_headers)
        assert response.status_code == 403

    def test_student_cannot_apply_payment(self, client, student_headers):
        response = client.post("/api/v1/remediation/apply", json={
            "payment_id": "pay-1", "student_id": "student-1", "exam_id": "exam-1", "kind": "attempt_reset",
        }, headers=student_headers)
        assert response.status_code == 403


class TestExamFlow:
    """Start, report incidents, get suspended, pay, resume"""

    def test_full_suspension_and_payment_flow(self, client, student_headers, admin_headers, payment_headers):
        response = client.get("/api/v1/access/exam-1", headers=student_headers)
        assert response.status_code == 200
        assert response.json()["state"] == "eligible"

        response = client.post("/api/v1/access/exam-1/start", headers=student_headers)
        assert response.status_code == 200
        session_id = response.json()["session"]["id"]
        assert response.json()["decision"]["state"] == "in_progress"

        responses = report_incidents(client, student_headers, 6, session_id)
        assert all(r.status_code == 200 for r in responses)
        last = responses[-1].json()
        assert last["suspended"] is True
        assert last["incident_count"] == 6
        assert last["effective_threshold"] == 5

        response = client.get("/api/v1/access/exam-1", headers=student_headers)
        assert response.json()["state"] == "suspended"
        assert response.json()["remediation"] == "pay_to_lift"

        response = client.get("/api/v1/access/exam-1", params={"payment_pending": True}, headers=student_headers)
        assert response.json()["state"] == "awaiting_payment"

        response = client.post("/api/v1/access/exam-1/start", headers=student_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "access_denied"
        assert response.json()["detail"]["state"] == "suspended"

        payment = {"payment_id": "pay-1", "student_id": "student-1", "exam_id": "exam-1", "kind": "suspension_lift"}
        response = client.post("/api/v1/remediation/apply", json=payment, headers=payment_headers)
        assert response.status_code == 200
        assert response.json()["already_applied"] is False

        response = client.post("/api/v1/remediation/apply", json=payment, headers=payment_headers)
        assert response.json()["already_applied"] is True

        response = client.post("/api/v1/access/exam-1/start", headers=student_headers)
        assert response.status_code == 200
        assert response.json()["session"]["id"] == session_id

        response = client.get("/api/v1/suspensions/history/exam-1", headers=student_headers)
        history = response.json()
        assert len(history) == 1
        assert history[0]["removed_by"] == "payment:pay-1"
        assert len(history[0]["incident_ids"]) == 6

        response = client.post(
            "/api/v1/attempts/exam-1/complete",
            json={"passed": False, "score": 40.0, "attempt_session_id": session_id},
            headers=student_headers,
        )
        assert response.status_code == 200
        assert response.json()["attempt_number"] == 1

        response = client.get("/api/v1/attempts/exam-1/summary", headers=student_headers)
        assert response.json()["used_attempts"] == 1
        assert response.json()["remaining_attempts"] == 2

        response = client.get(
            "/api/v1/proctoring/statistics/exam-1", params={"student_id": "student-1"}, headers=admin_headers
        )
        assert response.json()["by_type"] == {"tab-switch": 6}

    def test_invalid_incident_type(self, client, student_headers):
        session_id = client.post("/api/v1/access/exam-1/start", headers=student_headers).json()["session"]["id"]
        response = client.post(
            "/api/v1/proctoring/incidents",
            json={"exam_id": "exam-1", "attempt_session_id": session_id, "incident_type": "tab/switch"},
            headers=student_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "invalid_incident_type"

    def test_incident_for_unknown_session(self, client, student_headers):
        responses = report_incidents(client, student_headers, 1, "not-started")

        assert responses[0].status_code == 404
        assert responses[0].json()["error"] == "attempt_session_not_found"


class TestAdminEndpoints:

    def test_admin_removal_by_id_and_pair(self, client, student_headers, admin_headers):
        session_id = client.post("/api/v1/access/exam-1/start", headers=student_headers).json()["session"]["id"]
        report_incidents(client, student_headers, 6, session_id)

        response = client.get("/api/v1/suspensions", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["stats"]["active_suspensions"] == 1
        suspension_id = data["suspensions"][0]["id"]

        response = client.post(
            "/api/v1/suspensions/remove",
            json={"student_id": "student-1", "exam_id": "exam-1"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["already_removed"] is False
        assert response.json()["suspension"]["removed_by"] == "admin:admin-1"

        response = client.post(f"/api/v1/suspensions/{suspension_id}/remove", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["already_removed"] is True

    def test_remove_unknown_suspension(self, client, admin_headers):
        response = client.post("/api/v1/suspensions/999/remove", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "suspension_not_found"

    def test_batch_policy_administration(self, client, admin_headers, student_headers):
        response = client.post(
            "/api/v1/policies/batches",
            json={"name": "Evening", "overrides": {"max_attempts": 5}},
            headers=admin_headers,
        )
        assert response.status_code == 200
        batch_id = response.json()["id"]

        response = client.put(
            "/api/v1/policies/students/student-1/batch", json={"batch_id": batch_id}, headers=admin_headers
        )
        assert response.status_code == 200

        response = client.get("/api/v1/access/exam-1", headers=student_headers)
        assert response.json()["policy"]["max_attempts"] == 5
        assert response.json()["policy"]["max_security_incidents"] == 5

        response = client.put(
            f"/api/v1/policies/batches/{batch_id}", json={"clear": ["max_attempts"]}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["max_attempts"] is None

        response = client.get(
            "/api/v1/policies/resolve", params={"exam_id": "exam-1", "batch_id": batch_id}, headers=admin_headers
        )
        assert response.json()["policy"]["max_attempts"] == 3

    def test_invalid_override_rejected(self, client, admin_headers):
        response = client.post(
            "/api/v1/policies/batches",
            json={"name": "Bad", "overrides": {"max_attempts": 0}},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_global_defaults_update(self, client, admin_headers):
        response = client.put("/api/v1/policies/global", json={"max_security_incidents": 8}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["max_security_incidents"] == 8

        response = client.get("/api/v1/policies/global", headers=admin_headers)
        assert response.json()["max_security_incidents"] == 8
        assert response.json()["max_attempts"] == 3
