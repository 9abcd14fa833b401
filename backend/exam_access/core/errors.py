from typing import Any, Dict, Optional


class AccessEngineError(Exception):
    """Base class for errors raised by the access policy engine."""

    status_code = 500
    error_code = "access_engine_error"
    retryable = False

    def __init__(self, message: str = "", detail: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.detail = detail or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            "detail": self.detail,
        }


class PolicyIncomplete(AccessEngineError):
    """A resolved policy is missing a field. Programming error, never user input."""

    error_code = "policy_incomplete"


class StorageUnavailable(AccessEngineError):
    status_code = 503
    error_code = "storage_unavailable"
    retryable = True


class AttemptConflict(AccessEngineError):
    status_code = 409
    error_code = "attempt_conflict"
    retryable = True


class SuspensionNotFound(AccessEngineError):
    status_code = 404
    error_code = "suspension_not_found"


class BatchNotFound(AccessEngineError):
    status_code = 404
    error_code = "batch_not_found"


class InvalidIncidentType(AccessEngineError):
    status_code = 422
    error_code = "invalid_incident_type"


class AccessDenied(AccessEngineError):
    status_code = 403
    error_code = "access_denied"


class AttemptSessionNotFound(AccessEngineError):
    status_code = 404
    error_code = "attempt_session_not_found"
