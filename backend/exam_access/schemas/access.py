from enum import Enum
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from .policy import Policy
from .attempt import AttemptSessionResponse


class AccessState(str, Enum):
    ELIGIBLE = "eligible"
    IN_PROGRESS = "in_progress"
    SUSPENDED = "suspended"
    EXHAUSTED_ATTEMPTS = "exhausted_attempts"
    PASSED = "passed"
    # display label only, never produced by the engine itself
    AWAITING_PAYMENT = "awaiting_payment"


class Remediation(str, Enum):
    PAY_TO_LIFT = "pay_to_lift"
    PAY_TO_RESET = "pay_to_reset"


class AccessDecision(BaseModel):
    student_id: str
    exam_id: str
    state: AccessState
    message: str
    policy: Policy
    remediation: Optional[Remediation] = None

    suspension_id: Optional[int] = None
    suspension_reason: Optional[str] = None
    suspension_time: Optional[datetime] = None
    incident_count: Optional[int] = None

    attempts_used: int
    total_allowed_attempts: int
    remaining_attempts: int
    current_attempt_number: Optional[int] = None
    attempt_session_id: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.state in (AccessState.ELIGIBLE, AccessState.IN_PROGRESS)

    def display(self, payment_pending: bool = False) -> "AccessDecision":
        """Relabel a payable restriction while the payment is still in flight."""
        if payment_pending and self.state in (AccessState.SUSPENDED, AccessState.EXHAUSTED_ATTEMPTS):
            return self.model_copy(update={"state": AccessState.AWAITING_PAYMENT})
        return self


class AttemptStartResponse(BaseModel):
    decision: AccessDecision
    session: AttemptSessionResponse
