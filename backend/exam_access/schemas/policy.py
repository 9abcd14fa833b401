from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


POLICY_FIELDS = (
    "max_attempts",
    "max_security_incidents",
    "enable_auto_suspend",
    "additional_security_incidents_after_removal",
    "additional_attempts_after_payment",
)

# global_settings keys, one per policy field
POLICY_SETTING_KEYS = {
    "max_attempts": "policy.maxAttempts",
    "max_security_incidents": "policy.maxSecurityIncidents",
    "enable_auto_suspend": "policy.enableAutoSuspend",
    "additional_security_incidents_after_removal": "policy.additionalSecurityIncidentsAfterRemoval",
    "additional_attempts_after_payment": "policy.additionalAttemptsAfterPayment",
}

POLICY_SETTING_DESCRIPTIONS = {
    "max_attempts": "Maximum number of attempts a student gets for an exam",
    "max_security_incidents": "Maximum number of security incidents allowed before an exam is automatically suspended",
    "enable_auto_suspend": "Enable automatic suspension of exams when security incidents exceed the threshold",
    "additional_security_incidents_after_removal": "Extra security incidents allowed after a suspension is removed",
    "additional_attempts_after_payment": "Attempts granted by one attempt-reset payment",
}


class Policy(BaseModel):
    """Fully resolved policy. Every field is always set."""
    max_attempts: int
    max_security_incidents: int
    enable_auto_suspend: bool
    additional_security_incidents_after_removal: int
    additional_attempts_after_payment: int

    class Config:
        frozen = True


class PolicyOverride(BaseModel):
    """Partial policy; ``None`` means unset."""
    max_attempts: Optional[int] = Field(None, ge=1)
    max_security_incidents: Optional[int] = Field(None, ge=1)
    enable_auto_suspend: Optional[bool] = None
    additional_security_incidents_after_removal: Optional[int] = Field(None, ge=0)
    additional_attempts_after_payment: Optional[int] = Field(None, ge=1)


class PolicyOverrideUpdate(PolicyOverride):
    # fields listed here go back to "unset" regardless of the values above
    clear: List[str] = []


class ResolvedPolicy(BaseModel):
    exam_id: str
    batch_id: Optional[int] = None
    version: str
    policy: Policy


class BatchCreate(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    overrides: PolicyOverride = PolicyOverride()


class BatchResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    max_attempts: Optional[int] = None
    max_security_incidents: Optional[int] = None
    enable_auto_suspend: Optional[bool] = None
    additional_security_incidents_after_removal: Optional[int] = None
    additional_attempts_after_payment: Optional[int] = None
    policy_version: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StudentBatchAssign(BaseModel):
    batch_id: int


class StudentBatchResponse(BaseModel):
    student_id: str
    batch_id: int

    class Config:
        from_attributes = True
