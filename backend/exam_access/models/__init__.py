from .base import Base
from .policy import GlobalSetting, Batch, StudentBatch
from .attempt import AttemptSession, AttemptRecord
from .incident import SecurityIncident
from .suspension import Suspension, suspension_incidents
from .remediation import RemediationGrant

__all__ = [
    "Base",
    "GlobalSetting",
    "Batch",
    "StudentBatch",
    "AttemptSession",
    "AttemptRecord",
    "SecurityIncident",
    "Suspension",
    "suspension_incidents",
    "RemediationGrant",
]
