from .policy import Policy, PolicyOverride, PolicyOverrideUpdate, ResolvedPolicy, BatchCreate, BatchResponse, StudentBatchAssign, StudentBatchResponse
from .incident import IncidentCreate, IncidentResponse, IncidentReport, IncidentStatistics
from .suspension import SuspensionDecision, SuspensionResponse, SuspensionRemoval, SuspensionList, SuspensionStats, RemoveByPairRequest
from .attempt import AttemptCompletion, AttemptRecordResponse, AttemptSessionResponse, AttemptSummary
from .remediation import RemediationKind, RemediationRequest, RemediationGrantResponse, RemediationResult
from .access import AccessState, AccessDecision, Remediation, AttemptStartResponse

__all__ = [
    "Policy",
    "PolicyOverride",
    "PolicyOverrideUpdate",
    "ResolvedPolicy",
    "BatchCreate",
    "BatchResponse",
    "StudentBatchAssign",
    "StudentBatchResponse",
    "IncidentCreate",
    "IncidentResponse",
    "IncidentReport",
    "IncidentStatistics",
    "SuspensionDecision",
    "SuspensionResponse",
    "SuspensionRemoval",
    "SuspensionList",
    "SuspensionStats",
    "RemoveByPairRequest",
    "AttemptCompletion",
    "AttemptRecordResponse",
    "AttemptSessionResponse",
    "AttemptSummary",
    "RemediationKind",
    "RemediationRequest",
    "RemediationGrantResponse",
    "RemediationResult",
    "AccessState",
    "AccessDecision",
    "Remediation",
    "AttemptStartResponse",
]
