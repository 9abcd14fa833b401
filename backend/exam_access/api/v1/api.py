from fastapi import APIRouter

from .endpoints import access, proctoring, attempts, suspensions, remediation, policies, health

api_router = APIRouter()

api_router.include_router(access.router, prefix="/access", tags=["access"])
api_router.include_router(proctoring.router, prefix="/proctoring", tags=["proctoring"])
api_router.include_router(attempts.router, prefix="/attempts", tags=["attempts"])
api_router.include_router(suspensions.router, prefix="/suspensions", tags=["suspensions"])
api_router.include_router(remediation.router, prefix="/remediation", tags=["remediation"])
api_router.include_router(policies.router, prefix="/policies", tags=["policies"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
