from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from .core.config import settings
from .core.database import create_db_and_tables, get_db, SessionLocal
from .core.cache import cache
from .core.errors import AccessEngineError
from .api.v1.api import api_router
from .api.v1.endpoints.health import collect_health
from .services.policy_service import PolicyAdminService


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Exam Access Policy Engine",
    description="Eligibility, proctoring suspensions, attempt limits and paid remediation for online exams",
    version="1.0.0",
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AccessEngineError)
async def access_engine_exception_handler(request: Request, exc: AccessEngineError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
        }
    )


@app.on_event("startup")
async def startup_event():
    """Application startup tasks"""
    logger.info("Starting Exam Access Policy Engine...")

    create_db_and_tables()
    logger.info("Database initialized")

    db = SessionLocal()
    try:
        created = PolicyAdminService(db).initialize_default_settings()
        logger.info(f"Default policy settings initialized ({created} created)")
    finally:
        db.close()

    if not cache.enabled:
        logger.info("Policy cache disabled")
    elif cache.health_check():
        logger.info("Cache connection established")
    else:
        logger.warning("Cache connection failed - resolving policies without cache")

    logger.info("Exam Access Policy Engine startup completed")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown tasks"""
    logger.info("Shutting down Exam Access Policy Engine...")
    cache.close()
    logger.info("Cache connections closed")


app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    return collect_health(db)


@app.get("/")
async def read_root():
    return {
        "message": "Exam Access Policy Engine",
        "version": "1.0.0",
    }
