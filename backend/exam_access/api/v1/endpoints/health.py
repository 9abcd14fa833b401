import time
from typing import Dict, Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ....core.cache import cache
from ....core.database import get_db

router = APIRouter()


def collect_health(db: Session) -> Dict[str, Any]:
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "services": {},
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["services"]["database"] = "healthy"
    except SQLAlchemyError as e:
        health_status["services"]["database"] = f"error: {str(e)}"
        health_status["status"] = "unhealthy"

    if not cache.enabled:
        health_status["services"]["cache"] = "disabled"
    else:
        health_status["services"]["cache"] = "healthy" if cache.health_check() else "unhealthy"

    return health_status


@router.get("")
def get_health(db: Session = Depends(get_db)):
    """Database and policy cache status - no authentication required"""
    return collect_health(db)
