"""Health and readiness endpoints."""

from importlib import metadata
from typing import Any

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter()


def get_version() -> str:
    """Installed distribution version, ``dev`` for source checkouts."""
    try:
        return metadata.version("tax-compliance-de")
    except metadata.PackageNotFoundError:
        return "dev"


def check_database(request: Request) -> str:
    """Check database connectivity with a light query."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        return "FAIL"
    try:
        with engine.connect() as conn:
            value = conn.execute(text("SELECT 1")).scalar()
    except SQLAlchemyError:
        return "FAIL"
    return "OK" if value == 1 else "FAIL"


@router.get("/health/ready")
def readiness_check(request: Request) -> dict[str, Any]:
    """Readiness endpoint for load balancers."""
    db_status = check_database(request)
    return {
        "status": "OK" if db_status == "OK" else "DEGRADED",
        "version": get_version(),
        "db": db_status,
    }


@router.get("/health/live")
def liveness_check() -> dict[str, str]:
    """Liveness endpoint - always OK if service is running."""
    return {"status": "OK"}
