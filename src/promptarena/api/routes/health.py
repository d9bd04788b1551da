"""Health check endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Return service health status."""
    return {"status": "healthy", "service": "promptarena-api", "version": "0.1.0"}


@router.get("/health/ready")
async def readiness(request: Request):
    """Readiness check: verifies database connectivity."""
    try:
        async with request.app.state.db_session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks = {"database": "ok"}
        ok = True
    except SQLAlchemyError as exc:
        checks = {"database": f"error: {type(exc).__name__}"}
        ok = False
    return JSONResponse(
        status_code=200 if ok else 503,
        content={"status": "ready" if ok else "not_ready", "checks": checks},
    )
