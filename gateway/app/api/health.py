import time

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from gateway.app.config.settings import settings
from gateway.app.db.session import get_db

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "Server is running"


@router.get("/health")
def health():
    """Constant-time health check without DB verification."""
    return {"status": "healthy"}


@router.get("/health/deep")
def health_deep(db: Session = Depends(get_db)):
    """Deep health check with record store connectivity verification."""
    start_time = time.time()
    try:
        db.execute(text("SELECT 1")).scalar()
        latency_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "db": {
                "ok": True,
                "dialect": db.bind.dialect.name,
                "latency_ms": round(latency_ms, 2),
            },
        }
    except Exception:
        raise HTTPException(
            status_code=503,
            detail={"code": "DEEP_HEALTH_FAILED", "message": "Deep health check failed"},
        )


@router.get("/version")
async def version():
    return {"version": settings.version}
