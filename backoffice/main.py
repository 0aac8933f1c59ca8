from __future__ import annotations

from fastapi import FastAPI, HTTPException

from backoffice.api.routers import access_admin, navigation, permissions, session
from backoffice.infra.audit import AuditMiddleware
from backoffice.infra.db import check_db_ready
from backoffice.infra.logging_config import setup_logging
from backoffice.infra.redis_state import check_redis_ready

setup_logging()

app = FastAPI(
    title="agency-backoffice",
    description="Page permissions and route guarding for the agency back-office.",
    version="0.1.0",
)

app.add_middleware(AuditMiddleware)

app.include_router(permissions.router, prefix="/api/permissions", tags=["permissions"])
app.include_router(navigation.router, prefix="/api/navigation", tags=["navigation"])
app.include_router(session.router, prefix="/api/session", tags=["session"])
app.include_router(access_admin.router, prefix="/api/access", tags=["access"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    redis_ok = check_redis_ready()
    checks = {
        "db": "ok" if db_ok else "fail",
        "redis": "ok" if redis_ok else "fail",
    }
    if not (db_ok and redis_ok):
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
