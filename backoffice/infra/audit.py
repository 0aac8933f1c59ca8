from __future__ import annotations

import logging
from typing import Any

from sqlmodel import Session
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from backoffice.domain.models import AuditLog, now_utc
from backoffice.infra.db import engine

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
UNAUDITED_PATHS = {"/healthz", "/readyz"}
AUDIT_CONTEXT_STATE_KEY = "_audit_context"

logger = logging.getLogger(__name__)


def write_audit_log(
    *,
    actor_id: str | None,
    action: str,
    resource: str,
    method: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
) -> None:
    log = AuditLog(
        actor_id=actor_id,
        action=action,
        resource=resource,
        method=method,
        status_code=status_code,
        detail=detail or {},
    )
    with Session(engine) as session:
        session.add(log)
        session.commit()


def _merge_detail(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_detail(merged[key], value)
        else:
            merged[key] = value
    return merged


def _status_outcome(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code in {401, 403, 404}:
        return "denied"
    if status_code >= 400:
        return "rejected"
    return "success"


def set_audit_context(
    request: Request,
    *,
    action: str | None = None,
    resource: str | None = None,
    detail: dict[str, Any] | None = None,
) -> None:
    raw = getattr(request.state, AUDIT_CONTEXT_STATE_KEY, {})
    context = dict(raw) if isinstance(raw, dict) else {}
    if action is not None:
        context["action"] = action
    if resource is not None:
        context["resource"] = resource
    if detail:
        previous = context.get("detail")
        context["detail"] = _merge_detail(previous, detail) if isinstance(previous, dict) else detail
    setattr(request.state, AUDIT_CONTEXT_STATE_KEY, context)


def set_access_denied_audit(
    request: Request,
    *,
    page_key: str,
    action: str,
    reason: str | None,
) -> None:
    set_audit_context(
        request,
        action=f"permission.check:{page_key}",
        resource=page_key,
        detail={
            "result": {"outcome": "denied", "reason": reason},
            "what": {"page_key": page_key, "page_action": action},
        },
    )


class AuditMiddleware(BaseHTTPMiddleware):
    """Persist one audit row per write request or explicitly annotated request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        path = request.url.path
        method = request.method
        if path in UNAUDITED_PATHS:
            return response

        raw = getattr(request.state, AUDIT_CONTEXT_STATE_KEY, {})
        context = raw if isinstance(raw, dict) else {}
        if method not in WRITE_METHODS and not context:
            return response

        principal = getattr(request.state, "principal", None)
        actor_id = getattr(principal, "id", None)
        role = getattr(principal, "role", None)
        action = context.get("action")
        resource = context.get("resource")
        action = action if isinstance(action, str) else f"{method}:{path}"
        resource = resource if isinstance(resource, str) else path

        detail: dict[str, Any] = {
            "who": {"actor_id": actor_id, "role": str(role) if role is not None else None},
            "when": {"request_ts": now_utc().isoformat()},
            "where": {
                "path": path,
                "query": request.url.query,
                "client_ip": request.client.host if request.client is not None else None,
            },
            "what": {"action": action, "resource": resource, "method": method},
            "result": {
                "status_code": response.status_code,
                "outcome": _status_outcome(response.status_code),
            },
        }
        extra = context.get("detail")
        if isinstance(extra, dict):
            detail = _merge_detail(detail, extra)

        try:
            write_audit_log(
                actor_id=actor_id,
                action=action,
                resource=resource,
                method=method,
                status_code=response.status_code,
                detail=detail,
            )
        except Exception:
            # Audit storage problems must not turn into failed requests.
            logger.exception("audit write failed action=%s", action)
        return response
