from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from backoffice.domain.models import PageAction, Principal
from backoffice.infra import redis_state
from backoffice.infra.auth import decode_access_token
from backoffice.services.permission_service import (
    AccessError,
    PermissionLookupFailure,
    PermissionService,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/identity/login", auto_error=False)


def get_permission_service() -> PermissionService:
    return PermissionService()


PermissionServiceDep = Annotated[PermissionService, Depends(get_permission_service)]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_claims(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
) -> dict[str, Any]:
    if not token:
        raise _unauthorized("Unauthorized")
    try:
        claims = decode_access_token(token)
    except Exception as exc:
        raise _unauthorized("Invalid token") from exc
    if redis_state.is_token_revoked(claims.get("jti")):
        raise _unauthorized("Session revoked")
    request.state.claims = claims
    return claims


def get_current_principal(
    request: Request,
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    service: PermissionServiceDep,
) -> Principal:
    # Deactivated principals are still returned; the resolver turns them into denials.
    try:
        principal = service.load_principal(str(claims["sub"]))
    except PermissionLookupFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Permission store unavailable",
        ) from exc
    if principal is None:
        raise _unauthorized("User not found")
    request.state.principal = principal
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def require_page_permission(
    page_key: str,
    action: PageAction = PageAction.VIEW,
) -> Callable[..., Principal]:
    def _checker(principal: CurrentPrincipal, service: PermissionServiceDep) -> Principal:
        try:
            verdict = service.resolve(principal, page_key)
        except PermissionLookupFailure as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Permission check failed",
            ) from exc
        except AccessError as exc:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied: {exc.reason}",
            ) from exc
        if not verdict.allows(action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. You don't have {action} permission for this page.",
            )
        return principal

    return _checker
