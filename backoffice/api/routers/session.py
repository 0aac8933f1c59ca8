from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response, status

from backoffice.api.deps import CurrentPrincipal, get_current_claims
from backoffice.domain.models import PrincipalRead
from backoffice.infra import redis_state
from backoffice.infra.audit import set_audit_context
from backoffice.infra.auth import token_ttl_seconds

router = APIRouter()

Claims = Annotated[dict[str, Any], Depends(get_current_claims)]


@router.get("/me", response_model=PrincipalRead)
def read_current_principal(principal: CurrentPrincipal) -> PrincipalRead:
    return PrincipalRead.model_validate(principal)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(request: Request, claims: Claims) -> Response:
    jti = claims.get("jti")
    if isinstance(jti, str) and jti:
        redis_state.revoke_token(jti, token_ttl_seconds(claims))
    set_audit_context(request, action="session.logout", resource=str(claims.get("sub")))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
