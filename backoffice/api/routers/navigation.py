from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from backoffice.api.deps import CurrentPrincipal, PermissionServiceDep, oauth2_scheme
from backoffice.domain.models import GuardOutcomeRead, RouteRead
from backoffice.domain.routes import ROUTE_TABLE, match_route
from backoffice.infra.principal_store import PrincipalStore
from backoffice.services.permission_checkers import ServicePermissionChecker
from backoffice.services.route_guard import RouteGuard

router = APIRouter()


@router.get("/routes", response_model=list[RouteRead])
def list_routes() -> list[RouteRead]:
    return [RouteRead(path=entry.path, page_key=entry.page_key, component=entry.component) for entry in ROUTE_TABLE]


@router.get("/guard", response_model=GuardOutcomeRead)
async def evaluate_guard(
    path: str,
    principal: CurrentPrincipal,
    service: PermissionServiceDep,
    token: str | None = Depends(oauth2_scheme),
) -> GuardOutcomeRead:
    route = match_route(path)
    if route is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="route not found")

    store = PrincipalStore(token=token, principal=principal)
    guard = RouteGuard(route, store, ServicePermissionChecker(service, store))
    try:
        outcome = await guard.evaluate()
    finally:
        guard.close()
    return GuardOutcomeRead.model_validate(asdict(outcome))
