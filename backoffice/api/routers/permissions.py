from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, status

from backoffice.api.deps import CurrentPrincipal, PermissionServiceDep
from backoffice.domain.models import PageAction, PageRead, PermissionCheckRead, Verdict
from backoffice.infra.audit import set_access_denied_audit
from backoffice.services.permission_service import (
    AccessError,
    PermissionLookupFailure,
)

router = APIRouter()


def _check_read(verdict: Verdict, action: PageAction) -> PermissionCheckRead:
    return PermissionCheckRead(
        page_key=verdict.page_key,
        action=action,
        has_permission=verdict.allows(action),
        granted=verdict.granted,
        can_view=verdict.can_view,
        can_edit=verdict.can_edit,
        can_delete=verdict.can_delete,
        reason=verdict.reason,
    )


@router.get("/check/{page_key}", response_model=PermissionCheckRead)
def check_permission(
    page_key: str,
    request: Request,
    principal: CurrentPrincipal,
    service: PermissionServiceDep,
    action: str = "view",
) -> PermissionCheckRead:
    try:
        page_action = PageAction(action)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid action. Must be 'view', 'edit', or 'delete'",
        ) from exc

    try:
        verdict = service.resolve(principal, page_key)
    except PermissionLookupFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to check permission",
        ) from exc
    except AccessError as exc:
        verdict = Verdict(page_key=page_key, granted=False, reason=exc.reason)

    result = _check_read(verdict, page_action)
    if not result.has_permission:
        set_access_denied_audit(request, page_key=page_key, action=page_action, reason=result.reason)
    return result


@router.get("/menu", response_model=list[PageRead])
def list_menu_pages(principal: CurrentPrincipal, service: PermissionServiceDep) -> list[PageRead]:
    try:
        visible = service.visible_pages(principal)
    except PermissionLookupFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to load menu",
        ) from exc
    except AccessError:
        return []
    return [PageRead.model_validate(page) for page, _verdict in visible]
