from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from backoffice.api.deps import require_page_permission
from backoffice.domain.models import (
    PageAction,
    PageCreate,
    PageRead,
    PageUpdate,
    RolePermissionBulkItem,
    RolePermissionRead,
    RolePermissionUpdate,
    RolePermissionUpsert,
    SeedDefaultsRead,
    UserMenuPermissionCreate,
    UserMenuPermissionRead,
    UserMenuPermissionUpdate,
    UserRole,
)
from backoffice.domain.permissions import PAGE_ADMIN
from backoffice.services.access_admin_service import (
    AccessAdminService,
    ConflictError,
    NotFoundError,
)

router = APIRouter()


def get_access_admin_service() -> AccessAdminService:
    return AccessAdminService()


Service = Annotated[AccessAdminService, Depends(get_access_admin_service)]

ADMIN_VIEW = [Depends(require_page_permission(PAGE_ADMIN, PageAction.VIEW))]
ADMIN_EDIT = [Depends(require_page_permission(PAGE_ADMIN, PageAction.EDIT))]
ADMIN_DELETE = [Depends(require_page_permission(PAGE_ADMIN, PageAction.DELETE))]


def _handle_access_admin_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.get("/pages", response_model=list[PageRead], dependencies=ADMIN_VIEW)
def list_pages(service: Service) -> list[PageRead]:
    return [PageRead.model_validate(item) for item in service.list_pages()]


@router.post("/pages", response_model=PageRead, status_code=status.HTTP_201_CREATED, dependencies=ADMIN_EDIT)
def create_page(payload: PageCreate, service: Service) -> PageRead:
    try:
        return PageRead.model_validate(service.create_page(payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_access_admin_error(exc)
        raise


@router.get("/pages/{page_id}", response_model=PageRead, dependencies=ADMIN_VIEW)
def get_page(page_id: str, service: Service) -> PageRead:
    try:
        return PageRead.model_validate(service.get_page(page_id))
    except (NotFoundError, ConflictError) as exc:
        _handle_access_admin_error(exc)
        raise


@router.patch("/pages/{page_id}", response_model=PageRead, dependencies=ADMIN_EDIT)
def update_page(page_id: str, payload: PageUpdate, service: Service) -> PageRead:
    try:
        return PageRead.model_validate(service.update_page(page_id, payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_access_admin_error(exc)
        raise


@router.delete("/pages/{page_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=ADMIN_DELETE)
def delete_page(page_id: str, service: Service) -> Response:
    try:
        service.delete_page(page_id)
    except (NotFoundError, ConflictError) as exc:
        _handle_access_admin_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/role-permissions", response_model=list[RolePermissionRead], dependencies=ADMIN_VIEW)
def list_role_permissions(service: Service, role: UserRole | None = None) -> list[RolePermissionRead]:
    rows = service.list_role_permissions(role.value if role is not None else None)
    return [RolePermissionRead.model_validate(item) for item in rows]


@router.put("/role-permissions", response_model=RolePermissionRead, dependencies=ADMIN_EDIT)
def upsert_role_permission(payload: RolePermissionUpsert, service: Service) -> RolePermissionRead:
    try:
        return RolePermissionRead.model_validate(service.upsert_role_permission(payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_access_admin_error(exc)
        raise


@router.put("/role-permissions/bulk", response_model=list[RolePermissionRead], dependencies=ADMIN_EDIT)
def bulk_update_role_permissions(
    payload: list[RolePermissionBulkItem],
    service: Service,
) -> list[RolePermissionRead]:
    rows = service.bulk_update_role_permissions(payload)
    return [RolePermissionRead.model_validate(item) for item in rows]


@router.patch("/role-permissions/{permission_id}", response_model=RolePermissionRead, dependencies=ADMIN_EDIT)
def update_role_permission(
    permission_id: str,
    payload: RolePermissionUpdate,
    service: Service,
) -> RolePermissionRead:
    try:
        return RolePermissionRead.model_validate(service.update_role_permission(permission_id, payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_access_admin_error(exc)
        raise


@router.get("/user-menu-permissions", response_model=list[UserMenuPermissionRead], dependencies=ADMIN_VIEW)
def list_menu_permissions(service: Service, user_id: str | None = None) -> list[UserMenuPermissionRead]:
    return [UserMenuPermissionRead.model_validate(item) for item in service.list_menu_permissions(user_id)]


@router.get("/user-menu-permissions/{user_id}", response_model=UserMenuPermissionRead, dependencies=ADMIN_VIEW)
def get_menu_permission(user_id: str, service: Service) -> UserMenuPermissionRead:
    try:
        return UserMenuPermissionRead.model_validate(service.get_menu_permission(user_id))
    except (NotFoundError, ConflictError) as exc:
        _handle_access_admin_error(exc)
        raise


@router.post(
    "/user-menu-permissions",
    response_model=UserMenuPermissionRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=ADMIN_EDIT,
)
def create_menu_permission(payload: UserMenuPermissionCreate, service: Service) -> UserMenuPermissionRead:
    try:
        return UserMenuPermissionRead.model_validate(service.create_menu_permission(payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_access_admin_error(exc)
        raise


@router.patch("/user-menu-permissions/{user_id}", response_model=UserMenuPermissionRead, dependencies=ADMIN_EDIT)
def update_menu_permission(
    user_id: str,
    payload: UserMenuPermissionUpdate,
    service: Service,
) -> UserMenuPermissionRead:
    try:
        return UserMenuPermissionRead.model_validate(service.update_menu_permission(user_id, payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_access_admin_error(exc)
        raise


@router.delete(
    "/user-menu-permissions/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=ADMIN_EDIT,
)
def delete_menu_permission(user_id: str, service: Service) -> Response:
    try:
        service.delete_menu_permission(user_id)
    except (NotFoundError, ConflictError) as exc:
        _handle_access_admin_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/seed-defaults", response_model=SeedDefaultsRead, dependencies=ADMIN_EDIT)
def seed_defaults(service: Service) -> SeedDefaultsRead:
    return service.seed_defaults()
