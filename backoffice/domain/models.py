from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from backoffice.domain.state_machine import GuardState


def now_utc() -> datetime:
    return datetime.now(UTC)


class UserRole(StrEnum):
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    CLIENT = "client"


class PageAction(StrEnum):
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    username: str = Field(index=True, unique=True)
    name: str | None = None
    role: str = Field(default=UserRole.USER.value, index=True)
    client_id: str | None = Field(default=None, index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Page(SQLModel, table=True):
    __tablename__ = "pages"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    page_key: str = Field(index=True, unique=True)
    display_name: str
    path: str
    description: str | None = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class RolePermission(SQLModel, table=True):
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role", "page_id", name="uq_role_permissions_role_page"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    role: str = Field(index=True)
    page_id: str = Field(foreign_key="pages.id", index=True, ondelete="CASCADE")
    can_view: bool = Field(default=False)
    can_edit: bool = Field(default=False)
    can_delete: bool = Field(default=False)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class UserMenuPermission(SQLModel, table=True):
    __tablename__ = "user_menu_permissions"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True, unique=True, ondelete="CASCADE")
    dashboard: bool = Field(default=False)
    campaign_management: bool = Field(default=False)
    client_management: bool = Field(default=False)
    ad_accounts: bool = Field(default=False)
    work_reports: bool = Field(default=False)
    advantix_dashboard: bool = Field(default=False)
    projects: bool = Field(default=False)
    payments: bool = Field(default=False)
    expenses_salaries: bool = Field(default=False)
    salary_management: bool = Field(default=False)
    reports: bool = Field(default=False)
    fb_ad_management: bool = Field(default=False)
    advantix_ads_manager: bool = Field(default=False)
    own_farming: bool = Field(default=False)
    new_created: bool = Field(default=False)
    farming_accounts: bool = Field(default=False)
    mail_management: bool = Field(default=False)
    admin_panel: bool = Field(default=False)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Principal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    username: str | None = None
    role: UserRole
    is_active: bool = True
    client_id: str | None = None


class Verdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_key: str
    granted: bool
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    reason: str | None = None

    def allows(self, action: PageAction) -> bool:
        if action == PageAction.EDIT:
            return self.can_edit
        if action == PageAction.DELETE:
            return self.can_delete
        return self.granted


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PrincipalRead(ORMReadModel):
    id: str
    username: str | None = None
    role: UserRole
    is_active: bool
    client_id: str | None = None


class PageCreate(BaseModel):
    page_key: str
    display_name: str
    path: str
    description: str | None = None
    is_active: bool = True


class PageUpdate(BaseModel):
    display_name: str | None = None
    path: str | None = None
    description: str | None = None
    is_active: bool | None = None


class PageRead(ORMReadModel):
    id: str
    page_key: str
    display_name: str
    path: str
    description: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class RolePermissionUpsert(BaseModel):
    role: UserRole
    page_id: str
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False


class RolePermissionUpdate(BaseModel):
    can_view: bool | None = None
    can_edit: bool | None = None
    can_delete: bool | None = None


class RolePermissionBulkItem(RolePermissionUpdate):
    id: str


class RolePermissionRead(ORMReadModel):
    id: str
    role: str
    page_id: str
    can_view: bool
    can_edit: bool
    can_delete: bool
    created_at: datetime
    updated_at: datetime


class UserMenuPermissionFlags(BaseModel):
    dashboard: bool | None = None
    campaign_management: bool | None = None
    client_management: bool | None = None
    ad_accounts: bool | None = None
    work_reports: bool | None = None
    advantix_dashboard: bool | None = None
    projects: bool | None = None
    payments: bool | None = None
    expenses_salaries: bool | None = None
    salary_management: bool | None = None
    reports: bool | None = None
    fb_ad_management: bool | None = None
    advantix_ads_manager: bool | None = None
    own_farming: bool | None = None
    new_created: bool | None = None
    farming_accounts: bool | None = None
    mail_management: bool | None = None
    admin_panel: bool | None = None


class UserMenuPermissionCreate(UserMenuPermissionFlags):
    user_id: str


class UserMenuPermissionUpdate(UserMenuPermissionFlags):
    pass


class UserMenuPermissionRead(ORMReadModel):
    id: str
    user_id: str
    dashboard: bool
    campaign_management: bool
    client_management: bool
    ad_accounts: bool
    work_reports: bool
    advantix_dashboard: bool
    projects: bool
    payments: bool
    expenses_salaries: bool
    salary_management: bool
    reports: bool
    fb_ad_management: bool
    advantix_ads_manager: bool
    own_farming: bool
    new_created: bool
    farming_accounts: bool
    mail_management: bool
    admin_panel: bool
    created_at: datetime
    updated_at: datetime


class PermissionCheckRead(BaseModel):
    page_key: str
    action: PageAction
    has_permission: bool
    granted: bool
    can_view: bool
    can_edit: bool
    can_delete: bool
    reason: str | None = None


class SeedDefaultsRead(BaseModel):
    pages_created: int
    role_permissions_created: int


class RouteRead(BaseModel):
    path: str
    page_key: str
    component: str


class GuardOutcomeRead(BaseModel):
    state: GuardState
    page_key: str
    path: str
    verdict: Verdict | None = None
    redirect_to: str | None = None
    redirect_page_key: str | None = None
    reason: str | None = None
    actions: list[str] = PydanticField(default_factory=list)
