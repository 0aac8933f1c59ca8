from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from backoffice.domain.models import (
    Page,
    PageCreate,
    PageUpdate,
    RolePermission,
    RolePermissionBulkItem,
    RolePermissionUpdate,
    RolePermissionUpsert,
    SeedDefaultsRead,
    User,
    UserMenuPermission,
    UserMenuPermissionCreate,
    UserMenuPermissionUpdate,
    now_utc,
)
from backoffice.domain.permissions import DEFAULT_PAGES, DEFAULT_ROLE_PERMISSIONS
from backoffice.infra.db import get_engine

logger = logging.getLogger(__name__)


class AccessAdminError(Exception):
    pass


class NotFoundError(AccessAdminError):
    pass


class ConflictError(AccessAdminError):
    pass


class AccessAdminService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_page(self, session: Session, page_id: str) -> Page:
        page = session.get(Page, page_id)
        if page is None:
            raise NotFoundError("page not found")
        return page

    def _get_role_permission(self, session: Session, permission_id: str) -> RolePermission:
        row = session.get(RolePermission, permission_id)
        if row is None:
            raise NotFoundError("role permission not found")
        return row

    def _get_menu_permission(self, session: Session, user_id: str) -> UserMenuPermission:
        row = session.exec(select(UserMenuPermission).where(UserMenuPermission.user_id == user_id)).first()
        if row is None:
            raise NotFoundError("user menu permission not found")
        return row

    def _apply_role_flags(self, row: RolePermission, payload: RolePermissionUpdate) -> None:
        if payload.can_view is not None:
            row.can_view = payload.can_view
        if payload.can_edit is not None:
            row.can_edit = payload.can_edit
        if payload.can_delete is not None:
            row.can_delete = payload.can_delete
        row.updated_at = now_utc()

    # pages

    def create_page(self, payload: PageCreate) -> Page:
        with self._session() as session:
            page = Page(**payload.model_dump())
            session.add(page)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("page key already exists") from exc
            session.refresh(page)
            return page

    def list_pages(self) -> list[Page]:
        with self._session() as session:
            return list(session.exec(select(Page).order_by(Page.page_key)).all())

    def get_page(self, page_id: str) -> Page:
        with self._session() as session:
            return self._get_page(session, page_id)

    def update_page(self, page_id: str, payload: PageUpdate) -> Page:
        with self._session() as session:
            page = self._get_page(session, page_id)
            for key, value in payload.model_dump(exclude_none=True).items():
                setattr(page, key, value)
            page.updated_at = now_utc()
            session.add(page)
            session.commit()
            session.refresh(page)
            return page

    def delete_page(self, page_id: str) -> None:
        with self._session() as session:
            page = self._get_page(session, page_id)
            rows = session.exec(select(RolePermission).where(RolePermission.page_id == page_id)).all()
            for row in rows:
                session.delete(row)
            session.delete(page)
            session.commit()

    # role permissions

    def list_role_permissions(self, role: str | None = None) -> list[RolePermission]:
        with self._session() as session:
            statement = select(RolePermission)
            if role is not None:
                statement = statement.where(RolePermission.role == role)
            return list(session.exec(statement).all())

    def upsert_role_permission(self, payload: RolePermissionUpsert) -> RolePermission:
        with self._session() as session:
            self._get_page(session, payload.page_id)
            row = session.exec(
                select(RolePermission)
                .where(RolePermission.role == payload.role.value)
                .where(RolePermission.page_id == payload.page_id)
            ).first()
            if row is None:
                row = RolePermission(role=payload.role.value, page_id=payload.page_id)
            row.can_view = payload.can_view
            row.can_edit = payload.can_edit
            row.can_delete = payload.can_delete
            row.updated_at = now_utc()
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("role permission already exists") from exc
            session.refresh(row)
            return row

    def update_role_permission(self, permission_id: str, payload: RolePermissionUpdate) -> RolePermission:
        with self._session() as session:
            row = self._get_role_permission(session, permission_id)
            self._apply_role_flags(row, payload)
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def bulk_update_role_permissions(self, items: list[RolePermissionBulkItem]) -> list[RolePermission]:
        updated: list[RolePermission] = []
        with self._session() as session:
            for item in items:
                row = session.get(RolePermission, item.id)
                if row is None:
                    continue
                self._apply_role_flags(row, item)
                session.add(row)
                updated.append(row)
            session.commit()
            for row in updated:
                session.refresh(row)
        return updated

    # user menu permissions

    def list_menu_permissions(self, user_id: str | None = None) -> list[UserMenuPermission]:
        with self._session() as session:
            statement = select(UserMenuPermission)
            if user_id is not None:
                statement = statement.where(UserMenuPermission.user_id == user_id)
            return list(session.exec(statement).all())

    def get_menu_permission(self, user_id: str) -> UserMenuPermission:
        with self._session() as session:
            return self._get_menu_permission(session, user_id)

    def create_menu_permission(self, payload: UserMenuPermissionCreate) -> UserMenuPermission:
        with self._session() as session:
            if session.get(User, payload.user_id) is None:
                raise NotFoundError("user not found")
            row = UserMenuPermission(**payload.model_dump(exclude_none=True))
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("user menu permission already exists") from exc
            session.refresh(row)
            return row

    def update_menu_permission(self, user_id: str, payload: UserMenuPermissionUpdate) -> UserMenuPermission:
        with self._session() as session:
            row = self._get_menu_permission(session, user_id)
            for key, value in payload.model_dump(exclude_none=True).items():
                setattr(row, key, value)
            row.updated_at = now_utc()
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def delete_menu_permission(self, user_id: str) -> None:
        with self._session() as session:
            row = self._get_menu_permission(session, user_id)
            session.delete(row)
            session.commit()

    # defaults

    def seed_defaults(self) -> SeedDefaultsRead:
        pages_created = 0
        permissions_created = 0
        with self._session() as session:
            existing = {page.page_key: page for page in session.exec(select(Page)).all()}
            for item in DEFAULT_PAGES:
                if item["page_key"] in existing:
                    continue
                page = Page(**item)
                session.add(page)
                existing[page.page_key] = page
                pages_created += 1
            session.flush()

            seeded_pages = {
                row.page_id for row in session.exec(select(RolePermission)).all()
            }
            for role, matrix in DEFAULT_ROLE_PERMISSIONS.items():
                for page_key, (can_view, can_edit, can_delete) in matrix.items():
                    page = existing.get(page_key)
                    if page is None or page.id in seeded_pages:
                        continue
                    session.add(
                        RolePermission(
                            role=role.value,
                            page_id=page.id,
                            can_view=can_view,
                            can_edit=can_edit,
                            can_delete=can_delete,
                        )
                    )
                    permissions_created += 1
            session.commit()

        logger.info(
            "seeded access defaults pages=%s role_permissions=%s",
            pages_created,
            permissions_created,
        )
        return SeedDefaultsRead(pages_created=pages_created, role_permissions_created=permissions_created)
