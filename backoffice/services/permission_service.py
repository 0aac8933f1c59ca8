from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from backoffice.domain.models import (
    Page,
    PageAction,
    Principal,
    RolePermission,
    User,
    UserMenuPermission,
    UserRole,
    Verdict,
)
from backoffice.domain.permissions import (
    MENU_OVERRIDE_FIELDS,
    evaluate_page_access,
    is_super_admin_bypass,
)
from backoffice.infra.db import get_engine

logger = logging.getLogger(__name__)


class AccessError(Exception):
    reason = "access_error"


class UnknownPageError(AccessError):
    reason = "unknown_page"


class InactivePrincipalError(AccessError):
    reason = "inactive_principal"


class NotAuthenticatedError(AccessError):
    reason = "not_authenticated"


class PermissionLookupFailure(AccessError):
    reason = "lookup_failure"


class PermissionLookupTimeout(PermissionLookupFailure):
    reason = "lookup_timeout"


class PermissionService:
    """Resolve page verdicts from the role, page and user override tables.

    Every call reads the tables afresh; nothing is cached between calls, so
    the service is safe to share across threads and principals.
    """

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_page(self, session: Session, page_key: str) -> Page | None:
        return session.exec(select(Page).where(Page.page_key == page_key)).first()

    def _get_role_permission(self, session: Session, role: str, page_id: str) -> RolePermission | None:
        statement = (
            select(RolePermission)
            .where(RolePermission.role == role)
            .where(RolePermission.page_id == page_id)
        )
        return session.exec(statement).first()

    def _get_menu_permission(self, session: Session, user_id: str) -> UserMenuPermission | None:
        statement = select(UserMenuPermission).where(UserMenuPermission.user_id == user_id)
        return session.exec(statement).first()

    def _ensure_active(self, principal: Principal | None) -> Principal:
        if principal is None:
            raise InactivePrincipalError("no principal")
        if not principal.is_active:
            raise InactivePrincipalError(f"principal {principal.id} is deactivated")
        return principal

    def _resolve_in_session(self, session: Session, principal: Principal, page_key: str) -> Verdict:
        page = self._get_page(session, page_key)
        if page is None:
            raise UnknownPageError(f"unknown page key: {page_key}")
        role_permission = None
        menu_permission = None
        if page.is_active:
            role_permission = self._get_role_permission(session, principal.role, page.id)
            if page_key in MENU_OVERRIDE_FIELDS:
                menu_permission = self._get_menu_permission(session, principal.id)
        return evaluate_page_access(principal, page_key, page, role_permission, menu_permission)

    def resolve(self, principal: Principal | None, page_key: str) -> Verdict:
        active = self._ensure_active(principal)
        if is_super_admin_bypass(active, page_key):
            return evaluate_page_access(active, page_key, None, None, None)
        try:
            with self._session() as session:
                return self._resolve_in_session(session, active, page_key)
        except SQLAlchemyError as exc:
            logger.warning("permission lookup failed page=%s user=%s: %s", page_key, active.id, exc)
            raise PermissionLookupFailure(f"permission lookup failed for {page_key}") from exc

    def check(self, principal: Principal | None, page_key: str, action: PageAction = PageAction.VIEW) -> bool:
        try:
            verdict = self.resolve(principal, page_key)
        except AccessError as exc:
            logger.info("permission check denied page=%s action=%s reason=%s", page_key, action, exc.reason)
            return False
        return verdict.allows(action)

    def resolve_many(self, principal: Principal | None, page_keys: Iterable[str]) -> list[Verdict]:
        active = self._ensure_active(principal)
        verdicts: list[Verdict] = []
        try:
            with self._session() as session:
                for page_key in page_keys:
                    if is_super_admin_bypass(active, page_key):
                        verdicts.append(evaluate_page_access(active, page_key, None, None, None))
                        continue
                    try:
                        verdicts.append(self._resolve_in_session(session, active, page_key))
                    except UnknownPageError:
                        continue
        except SQLAlchemyError as exc:
            logger.warning("menu permission lookup failed user=%s: %s", active.id, exc)
            raise PermissionLookupFailure("permission lookup failed") from exc
        return verdicts

    def visible_pages(self, principal: Principal | None) -> list[tuple[Page, Verdict]]:
        try:
            with self._session() as session:
                pages = list(session.exec(select(Page).where(Page.is_active == True)).all())  # noqa: E712
        except SQLAlchemyError as exc:
            raise PermissionLookupFailure("page lookup failed") from exc
        by_key = {page.page_key: page for page in pages}
        verdicts = self.resolve_many(principal, [page.page_key for page in pages])
        return [(by_key[verdict.page_key], verdict) for verdict in verdicts if verdict.granted]

    def load_principal(self, user_id: str) -> Principal | None:
        try:
            with self._session() as session:
                user = session.get(User, user_id)
        except SQLAlchemyError as exc:
            raise PermissionLookupFailure("user lookup failed") from exc
        if user is None:
            return None
        return Principal(
            id=user.id,
            username=user.username,
            role=UserRole(user.role),
            is_active=bool(user.is_active),
            client_id=user.client_id,
        )
