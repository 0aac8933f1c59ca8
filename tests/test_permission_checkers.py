from __future__ import annotations

import asyncio
from collections.abc import Generator
from pathlib import Path

import httpx
import pytest
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from backoffice import main as app_main
from backoffice.domain.models import Principal, User, UserMenuPermission, UserRole
from backoffice.domain.routes import match_route
from backoffice.domain.state_machine import GuardState
from backoffice.infra import audit, db, redis_state
from backoffice.infra.auth import create_access_token
from backoffice.infra.principal_store import PrincipalStore
from backoffice.services.access_admin_service import AccessAdminService
from backoffice.services.permission_checkers import HttpPermissionChecker, ServicePermissionChecker
from backoffice.services.permission_service import (
    InactivePrincipalError,
    NotAuthenticatedError,
    PermissionLookupFailure,
    PermissionService,
    UnknownPageError,
)
from backoffice.services.route_guard import RouteGuard


class FakeRedis:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._store[key] = value
        return True

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def ping(self) -> bool:
        return True


@pytest.fixture()
def checker_engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[Engine, None, None]:
    db_path = tmp_path / "checkers_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(test_engine)
    fake_redis = FakeRedis()

    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    monkeypatch.setattr(redis_state, "get_redis", lambda: fake_redis)
    AccessAdminService().seed_defaults()
    yield test_engine
    test_engine.dispose()


def _add_user(engine: Engine, username: str, role: UserRole, *, is_active: bool = True) -> User:
    with Session(engine, expire_on_commit=False) as session:
        user = User(username=username, role=role.value, is_active=is_active)
        session.add(user)
        session.commit()
    return user


def _principal(user: User) -> Principal:
    return Principal(id=user.id, username=user.username, role=UserRole(user.role), is_active=user.is_active)


def _asgi_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app_main.app),
        base_url="http://testserver",
    )


def _check_via_http(token: str | None, page_key: str):
    async def _run():
        async with _asgi_client() as client:
            return await HttpPermissionChecker(client, token)(page_key)

    return asyncio.run(_run())


def test_service_checker_uses_current_principal(checker_engine: Engine) -> None:
    manager = _add_user(checker_engine, "manager", UserRole.MANAGER)
    store = PrincipalStore(token="token-1", principal=_principal(manager))
    checker = ServicePermissionChecker(PermissionService(), store)

    verdict = asyncio.run(checker("campaigns"))
    assert verdict.granted is True

    store.logout()
    with pytest.raises(NotAuthenticatedError):
        asyncio.run(checker("campaigns"))


def test_service_checker_rereads_user_on_every_check(checker_engine: Engine) -> None:
    manager = _add_user(checker_engine, "manager", UserRole.MANAGER)
    store = PrincipalStore(token="token-1", principal=_principal(manager))
    checker = ServicePermissionChecker(PermissionService(), store)
    assert asyncio.run(checker("campaigns")).granted is True

    with Session(checker_engine) as session:
        row = session.get(User, manager.id)
        assert row is not None
        row.is_active = False
        session.add(row)
        session.commit()

    with pytest.raises(InactivePrincipalError):
        asyncio.run(checker("campaigns"))

    route = match_route("/campaigns")
    assert route is not None
    guard = RouteGuard(route, store, checker)
    outcome = asyncio.run(guard.evaluate())
    guard.close()
    assert outcome.state == GuardState.DENIED
    assert outcome.reason == "inactive_principal"


def test_service_checker_rejects_deleted_user(checker_engine: Engine) -> None:
    manager = _add_user(checker_engine, "manager", UserRole.MANAGER)
    store = PrincipalStore(token="token-1", principal=_principal(manager))
    checker = ServicePermissionChecker(PermissionService(), store)

    with Session(checker_engine) as session:
        row = session.get(User, manager.id)
        assert row is not None
        session.delete(row)
        session.commit()

    with pytest.raises(NotAuthenticatedError):
        asyncio.run(checker("campaigns"))


def test_http_checker_returns_verdicts(checker_engine: Engine) -> None:
    manager = _add_user(checker_engine, "manager", UserRole.MANAGER)
    token = create_access_token(user_id=manager.id)

    granted = _check_via_http(token, "campaigns")
    assert granted.granted is True
    assert granted.can_edit is False

    denied = _check_via_http(token, "salaries")
    assert denied.granted is False
    assert denied.reason == "role_denied"


def test_http_checker_maps_error_reasons(checker_engine: Engine) -> None:
    manager = _add_user(checker_engine, "manager", UserRole.MANAGER)
    gone = _add_user(checker_engine, "gone", UserRole.MANAGER, is_active=False)

    with pytest.raises(UnknownPageError):
        _check_via_http(create_access_token(user_id=manager.id), "ghost")
    with pytest.raises(InactivePrincipalError):
        _check_via_http(create_access_token(user_id=gone.id), "campaigns")


def test_http_checker_requires_session(checker_engine: Engine) -> None:
    with pytest.raises(NotAuthenticatedError):
        _check_via_http(None, "campaigns")
    with pytest.raises(NotAuthenticatedError):
        _check_via_http("not-a-jwt", "campaigns")


def test_http_checker_wraps_transport_failures() -> None:
    def _server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "boom"})

    def _unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def _run(handler) -> None:
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport, base_url="http://permissions") as client:
            await HttpPermissionChecker(client, "token-1")("campaigns")

    with pytest.raises(PermissionLookupFailure):
        asyncio.run(_run(_server_error))
    with pytest.raises(PermissionLookupFailure):
        asyncio.run(_run(_unreachable))


def test_guard_redirects_client_through_http_checker(checker_engine: Engine) -> None:
    client_user = _add_user(checker_engine, "client", UserRole.CLIENT)
    with Session(checker_engine) as session:
        session.add(UserMenuPermission(user_id=client_user.id, work_reports=True))
        session.commit()
    token = create_access_token(user_id=client_user.id)
    store = PrincipalStore(token=token, principal=_principal(client_user))
    route = match_route("/")
    assert route is not None

    async def _run():
        async with _asgi_client() as client:
            guard = RouteGuard(route, store, HttpPermissionChecker(client, store.token))
            try:
                return await guard.evaluate()
            finally:
                guard.close()

    outcome = asyncio.run(_run())
    assert outcome.state == GuardState.REDIRECTING
    assert outcome.redirect_to == "/work-reports"
    assert outcome.redirect_page_key == "work_reports"
