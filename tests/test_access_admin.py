from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine, select

from backoffice import main as app_main
from backoffice.domain.models import AuditLog, User, UserRole
from backoffice.domain.permissions import DEFAULT_PAGES, DEFAULT_ROLE_PERMISSIONS
from backoffice.infra import audit, db, redis_state
from backoffice.infra.auth import create_access_token


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
def admin_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "access_admin_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    fake_redis = FakeRedis()
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    monkeypatch.setattr(redis_state, "get_redis", lambda: fake_redis)

    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _create_user(username: str, role: UserRole) -> str:
    with Session(db.get_engine(), expire_on_commit=False) as session:
        user = User(username=username, role=role.value)
        session.add(user)
        session.commit()
    return user.id


def _super_admin_token() -> str:
    return create_access_token(user_id=_create_user("root", UserRole.SUPER_ADMIN))


def _seed(client: TestClient, token: str) -> dict[str, int]:
    response = client.post("/api/access/seed-defaults", headers=_auth_header(token))
    assert response.status_code == 200
    return response.json()


def _page_id(client: TestClient, token: str, page_key: str) -> str:
    response = client.get("/api/access/pages", headers=_auth_header(token))
    assert response.status_code == 200
    return next(item["id"] for item in response.json() if item["page_key"] == page_key)


def test_seed_defaults_is_idempotent(admin_client: TestClient) -> None:
    token = _super_admin_token()
    expected_rows = sum(len(matrix) for matrix in DEFAULT_ROLE_PERMISSIONS.values())

    first = _seed(admin_client, token)
    assert first == {"pages_created": len(DEFAULT_PAGES), "role_permissions_created": expected_rows}

    second = _seed(admin_client, token)
    assert second == {"pages_created": 0, "role_permissions_created": 0}


def test_admin_console_is_closed_to_other_roles(admin_client: TestClient) -> None:
    token = _super_admin_token()
    _seed(admin_client, token)

    for username, role in (("admin", UserRole.ADMIN), ("manager", UserRole.MANAGER)):
        other = create_access_token(user_id=_create_user(username, role))
        response = admin_client.get("/api/access/pages", headers=_auth_header(other))
        assert response.status_code == 403


def test_page_crud_and_duplicate_key_conflict(admin_client: TestClient) -> None:
    token = _super_admin_token()
    payload = {"page_key": "reports_hub", "display_name": "Reports Hub", "path": "/reports"}

    created = admin_client.post("/api/access/pages", json=payload, headers=_auth_header(token))
    assert created.status_code == 201
    page_id = created.json()["id"]

    duplicate = admin_client.post("/api/access/pages", json=payload, headers=_auth_header(token))
    assert duplicate.status_code == 409

    updated = admin_client.patch(
        f"/api/access/pages/{page_id}",
        json={"is_active": False},
        headers=_auth_header(token),
    )
    assert updated.status_code == 200
    assert updated.json()["is_active"] is False

    deleted = admin_client.delete(f"/api/access/pages/{page_id}", headers=_auth_header(token))
    assert deleted.status_code == 204
    missing = admin_client.get(f"/api/access/pages/{page_id}", headers=_auth_header(token))
    assert missing.status_code == 404


def test_role_permission_upsert_changes_next_check(admin_client: TestClient) -> None:
    token = _super_admin_token()
    _seed(admin_client, token)
    worker_token = create_access_token(user_id=_create_user("worker", UserRole.USER))
    clients_page = _page_id(admin_client, token, "clients")

    before = admin_client.get("/api/permissions/check/clients", headers=_auth_header(worker_token))
    assert before.json()["has_permission"] is False

    upsert = admin_client.put(
        "/api/access/role-permissions",
        json={"role": "user", "page_id": clients_page, "can_view": True},
        headers=_auth_header(token),
    )
    assert upsert.status_code == 200
    assert upsert.json()["can_view"] is True

    rows = admin_client.get(
        "/api/access/role-permissions",
        params={"role": "user"},
        headers=_auth_header(token),
    )
    assert len([row for row in rows.json() if row["page_id"] == clients_page]) == 1

    after = admin_client.get("/api/permissions/check/clients", headers=_auth_header(worker_token))
    assert after.json()["has_permission"] is True


def test_role_permission_upsert_rejects_unknown_page_and_role(admin_client: TestClient) -> None:
    token = _super_admin_token()
    missing_page = admin_client.put(
        "/api/access/role-permissions",
        json={"role": "user", "page_id": "ghost", "can_view": True},
        headers=_auth_header(token),
    )
    assert missing_page.status_code == 404

    bad_role = admin_client.put(
        "/api/access/role-permissions",
        json={"role": "owner", "page_id": "ghost"},
        headers=_auth_header(token),
    )
    assert bad_role.status_code == 422


def test_role_permission_patch_and_bulk_update(admin_client: TestClient) -> None:
    token = _super_admin_token()
    _seed(admin_client, token)
    rows = admin_client.get(
        "/api/access/role-permissions",
        params={"role": "manager"},
        headers=_auth_header(token),
    ).json()
    first, second = rows[0], rows[1]

    patched = admin_client.patch(
        f"/api/access/role-permissions/{first['id']}",
        json={"can_delete": True},
        headers=_auth_header(token),
    )
    assert patched.status_code == 200
    assert patched.json()["can_delete"] is True
    assert patched.json()["can_view"] == first["can_view"]

    bulk = admin_client.put(
        "/api/access/role-permissions/bulk",
        json=[
            {"id": first["id"], "can_edit": True},
            {"id": second["id"], "can_view": False},
            {"id": "ghost", "can_view": True},
        ],
        headers=_auth_header(token),
    )
    assert bulk.status_code == 200
    by_id = {row["id"]: row for row in bulk.json()}
    assert set(by_id) == {first["id"], second["id"]}
    assert by_id[first["id"]]["can_edit"] is True
    assert by_id[second["id"]]["can_view"] is False

    missing = admin_client.patch(
        "/api/access/role-permissions/ghost",
        json={"can_view": True},
        headers=_auth_header(token),
    )
    assert missing.status_code == 404


def test_user_menu_permission_lifecycle(admin_client: TestClient) -> None:
    token = _super_admin_token()
    _seed(admin_client, token)
    worker_id = _create_user("worker", UserRole.USER)
    worker_token = create_access_token(user_id=worker_id)

    created = admin_client.post(
        "/api/access/user-menu-permissions",
        json={"user_id": worker_id, "campaign_management": True},
        headers=_auth_header(token),
    )
    assert created.status_code == 201
    assert created.json()["campaign_management"] is True
    assert created.json()["dashboard"] is False

    duplicate = admin_client.post(
        "/api/access/user-menu-permissions",
        json={"user_id": worker_id},
        headers=_auth_header(token),
    )
    assert duplicate.status_code == 409

    check = admin_client.get("/api/permissions/check/campaigns", headers=_auth_header(worker_token))
    assert check.json()["has_permission"] is True
    assert check.json()["reason"] == "user_override"

    updated = admin_client.patch(
        f"/api/access/user-menu-permissions/{worker_id}",
        json={"campaign_management": False},
        headers=_auth_header(token),
    )
    assert updated.status_code == 200
    check = admin_client.get("/api/permissions/check/campaigns", headers=_auth_header(worker_token))
    assert check.json()["has_permission"] is False

    deleted = admin_client.delete(
        f"/api/access/user-menu-permissions/{worker_id}",
        headers=_auth_header(token),
    )
    assert deleted.status_code == 204
    missing = admin_client.get(
        f"/api/access/user-menu-permissions/{worker_id}",
        headers=_auth_header(token),
    )
    assert missing.status_code == 404


def test_user_menu_permission_for_unknown_user(admin_client: TestClient) -> None:
    token = _super_admin_token()
    response = admin_client.post(
        "/api/access/user-menu-permissions",
        json={"user_id": "nobody"},
        headers=_auth_header(token),
    )
    assert response.status_code == 404


def test_admin_writes_are_audited(admin_client: TestClient) -> None:
    token = _super_admin_token()
    _seed(admin_client, token)

    with Session(db.get_engine(), expire_on_commit=False) as session:
        rows = list(
            session.exec(
                select(AuditLog).where(AuditLog.action == "POST:/api/access/seed-defaults")
            ).all()
        )
    assert len(rows) == 1
    assert rows[0].status_code == 200
    assert rows[0].detail["who"]["role"] == "super_admin"
