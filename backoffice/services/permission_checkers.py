from __future__ import annotations

import asyncio
from typing import Any

import httpx

from backoffice.domain.models import Verdict
from backoffice.infra.principal_store import PrincipalStore
from backoffice.services.permission_service import (
    InactivePrincipalError,
    NotAuthenticatedError,
    PermissionLookupFailure,
    PermissionService,
    UnknownPageError,
)

_REASON_ERRORS = {
    UnknownPageError.reason: UnknownPageError,
    InactivePrincipalError.reason: InactivePrincipalError,
}


class ServicePermissionChecker:
    """In-process ``check_permission`` for the principal currently in the store."""

    def __init__(self, service: PermissionService, store: PrincipalStore) -> None:
        self._service = service
        self._store = store

    def _resolve_fresh(self, user_id: str, page_key: str) -> Verdict:
        principal = self._service.load_principal(user_id)
        if principal is None:
            raise NotAuthenticatedError(f"user {user_id} no longer exists")
        return self._service.resolve(principal, page_key)

    async def __call__(self, page_key: str) -> Verdict:
        principal = self._store.get_current_principal()
        if principal is None:
            raise NotAuthenticatedError("no principal in store")
        # The stored principal is a login-time snapshot; role and is_active are re-read per check.
        return await asyncio.to_thread(self._resolve_fresh, principal.id, page_key)


class HttpPermissionChecker:
    """``check_permission`` backed by ``GET /api/permissions/check/{page_key}``."""

    def __init__(self, client: httpx.AsyncClient, token: str | None) -> None:
        self._client = client
        self._token = token

    def _headers(self) -> dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def __call__(self, page_key: str) -> Verdict:
        if not self._token:
            raise NotAuthenticatedError("no session token")
        try:
            response = await self._client.get(
                f"/api/permissions/check/{page_key}",
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise PermissionLookupFailure(f"permission service unreachable: {exc}") from exc

        if response.status_code == 401:
            raise NotAuthenticatedError(response.text)
        if response.status_code != 200:
            raise PermissionLookupFailure(
                f"permission check for {page_key} returned {response.status_code}"
            )

        payload: dict[str, Any] = response.json()
        reason = payload.get("reason")
        error_cls = _REASON_ERRORS.get(reason) if isinstance(reason, str) else None
        if error_cls is not None:
            raise error_cls(f"{page_key}: {reason}")
        return Verdict(
            page_key=payload.get("page_key", page_key),
            granted=bool(payload.get("granted")),
            can_view=bool(payload.get("can_view")),
            can_edit=bool(payload.get("can_edit")),
            can_delete=bool(payload.get("can_delete")),
            reason=reason if isinstance(reason, str) else None,
        )
