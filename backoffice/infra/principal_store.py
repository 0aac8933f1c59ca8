from __future__ import annotations

import logging
from collections.abc import Callable

from backoffice.domain.models import Principal

PrincipalListener = Callable[[Principal | None], None]

logger = logging.getLogger(__name__)


class PrincipalStore:
    """Holds the authenticated principal for one client session.

    Login, refresh and logout are the only mutations; every mutation bumps
    ``version`` and notifies subscribers synchronously with the new principal
    (``None`` after logout). Guards subscribe instead of polling so a logout
    issued elsewhere invalidates their verdicts.
    """

    def __init__(self, token: str | None = None, principal: Principal | None = None) -> None:
        self._token = token or None
        self._principal = principal if self._token else None
        self._listeners: list[PrincipalListener] = []
        self._version = 0

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def version(self) -> int:
        return self._version

    def get_current_principal(self) -> Principal | None:
        if not self._token:
            return None
        return self._principal

    def login(self, token: str, principal: Principal) -> None:
        if not token:
            raise ValueError("token must not be empty")
        self._token = token
        self._principal = principal
        self._changed()

    def refresh(self, principal: Principal) -> None:
        if not self._token:
            raise ValueError("cannot refresh a principal without a session token")
        self._principal = principal
        self._changed()

    def logout(self) -> None:
        if self._token is None and self._principal is None:
            return
        self._token = None
        self._principal = None
        self._changed()

    def on_principal_change(self, callback: PrincipalListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _changed(self) -> None:
        self._version += 1
        principal = self.get_current_principal()
        logger.debug(
            "principal changed version=%s user=%s",
            self._version,
            principal.id if principal is not None else None,
        )
        for listener in list(self._listeners):
            listener(principal)
