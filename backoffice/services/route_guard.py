from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from backoffice.domain.models import Principal, Verdict
from backoffice.domain.permissions import FALLBACK_PAGE_KEYS, PAGE_DASHBOARD
from backoffice.domain.routes import ROUTE_TABLE, RouteEntry, path_for_page_key
from backoffice.domain.state_machine import GuardState, can_guard_transition
from backoffice.infra.principal_store import PrincipalStore
from backoffice.services.permission_service import (
    AccessError,
    NotAuthenticatedError,
    PermissionLookupFailure,
    PermissionLookupTimeout,
)

ACCESS_CHECK_TIMEOUT_SECONDS = float(os.getenv("ACCESS_CHECK_TIMEOUT_SECONDS", "10"))

PermissionChecker = Callable[[str], Awaitable[Verdict]]
Navigator = Callable[[str], None]

DENIED_ACTIONS: tuple[str, ...] = ("go_back", "logout")

logger = logging.getLogger(__name__)


class GuardTransitionError(Exception):
    pass


class _GuardReset(Exception):
    """The principal changed while an evaluation was suspended."""


@dataclass(frozen=True)
class GuardOutcome:
    state: GuardState
    page_key: str
    path: str
    verdict: Verdict | None = None
    redirect_to: str | None = None
    redirect_page_key: str | None = None
    reason: str | None = None
    actions: tuple[str, ...] = field(default_factory=tuple)


class RouteGuard:
    """Gate one route entry behind the permission resolver.

    ``evaluate`` walks UNAUTHENTICATED -> CHECKING_AUTH -> CHECKING_PERMISSION
    and settles in GRANTED, DENIED or REDIRECTING. While a lookup is
    suspended ``outcome`` stays ``None``: callers render a neutral loading
    view, never a denial. A principal change on the store cancels in-flight
    lookups and drops the guard back to UNAUTHENTICATED; results that arrive
    afterwards are discarded.
    """

    def __init__(
        self,
        route: RouteEntry,
        store: PrincipalStore,
        check_permission: PermissionChecker,
        *,
        route_table: tuple[RouteEntry, ...] = ROUTE_TABLE,
        fallback_page_keys: tuple[str, ...] = FALLBACK_PAGE_KEYS,
        landing_page_key: str = PAGE_DASHBOARD,
        timeout_seconds: float | None = ACCESS_CHECK_TIMEOUT_SECONDS,
        navigate: Navigator | None = None,
    ) -> None:
        self._route = route
        self._store = store
        self._check_permission = check_permission
        self._route_table = route_table
        self._fallback_page_keys = fallback_page_keys
        self._landing_page_key = landing_page_key
        self._timeout_seconds = timeout_seconds
        self._navigate = navigate
        self._state = GuardState.UNAUTHENTICATED
        self._outcome: GuardOutcome | None = None
        self._generation = 0
        self._pending: set[asyncio.Future[Verdict]] = set()
        self._verdicts: dict[str, asyncio.Future[Verdict]] = {}
        self.transitions: list[tuple[GuardState, GuardState]] = []
        self._unsubscribe = store.on_principal_change(self._on_principal_change)

    @property
    def state(self) -> GuardState:
        return self._state

    @property
    def outcome(self) -> GuardOutcome | None:
        return self._outcome

    @property
    def is_loading(self) -> bool:
        return self._state in {GuardState.CHECKING_AUTH, GuardState.CHECKING_PERMISSION}

    def close(self) -> None:
        self._unsubscribe()
        self._generation += 1
        self._cancel_pending()
        if self._state != GuardState.UNAUTHENTICATED:
            self._transition(GuardState.UNAUTHENTICATED)

    def _transition(self, target: GuardState) -> None:
        if not can_guard_transition(self._state, target):
            raise GuardTransitionError(f"invalid guard transition {self._state} -> {target}")
        self.transitions.append((self._state, target))
        self._state = target

    def _cancel_pending(self) -> None:
        for future in list(self._pending):
            future.cancel()
        self._pending.clear()
        self._verdicts.clear()

    def _on_principal_change(self, principal: Principal | None) -> None:
        self._generation += 1
        self._cancel_pending()
        self._outcome = None
        if self._state != GuardState.UNAUTHENTICATED:
            logger.info(
                "guard reset page=%s user=%s",
                self._route.page_key,
                principal.id if principal is not None else None,
            )
            self._transition(GuardState.UNAUTHENTICATED)

    def _settle(self, generation: int, outcome: GuardOutcome) -> GuardOutcome:
        if generation != self._generation:
            raise _GuardReset()
        if outcome.state != self._state:
            self._transition(outcome.state)
        self._outcome = outcome
        return outcome

    def _unauthenticated(self, reason: str) -> GuardOutcome:
        return GuardOutcome(
            state=GuardState.UNAUTHENTICATED,
            page_key=self._route.page_key,
            path=self._route.path,
            reason=reason,
        )

    def _denied(self, reason: str | None, verdict: Verdict | None = None) -> GuardOutcome:
        return GuardOutcome(
            state=GuardState.DENIED,
            page_key=self._route.page_key,
            path=self._route.path,
            verdict=verdict,
            reason=reason,
            actions=DENIED_ACTIONS,
        )

    async def _lookup(self, page_key: str) -> Verdict:
        try:
            if self._timeout_seconds is None:
                return await self._check_permission(page_key)
            return await asyncio.wait_for(self._check_permission(page_key), timeout=self._timeout_seconds)
        except TimeoutError as exc:
            logger.warning("permission lookup timed out page=%s after %ss", page_key, self._timeout_seconds)
            raise PermissionLookupTimeout(f"permission lookup for {page_key} timed out") from exc
        except AccessError:
            raise
        except Exception as exc:
            logger.exception("permission checker failed page=%s", page_key)
            raise PermissionLookupFailure(f"permission checker failed for {page_key}") from exc

    def _verdict_future(self, page_key: str) -> asyncio.Future[Verdict]:
        future = self._verdicts.get(page_key)
        if future is None:
            future = asyncio.ensure_future(self._lookup(page_key))
            self._verdicts[page_key] = future
            self._pending.add(future)
            future.add_done_callback(self._pending.discard)
        return future

    async def _await_verdict(self, generation: int, page_key: str) -> Verdict:
        try:
            verdict = await self._verdict_future(page_key)
        except asyncio.CancelledError:
            if generation != self._generation:
                raise _GuardReset() from None
            raise
        if generation != self._generation:
            raise _GuardReset()
        return verdict

    async def _first_granted_fallback(self, generation: int) -> Verdict | None:
        futures = [self._verdict_future(page_key) for page_key in self._fallback_page_keys]
        try:
            results = await asyncio.gather(*futures, return_exceptions=True)
        except asyncio.CancelledError:
            if generation != self._generation:
                raise _GuardReset() from None
            raise
        if generation != self._generation:
            raise _GuardReset()
        for page_key, result in zip(self._fallback_page_keys, results, strict=True):
            if isinstance(result, asyncio.CancelledError):
                raise _GuardReset()
            if isinstance(result, NotAuthenticatedError):
                raise result
            if isinstance(result, BaseException):
                logger.info("fallback candidate %s unavailable: %s", page_key, result)
                continue
            if result.granted and path_for_page_key(page_key, self._route_table) is not None:
                return result
        return None

    async def evaluate(self) -> GuardOutcome:
        self._transition(GuardState.CHECKING_AUTH)
        self._cancel_pending()
        self._outcome = None
        generation = self._generation
        try:
            return await self._evaluate(generation)
        except _GuardReset:
            # The reset already cleared state; a newer evaluation may own the outcome now.
            logger.debug("stale evaluation discarded page=%s", self._route.page_key)
            return self._unauthenticated("guard_reset")

    async def _evaluate(self, generation: int) -> GuardOutcome:
        principal = self._store.get_current_principal()
        if not self._store.token or principal is None:
            return self._settle(generation, self._unauthenticated("login_required"))
        if not principal.is_active:
            return self._settle(generation, self._unauthenticated("inactive_principal"))

        self._transition(GuardState.CHECKING_PERMISSION)
        page_key = self._route.page_key
        verdict: Verdict | None = None
        failure: AccessError | None = None
        try:
            verdict = await self._await_verdict(generation, page_key)
        except NotAuthenticatedError:
            return self._settle(generation, self._unauthenticated("login_required"))
        except PermissionLookupFailure as exc:
            logger.warning("permission lookup failed page=%s reason=%s", page_key, exc.reason)
            return self._settle(generation, self._denied(exc.reason))
        except AccessError as exc:
            failure = exc

        if verdict is not None and verdict.granted:
            return self._settle(
                generation,
                GuardOutcome(
                    state=GuardState.GRANTED,
                    page_key=page_key,
                    path=self._route.path,
                    verdict=verdict,
                    reason=verdict.reason,
                ),
            )

        reason = failure.reason if failure is not None else (verdict.reason if verdict else None)
        if page_key != self._landing_page_key:
            logger.info("access denied page=%s user=%s reason=%s", page_key, principal.id, reason)
            return self._settle(generation, self._denied(reason, verdict))

        try:
            alternate = await self._first_granted_fallback(generation)
        except NotAuthenticatedError:
            return self._settle(generation, self._unauthenticated("login_required"))
        if alternate is None:
            logger.info("landing page denied with no alternate user=%s", principal.id)
            return self._settle(generation, self._denied(reason, verdict))

        redirect_to = path_for_page_key(alternate.page_key, self._route_table)
        outcome = self._settle(
            generation,
            GuardOutcome(
                state=GuardState.REDIRECTING,
                page_key=page_key,
                path=self._route.path,
                verdict=verdict,
                redirect_to=redirect_to,
                redirect_page_key=alternate.page_key,
                reason=reason,
            ),
        )
        logger.info("landing page denied, redirecting user=%s to %s", principal.id, redirect_to)
        if self._navigate is not None and redirect_to is not None:
            self._navigate(redirect_to)
        return outcome
