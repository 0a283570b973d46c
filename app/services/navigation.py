"""
Route selection for the single-page app.

evaluate() is the whole transition table: given the URL fragment, the current
principal and the domain resolution, it returns the surface to render and the
fragment the client should show. Navigator wraps it with the asynchronous
parts: resolving the domain and restoring the session concurrently, bounding
both with a timeout, and discarding results that arrive after a newer
navigation.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from app.models.user import MEMBER_ROLE, OPERATOR_ROLES
from app.schemas.auth import Principal
from app.services.access_guard import Deny, Surface, authorize
from app.services.tenant_directory import TenantResolution

logger = logging.getLogger(__name__)

MASTER_FRAGMENT = "master"
OPERATOR_FRAGMENT = "admin"
OPERATOR_LOGIN_FRAGMENT = "admin/login"


class RouteState(str, Enum):
    UNDETERMINED = "undetermined"
    PUBLIC_APP = "public_app"
    OPERATOR_LOGIN = "operator_login"
    OPERATOR_CONSOLE = "operator_console"
    MASTER_CONSOLE = "master_console"
    NOT_FOUND = "not_found"
    # Retry terminal: a resolver timed out or the backend failed.
    UNAVAILABLE = "unavailable"


class Intent(str, Enum):
    NONE = "none"
    MASTER = "master"
    OPERATOR_LOGIN = "operator_login"
    OPERATOR = "operator"
    OTHER = "other"


@dataclass(frozen=True)
class RouteDecision:
    state: RouteState
    fragment: str
    write_fragment: bool = False
    reason: str | None = None


def normalize_fragment(fragment: str | None) -> str:
    if not fragment:
        return ""
    return fragment[1:] if fragment.startswith("#") else fragment


def parse_fragment(fragment: str | None) -> Intent:
    """Map a fragment (with or without '#') to a navigation intent."""
    frag = normalize_fragment(fragment)
    if not frag:
        return Intent.NONE
    if frag.startswith(MASTER_FRAGMENT):
        return Intent.MASTER
    if frag == OPERATOR_LOGIN_FRAGMENT:
        return Intent.OPERATOR_LOGIN
    if frag.startswith(OPERATOR_FRAGMENT):
        return Intent.OPERATOR
    return Intent.OTHER


_SURFACE_STATE = {
    "public": RouteState.PUBLIC_APP,
    "operator": RouteState.OPERATOR_CONSOLE,
    "master": RouteState.MASTER_CONSOLE,
}


def _guarded(
    principal: Principal | None,
    domain_type: str | None,
    surface: Surface,
    fragment: str,
    target_fragment: str,
) -> RouteDecision:
    decision = authorize(principal, domain_type, surface)
    if isinstance(decision, Deny):
        return RouteDecision(
            state=RouteState(decision.redirect),
            fragment=fragment,
            reason=decision.reason,
        )
    return RouteDecision(
        state=_SURFACE_STATE[surface],
        fragment=target_fragment,
        write_fragment=target_fragment != fragment,
    )


def evaluate(
    fragment: str | None,
    principal: Principal | None,
    resolution: TenantResolution | None,
) -> RouteDecision:
    """
    Pick the surface. First matching rule wins:

    1. #master            -> master console for master, else operator login
    2. #admin/login       -> operator login
    3. #admin...          -> operator console for operator roles, else operator login
    4. no fragment, anonymous -> public app
    5. no fragment, master    -> write #master, master console
    6. no fragment, operator  -> write #admin, operator console
    7. no fragment, member    -> public app
    8. anything else      -> not found

    Surfaces chosen by rules 1, 3-7 are then checked against the domain type.
    The function is pure: the same inputs give the same decision, and a
    fragment it asked to write leads back to the same state on the next call.
    """
    frag = normalize_fragment(fragment)
    if resolution is None:
        return RouteDecision(state=RouteState.UNDETERMINED, fragment=frag)
    if not resolution.found:
        return RouteDecision(state=RouteState.NOT_FOUND, fragment=frag)
    domain_type = resolution.domain_type

    intent = parse_fragment(frag)
    if intent is Intent.MASTER:
        return _guarded(principal, domain_type, "master", frag, frag)
    if intent is Intent.OPERATOR_LOGIN:
        return RouteDecision(state=RouteState.OPERATOR_LOGIN, fragment=frag)
    if intent is Intent.OPERATOR:
        return _guarded(principal, domain_type, "operator", frag, frag)
    if intent is Intent.OTHER:
        return RouteDecision(state=RouteState.NOT_FOUND, fragment=frag)

    if principal is None:
        return _guarded(None, domain_type, "public", frag, frag)
    if principal.role == "master":
        return _guarded(principal, domain_type, "master", frag, MASTER_FRAGMENT)
    if principal.role in OPERATOR_ROLES:
        return _guarded(principal, domain_type, "operator", frag, OPERATOR_FRAGMENT)
    if principal.role == MEMBER_ROLE:
        return _guarded(principal, domain_type, "public", frag, frag)
    return RouteDecision(state=RouteState.NOT_FOUND, fragment=frag)


DomainResolver = Callable[[str], Awaitable[TenantResolution]]
SessionRestorer = Callable[[], Awaitable[Principal | None]]


class Navigator:
    """
    Owns the current route for one browser tab.

    The principal is read from `current_principal` on every evaluation, never
    captured at start, so a fragment change after login or logout is judged
    against the live session.
    """

    def __init__(
        self,
        resolve_domain: DomainResolver,
        restore_session: SessionRestorer,
        *,
        timeout: float,
        on_fragment_write: Callable[[str], None] | None = None,
    ) -> None:
        self._resolve_domain = resolve_domain
        self._restore_session = restore_session
        self._timeout = timeout
        self._on_fragment_write = on_fragment_write
        self._generation = 0
        self._session_epoch = 0
        self.host = ""
        self.fragment = ""
        self.resolution: TenantResolution | None = None
        self.current_principal: Principal | None = None
        self.decision = RouteDecision(state=RouteState.UNDETERMINED, fragment="")

    @property
    def state(self) -> RouteState:
        return self.decision.state

    async def start(self, host: str, fragment: str = "") -> RouteDecision:
        """Resolve host and restore the session together, then route."""
        self._generation += 1
        generation = self._generation
        session_epoch = self._session_epoch
        self.host = host
        self.fragment = normalize_fragment(fragment)
        self.resolution = None
        self.decision = RouteDecision(state=RouteState.UNDETERMINED, fragment=self.fragment)

        try:
            resolution, principal = await asyncio.gather(
                asyncio.wait_for(self._resolve_domain(host), self._timeout),
                asyncio.wait_for(self._restore_session(), self._timeout),
            )
        except asyncio.TimeoutError:
            if generation != self._generation:
                return self.decision
            logger.warning(
                "Navigation resolver timed out",
                extra={"host": host, "timeout_sec": self._timeout},
            )
            self.decision = RouteDecision(
                state=RouteState.UNAVAILABLE,
                fragment=self.fragment,
                reason="service unavailable, retry",
            )
            return self.decision
        except Exception as e:
            if generation != self._generation:
                return self.decision
            logger.exception("Navigation resolver failed: %s", e)
            self.decision = RouteDecision(
                state=RouteState.UNAVAILABLE,
                fragment=self.fragment,
                reason="service unavailable, retry",
            )
            return self.decision

        if generation != self._generation:
            logger.info("Discarding stale navigation result", extra={"host": host})
            return self.decision

        self.resolution = resolution
        if session_epoch == self._session_epoch:
            self.current_principal = principal
        return self._apply()

    def on_fragment_change(self, fragment: str) -> RouteDecision:
        """
        Back/forward or a hand-edited address bar.

        While start() is still pending this only records the fragment; the
        pending result is evaluated against it when it lands.
        """
        self.fragment = normalize_fragment(fragment)
        return self._apply()

    def on_login_success(self, principal: Principal) -> RouteDecision:
        """
        Re-run the table with the new session instead of jumping to a console.

        The login fragment has done its job once credentials are accepted; it
        is cleared so rules 4-7 pick the landing surface.
        """
        self._session_epoch += 1
        self.current_principal = principal
        if parse_fragment(self.fragment) is Intent.OPERATOR_LOGIN:
            self.fragment = ""
        return self._apply()

    def on_logout(self) -> RouteDecision:
        self._session_epoch += 1
        self.current_principal = None
        return self._apply()

    def _apply(self) -> RouteDecision:
        decision = evaluate(self.fragment, self.current_principal, self.resolution)
        if decision.write_fragment:
            # Internal write; does not go through on_fragment_change.
            self.fragment = decision.fragment
            if self._on_fragment_write is not None:
                self._on_fragment_write(decision.fragment)
        self.decision = decision
        return decision
