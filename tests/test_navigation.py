"""Unit tests for app.services.navigation: the route table and the async Navigator."""

import asyncio
import unittest

from app.schemas.auth import Principal
from app.services.navigation import (
    Intent,
    Navigator,
    RouteState,
    evaluate,
    parse_fragment,
)
from app.services.tenant_directory import TenantResolution

ADMIN_DOMAIN = TenantResolution(
    kind="mapped",
    domain="admin.acme.example",
    tenant_id="C-ACME",
    tenant_name="Acme",
    domain_type="admin",
)
MAIN_DOMAIN = TenantResolution(
    kind="mapped",
    domain="acme.example",
    tenant_id="C-ACME",
    tenant_name="Acme",
    domain_type="main",
)
LOCAL = TenantResolution(kind="local", domain="localhost")
UNMAPPED = TenantResolution(kind="not_found", domain="random.example")


def _principal(role: str, user_id: str = "P1") -> Principal:
    return Principal(id=user_id, email=f"{user_id.lower()}@x.test", username=user_id, role=role)


class TestParseFragment(unittest.TestCase):
    def test_intents(self) -> None:
        cases = {
            "": Intent.NONE,
            "#": Intent.NONE,
            "#master": Intent.MASTER,
            "master/agencies": Intent.MASTER,
            "#admin/login": Intent.OPERATOR_LOGIN,
            "#admin": Intent.OPERATOR,
            "#admin/stores": Intent.OPERATOR,
            "#wallet": Intent.OTHER,
        }
        for fragment, intent in cases.items():
            with self.subTest(fragment=fragment):
                self.assertEqual(parse_fragment(fragment), intent)


class TestRouteTable(unittest.TestCase):
    """Rules 1-8 in priority order."""

    def test_master_fragment(self) -> None:
        self.assertEqual(
            evaluate("#master", _principal("master"), LOCAL).state, RouteState.MASTER_CONSOLE
        )
        self.assertEqual(evaluate("#master", None, LOCAL).state, RouteState.OPERATOR_LOGIN)

    def test_master_fragment_with_agency_goes_to_login(self) -> None:
        decision = evaluate("#master", _principal("agency"), ADMIN_DOMAIN)
        self.assertEqual(decision.state, RouteState.OPERATOR_LOGIN)
        self.assertFalse(decision.write_fragment)

    def test_operator_login_fragment_is_unconditional(self) -> None:
        for principal in (None, _principal("center"), _principal("master")):
            with self.subTest(principal=principal):
                self.assertEqual(
                    evaluate("#admin/login", principal, ADMIN_DOMAIN).state,
                    RouteState.OPERATOR_LOGIN,
                )

    def test_operator_fragment(self) -> None:
        self.assertEqual(
            evaluate("#admin", _principal("store"), ADMIN_DOMAIN).state,
            RouteState.OPERATOR_CONSOLE,
        )
        self.assertEqual(
            evaluate("#admin/stores", _principal("user"), LOCAL).state,
            RouteState.OPERATOR_LOGIN,
        )

    def test_no_fragment_anonymous_gets_public_app(self) -> None:
        self.assertEqual(evaluate("", None, MAIN_DOMAIN).state, RouteState.PUBLIC_APP)
        self.assertEqual(evaluate("", None, LOCAL).state, RouteState.PUBLIC_APP)

    def test_no_fragment_master_writes_master_fragment(self) -> None:
        decision = evaluate("", _principal("master"), LOCAL)
        self.assertEqual(decision.state, RouteState.MASTER_CONSOLE)
        self.assertEqual(decision.fragment, "master")
        self.assertTrue(decision.write_fragment)

    def test_no_fragment_member_gets_public_app(self) -> None:
        decision = evaluate("", _principal("user"), MAIN_DOMAIN)
        self.assertEqual(decision.state, RouteState.PUBLIC_APP)
        self.assertFalse(decision.write_fragment)

    def test_unknown_fragment_is_not_found(self) -> None:
        self.assertEqual(evaluate("#nowhere", _principal("user"), LOCAL).state, RouteState.NOT_FOUND)

    def test_pending_resolution_is_undetermined(self) -> None:
        self.assertEqual(evaluate("#admin", _principal("center"), None).state, RouteState.UNDETERMINED)


class TestScenarios(unittest.TestCase):
    """End-to-end route outcomes for mapped, unmapped and preview hosts."""

    def test_store_on_admin_domain_lands_in_console(self) -> None:
        decision = evaluate("", _principal("store"), ADMIN_DOMAIN)
        self.assertEqual(decision.state, RouteState.OPERATOR_CONSOLE)
        self.assertEqual(decision.fragment, "admin")
        self.assertTrue(decision.write_fragment)

    def test_member_on_admin_domain_is_sent_to_operator_login(self) -> None:
        decision = evaluate("", _principal("user"), ADMIN_DOMAIN)
        self.assertEqual(decision.state, RouteState.OPERATOR_LOGIN)
        self.assertEqual(decision.reason, "insufficient permission")
        self.assertFalse(decision.write_fragment)

    def test_unmapped_domain_is_not_found(self) -> None:
        for principal in (None, _principal("master"), _principal("user")):
            with self.subTest(principal=principal):
                self.assertEqual(evaluate("", principal, UNMAPPED).state, RouteState.NOT_FOUND)

    def test_operator_on_main_domain_is_denied(self) -> None:
        decision = evaluate("", _principal("center"), MAIN_DOMAIN)
        self.assertEqual(decision.state, RouteState.OPERATOR_LOGIN)
        self.assertFalse(decision.write_fragment)


class TestIdempotence(unittest.TestCase):
    """Same inputs, same output; following a fragment write is a fixed point."""

    def test_repeated_evaluation_is_stable(self) -> None:
        principals = [None] + [_principal(r) for r in ("master", "agency", "center", "store", "admin", "user")]
        resolutions = [ADMIN_DOMAIN, MAIN_DOMAIN, LOCAL, UNMAPPED]
        fragments = ["", "#master", "#admin", "#admin/login", "#other"]
        for principal in principals:
            for resolution in resolutions:
                for fragment in fragments:
                    first = evaluate(fragment, principal, resolution)
                    second = evaluate(fragment, principal, resolution)
                    self.assertEqual(first, second)
                    if first.write_fragment:
                        followed = evaluate(first.fragment, principal, resolution)
                        self.assertEqual(followed.state, first.state)
                        self.assertFalse(followed.write_fragment)


def _navigator(
    resolution: TenantResolution | None = LOCAL,
    principal: Principal | None = None,
    *,
    domain_delay: float = 0.0,
    session_delay: float = 0.0,
    timeout: float = 1.0,
    writes: list[str] | None = None,
) -> Navigator:
    async def resolve_domain(host: str) -> TenantResolution:
        if domain_delay:
            await asyncio.sleep(domain_delay)
        if resolution is None:
            raise RuntimeError("backend down")
        return resolution

    async def restore_session() -> Principal | None:
        if session_delay:
            await asyncio.sleep(session_delay)
        return principal

    return Navigator(
        resolve_domain,
        restore_session,
        timeout=timeout,
        on_fragment_write=writes.append if writes is not None else None,
    )


class TestNavigator(unittest.TestCase):
    """Async controller: concurrency, staleness, timeouts, re-evaluation."""

    def test_start_routes_after_both_resolvers(self) -> None:
        writes: list[str] = []
        nav = _navigator(ADMIN_DOMAIN, _principal("store"), writes=writes)
        decision = asyncio.run(nav.start("admin.acme.example", ""))
        self.assertEqual(decision.state, RouteState.OPERATOR_CONSOLE)
        self.assertEqual(nav.fragment, "admin")
        self.assertEqual(writes, ["admin"])

    def test_second_evaluation_does_not_rewrite_fragment(self) -> None:
        writes: list[str] = []
        nav = _navigator(ADMIN_DOMAIN, _principal("store"), writes=writes)
        asyncio.run(nav.start("admin.acme.example", ""))
        again = nav.on_fragment_change(nav.fragment)
        self.assertEqual(again.state, RouteState.OPERATOR_CONSOLE)
        self.assertEqual(writes, ["admin"])

    def test_back_navigation_to_empty_fragment_returns_to_console(self) -> None:
        nav = _navigator(ADMIN_DOMAIN, _principal("center"))
        asyncio.run(nav.start("admin.acme.example", "#admin"))
        decision = nav.on_fragment_change("")
        self.assertEqual(decision.state, RouteState.OPERATOR_CONSOLE)
        self.assertEqual(nav.fragment, "admin")

    def test_fragment_change_uses_current_principal(self) -> None:
        nav = _navigator(LOCAL, None)
        asyncio.run(nav.start("localhost", "#admin"))
        self.assertEqual(nav.state, RouteState.OPERATOR_LOGIN)
        nav.on_login_success(_principal("agency"))
        self.assertEqual(nav.state, RouteState.OPERATOR_CONSOLE)
        nav.on_logout()
        self.assertEqual(nav.on_fragment_change("#admin").state, RouteState.OPERATOR_LOGIN)

    def test_login_from_login_fragment_lands_in_console(self) -> None:
        writes: list[str] = []
        nav = _navigator(ADMIN_DOMAIN, None, writes=writes)
        asyncio.run(nav.start("admin.acme.example", "#admin/login"))
        self.assertEqual(nav.state, RouteState.OPERATOR_LOGIN)
        decision = nav.on_login_success(_principal("center"))
        self.assertEqual(decision.state, RouteState.OPERATOR_CONSOLE)
        self.assertEqual(nav.fragment, "admin")
        self.assertEqual(writes, ["admin"])

    def test_master_login_from_login_fragment_lands_in_master_console(self) -> None:
        nav = _navigator(LOCAL, None)
        asyncio.run(nav.start("localhost", "#admin/login"))
        self.assertEqual(nav.on_login_success(_principal("master")).state, RouteState.MASTER_CONSOLE)
        self.assertEqual(nav.fragment, "master")

    def test_denied_login_on_login_fragment_returns_to_login(self) -> None:
        nav = _navigator(ADMIN_DOMAIN, None)
        asyncio.run(nav.start("admin.acme.example", "#admin/login"))
        decision = nav.on_login_success(_principal("user"))
        self.assertEqual(decision.state, RouteState.OPERATOR_LOGIN)
        self.assertEqual(decision.reason, "insufficient permission")

    def test_timeout_goes_to_unavailable(self) -> None:
        nav = _navigator(LOCAL, None, domain_delay=0.5, timeout=0.05)
        decision = asyncio.run(nav.start("localhost", ""))
        self.assertEqual(decision.state, RouteState.UNAVAILABLE)

    def test_backend_error_goes_to_unavailable(self) -> None:
        nav = _navigator(None, None)
        decision = asyncio.run(nav.start("acme.example", ""))
        self.assertEqual(decision.state, RouteState.UNAVAILABLE)

    def test_stale_result_is_discarded(self) -> None:
        slow_admin = _navigator(ADMIN_DOMAIN, _principal("store"), domain_delay=0.1)

        async def scenario() -> tuple[RouteState, RouteState]:
            first = asyncio.create_task(slow_admin.start("admin.acme.example", ""))
            await asyncio.sleep(0.01)
            # A newer navigation starts before the first one lands.
            slow_admin._resolve_domain = _fast(UNMAPPED)
            second = await slow_admin.start("random.example", "")
            stale = await first
            return stale.state, second.state

        stale_state, second_state = asyncio.run(scenario())
        self.assertEqual(second_state, RouteState.NOT_FOUND)
        self.assertEqual(slow_admin.state, RouteState.NOT_FOUND)
        self.assertEqual(slow_admin.resolution, UNMAPPED)
        self.assertNotEqual(stale_state, RouteState.OPERATOR_CONSOLE)

    def test_fragment_change_while_pending_wins(self) -> None:
        nav = _navigator(LOCAL, _principal("master"), domain_delay=0.05)

        async def scenario() -> RouteState:
            task = asyncio.create_task(nav.start("localhost", ""))
            await asyncio.sleep(0)
            pending = nav.on_fragment_change("#admin/login")
            self.assertEqual(pending.state, RouteState.UNDETERMINED)
            return (await task).state

        self.assertEqual(asyncio.run(scenario()), RouteState.OPERATOR_LOGIN)

    def test_login_while_pending_is_not_overwritten_by_restore(self) -> None:
        nav = _navigator(LOCAL, None, session_delay=0.05)

        async def scenario() -> RouteState:
            task = asyncio.create_task(nav.start("localhost", "#admin"))
            await asyncio.sleep(0)
            nav.on_login_success(_principal("center"))
            return (await task).state

        self.assertEqual(asyncio.run(scenario()), RouteState.OPERATOR_CONSOLE)


def _fast(resolution: TenantResolution):
    async def resolve(host: str) -> TenantResolution:
        return resolution

    return resolve


if __name__ == "__main__":
    unittest.main()
