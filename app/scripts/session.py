"""
Operator session from the command line, cached in SESSION_CACHE_PATH. Run from project root:
  python -m app.scripts.session login EMAIL PASSWORD
  python -m app.scripts.session whoami
  python -m app.scripts.session route HOST [FRAGMENT]
  python -m app.scripts.session logout
"""
import argparse
import asyncio
import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.schemas.auth import Principal
from app.services.authentication import (
    AuthenticationError,
    authenticate_password,
    load_principal,
)
from app.services.hierarchy import HierarchyResolver, SqlUserLookup
from app.services.navigation import Navigator
from app.services.session_store import FileSessionStorage, SessionStore
from app.services.tenant_directory import TenantDirectory, TenantResolution

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)


def _login(store: SessionStore, db, email: str, password: str) -> int:
    settings = get_settings()

    async def authenticator(credential: tuple[str, str]) -> Principal:
        return authenticate_password(db, credential[0], credential[1], settings)

    try:
        principal = asyncio.run(store.authenticate(authenticator, (email, password)))
    except AuthenticationError as e:
        print(e.message, file=sys.stderr)
        return 1
    print(f"Logged in as {principal.email} ({principal.role}).")
    return 0


def _whoami(store: SessionStore, db) -> int:
    if store.restore() is None:
        print("Not logged in.", file=sys.stderr)
        return 1

    async def loader(user_id: str) -> Principal | None:
        return load_principal(db, user_id)

    principal = asyncio.run(store.refresh(loader))
    if principal is None:
        print("Session expired: the account is gone or no longer active.", file=sys.stderr)
        return 1
    visible = store.visible_ids(HierarchyResolver(SqlUserLookup(db)))
    print(f"{principal.email} role={principal.role} tenant={principal.tenant_id or '-'}")
    print(f"Visible accounts: {len(visible)}{'' if visible.complete else ' (partial)'}")
    return 0


def _route(store: SessionStore, db, host: str, fragment: str) -> int:
    settings = get_settings()

    async def resolve_domain(domain: str) -> TenantResolution:
        return TenantDirectory(db, settings).resolve(domain)

    async def restore_session() -> Principal | None:
        return store.restore()

    navigator = Navigator(resolve_domain, restore_session, timeout=settings.RESOLVER_TIMEOUT_SEC)
    decision = asyncio.run(navigator.start(host, fragment))
    print(f"{decision.state.value} #{decision.fragment}" + (f" ({decision.reason})" if decision.reason else ""))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Tenantgate operator session.")
    sub = parser.add_subparsers(dest="command", required=True)
    login = sub.add_parser("login", help="Log in and cache the session")
    login.add_argument("email")
    login.add_argument("password")
    sub.add_parser("whoami", help="Refresh the cached session and show it")
    route = sub.add_parser("route", help="Which surface HOST#FRAGMENT renders for this session")
    route.add_argument("host")
    route.add_argument("fragment", nargs="?", default="")
    sub.add_parser("logout", help="Forget the cached session")
    args = parser.parse_args()

    store = SessionStore(FileSessionStorage(get_settings().SESSION_CACHE_PATH))
    if args.command == "logout":
        store.clear()
        print("Logged out.")
        return 0

    db = SessionLocal()
    try:
        if args.command == "login":
            return _login(store, db, args.email, args.password)
        if args.command == "whoami":
            return _whoami(store, db)
        return _route(store, db, args.host, args.fragment)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
