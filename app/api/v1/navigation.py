"""Navigation endpoint: which surface the single-page app should render."""

from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.api.v1.auth import get_optional_token
from app.api.v1.domains import resolution_response
from app.core.config import get_settings
from app.core.database import get_session_factory
from app.schemas.auth import Principal
from app.schemas.navigation import NavigationRequest, NavigationResponse
from app.services.navigation import Navigator
from app.services.session_store import BearerTokenStorage, SessionStore
from app.services.tenant_directory import TenantDirectory, TenantResolution, host_from_header

router = APIRouter()


@router.post("", response_model=NavigationResponse)
async def navigate(
    body: NavigationRequest,
    request: Request,
    token: Annotated[str | None, Depends(get_optional_token)],
    session_factory: Annotated[Callable[[], Session], Depends(get_session_factory)],
) -> NavigationResponse:
    """
    Run the route table for the caller's host and fragment.

    The bearer token is restored optimistically (not re-verified against the
    database); it only decides what to render. Data endpoints re-check the
    canonical account.
    """
    settings = get_settings()
    host = body.host if body.host is not None else host_from_header(request.headers.get("host"))

    def _resolve_sync(domain: str) -> TenantResolution:
        db = session_factory()
        try:
            return TenantDirectory(db, settings).resolve(domain)
        finally:
            db.close()

    async def resolve_domain(domain: str) -> TenantResolution:
        return await run_in_threadpool(_resolve_sync, domain)

    store = SessionStore(BearerTokenStorage(token))

    async def restore_session() -> Principal | None:
        return store.restore()

    navigator = Navigator(
        resolve_domain,
        restore_session,
        timeout=settings.RESOLVER_TIMEOUT_SEC,
    )
    decision = await navigator.start(host, body.fragment)
    return NavigationResponse(
        state=decision.state.value,
        fragment=f"#{decision.fragment}" if decision.fragment else "",
        write_fragment=decision.write_fragment,
        reason=decision.reason,
        domain=resolution_response(navigator.resolution) if navigator.resolution else None,
    )
