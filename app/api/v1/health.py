"""Health check: database reachability plus the auth features this instance has enabled."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import check_db_connected, get_db
from app.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(db: Annotated[Session, Depends(get_db)]) -> HealthResponse:
    """
    Report 'degraded' when the database is down: domain resolution and
    login both depend on it. Used by load balancers and monitoring.
    """
    settings = get_settings()
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        environment=settings.APP_ENV,
        database="connected" if connected else "disconnected",
        federated_login="configured" if settings.OIDC_USERINFO_URL else "disabled",
        legacy_passwords=settings.LEGACY_PLAINTEXT_LOGIN_ENABLED,
    )
