"""Login endpoints and auth dependencies (get_current_principal, require_roles, get_scope)."""

import logging
from collections.abc import Callable
from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.security import create_access_token, decode_access_token
from app.schemas.auth import FederatedLoginRequest, LoginRequest, Principal, TokenResponse
from app.services.access_guard import DENY_REASON
from app.services.authentication import (
    AccountDisabledError,
    AuthenticationError,
    DomainNotAllowedError,
    IdentityProviderError,
    InvalidCredentialsError,
    PendingApprovalError,
    authenticate_federated,
    authenticate_password,
    load_principal,
)
from app.services.hierarchy import HierarchyResolver, SqlUserLookup, VisibleIdentifierSet
from app.services.tenant_directory import TenantDirectory

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)


def _auth_error_to_http(e: AuthenticationError) -> HTTPException:
    if isinstance(e, InvalidCredentialsError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    if isinstance(e, (PendingApprovalError, AccountDisabledError, DomainNotAllowedError)):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    if isinstance(e, IdentityProviderError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)


def _login_domain_type(db: Session, domain: str | None) -> str | None:
    """Domain type of the host the login form was served from; 404 when it is unmapped."""
    if not domain:
        return None
    resolution = TenantDirectory(db, get_settings()).resolve(domain)
    if resolution.kind == "not_found":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown domain.")
    return resolution.domain_type


def _issue(principal: Principal) -> TokenResponse:
    token = create_access_token(principal.to_claims())
    return TokenResponse(access_token=token, token_type="bearer", principal=principal)


@router.post("", response_model=TokenResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """
    Authenticate with email and password; returns a JWT access token and the principal.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    domain_type = _login_domain_type(db, body.domain)
    try:
        principal = authenticate_password(
            db, body.email, body.password, get_settings(), domain_type=domain_type
        )
    except AuthenticationError as e:
        raise _auth_error_to_http(e) from e
    return _issue(principal)


@router.post("/federated", response_model=TokenResponse)
async def login_federated(
    body: FederatedLoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """Exchange an identity-provider access token; first-time subjects become member accounts."""
    domain_type = _login_domain_type(db, body.domain)
    try:
        principal = await authenticate_federated(
            db, body.provider_token, get_settings(), domain_type=domain_type
        )
    except AuthenticationError as e:
        if isinstance(e, IdentityProviderError):
            logger.error("Federated login failed", extra={"reason": e.message[:500]})
        raise _auth_error_to_http(e) from e
    return _issue(principal)


def get_optional_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str | None:
    return credentials.credentials if credentials is not None else None


def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> Principal:
    """
    Dependency: require a valid Bearer JWT and return the canonical principal.

    The token only names the account; role, tenant and status are re-read from
    the users table. Raises 401 if missing, invalid, deleted or no longer active.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    principal = load_principal(db, str(sub))
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_roles(*roles: str) -> Callable[[Principal], Principal]:
    """Dependency factory: 403 unless the canonical role is one of roles."""

    def dependency(
        current: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if current.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=DENY_REASON)
        return current

    return dependency


def get_scope(
    current: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[Session, Depends(get_db)],
) -> VisibleIdentifierSet:
    """Dependency: ids the caller may read or manage."""
    return HierarchyResolver(SqlUserLookup(db)).expand(current.id, current.role)


@router.get("/me", response_model=Principal)
def me(current: Annotated[Principal, Depends(get_current_principal)]) -> Principal:
    """Canonical principal; clients call this to refresh their cached copy."""
    return current
