"""Pydantic request/response schemas."""

from app.schemas.accounts import (
    AccountItem,
    AccountsListResponse,
    CreateAccountRequest,
    EmailAvailabilityResponse,
    ResetPasswordRequest,
    StatusUpdateRequest,
)
from app.schemas.auth import (
    FederatedLoginRequest,
    LoginRequest,
    Principal,
    TokenResponse,
)
from app.schemas.domains import (
    DomainItem,
    DomainResolutionResponse,
    DomainsListResponse,
    ProvisionDomainRequest,
    ReplaceDomainRequest,
)
from app.schemas.health import HealthResponse
from app.schemas.navigation import NavigationRequest, NavigationResponse

__all__ = [
    "AccountItem",
    "AccountsListResponse",
    "CreateAccountRequest",
    "DomainItem",
    "DomainResolutionResponse",
    "DomainsListResponse",
    "EmailAvailabilityResponse",
    "FederatedLoginRequest",
    "HealthResponse",
    "LoginRequest",
    "NavigationRequest",
    "NavigationResponse",
    "Principal",
    "ProvisionDomainRequest",
    "ReplaceDomainRequest",
    "ResetPasswordRequest",
    "StatusUpdateRequest",
    "TokenResponse",
]
