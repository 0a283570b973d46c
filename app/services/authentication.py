"""Credential exchange: email/password and federated identity, producing a Principal."""

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
from sqlalchemy.orm import Session

from app.core.security import hash_password, verify_stored_password
from app.models import User
from app.schemas.auth import Principal
from app.services.access_guard import DENY_REASON, is_role_allowed_for_domain

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."
PENDING_MESSAGE = "Your account is awaiting approval."
DISABLED_MESSAGE = "This account has been deactivated. Contact your administrator."


class AuthenticationError(Exception):
    """Base class for rejected credential exchanges; message is safe to show."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


class InvalidCredentialsError(AuthenticationError):
    """Unknown email or wrong password (deliberately indistinguishable)."""

    def __init__(self) -> None:
        super().__init__(INVALID_CREDENTIALS_MESSAGE)


class PendingApprovalError(AuthenticationError):
    def __init__(self) -> None:
        super().__init__(PENDING_MESSAGE)


class AccountDisabledError(AuthenticationError):
    """Suspended or blocked account."""

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(DISABLED_MESSAGE)


class DomainNotAllowedError(AuthenticationError):
    """The account is valid but its role may not sign in on this domain type."""

    def __init__(self) -> None:
        super().__init__(DENY_REASON)


class IdentityProviderError(AuthenticationError):
    """The federated identity provider is unconfigured, unreachable or rejected the token."""


def principal_from_user(user: User) -> Principal:
    return Principal(
        id=user.id,
        email=user.email,
        username=user.username,
        role=user.role,
        tenant_id=user.tenant_id,
        display_name=user.display_name,
    )


def _check_status(user: User) -> None:
    if user.status == "pending":
        raise PendingApprovalError()
    if user.status != "active":
        raise AccountDisabledError(user.status)


def _check_domain(role: str, domain_type: str | None) -> None:
    if not is_role_allowed_for_domain(role, domain_type):
        raise DomainNotAllowedError()


def authenticate_password(
    db: Session,
    email: str,
    password: str,
    settings: "Settings",
    *,
    domain_type: str | None = None,
) -> Principal:
    """
    Verify email/password against the users table.

    bcrypt digests are compared first; legacy plaintext values are accepted
    only while LEGACY_PLAINTEXT_LOGIN_ENABLED and are rewritten as bcrypt on
    success. Status and the domain gate (domain_type of the host the form was
    served from) are checked only after the password matches, so pending and
    disabled accounts are not disclosed to someone without the password.
    Nothing is written unless every check passes.
    """
    user = db.query(User).filter(User.email == email.strip()).first()
    if user is None:
        logger.info("Login rejected", extra={"cause": "invalid_credentials"})
        raise InvalidCredentialsError()

    matched, needs_upgrade = verify_stored_password(
        password,
        user.password_hash,
        allow_legacy=settings.LEGACY_PLAINTEXT_LOGIN_ENABLED,
    )
    if not matched:
        logger.info("Login rejected", extra={"cause": "invalid_credentials"})
        raise InvalidCredentialsError()
    try:
        _check_status(user)
        _check_domain(user.role, domain_type)
    except AuthenticationError as e:
        cause = "domain" if isinstance(e, DomainNotAllowedError) else user.status
        logger.info(
            "Login rejected",
            extra={"cause": cause, "user_id": user.id, "reason": e.message},
        )
        raise

    if needs_upgrade:
        user.password_hash = hash_password(password)
        logger.info("Legacy password upgraded to bcrypt", extra={"user_id": user.id})
    user.last_login_at = datetime.now(UTC)
    db.commit()
    return principal_from_user(user)


async def fetch_federated_identity(provider_token: str, settings: "Settings") -> dict[str, Any]:
    """
    Call the OIDC userinfo endpoint with the provider's access token.

    Returns the claims (must include sub and email). Raises IdentityProviderError.
    """
    if not settings.OIDC_USERINFO_URL:
        raise IdentityProviderError("Federated login is not configured (OIDC_USERINFO_URL).")
    timeout = httpx.Timeout(settings.OIDC_REQUEST_TIMEOUT_SEC)
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(
                settings.OIDC_USERINFO_URL,
                headers={"Authorization": f"Bearer {provider_token}"},
            )
    except httpx.TimeoutException as e:
        raise IdentityProviderError("Identity provider timed out.", cause=e) from e
    except httpx.HTTPError as e:
        raise IdentityProviderError("Identity provider is unreachable.", cause=e) from e

    if response.status_code in (401, 403):
        raise InvalidCredentialsError()
    if response.status_code != 200:
        raise IdentityProviderError(
            f"Identity provider returned status {response.status_code}."
        )
    try:
        claims = response.json()
    except ValueError as e:
        raise IdentityProviderError("Identity provider returned invalid JSON.", cause=e) from e
    if not isinstance(claims, dict) or not claims.get("sub") or not claims.get("email"):
        raise IdentityProviderError("Identity provider response lacks sub or email.")
    return claims


def link_federated_identity(
    db: Session,
    claims: dict[str, Any],
    *,
    domain_type: str | None = None,
) -> Principal:
    """
    Find the account for a provider subject, linking by email on first use,
    or create a member account when neither exists.

    Status and domain checks run before the subject is linked or an account
    is created, so a refused login leaves the users table untouched.
    """
    subject = str(claims["sub"])
    email = str(claims["email"]).strip()

    user = db.query(User).filter(User.auth_subject == subject).first()
    if user is None:
        user = db.query(User).filter(User.email == email).first()
        if user is not None:
            _check_status(user)
            _check_domain(user.role, domain_type)
            user.auth_subject = subject
    if user is None:
        _check_domain("user", domain_type)
        name = claims.get("name") or email.split("@")[0]
        user = User(
            email=email,
            username=name,
            role="user",
            status="active",
            auth_subject=subject,
        )
        db.add(user)
        logger.info("Created member account from federated login", extra={"email_domain": email.split("@")[-1]})

    _check_status(user)
    _check_domain(user.role, domain_type)
    user.last_login_at = datetime.now(UTC)
    db.commit()
    return principal_from_user(user)


async def authenticate_federated(
    db: Session,
    provider_token: str,
    settings: "Settings",
    *,
    domain_type: str | None = None,
) -> Principal:
    """Exchange a provider token for a Principal."""
    claims = await fetch_federated_identity(provider_token, settings)
    return link_federated_identity(db, claims, domain_type=domain_type)


def load_principal(db: Session, user_id: str) -> Principal | None:
    """Canonical principal from the users table; None when missing or not active."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or user.status != "active":
        return None
    return principal_from_user(user)
