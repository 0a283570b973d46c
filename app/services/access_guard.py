"""Access guard: role vs domain type, and role vs requested surface. Pure functions."""

from dataclasses import dataclass
from typing import Literal

from app.models.user import MEMBER_ROLE, OPERATOR_ROLES
from app.schemas.auth import Principal

Surface = Literal["public", "operator", "master"]

# Redirect targets are navigation states (see app.services.navigation.RouteState values).
OPERATOR_LOGIN = "operator_login"
PUBLIC_LOGIN = "public_app"

DENY_REASON = "insufficient permission"

# Roles admitted on each domain type. Master may use operator domains,
# but only reaches its console through the explicit master surface.
DOMAIN_ROLES: dict[str, frozenset[str]] = {
    "main": frozenset({MEMBER_ROLE}),
    "admin": OPERATOR_ROLES | {"master"},
}


@dataclass(frozen=True)
class Allow:
    allowed: Literal[True] = True


@dataclass(frozen=True)
class Deny:
    """redirect is the credential-entry surface for the current domain type."""

    reason: str
    redirect: str
    allowed: Literal[False] = False


Decision = Allow | Deny


def login_surface_for(domain_type: str | None, surface: Surface) -> str:
    """Where to send a denied visitor to sign in."""
    if surface in ("operator", "master") or domain_type == "admin":
        return OPERATOR_LOGIN
    return PUBLIC_LOGIN


def is_role_allowed_for_domain(role: str, domain_type: str | None) -> bool:
    """Unmapped (local/preview) hosts carry no domain restriction."""
    if domain_type is None:
        return True
    return role in DOMAIN_ROLES.get(domain_type, frozenset())


def authorize(
    principal: Principal | None,
    domain_type: str | None,
    surface: Surface,
) -> Decision:
    """
    Decide whether principal may see surface on a domain of domain_type.

    Never changes the principal. Denials carry the same reason regardless of
    which rule failed.
    """
    redirect = login_surface_for(domain_type, surface)

    if principal is None:
        # Anonymous visitors only get the public app, and not on operator domains.
        if surface == "public" and domain_type != "admin":
            return Allow()
        return Deny(reason=DENY_REASON, redirect=redirect)

    if not is_role_allowed_for_domain(principal.role, domain_type):
        return Deny(reason=DENY_REASON, redirect=redirect)

    if surface == "master" and principal.role != "master":
        return Deny(reason=DENY_REASON, redirect=redirect)
    if surface == "operator" and principal.role not in OPERATOR_ROLES:
        return Deny(reason=DENY_REASON, redirect=redirect)
    return Allow()
