"""Tenant directory: which center owns the host a request arrived on."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy.orm import Session

from app.models import DomainMapping, User
from app.models.domain_mapping import DOMAIN_TYPES

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

ResolutionKind = Literal["mapped", "local", "not_found"]


class DomainConflictError(Exception):
    """Raised when provisioning would give a domain or a tenant slot two active mappings."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DomainNotFoundError(Exception):
    """Raised when a management call names a domain or tenant that does not exist."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class TenantResolution:
    """
    Result of resolving a host.

    kind 'local' means a development or preview host: no tenant and no mapping,
    served as the public surface. 'not_found' must render the not-found page.
    """

    kind: ResolutionKind
    domain: str
    tenant_id: str | None = None
    tenant_name: str | None = None
    domain_type: str | None = None

    @property
    def found(self) -> bool:
        return self.kind != "not_found"


def host_from_header(host_header: str | None) -> str:
    """Strip the port from an HTTP Host header value. IPv6 literals keep their brackets."""
    if not host_header:
        return ""
    host = host_header.strip()
    if host.startswith("["):
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    return host.split(":", 1)[0]


def is_local_host(domain: str, settings: "Settings") -> bool:
    """True for dev hosts and design-preview hosts that never carry a mapping."""
    if domain in settings.LOCAL_HOSTS:
        return True
    return any(
        domain.endswith(suffix) or domain == suffix.lstrip(".")
        for suffix in settings.PREVIEW_HOST_SUFFIXES
    )


def _is_well_formed(domain: str) -> bool:
    return bool(domain) and ":" not in domain and not domain.endswith(".") and " " not in domain


class TenantDirectory:
    """Domain -> tenant lookups and domain provisioning for centers."""

    def __init__(self, db: Session, settings: "Settings") -> None:
        self.db = db
        self.settings = settings

    def resolve(self, domain: str) -> TenantResolution:
        """
        Exact, case-sensitive lookup of an active mapping.

        Local and preview hosts short-circuit without a query.
        """
        if domain and is_local_host(domain, self.settings):
            logger.debug("Local host %s; skipping domain lookup", domain)
            return TenantResolution(kind="local", domain=domain)
        if not _is_well_formed(domain):
            logger.info("Malformed host rejected", extra={"domain": domain[:253]})
            return TenantResolution(kind="not_found", domain=domain)

        row = (
            self.db.query(DomainMapping, User)
            .join(User, User.id == DomainMapping.tenant_id)
            .filter(
                DomainMapping.domain == domain,
                DomainMapping.is_active.is_(True),
                User.role == "center",
            )
            .first()
        )
        if row is None:
            logger.info("No active domain mapping", extra={"domain": domain})
            return TenantResolution(kind="not_found", domain=domain)

        mapping, center = row
        return TenantResolution(
            kind="mapped",
            domain=domain,
            tenant_id=mapping.tenant_id,
            tenant_name=center.display_name or "Unnamed Center",
            domain_type=mapping.domain_type,
        )

    def list_for_tenant(self, tenant_id: str) -> list[DomainMapping]:
        """All mappings owned by a tenant, active or retired."""
        return (
            self.db.query(DomainMapping)
            .filter(DomainMapping.tenant_id == tenant_id)
            .order_by(DomainMapping.domain_type, DomainMapping.domain)
            .all()
        )

    def list_all(self) -> list[DomainMapping]:
        return self.db.query(DomainMapping).order_by(DomainMapping.created_at.desc()).all()

    def _get_center(self, tenant_id: str) -> User:
        center = (
            self.db.query(User)
            .filter(User.id == tenant_id, User.role == "center")
            .first()
        )
        if center is None:
            raise DomainNotFoundError("Center not found.")
        return center

    def _bind(self, tenant_id: str, domain: str, domain_type: str) -> DomainMapping:
        """Activate domain for the tenant without committing; reuses a retired row."""
        mapping = self.db.query(DomainMapping).filter(DomainMapping.domain == domain).first()
        if mapping is not None:
            if mapping.is_active:
                raise DomainConflictError(f"Domain is already mapped: {domain}")
            mapping.tenant_id = tenant_id
            mapping.domain_type = domain_type
            mapping.is_active = True
        else:
            mapping = DomainMapping(
                domain=domain,
                tenant_id=tenant_id,
                domain_type=domain_type,
                is_active=True,
            )
            self.db.add(mapping)
        return mapping

    def provision(self, tenant_id: str, domain: str, domain_type: str) -> DomainMapping:
        """
        Bind a domain to a tenant.

        A retired mapping for the same domain is reused. Raises DomainConflictError
        if the domain is already active, or the tenant already has an active
        mapping of this type.
        """
        domain = domain.strip()
        if not _is_well_formed(domain):
            raise DomainConflictError("Domain must be a bare host name (no port, no trailing dot).")
        if domain_type not in DOMAIN_TYPES:
            raise DomainConflictError(f"Unknown domain type: {domain_type}")
        self._get_center(tenant_id)

        existing_slot = (
            self.db.query(DomainMapping)
            .filter(
                DomainMapping.tenant_id == tenant_id,
                DomainMapping.domain_type == domain_type,
                DomainMapping.is_active.is_(True),
            )
            .first()
        )
        if existing_slot is not None and existing_slot.domain != domain:
            raise DomainConflictError(
                f"Tenant already has an active {domain_type} domain: {existing_slot.domain}"
            )

        mapping = self._bind(tenant_id, domain, domain_type)
        self.db.commit()
        logger.info(
            "Domain provisioned",
            extra={"domain": domain, "tenant_id": tenant_id, "domain_type": domain_type},
        )
        return mapping

    def replace(self, tenant_id: str, new_domain: str) -> list[DomainMapping]:
        """
        Move a tenant to new_domain: the main app on new_domain and the operator
        consoles on admin.<new_domain>.

        Every active mapping of the tenant is retired and the new pair bound in
        one commit; nothing changes if either new host is already in use.
        """
        new_domain = new_domain.strip()
        if not _is_well_formed(new_domain):
            raise DomainConflictError("Domain must be a bare host name (no port, no trailing dot).")
        self._get_center(tenant_id)
        pair = [(new_domain, "main"), (f"admin.{new_domain}", "admin")]

        taken = (
            self.db.query(DomainMapping.domain)
            .filter(
                DomainMapping.domain.in_([domain for domain, _ in pair]),
                DomainMapping.is_active.is_(True),
            )
            .first()
        )
        if taken is not None:
            raise DomainConflictError(f"Domain is already mapped: {taken.domain}")

        retired = (
            self.db.query(DomainMapping)
            .filter(DomainMapping.tenant_id == tenant_id, DomainMapping.is_active.is_(True))
            .all()
        )
        for mapping in retired:
            mapping.is_active = False
        # Retire before binding so the one-active-per-type index never sees two rows.
        self.db.flush()
        mappings = [self._bind(tenant_id, domain, domain_type) for domain, domain_type in pair]
        self.db.commit()
        logger.info(
            "Tenant domains replaced",
            extra={
                "tenant_id": tenant_id,
                "domain": new_domain,
                "retired_domains": [m.domain for m in retired],
            },
        )
        return mappings

    def deactivate(self, domain: str, tenant_id: str | None = None) -> DomainMapping:
        """Retire a mapping. tenant_id, when given, must own it."""
        query = self.db.query(DomainMapping).filter(DomainMapping.domain == domain)
        if tenant_id is not None:
            query = query.filter(DomainMapping.tenant_id == tenant_id)
        mapping = query.first()
        if mapping is None:
            raise DomainNotFoundError(f"Domain not found: {domain}")
        if mapping.is_active:
            mapping.is_active = False
            self.db.commit()
            logger.info("Domain deactivated", extra={"domain": domain})
        return mapping
