"""Schemas for tenant domain resolution and management."""

from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.auth import DomainType


class DomainResolutionResponse(BaseModel):
    """Outcome of looking up a host name."""

    kind: Literal["mapped", "local", "not_found"]
    domain: str
    tenant_id: str | None = None
    tenant_name: str | None = None
    domain_type: DomainType | None = None


class ProvisionDomainRequest(BaseModel):
    domain: str = Field(..., min_length=1, max_length=253)
    domain_type: DomainType
    tenant_id: str | None = Field(
        default=None,
        description="Owning center; defaults to the caller's tenant. Master may set any center.",
    )


class ReplaceDomainRequest(BaseModel):
    """Move a tenant to a new main domain; the admin host becomes admin.<domain>."""

    domain: str = Field(..., min_length=1, max_length=247)
    tenant_id: str | None = Field(
        default=None,
        description="Owning center; defaults to the caller's tenant. Master must set it.",
    )


class DomainItem(BaseModel):
    id: str
    domain: str
    tenant_id: str
    domain_type: DomainType
    is_active: bool

    class Config:
        from_attributes = True


class DomainsListResponse(BaseModel):
    domains: list[DomainItem]
