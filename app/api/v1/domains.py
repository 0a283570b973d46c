"""Domain resolution (public) and tenant domain management (center and master)."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.api.v1.auth import require_roles
from app.core.config import get_settings
from app.core.database import get_db
from app.schemas.auth import Principal
from app.schemas.domains import (
    DomainItem,
    DomainResolutionResponse,
    DomainsListResponse,
    ProvisionDomainRequest,
    ReplaceDomainRequest,
)
from app.services.tenant_directory import (
    DomainConflictError,
    DomainNotFoundError,
    TenantDirectory,
    TenantResolution,
    host_from_header,
)

router = APIRouter()


def resolution_response(resolution: TenantResolution) -> DomainResolutionResponse:
    return DomainResolutionResponse(
        kind=resolution.kind,
        domain=resolution.domain,
        tenant_id=resolution.tenant_id,
        tenant_name=resolution.tenant_name,
        domain_type=resolution.domain_type,
    )


def _tenant_for(principal: Principal, requested: str | None) -> str:
    """Centers manage their own tenant only; master names the tenant explicitly."""
    if principal.role == "master":
        if not requested:
            raise HTTPException(status_code=422, detail="tenant_id is required for master.")
        return requested
    if not principal.tenant_id or (requested and requested != principal.tenant_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient permission")
    return principal.tenant_id


@router.get("/resolve", response_model=DomainResolutionResponse)
def resolve_domain(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    host: Annotated[str | None, Query(max_length=253)] = None,
) -> DomainResolutionResponse:
    """Which tenant owns host (default: this request's Host header), and for which audience."""
    domain = host if host is not None else host_from_header(request.headers.get("host"))
    return resolution_response(TenantDirectory(db, get_settings()).resolve(domain))


@router.get("", response_model=DomainsListResponse)
def list_domains(
    current: Annotated[Principal, Depends(require_roles("master", "center"))],
    db: Annotated[Session, Depends(get_db)],
    tenant_id: str | None = None,
) -> DomainsListResponse:
    directory = TenantDirectory(db, get_settings())
    if current.role == "master" and tenant_id is None:
        mappings = directory.list_all()
    else:
        mappings = directory.list_for_tenant(_tenant_for(current, tenant_id))
    return DomainsListResponse(domains=[DomainItem.model_validate(m) for m in mappings])


@router.post("", response_model=DomainItem, status_code=status.HTTP_201_CREATED)
def provision_domain(
    body: ProvisionDomainRequest,
    current: Annotated[Principal, Depends(require_roles("master", "center"))],
    db: Annotated[Session, Depends(get_db)],
) -> DomainItem:
    tenant_id = _tenant_for(current, body.tenant_id)
    try:
        mapping = TenantDirectory(db, get_settings()).provision(
            tenant_id, body.domain, body.domain_type
        )
    except DomainNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except DomainConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    return DomainItem.model_validate(mapping)


@router.put("", response_model=DomainsListResponse)
def replace_domains(
    body: ReplaceDomainRequest,
    current: Annotated[Principal, Depends(require_roles("master", "center"))],
    db: Annotated[Session, Depends(get_db)],
) -> DomainsListResponse:
    """Move the tenant to body.domain and admin.<body.domain>, retiring its current mappings."""
    tenant_id = _tenant_for(current, body.tenant_id)
    try:
        mappings = TenantDirectory(db, get_settings()).replace(tenant_id, body.domain)
    except DomainNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except DomainConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    return DomainsListResponse(domains=[DomainItem.model_validate(m) for m in mappings])


@router.delete("/{domain}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_domain(
    domain: str,
    current: Annotated[Principal, Depends(require_roles("master", "center"))],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Retire a mapping; the row is kept for history and can be re-provisioned."""
    owner = None if current.role == "master" else _tenant_for(current, None)
    try:
        TenantDirectory(db, get_settings()).deactivate(domain, tenant_id=owner)
    except DomainNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
