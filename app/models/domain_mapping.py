"""ORM model binding a network domain to the tenant (center) that owns it."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    func,
    text,
)

from app.models.base import Base
from app.models.user import new_id

DOMAIN_TYPES = ("main", "admin")


class DomainMapping(Base):
    """
    One host name served for a tenant.

    domain_type 'main' serves the public member app, 'admin' the operator
    consoles. Retired mappings are deactivated, not deleted, and the owning
    center cannot be deleted while any mapping (active or retired) points at it.
    """

    __tablename__ = "domain_mappings"
    __table_args__ = (
        CheckConstraint("domain_type IN ('main', 'admin')", name="ck_domain_mappings_type"),
        # One active mapping per audience per tenant.
        Index(
            "uq_domain_mappings_tenant_type_active",
            "tenant_id",
            "domain_type",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    domain = Column(String(253), nullable=False, unique=True, index=True)
    tenant_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    domain_type = Column(String(16), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
