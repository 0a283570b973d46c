"""ORM model for platform accounts (every role lives in one table)."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, func

from app.models.base import Base

ROLES = ("master", "agency", "center", "store", "admin", "user")
OPERATOR_ROLES = frozenset({"center", "agency", "store", "admin"})
MEMBER_ROLE = "user"

STATUSES = ("active", "suspended", "blocked", "pending")


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Account row for members and every operator tier.

    parent_id points at the account that created this one
    (master -> agency -> center -> store -> user). tenant_id names the
    center whose data this account belongs to; a center is its own tenant.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "role IN ('master', 'agency', 'center', 'store', 'admin', 'user')",
            name="ck_users_role",
        ),
        CheckConstraint(
            "status IN ('active', 'suspended', 'blocked', 'pending')",
            name="ck_users_status",
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    username = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False, default=MEMBER_ROLE, index=True)
    parent_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    tenant_id = Column(String(36), nullable=True, index=True)
    status = Column(String(32), nullable=False, default="active")
    # bcrypt digest, or a legacy plaintext value until run_password_migration rewrites it
    password_hash = Column(String(255), nullable=True)
    auth_subject = Column(String(255), nullable=True, unique=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    last_login_at = Column(DateTime(timezone=True), nullable=True)
