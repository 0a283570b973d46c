"""Create domain_mappings table: host name -> owning center and audience.

Revision ID: 20260301100000
Revises: 20260301000000
Create Date: 2026-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "20260301100000"
down_revision: Union[str, None] = "20260301000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "domain_mappings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("domain", sa.String(length=253), nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("domain_type", sa.String(length=16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tenant_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("domain_type IN ('main', 'admin')", name="ck_domain_mappings_type"),
    )
    op.create_index(op.f("ix_domain_mappings_domain"), "domain_mappings", ["domain"], unique=True)
    op.create_index(op.f("ix_domain_mappings_tenant_id"), "domain_mappings", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_domain_mappings_is_active"), "domain_mappings", ["is_active"], unique=False)
    # One active mapping per audience per tenant.
    op.create_index(
        "uq_domain_mappings_tenant_type_active",
        "domain_mappings",
        ["tenant_id", "domain_type"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )


def downgrade() -> None:
    op.drop_index("uq_domain_mappings_tenant_type_active", table_name="domain_mappings")
    op.drop_index(op.f("ix_domain_mappings_is_active"), table_name="domain_mappings")
    op.drop_index(op.f("ix_domain_mappings_tenant_id"), table_name="domain_mappings")
    op.drop_index(op.f("ix_domain_mappings_domain"), table_name="domain_mappings")
    op.drop_table("domain_mappings")
