"""Restrict deleting a center that still owns domain mappings (was CASCADE).

Revision ID: 20260315000000
Revises: 20260301100000
Create Date: 2026-03-15

"""
from typing import Sequence, Union

from alembic import op

revision: str = "20260315000000"
down_revision: Union[str, None] = "20260301100000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.drop_constraint("domain_mappings_tenant_id_fkey", "domain_mappings", type_="foreignkey")
    op.create_foreign_key(
        "fk_domain_mappings_tenant_id_users",
        "domain_mappings",
        "users",
        ["tenant_id"],
        ["id"],
        ondelete="RESTRICT",
    )


def downgrade() -> None:
    op.drop_constraint("fk_domain_mappings_tenant_id_users", "domain_mappings", type_="foreignkey")
    op.create_foreign_key(
        "domain_mappings_tenant_id_fkey",
        "domain_mappings",
        "users",
        ["tenant_id"],
        ["id"],
        ondelete="CASCADE",
    )
