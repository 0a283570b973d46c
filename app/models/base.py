"""SQLAlchemy declarative Base shared by the account and domain tables."""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Matches the op.f() index names used in alembic/versions.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
