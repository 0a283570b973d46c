"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.domain_mapping import DomainMapping
from app.models.user import User

__all__ = ["Base", "DomainMapping", "User"]
