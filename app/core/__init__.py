"""Settings, database sessions and credential helpers shared by routes and scripts."""

from app.core.config import Settings, get_settings, settings
from app.core.database import get_db, get_session_factory

__all__ = ["Settings", "get_db", "get_session_factory", "get_settings", "settings"]
