"""
Session store: the single owner of the current Principal.

The persisted copy is a cache for optimistic first render only. Anything that
grants access must go through refresh() (or the API's canonical lookup), which
re-reads the users table.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol

import jwt
from pydantic import ValidationError

from app.core.security import decode_access_token
from app.schemas.auth import Principal
from app.services.hierarchy import HierarchyResolver, VisibleIdentifierSet

logger = logging.getLogger(__name__)

SESSION_KEY = "user"


class SessionStorageError(Exception):
    """Raised by a storage backend that cannot read or write (e.g. storage disabled)."""


class SessionStorage(Protocol):
    """Key/value persistence for the serialized principal. Failures raise SessionStorageError."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemorySessionStorage:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileSessionStorage:
    """JSON object on disk, one entry per key."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        try:
            if not self.path.exists():
                return {}
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise SessionStorageError(f"Cannot read {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, str]) -> None:
        try:
            self.path.write_text(json.dumps(data), encoding="utf-8")
        except OSError as e:
            raise SessionStorageError(f"Cannot write {self.path}: {e}") from e

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


class BearerTokenStorage:
    """
    Read-only view of a JWT sent by the browser.

    The client persists the token; the server only ever restores from it.
    """

    def __init__(self, token: str | None) -> None:
        self.token = token

    def get(self, key: str) -> str | None:
        if key != SESSION_KEY or not self.token:
            return None
        try:
            payload = decode_access_token(self.token)
        except jwt.PyJWTError as e:
            raise SessionStorageError("Invalid or expired token") from e
        return json.dumps(payload, default=str)

    def set(self, key: str, value: str) -> None:
        """No-op: the token is issued by the login route and kept by the client."""

    def remove(self, key: str) -> None:
        self.token = None


Authenticator = Callable[[Any], Awaitable[Principal]]
PrincipalLoader = Callable[[str], Awaitable[Principal | None]]


class SessionStore:
    """Create, restore, refresh and destroy the session principal."""

    def __init__(self, storage: SessionStorage) -> None:
        self.storage = storage
        self._principal: Principal | None = None
        self._visible: VisibleIdentifierSet | None = None

    @property
    def principal(self) -> Principal | None:
        return self._principal

    async def authenticate(self, authenticator: Authenticator, credential: Any) -> Principal:
        """Run a credential exchange; on success the principal replaces any previous one."""
        principal = await authenticator(credential)
        self._set(principal)
        return principal

    def restore(self) -> Principal | None:
        """
        Rehydrate from storage without re-verifying credentials.

        Storage failures and corrupt entries mean "no session", never an error.
        """
        try:
            raw = self.storage.get(SESSION_KEY)
        except SessionStorageError as e:
            logger.warning("Session storage unavailable; fresh login required: %s", e)
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
            principal = (
                Principal.from_claims(data) if "sub" in data else Principal.model_validate(data)
            )
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.warning("Discarding unreadable cached session: %s", e)
            self._safe_remove()
            return None
        self._principal = principal
        self._visible = None
        return principal

    async def refresh(self, loader: PrincipalLoader) -> Principal | None:
        """Replace the principal with the canonical row; clears the session if it is gone."""
        if self._principal is None:
            return None
        fresh = await loader(self._principal.id)
        if fresh is None:
            self.clear()
            return None
        self._set(fresh)
        return fresh

    def clear(self) -> None:
        self._principal = None
        self._visible = None
        self._safe_remove()

    def visible_ids(self, resolver: HierarchyResolver) -> VisibleIdentifierSet | None:
        """
        Expansion for the current principal, computed once per session.

        Partial results are returned but not cached, so the next call retries.
        """
        if self._principal is None:
            return None
        if self._visible is not None:
            return self._visible
        visible = resolver.expand(self._principal.id, self._principal.role)
        if visible.complete:
            self._visible = visible
        return visible

    def _set(self, principal: Principal) -> None:
        self._principal = principal
        self._visible = None
        try:
            self.storage.set(SESSION_KEY, principal.model_dump_json())
        except SessionStorageError as e:
            logger.warning("Could not persist session; it will not survive reload: %s", e)

    def _safe_remove(self) -> None:
        try:
            self.storage.remove(SESSION_KEY)
        except SessionStorageError as e:
            logger.warning("Could not clear cached session: %s", e)
