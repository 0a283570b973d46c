"""
Hierarchy expansion: the set of account ids a principal may query against.

Each role has a fixed traversal of the master -> agency -> center -> store -> user
tree. Every stratum is fetched with one batched query over the current
frontier, so the number of round-trips is bounded by the tree depth, not by
fan-out. A failing stratum is dropped together with everything below it
(fail closed); the result never widens to "all accounts" on error.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import User

logger = logging.getLogger(__name__)


class LookupFailedError(Exception):
    """Raised by a UserLookup when the backing store cannot answer."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


class UserLookup(Protocol):
    """Read access to the account tree."""

    def all_ids(self) -> list[str]: ...

    def children_of(self, parent_ids: list[str], role: str) -> list[str]: ...


class SqlUserLookup:
    """UserLookup over the users table; one SELECT per call."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def all_ids(self) -> list[str]:
        try:
            return [row[0] for row in self.db.query(User.id).all()]
        except SQLAlchemyError as e:
            raise LookupFailedError("Failed to list accounts", cause=e) from e

    def children_of(self, parent_ids: list[str], role: str) -> list[str]:
        if not parent_ids:
            # An empty IN list must never reach the query builder.
            return []
        try:
            rows = (
                self.db.query(User.id)
                .filter(User.parent_id.in_(parent_ids), User.role == role)
                .all()
            )
        except SQLAlchemyError as e:
            raise LookupFailedError(f"Failed to list {role} children", cause=e) from e
        return [row[0] for row in rows]


@dataclass(frozen=True)
class VisibleIdentifierSet:
    """
    Read-only result of an expansion.

    complete is False when at least one stratum could not be read; ids then
    holds only what was verified.
    """

    owner_id: str
    role: str
    ids: frozenset[str]
    failed_strata: tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.failed_strata

    def __contains__(self, user_id: object) -> bool:
        return user_id in self.ids

    def __len__(self) -> int:
        return len(self.ids)

    def as_list(self) -> list[str]:
        return sorted(self.ids)


class _Expansion:
    """Accumulates one expansion; tracks failures per stratum name."""

    def __init__(self, lookup: UserLookup, owner_id: str, role: str) -> None:
        self.lookup = lookup
        self.owner_id = owner_id
        self.role = role
        self.ids: set[str] = {owner_id}
        self.failed: list[str] = []

    def stratum(self, name: str, frontier: Iterable[str], child_role: str) -> list[str]:
        parents = list(frontier)
        if not parents:
            return []
        try:
            children = self.lookup.children_of(parents, child_role)
        except LookupFailedError as e:
            logger.warning(
                "Hierarchy stratum lookup failed; dropping it and its descendants",
                extra={
                    "owner_id": self.owner_id,
                    "role": self.role,
                    "stratum": name,
                    "reason": e.message,
                },
            )
            self.failed.append(name)
            return []
        self.ids.update(children)
        return children

    def result(self) -> VisibleIdentifierSet:
        return VisibleIdentifierSet(
            owner_id=self.owner_id,
            role=self.role,
            ids=frozenset(self.ids),
            failed_strata=tuple(self.failed),
        )


class HierarchyResolver:
    """Expands (user_id, role) into the ids that user is allowed to see."""

    def __init__(self, lookup: UserLookup) -> None:
        self.lookup = lookup

    def expand(self, user_id: str, role: str) -> VisibleIdentifierSet:
        run = _Expansion(self.lookup, user_id, role)

        if role == "master":
            try:
                run.ids.update(self.lookup.all_ids())
            except LookupFailedError as e:
                logger.warning(
                    "Master expansion failed; falling back to self only",
                    extra={"owner_id": user_id, "reason": e.message},
                )
                run.failed.append("all")
        elif role == "agency":
            centers = run.stratum("agency.centers", [user_id], "center")
            stores = run.stratum("agency.stores", centers, "store")
            run.stratum("agency.users", stores, "user")
        elif role == "center":
            stores = run.stratum("center.stores", [user_id], "store")
            run.stratum("center.store_users", stores, "user")
            # Centers may also own members directly; both paths are unioned.
            run.stratum("center.direct_users", [user_id], "user")
        elif role == "store":
            run.stratum("store.users", [user_id], "user")

        return run.result()
