"""Creating, suspending and deleting accounts below the caller in the role tree."""

import logging

from sqlalchemy.orm import Session

from app.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from app.models import DomainMapping, User
from app.models.user import STATUSES
from app.schemas.auth import Principal
from app.services.hierarchy import VisibleIdentifierSet

logger = logging.getLogger(__name__)

# Which roles each role may create directly. Keeps the tree at depth <= 4.
ALLOWED_CHILD_ROLES: dict[str, frozenset[str]] = {
    "master": frozenset({"agency", "center"}),
    "agency": frozenset({"center"}),
    "center": frozenset({"store", "user"}),
    "store": frozenset({"user"}),
}


class AccountError(Exception):
    """Base class for rejected account operations."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AccountNotFoundError(AccountError):
    pass


class AccountForbiddenError(AccountError):
    pass


class AccountConflictError(AccountError):
    pass


def _get_in_scope(db: Session, scope: VisibleIdentifierSet, user_id: str) -> User:
    # Out-of-scope ids look exactly like missing ones.
    if user_id not in scope:
        raise AccountNotFoundError("Account not found.")
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AccountNotFoundError("Account not found.")
    return user


def create_subordinate(
    db: Session,
    creator: Principal,
    scope: VisibleIdentifierSet,
    *,
    email: str,
    username: str,
    password: str,
    role: str,
    display_name: str | None = None,
    parent_id: str | None = None,
) -> User:
    """
    Create an account under parent_id (default: the creator).

    The parent must be in the creator's scope and allowed to own `role`.
    A new center is its own tenant; everything else inherits the parent's.
    """
    parent_id = parent_id or creator.id
    parent = _get_in_scope(db, scope, parent_id)
    if role not in ALLOWED_CHILD_ROLES.get(parent.role, frozenset()):
        raise AccountForbiddenError(f"A {parent.role} account cannot own a {role} account.")

    email = email.strip()
    if not is_email_available(db, email):
        raise AccountConflictError("Email is already in use.")

    user = User(
        email=email,
        username=username.strip(),
        display_name=display_name,
        role=role,
        status="active",
        parent_id=parent.id,
        password_hash=hash_password(password),
    )
    db.add(user)
    db.flush()
    user.tenant_id = user.id if role == "center" else parent.tenant_id
    db.commit()
    logger.info(
        "Account created",
        extra={"user_id": user.id, "role": role, "parent_id": parent.id, "creator_id": creator.id},
    )
    return user


def list_visible(db: Session, scope: VisibleIdentifierSet) -> list[User]:
    ids = scope.as_list()
    if not ids:
        return []
    return db.query(User).filter(User.id.in_(ids)).order_by(User.created_at).all()


def set_status(
    db: Session,
    actor: Principal,
    scope: VisibleIdentifierSet,
    user_id: str,
    status: str,
) -> User:
    """Approve, suspend, block or reactivate an account in scope (never oneself)."""
    if status not in STATUSES:
        raise AccountForbiddenError(f"Unknown status: {status}")
    if user_id == actor.id:
        raise AccountForbiddenError("You cannot change your own status.")
    user = _get_in_scope(db, scope, user_id)
    user.status = status
    db.commit()
    logger.info("Account status changed", extra={"user_id": user_id, "status": status, "actor_id": actor.id})
    return user


def delete_user(
    db: Session,
    actor: Principal,
    scope: VisibleIdentifierSet,
    user_id: str,
) -> None:
    """
    Delete a leaf account in scope.

    Accounts that still own children or domain mappings are refused; they
    must be emptied or suspended instead, so the tree never has dangling
    parents and retired domains keep their owner.
    """
    if user_id == actor.id:
        raise AccountForbiddenError("You cannot delete your own account.")
    user = _get_in_scope(db, scope, user_id)
    has_children = db.query(User.id).filter(User.parent_id == user.id).first() is not None
    if has_children:
        raise AccountConflictError("Account still owns other accounts; suspend it instead.")
    # Domain history is kept, so a center that ever had a domain stays.
    owns_domains = (
        db.query(DomainMapping.id).filter(DomainMapping.tenant_id == user.id).first() is not None
    )
    if owns_domains:
        raise AccountConflictError("Account still owns domain mappings; suspend it instead.")
    db.delete(user)
    db.commit()
    logger.info("Account deleted", extra={"user_id": user_id, "actor_id": actor.id})


def reset_password(
    db: Session,
    actor: Principal,
    scope: VisibleIdentifierSet,
    user_id: str,
    new_password: str,
) -> User:
    """Set a new bcrypt password for an account in scope; replaces any legacy plaintext value."""
    if not PASSWORD_MIN_LEN <= len(new_password) <= PASSWORD_MAX_LEN:
        raise AccountForbiddenError(
            f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters."
        )
    user = _get_in_scope(db, scope, user_id)
    user.password_hash = hash_password(new_password)
    db.commit()
    logger.info("Password reset", extra={"user_id": user_id, "actor_id": actor.id})
    return user


def is_email_available(db: Session, email: str) -> bool:
    return db.query(User.id).filter(User.email == email.strip()).first() is None
