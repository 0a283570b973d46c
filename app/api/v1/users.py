"""Account management within the caller's slice of the role tree."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.api.v1.auth import get_scope, require_roles
from app.core.database import get_db
from app.schemas.accounts import (
    AccountItem,
    AccountsListResponse,
    CreateAccountRequest,
    EmailAvailabilityResponse,
    ResetPasswordRequest,
    StatusUpdateRequest,
)
from app.schemas.auth import Principal
from app.services.accounts import (
    AccountConflictError,
    AccountError,
    AccountForbiddenError,
    AccountNotFoundError,
    create_subordinate,
    delete_user,
    is_email_available,
    list_visible,
    reset_password,
    set_status,
)
from app.services.hierarchy import VisibleIdentifierSet

router = APIRouter()

OPERATORS = ("master", "agency", "center", "store", "admin")
CREATORS = ("master", "agency", "center", "store")


def _to_http(e: AccountError) -> HTTPException:
    if isinstance(e, AccountNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, AccountForbiddenError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    if isinstance(e, AccountConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


@router.get("", response_model=AccountsListResponse)
def list_accounts(
    _operator: Annotated[Principal, Depends(require_roles(*OPERATORS))],
    scope: Annotated[VisibleIdentifierSet, Depends(get_scope)],
    db: Annotated[Session, Depends(get_db)],
) -> AccountsListResponse:
    """Accounts in the caller's hierarchy (everyone for master)."""
    users = list_visible(db, scope)
    return AccountsListResponse(
        accounts=[AccountItem.model_validate(u) for u in users],
        complete=scope.complete,
    )


@router.get("/email-available", response_model=EmailAvailabilityResponse)
def email_available(
    _operator: Annotated[Principal, Depends(require_roles(*OPERATORS))],
    db: Annotated[Session, Depends(get_db)],
    email: Annotated[str, Query(min_length=3, max_length=255)],
) -> EmailAvailabilityResponse:
    """Whether email is free for a new account (checked across all tenants)."""
    return EmailAvailabilityResponse(email=email.strip(), available=is_email_available(db, email))


@router.post("", response_model=AccountItem, status_code=status.HTTP_201_CREATED)
def create_account(
    body: CreateAccountRequest,
    creator: Annotated[Principal, Depends(require_roles(*CREATORS))],
    scope: Annotated[VisibleIdentifierSet, Depends(get_scope)],
    db: Annotated[Session, Depends(get_db)],
) -> AccountItem:
    """Create an agency, center, store or member under the caller (or a parent in scope)."""
    try:
        user = create_subordinate(
            db,
            creator,
            scope,
            email=body.email,
            username=body.username,
            password=body.password,
            role=body.role,
            display_name=body.display_name,
            parent_id=body.parent_id,
        )
    except AccountError as e:
        raise _to_http(e) from e
    return AccountItem.model_validate(user)


@router.patch("/{user_id}/status", response_model=AccountItem)
def update_status(
    user_id: str,
    body: StatusUpdateRequest,
    actor: Annotated[Principal, Depends(require_roles(*OPERATORS))],
    scope: Annotated[VisibleIdentifierSet, Depends(get_scope)],
    db: Annotated[Session, Depends(get_db)],
) -> AccountItem:
    try:
        user = set_status(db, actor, scope, user_id, body.status)
    except AccountError as e:
        raise _to_http(e) from e
    return AccountItem.model_validate(user)


@router.put("/{user_id}/password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    user_id: str,
    body: ResetPasswordRequest,
    actor: Annotated[Principal, Depends(require_roles(*OPERATORS))],
    scope: Annotated[VisibleIdentifierSet, Depends(get_scope)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Set a new password for the caller or an account in the caller's scope."""
    try:
        reset_password(db, actor, scope, user_id, body.password)
    except AccountError as e:
        raise _to_http(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_account(
    user_id: str,
    actor: Annotated[Principal, Depends(require_roles(*CREATORS))],
    scope: Annotated[VisibleIdentifierSet, Depends(get_scope)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete a leaf account. Accounts that still own others are refused with 409."""
    try:
        delete_user(db, actor, scope, user_id)
    except AccountError as e:
        raise _to_http(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
