"""Schemas for subordinate account management."""

from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.auth import Role

Status = Literal["active", "suspended", "blocked", "pending"]


class CreateAccountRequest(BaseModel):
    """New account created under the caller."""

    email: str = Field(..., min_length=3, max_length=255)
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    role: Role
    display_name: str | None = Field(default=None, max_length=255)
    parent_id: str | None = Field(
        default=None,
        description="Parent account; defaults to the caller. Must be inside the caller's scope.",
    )


class StatusUpdateRequest(BaseModel):
    status: Status


class AccountItem(BaseModel):
    """Account entry for operator lists (no password)."""

    id: str
    email: str
    username: str
    display_name: str | None = None
    role: Role
    status: Status
    parent_id: str | None = None
    tenant_id: str | None = None

    class Config:
        from_attributes = True


class AccountsListResponse(BaseModel):
    """Accounts visible to the caller."""

    accounts: list[AccountItem]
    complete: bool = Field(
        description="False when part of the hierarchy could not be read; the list is then a safe subset",
    )


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=8, max_length=128)


class EmailAvailabilityResponse(BaseModel):
    email: str
    available: bool
