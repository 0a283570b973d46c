"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for the health check endpoint."""

    status: Literal["ok", "degraded"] = Field(default="ok", description="Service status")
    environment: str = Field(description="Current app environment (e.g. dev, prod)")
    database: Literal["connected", "disconnected"] = Field(
        description="Whether users and domain_mappings can be queried",
    )
    federated_login: Literal["configured", "disabled"] = Field(
        description="Whether an identity provider userinfo endpoint is set",
    )
    legacy_passwords: bool = Field(
        description="Whether plaintext passwords are still accepted at login",
    )
