"""Request/response schemas for auth endpoints and the session principal."""

from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["master", "agency", "center", "store", "admin", "user"]
DomainType = Literal["main", "admin"]


class LoginRequest(BaseModel):
    """Credentials for email/password login."""

    email: str = Field(..., min_length=3, max_length=255, description="Account email")
    password: str = Field(..., min_length=1, max_length=128, description="Password")
    domain: str | None = Field(
        default=None,
        max_length=253,
        description="Host the login form was served from; applies the domain/role gate",
    )


class FederatedLoginRequest(BaseModel):
    """Access token issued by the external identity provider."""

    provider_token: str = Field(..., min_length=1, max_length=4096)
    domain: str | None = Field(default=None, max_length=253)


class Principal(BaseModel):
    """Authenticated account for the lifetime of a session."""

    id: str
    email: str
    username: str
    role: Role
    tenant_id: str | None = None
    display_name: str | None = None

    class Config:
        from_attributes = True
        frozen = True

    def to_claims(self) -> dict[str, Any]:
        """JWT claims; sub carries the id."""
        claims = self.model_dump(exclude={"id"})
        claims["sub"] = self.id
        return claims

    @classmethod
    def from_claims(cls, payload: dict[str, Any]) -> "Principal":
        return cls(
            id=payload["sub"],
            email=payload.get("email", ""),
            username=payload.get("username", ""),
            role=payload["role"],
            tenant_id=payload.get("tenant_id"),
            display_name=payload.get("display_name"),
        )


class TokenResponse(BaseModel):
    """JWT access token and the principal it was issued for."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    principal: Principal
