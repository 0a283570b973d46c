"""Schemas for the navigation (route selection) endpoint."""

from pydantic import BaseModel, Field

from app.schemas.domains import DomainResolutionResponse


class NavigationRequest(BaseModel):
    """Current browser location as seen by the single-page app."""

    host: str | None = Field(
        default=None,
        max_length=253,
        description="Host name; defaults to the request's Host header",
    )
    fragment: str = Field(default="", max_length=2048, description="URL fragment, with or without '#'")


class NavigationResponse(BaseModel):
    """Surface to render and the fragment the client should show."""

    state: str
    fragment: str
    write_fragment: bool = Field(
        description="True when the client must replace its fragment with `fragment`",
    )
    reason: str | None = None
    domain: DomainResolutionResponse | None = None
