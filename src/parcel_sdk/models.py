"""Pydantic models shared across the Parcel SDK."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated, Generic, Self, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class TokenResponse(BaseModel):
    """OAuth 2.0 token response from the token endpoint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1)
    token_type: str = Field(default="Bearer")
    expires_in: Annotated[float, Field(ge=0)]
    scope: str | None = None


class Token(BaseModel):
    """A bearer token and the instant it stops being valid."""

    model_config = ConfigDict(frozen=True)

    value: str
    expiry: datetime

    @classmethod
    def from_response(cls, response: TokenResponse, *, requested_at: datetime) -> Self:
        """Create a Token from a token response.

        Expiry counts from when the request was sent, not when the response
        arrived, so a slow round trip never extends the token's lifetime.
        """
        return cls(
            value=response.access_token,
            expiry=requested_at + timedelta(seconds=response.expires_in),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if token is expired."""
        return (now or datetime.now(UTC)) >= self.expiry

    def __str__(self) -> str:
        return self.value


class Page(BaseModel, Generic[T]):
    """One page of a paginated listing."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    results: list[T]
    next_page_token: str = Field(default="", alias="nextPageToken")


class UploadProgress(BaseModel):
    """Bytes of the data part sent so far."""

    model_config = ConfigDict(frozen=True)

    loaded: int
    total: int | None = None

    @property
    def fraction(self) -> float | None:
        if not self.total:
            return None
        return self.loaded / self.total
