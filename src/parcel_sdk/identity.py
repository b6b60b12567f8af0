"""Parcel identities."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from .http import HttpClient

IDENTITIES_EP = "identities"
IDENTITIES_ME = f"{IDENTITIES_EP}/me"


class Identity(BaseModel):
    """A Parcel identity. Fields the SDK does not model are kept as extras."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str
    created_at: datetime | None = None
    tokens: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    async def current(cls, client: HttpClient) -> Self:
        return cls.model_validate(await client.get(IDENTITIES_ME))

    @classmethod
    async def get(cls, client: HttpClient, identity_id: str) -> Self:
        return cls.model_validate(await client.get(f"{IDENTITIES_EP}/{identity_id}"))
