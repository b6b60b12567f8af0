"""Documents: upload, lookup, download and access history."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel

from .errors import UploadAbortedError
from .models import Page
from .telemetry import get_logger
from .upload import ProgressCallback, Storable, build_upload_form

if TYPE_CHECKING:
    from .download import Download
    from .http import HttpClient

DOCUMENTS_EP = "documents"

_CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def endpoint_for_id(document_id: str) -> str:
    return f"{DOCUMENTS_EP}/{document_id}"


class DocumentDetails(BaseModel):
    model_config = ConfigDict(**_CAMEL_CONFIG, frozen=True, extra="allow")

    title: str | None = None
    tags: list[str] = Field(default_factory=list)


class DocumentUpdateParams(BaseModel):
    model_config = ConfigDict(**_CAMEL_CONFIG, frozen=True)

    owner: str | None = None
    details: DocumentDetails | None = None

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DocumentUploadParams(DocumentUpdateParams):
    """Metadata for a new document.

    ``to_app`` tags the document ``to-app-<app id>``, which lets the app's
    grants select it.
    """

    to_app: str | None = None

    def to_body(self) -> dict[str, Any]:
        body = self.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude={"to_app"}
        )
        if self.to_app:
            details = body.setdefault("details", {})
            details["tags"] = [*details.get("tags", []), f"to-app-{self.to_app}"]
        return body


class AccessEvent(BaseModel):
    """One access to a document, as recorded in its history."""

    model_config = ConfigDict(**_CAMEL_CONFIG, frozen=True)

    created_at: datetime
    document: str
    accessor: str


class Document(BaseModel):
    """A document stored in Parcel.

    Instances are bound to the client that fetched them, so ``download``,
    ``update``, ``delete`` and ``history`` need no further arguments.
    """

    model_config = ConfigDict(**_CAMEL_CONFIG, extra="allow")

    id: str
    created_at: datetime
    creator: str
    owner: str
    size: int = 0
    details: DocumentDetails = Field(default_factory=DocumentDetails)
    originating_job: str | None = None

    _client: HttpClient = PrivateAttr()

    @classmethod
    def from_api(cls, client: HttpClient, body: Mapping[str, Any]) -> Self:
        document = cls.model_validate(body)
        document._client = client
        return document

    @classmethod
    async def get(cls, client: HttpClient, document_id: str) -> Self:
        return cls.from_api(client, await client.get(endpoint_for_id(document_id)))

    @classmethod
    async def search(
        cls,
        client: HttpClient,
        params: Mapping[str, Any] | None = None,
    ) -> Page[Document]:
        body = await client.search(DOCUMENTS_EP, params)
        return Page[Document](
            results=[cls.from_api(client, result) for result in body["results"]],
            next_page_token=body.get("nextPageToken") or "",
        )

    def download(self, *, chunk_size: int | None = None) -> Download:
        return download(self._client, self.id, chunk_size=chunk_size)

    async def update(self, params: DocumentUpdateParams) -> Self:
        """Apply ``params`` and refresh this instance from the response."""
        updated = await update(self._client, self.id, params)
        for name in type(self).model_fields:
            setattr(self, name, getattr(updated, name))
        return self

    async def delete(self) -> None:
        await delete(self._client, self.id)

    async def history(self, filter: Mapping[str, Any] | None = None) -> Page[AccessEvent]:
        return await history(self._client, self.id, filter)


def download(
    client: HttpClient, document_id: str, *, chunk_size: int | None = None
) -> Download:
    return client.download(f"{endpoint_for_id(document_id)}/download", chunk_size=chunk_size)


async def update(
    client: HttpClient, document_id: str, params: DocumentUpdateParams
) -> Document:
    body = await client.update(endpoint_for_id(document_id), params.to_body())
    return Document.from_api(client, body)


async def delete(client: HttpClient, document_id: str) -> None:
    await client.delete(endpoint_for_id(document_id))


async def history(
    client: HttpClient,
    document_id: str,
    filter: Mapping[str, Any] | None = None,
) -> Page[AccessEvent]:
    """List accesses to a document.

    ``filter`` may hold ``accessor``, ``after`` and ``before`` (datetimes)
    plus the paging keys ``page_size`` and ``page_token``.
    """
    body = await client.get(f"{endpoint_for_id(document_id)}/history", filter)
    return Page[AccessEvent].model_validate(body)


class Upload:
    """An in-flight document upload.

    The upload starts as soon as the handle is created, so it must be
    created from a running event loop. Await ``finished()`` for the new
    ``Document``.
    """

    def __init__(
        self,
        client: HttpClient,
        data: Storable,
        params: DocumentUploadParams | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        files = build_upload_form(
            data,
            params.to_body() if params is not None else None,
            on_progress=on_progress,
        )
        self._client = client
        self._aborted = False
        self._logger = get_logger()
        self._task = asyncio.get_running_loop().create_task(self._run(files))

    async def _run(self, files: dict[str, Any]) -> Document:
        body = await self._client.upload(files)
        document = Document.from_api(self._client, body)
        self._logger.debug("Uploaded document", document_id=document.id)
        return document

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self) -> None:
        """Cancel the upload. ``finished()`` then raises ``UploadAbortedError``."""
        if self._aborted or self._task.done():
            return
        self._aborted = True
        self._task.cancel()
        self._logger.info("Upload aborted")

    async def finished(self) -> Document:
        """Wait for the upload to complete.

        Raises:
            UploadAbortedError: If ``abort()`` was called first.
        """
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._aborted and self._task.cancelled():
                raise UploadAbortedError() from None
            raise
