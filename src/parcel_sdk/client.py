"""The Parcel SDK entry point."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Self

import httpx

from . import documents
from .config import ParcelConfig
from .documents import AccessEvent, Document, DocumentUpdateParams, DocumentUploadParams, Upload
from .http import HttpClient
from .identity import Identity
from .telemetry import configure_telemetry
from .token import TokenProvider, TokenSourceLike

if TYPE_CHECKING:
    from .download import Download
    from .models import Page
    from .upload import ProgressCallback, Storable


class Parcel:
    """Client for the Parcel API.

    Example:
        >>> async with Parcel({"client_id": client_id, "private_key": jwk}) as parcel:
        ...     page = await parcel.search_documents()
    """

    def __init__(
        self,
        token_source: TokenSourceLike,
        config: ParcelConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            token_source: A bearer token, token provider params, or a provider.
            config: SDK configuration. Defaults are read from the environment.
            transport: Optional transport for both API and token endpoint calls.

        Raises:
            ConfigurationError: If the token source is invalid.
        """
        self.config = config or ParcelConfig()
        if self.config.telemetry.configure:
            configure_telemetry(self.config.telemetry)
        # A provider passed in stays open after close(); one built here does not.
        self._owns_provider = not isinstance(token_source, TokenProvider)
        self.token_provider = TokenProvider.from_source(token_source, transport=transport)
        self._client = HttpClient(self.token_provider, self.config, transport=transport)
        self._current_identity: Identity | None = None

    @property
    def api_url(self) -> str:
        return self._client.api_url

    @property
    def storage_url(self) -> str:
        return self._client.storage_url

    @property
    def http(self) -> HttpClient:
        """The underlying client, for endpoints without a dedicated method."""
        return self._client

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close all HTTP connections, including those of a token provider built here."""
        await self._client.close()
        if self._owns_provider:
            await self.token_provider.aclose()

    async def get_current_identity(self) -> Identity:
        """The identity the token belongs to. Fetched once, then cached."""
        if self._current_identity is None:
            self._current_identity = await Identity.current(self._client)
        return self._current_identity

    async def get_identity(self, identity_id: str) -> Identity:
        return await Identity.get(self._client, identity_id)

    def upload_document(
        self,
        data: Storable,
        params: DocumentUploadParams | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> Upload:
        """Start uploading ``data`` as a new document.

        Must be called from a running event loop; the upload proceeds in the
        background until ``await upload.finished()``.
        """
        return Upload(self._client, data, params, on_progress=on_progress)

    async def get_document(self, document_id: str) -> Document:
        return await Document.get(self._client, document_id)

    async def search_documents(
        self, params: Mapping[str, Any] | None = None
    ) -> Page[Document]:
        return await Document.search(self._client, params)

    def download_document(
        self, document_id: str, *, chunk_size: int | None = None
    ) -> Download:
        return documents.download(self._client, document_id, chunk_size=chunk_size)

    async def get_document_history(
        self,
        document_id: str,
        filter: Mapping[str, Any] | None = None,
    ) -> Page[AccessEvent]:
        return await documents.history(self._client, document_id, filter)

    async def update_document(
        self, document_id: str, params: DocumentUpdateParams
    ) -> Document:
        return await documents.update(self._client, document_id, params)

    async def delete_document(self, document_id: str) -> None:
        await documents.delete(self._client, document_id)
