"""Multipart upload bodies with progress reporting."""

from __future__ import annotations

import io
import json
import os
from collections.abc import Callable, Mapping
from typing import IO, Any

from .models import UploadProgress

ProgressCallback = Callable[[UploadProgress], None]

Storable = bytes | bytearray | memoryview | str | IO[bytes]

METADATA_CONTENT_TYPE = "application/json"
DATA_CONTENT_TYPE = "application/octet-stream"


class ProgressReader:
    """File-like view of the data part that reports how much of it was read.

    The view starts at the source's position when the reader is created.
    httpx seeks to offset 0 before streaming the part, which lands on that
    start rather than on the beginning of the underlying file, and ``loaded``
    counts from there as well.
    """

    def __init__(self, source: IO[bytes], on_progress: ProgressCallback | None = None) -> None:
        self._source = source
        self._on_progress = on_progress
        self._start = _position(source)
        self.total = _remaining_length(source)

    def read(self, size: int = -1) -> bytes:
        chunk = self._source.read(size)
        if self._on_progress is not None and chunk:
            self._on_progress(UploadProgress(loaded=self.tell(), total=self.total))
        return chunk

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            offset += self._start
        return self._source.seek(offset, whence) - self._start

    def tell(self) -> int:
        return self._source.tell() - self._start


def _position(source: IO[bytes]) -> int:
    try:
        return source.tell()
    except (AttributeError, OSError):
        return 0


def _remaining_length(source: IO[bytes]) -> int | None:
    try:
        position = source.tell()
        end = source.seek(0, os.SEEK_END)
        source.seek(position)
    except (AttributeError, OSError):
        return None
    return end - position


def as_binary_file(data: Storable) -> IO[bytes]:
    """Normalize upload data to a seekable binary file object.

    Raises:
        TypeError: For text streams or other unsupported data.
    """
    if isinstance(data, str):
        return io.BytesIO(data.encode())
    if isinstance(data, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(data))
    if isinstance(data, io.TextIOBase):
        raise TypeError("uploaded data must be bytes or a binary file, not a text stream")
    if hasattr(data, "read"):
        return data
    raise TypeError(f"cannot upload data of type {type(data).__name__}")


def build_upload_form(
    data: Storable,
    metadata: Mapping[str, Any] | None = None,
    *,
    on_progress: ProgressCallback | None = None,
) -> dict[str, Any]:
    """Build the ``files`` argument for a document upload.

    Args:
        data: The document contents.
        metadata: Optional JSON metadata, sent as the ``metadata`` part.
        on_progress: Called with the bytes of ``data`` sent so far.

    Returns:
        Multipart parts for ``httpx``: an optional ``metadata`` part and the
        ``data`` part.
    """
    files: dict[str, Any] = {}
    if metadata is not None:
        files["metadata"] = (None, json.dumps(metadata).encode(), METADATA_CONTENT_TYPE)
    reader = ProgressReader(as_binary_file(data), on_progress)
    files["data"] = ("data", reader, DATA_CONTENT_TYPE)
    return files
