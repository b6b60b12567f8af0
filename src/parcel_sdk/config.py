"""Configuration for the Parcel SDK.

Pydantic v2 models with defaults that can be overridden from the
environment.
"""

from __future__ import annotations

import os
import re
from typing import Annotated, Any, Self
from urllib.parse import urlsplit

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import ConfigurationError

DEFAULT_API_URL = "https://api.oasislabs.com/parcel/v1"
DEFAULT_STORAGE_URL = "https://storage.oasislabs.com/v1/parcel"

# Intranet deployments serve uploads from the API itself.
_INTRANET_HOST = re.compile(r"local|^parcel-(run|gate)way")


class TelemetryConfig(BaseModel):
    """Logging and tracing configuration.

    Attributes:
        enabled: When false, spans go to a no-op tracer.
        service_name: Logger and tracer name.
        log_level: Minimum level of rendered log events.
        configure: Have ``Parcel`` apply this configuration with
            ``configure_telemetry`` when it is created. Otherwise the SDK never
            configures structlog itself.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "parcel-sdk"
    log_level: str = "INFO"
    configure: bool = False


def _env_api_url() -> str:
    return os.environ.get("PARCEL_API_URL", DEFAULT_API_URL)


def _env_storage_url() -> str | None:
    return os.environ.get("PARCEL_STORAGE_URL") or None


def infer_storage_url(api_url: str) -> str:
    """Derive the storage endpoint that belongs to an API endpoint.

    ``https://api.example.com/parcel/v1`` maps to
    ``https://storage.example.com/v1/parcel``; local and in-cluster gateways
    accept uploads at ``<api_url>/documents``.
    """
    parts = urlsplit(api_url)
    if _INTRANET_HOST.search(parts.netloc):
        return f"{api_url}/documents"
    storage_host = re.sub(r"^\w+\.", "storage.", parts.netloc, count=1)
    return f"{parts.scheme}://{storage_host}/v1/parcel"


class ParcelConfig(BaseModel):
    """Main configuration for the Parcel SDK."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    api_url: str = Field(default_factory=_env_api_url, min_length=1)
    storage_url: str | None = Field(default_factory=_env_storage_url)

    # HTTP settings. Uploads and downloads run without a timeout.
    timeout: Annotated[float, Field(gt=0, le=300)] = 30.0
    connect_timeout: Annotated[float, Field(gt=0, le=60)] = 10.0
    headers: dict[str, str] = Field(default_factory=dict)

    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoints are joined onto the API URL with a single slash."""
        if not v.startswith(("http://", "https://")):
            msg = f"api_url must be an http(s) URL, got {v!r}"
            raise ValueError(msg)
        return v.rstrip("/")

    @model_validator(mode="after")
    def set_default_storage_url(self) -> Self:
        """Infer the storage URL from a custom API URL."""
        if self.storage_url is None:
            if self.api_url == DEFAULT_API_URL:
                storage_url = DEFAULT_STORAGE_URL
            else:
                storage_url = infer_storage_url(self.api_url)
            # Use object.__setattr__ since model is frozen
            object.__setattr__(self, "storage_url", storage_url)
        return self

    @property
    def storage_url_str(self) -> str:
        """Storage URL; always set once the model is validated."""
        return self.storage_url or DEFAULT_STORAGE_URL

    def with_overrides(self, **kwargs: Any) -> Self:
        """Create new config with overridden values."""
        data = self.model_dump()
        data.update(kwargs)
        return self.__class__(**data)

    @classmethod
    def from_env(cls, prefix: str = "PARCEL_") -> Self:
        """Create config from environment variables.

        Raises:
            ConfigurationError: If a variable holds an invalid value.
        """

        def get_env(key: str, default: Any = None) -> Any:
            return os.environ.get(f"{prefix}{key}", default)

        data: dict[str, Any] = {}
        if api_url := get_env("API_URL"):
            data["api_url"] = api_url
        if storage_url := get_env("STORAGE_URL"):
            data["storage_url"] = storage_url
        if timeout := get_env("TIMEOUT"):
            try:
                data["timeout"] = float(timeout)
            except ValueError as e:
                raise ConfigurationError(
                    f"{prefix}TIMEOUT must be a number", field="timeout"
                ) from e

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
