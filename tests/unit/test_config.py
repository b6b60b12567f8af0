"""Unit tests for SDK configuration."""

import pytest
from pydantic import ValidationError

from parcel_sdk.config import (
    DEFAULT_API_URL,
    DEFAULT_STORAGE_URL,
    ParcelConfig,
    TelemetryConfig,
    infer_storage_url,
)
from parcel_sdk.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("PARCEL_API_URL", "PARCEL_STORAGE_URL", "PARCEL_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


class TestParcelConfig:
    """Tests for ParcelConfig."""

    def test_defaults(self) -> None:
        config = ParcelConfig()

        assert config.api_url == DEFAULT_API_URL
        assert config.storage_url == DEFAULT_STORAGE_URL
        assert config.timeout == 30.0
        assert config.headers == {}
        assert config.telemetry == TelemetryConfig()

    def test_trailing_slash_is_stripped(self) -> None:
        config = ParcelConfig(api_url="https://api.example.com/parcel/v1/")

        assert config.api_url == "https://api.example.com/parcel/v1"
        assert config.storage_url == "https://storage.example.com/v1/parcel"

    def test_explicit_storage_url_wins(self) -> None:
        config = ParcelConfig(
            api_url="https://api.example.com/parcel/v1",
            storage_url="https://files.example.com/up",
        )
        assert config.storage_url == "https://files.example.com/up"

    def test_rejects_non_http_url(self) -> None:
        with pytest.raises(ValidationError):
            ParcelConfig(api_url="ftp://api.example.com")

    @pytest.mark.parametrize("timeout", [0, -1, 301])
    def test_rejects_bad_timeout(self, timeout: float) -> None:
        with pytest.raises(ValidationError):
            ParcelConfig(timeout=timeout)

    def test_is_frozen(self) -> None:
        config = ParcelConfig()
        with pytest.raises(ValidationError):
            config.timeout = 5.0  # type: ignore[misc]

    def test_with_overrides(self) -> None:
        config = ParcelConfig(api_url="https://api.example.com/parcel/v1")

        updated = config.with_overrides(timeout=5.0)

        assert updated.timeout == 5.0
        assert updated.api_url == config.api_url
        assert config.timeout == 30.0


class TestStorageInference:
    """Tests for deriving the storage URL from the API URL."""

    @pytest.mark.parametrize(
        ("api_url", "expected"),
        [
            ("https://api.example.com/parcel/v1", "https://storage.example.com/v1/parcel"),
            ("https://api.staging.example.com/parcel/v1", "https://storage.staging.example.com/v1/parcel"),
            ("http://localhost:4242/parcel/v1", "http://localhost:4242/parcel/v1/documents"),
            ("http://parcel-gateway:4242/parcel/v1", "http://parcel-gateway:4242/parcel/v1/documents"),
            ("http://parcel-runway.svc:80/v1", "http://parcel-runway.svc:80/v1/documents"),
        ],
    )
    def test_infer_storage_url(self, api_url: str, expected: str) -> None:
        assert infer_storage_url(api_url) == expected
        assert ParcelConfig(api_url=api_url).storage_url == expected


class TestFromEnv:
    """Tests for environment overrides."""

    def test_env_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PARCEL_API_URL", "https://api.example.com/parcel/v1")

        config = ParcelConfig()

        assert config.api_url == "https://api.example.com/parcel/v1"
        assert config.storage_url == "https://storage.example.com/v1/parcel"

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PARCEL_API_URL", "http://localhost:4242/parcel/v1")
        monkeypatch.setenv("PARCEL_STORAGE_URL", "http://localhost:4243/upload")
        monkeypatch.setenv("PARCEL_TIMEOUT", "12.5")

        config = ParcelConfig.from_env()

        assert config.api_url == "http://localhost:4242/parcel/v1"
        assert config.storage_url == "http://localhost:4243/upload"
        assert config.timeout == 12.5

    def test_custom_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MYAPP_API_URL", "https://api.example.com/parcel/v1")
        assert ParcelConfig.from_env("MYAPP_").api_url == "https://api.example.com/parcel/v1"

    def test_non_numeric_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PARCEL_TIMEOUT", "soon")

        with pytest.raises(ConfigurationError) as exc_info:
            ParcelConfig.from_env()

        assert exc_info.value.details == {"field": "timeout"}

    def test_invalid_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PARCEL_API_URL", "not a url")

        with pytest.raises(ConfigurationError):
            ParcelConfig.from_env()
