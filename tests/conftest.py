"""
Shared test fixtures for Parcel SDK tests.

Provides signing keys, configuration, and sample API payloads.
"""

from __future__ import annotations

from typing import Any

import pytest
from helpers import make_config

from parcel_sdk.config import ParcelConfig
from parcel_sdk.jwk import PrivateJWK


@pytest.fixture
def config() -> ParcelConfig:
    """Provide a configuration pointing at test endpoints."""
    return make_config()


@pytest.fixture(scope="session")
def private_jwk() -> PrivateJWK:
    """Provide a P-256 signing key with a key ID."""
    return PrivateJWK.generate(kid="test-key-1")


@pytest.fixture(scope="session")
def private_jwk_without_kid() -> PrivateJWK:
    """Provide a P-256 signing key without a key ID."""
    return PrivateJWK.generate()


@pytest.fixture
def sample_document() -> dict[str, Any]:
    """Provide a document as returned by the API."""
    return {
        "id": "DOC1",
        "createdAt": "2021-06-01T12:00:00Z",
        "creator": "IDENTITY1",
        "owner": "IDENTITY1",
        "size": 11,
        "details": {"title": "greeting", "tags": ["text"]},
    }
