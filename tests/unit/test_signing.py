"""Unit tests for ES256 JWT signing and JWK handling."""

import json

import jwt
import pytest

from parcel_sdk.errors import ConfigurationError, ErrorCode
from parcel_sdk.jwk import PrivateJWK, PublicJWK
from parcel_sdk.signing import CLOCK_SKEW_SECONDS, make_claims, make_jti, make_jwt


class TestMakeJwt:
    """Tests for make_jwt."""

    def test_header_and_claims(self, private_jwk: PrivateJWK) -> None:
        """Token is ES256 with kid, and iat is backdated by the skew."""
        token = make_jwt(
            private_jwk.to_private_key(),
            payload={"sub": "me"},
            lifetime_seconds=600,
            key_id=private_jwk.kid,
            now=1_000_000,
        )

        header = jwt.get_unverified_header(token)
        assert header == {"alg": "ES256", "typ": "JWT", "kid": "test-key-1"}

        claims = jwt.decode(token, options={"verify_signature": False})
        assert claims == {
            "sub": "me",
            "iat": 1_000_000 - CLOCK_SKEW_SECONDS,
            "exp": 1_000_600,
        }

    def test_no_kid_header_without_key_id(self, private_jwk_without_kid: PrivateJWK) -> None:
        """No kid is invented when the key has none."""
        token = make_jwt(
            private_jwk_without_kid.to_private_key(),
            payload={},
            lifetime_seconds=60,
        )

        assert "kid" not in jwt.get_unverified_header(token)

    def test_signature_verifies_with_public_key(self, private_jwk: PrivateJWK) -> None:
        token = make_jwt(private_jwk.to_pem(), payload={"sub": "me"}, lifetime_seconds=60)

        claims = jwt.decode(
            token, private_jwk.public_jwk().to_public_key(), algorithms=["ES256"]
        )

        assert claims["sub"] == "me"

    def test_payload_is_not_mutated(self, private_jwk: PrivateJWK) -> None:
        payload = {"sub": "me"}
        make_jwt(private_jwk.to_private_key(), payload=payload, lifetime_seconds=60)
        assert payload == {"sub": "me"}

    def test_make_claims_overrides_timestamps(self) -> None:
        claims = make_claims({"iat": 1, "exp": 2, "aud": "x"}, 10, now=100)
        assert claims == {"iat": 100 - CLOCK_SKEW_SECONDS, "exp": 110, "aud": "x"}

    def test_jti_is_random_hex(self) -> None:
        first, second = make_jti(), make_jti()
        assert len(first) == 16
        int(first, 16)
        assert first != second


class TestPrivateJWK:
    """Tests for PrivateJWK."""

    def test_generate(self) -> None:
        key = PrivateJWK.generate(kid="k1")

        assert key.kty == "EC"
        assert key.crv == "P-256"
        assert key.alg == "ES256"
        assert key.kid == "k1"
        key.ensure_es256()

    def test_private_value_not_in_repr(self, private_jwk: PrivateJWK) -> None:
        assert private_jwk.d not in repr(private_jwk)

    def test_round_trip_through_json(self, private_jwk: PrivateJWK) -> None:
        """A key serialized as JSON parses back to the same signing key."""
        parsed = PrivateJWK.parse(private_jwk.model_dump_json())

        assert parsed == private_jwk
        assert (
            parsed.to_private_key().private_numbers()
            == private_jwk.to_private_key().private_numbers()
        )

    def test_public_jwk_has_no_private_part(self, private_jwk: PrivateJWK) -> None:
        public = private_jwk.public_jwk()

        assert isinstance(public, PublicJWK)
        assert "d" not in public.model_dump()
        assert public.kid == private_jwk.kid
        assert public.x == private_jwk.x

    @pytest.mark.parametrize(
        "overrides",
        [
            {"kty": "RSA"},
            {"alg": "RS256"},
            {"alg": None},
            {"crv": "P-384"},
            {"x": None},
        ],
    )
    def test_rejects_non_es256_keys(self, private_jwk: PrivateJWK, overrides: dict) -> None:
        """Only EC keys for ES256 are accepted."""
        key = private_jwk.model_copy(update=overrides)

        with pytest.raises(ConfigurationError) as exc_info:
            key.ensure_es256()

        assert exc_info.value.code == ErrorCode.INVALID_KEY

    def test_rejects_garbage(self) -> None:
        with pytest.raises(ConfigurationError):
            PrivateJWK.parse("not json")
        with pytest.raises(ConfigurationError):
            PrivateJWK.parse(json.dumps(["a", "list"]))
        with pytest.raises(ConfigurationError):
            PrivateJWK.parse({"kty": "EC"})

    def test_rejects_point_not_on_curve(self, private_jwk: PrivateJWK) -> None:
        other = PrivateJWK.generate()
        mismatched = private_jwk.model_copy(update={"x": other.x})

        with pytest.raises(ConfigurationError):
            mismatched.to_private_key()
