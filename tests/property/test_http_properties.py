"""
Property-based tests for request building and status enforcement.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx
import pytest
from helpers import json_response, make_http_client
from hypothesis import given, settings, strategies as st

from parcel_sdk.errors import UnexpectedStatusError
from parcel_sdk.http import DEFAULT_STATUS_CODES, kebab_case, to_query_params

camel_key = st.from_regex(r"[a-z]{1,8}([A-Z][a-z0-9]{1,8}){0,4}", fullmatch=True)

query_value = st.one_of(
    st.none(),
    st.integers(),
    st.booleans(),
    st.text(max_size=20),
)


class TestQueryParamProperties:
    """Property tests for query string conversion."""

    @given(key=camel_key)
    @settings(max_examples=200)
    def test_kebab_case_shape(self, key: str) -> None:
        """
        Property: Kebab Case
        For any camelCase key, the converted key is lowercase, is stable
        under a second conversion, and drops only the case boundaries.
        """
        converted = kebab_case(key)

        assert converted == converted.lower()
        assert kebab_case(converted) == converted
        assert converted.replace("-", "") == key.lower()

    @given(params=st.dictionaries(camel_key, query_value, max_size=8))
    @settings(max_examples=100)
    def test_none_values_are_dropped(self, params: dict) -> None:
        """
        Property: Omitted Parameters
        For any parameters, exactly the keys whose value is not None are sent.
        """
        result = to_query_params(params) or {}

        assert set(result) == {kebab_case(k) for k, v in params.items() if v is not None}

    @given(
        offset=st.integers(min_value=0, max_value=10**11).map(
            lambda ms: timedelta(milliseconds=ms)
        )
    )
    def test_datetimes_become_epoch_millis(self, offset: timedelta) -> None:
        """
        Property: Date Serialization
        For any UTC datetime, the query value is its epoch time in milliseconds.
        """
        epoch = datetime(1970, 1, 1, tzinfo=UTC)

        result = to_query_params({"after": epoch + offset})

        assert result == {"after": offset // timedelta(milliseconds=1)}


class TestStatusProperties:
    """Property tests for expected status enforcement."""

    @given(
        method=st.sampled_from(["POST", "PUT", "PATCH", "DELETE"]),
        status=st.integers(min_value=200, max_value=299),
    )
    @settings(max_examples=60, deadline=None)
    def test_unexpected_2xx_names_both_statuses(self, method: str, status: int) -> None:
        """
        Property: Unexpected Status Rejection
        For any verb and any 2xx status other than the verb's default, the
        call fails with an error naming the expected and actual statuses.
        """
        expected = DEFAULT_STATUS_CODES[method]
        client = make_http_client(lambda r: json_response(status, {}))

        async def run() -> None:
            async with client:
                request = client.build_request(method, "things")
                await client.send(request)

        if status == expected:
            asyncio.run(run())
            return

        with pytest.raises(UnexpectedStatusError) as exc_info:
            asyncio.run(run())

        error = exc_info.value
        assert error.expected == [expected]
        assert error.actual == status
        assert f"unexpected status {status}" in str(error)
        assert f"expected: {expected}" in str(error)
