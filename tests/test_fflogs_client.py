"""Unit tests for the async FFLogsClient."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from conftest import make_response, make_session
from rpf.fflogs.client import FFLogsClient, retry_after_seconds
from rpf.fflogs.errors import ApiError, AuthError, QueryError
from rpf.models.parses import EncounterScore

PLAYERS = [("Alpha One", "Tonberry", "JP"), ("Beta Two", "Odin", "EU")]


def batch_payload():
    return {"data": {"characterData": {
        "char0": {"zoneRankings": {"rankings": [
            {"encounter": {"id": 101}, "rankPercent": 87.0, "spec": "Sage"},
        ]}},
        "char1": None,
    }}}


def client_with(session):
    client = FFLogsClient("id", "secret")
    client._session = session
    client.tokens.get_token = AsyncMock(return_value="bearer-token")
    return client


@pytest.mark.asyncio
class TestFFLogsClient:
    """Test suite for FFLogsClient batch queries."""

    async def test_client_initialization(self):
        client = FFLogsClient("id", "secret", timeout=7)
        assert client.timeout == 7
        assert client._session is None
        assert client.tokens.client_id == "id"

    async def test_context_manager_closes_session(self):
        async with FFLogsClient("id", "secret") as client:
            session = await client._get_session()
            assert isinstance(session, aiohttp.ClientSession)
            assert not session.closed

        assert client._session.closed

    async def test_empty_batch_makes_no_call(self):
        session = make_session()
        client = client_with(session)

        assert await client.get_batch_zone_parses([], 73) == []
        session.post.assert_not_called()
        client.tokens.get_token.assert_not_awaited()

    async def test_batch_success_is_demultiplexed(self):
        session = make_session(make_response(json_data=batch_payload()))
        client = client_with(session)

        results = await client.get_batch_zone_parses(PLAYERS, 73, 101, 1)

        assert results == [[(101, EncounterScore(87.0, 40))], None]
        args, kwargs = session.post.call_args
        assert args[0] == client.graphql_url
        assert kwargs["headers"] == {"Authorization": "Bearer bearer-token"}
        assert "char1: character(" in kwargs["json"]["query"]
        assert "difficulty: 101" in kwargs["json"]["query"]

    async def test_server_error_is_retried(self):
        session = make_session(
            make_response(status=502),
            make_response(json_data=batch_payload()),
        )
        client = client_with(session)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            results = await client.get_batch_zone_parses(PLAYERS, 73)

        assert results[0] == [(101, EncounterScore(87.0, 40))]
        assert session.post.call_count == 2

    async def test_rate_limit_honours_retry_after(self):
        session = make_session(
            make_response(status=429, headers={"Retry-After": "3"}),
            make_response(json_data=batch_payload()),
        )
        client = client_with(session)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await client.get_batch_zone_parses(PLAYERS, 73)

        sleep.assert_awaited_once_with(4)

    async def test_client_error_status_raises_api_error(self):
        session = make_session(make_response(status=400, text="bad request"))
        client = client_with(session)

        with pytest.raises(ApiError) as exc:
            await client.get_batch_zone_parses(PLAYERS, 73)

        assert exc.value.status == 400
        assert session.post.call_count == 1

    async def test_unauthorized_invalidates_token(self):
        session = make_session(make_response(status=401, text="expired"))
        client = client_with(session)
        client.tokens.invalidate = MagicMock()

        with pytest.raises(ApiError):
            await client.get_batch_zone_parses(PLAYERS, 73)

        client.tokens.invalidate.assert_called_once()

    async def test_query_errors_without_data_raise_query_error(self):
        payload = {"data": None, "errors": [{"message": "Unknown argument"}, {"message": "Syntax"}]}
        session = make_session(make_response(json_data=payload))
        client = client_with(session)

        with pytest.raises(QueryError) as exc:
            await client.get_batch_zone_parses(PLAYERS, 73)

        assert exc.value.messages == ["Unknown argument", "Syntax"]
        assert isinstance(exc.value, ApiError)

    async def test_errors_alongside_data_keep_the_data(self):
        payload = batch_payload()
        payload["errors"] = [{"message": "character char1 not found"}]
        session = make_session(make_response(json_data=payload))
        client = client_with(session)

        results = await client.get_batch_zone_parses(PLAYERS, 73)

        assert results[0] is not None
        assert results[1] is None

    async def test_unparsable_body_raises_api_error(self):
        session = make_session(make_response(json_error=ValueError("Expecting value")))
        client = client_with(session)

        with pytest.raises(ApiError):
            await client.get_batch_zone_parses(PLAYERS, 73)

    async def test_missing_data_raises_api_error(self):
        session = make_session(make_response(json_data={"something": "else"}))
        client = client_with(session)

        with pytest.raises(ApiError):
            await client.get_batch_zone_parses(PLAYERS, 73)

    async def test_network_error_after_retries_raises_api_error(self):
        session = make_session(*[aiohttp.ClientConnectionError("reset")] * 3)
        client = client_with(session)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ApiError):
                await client.get_batch_zone_parses(PLAYERS, 73)

        assert session.post.call_count == 3

    async def test_timeout_raises_api_error(self):
        session = make_session(*[asyncio.TimeoutError()] * 3)
        client = client_with(session)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ApiError):
                await client.get_batch_zone_parses(PLAYERS, 73)

    async def test_auth_error_propagates(self):
        session = make_session()
        client = client_with(session)
        client.tokens.get_token = AsyncMock(side_effect=AuthError("bad secret"))

        with pytest.raises(AuthError):
            await client.get_batch_zone_parses(PLAYERS, 73)

        session.post.assert_not_called()

    async def test_retry_after_http_date_is_understood(self):
        session = make_session(
            make_response(status=429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}),
            make_response(json_data=batch_payload()),
        )
        client = client_with(session)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            results = await client.get_batch_zone_parses(PLAYERS, 73)

        # Date passée : on attend juste la seconde de marge
        sleep.assert_awaited_once_with(1.0)
        assert results[0] == [(101, EncounterScore(87.0, 40))]

    async def test_unreadable_retry_after_falls_back_to_one_second(self):
        session = make_session(
            make_response(status=429, headers={"Retry-After": "soon"}),
            make_response(json_data=batch_payload()),
        )
        client = client_with(session)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await client.get_batch_zone_parses(PLAYERS, 73)

        sleep.assert_awaited_once_with(2.0)

    async def test_fractional_retry_after(self):
        session = make_session(
            make_response(status=429, headers={"Retry-After": "1.5"}),
            make_response(json_data=batch_payload()),
        )
        client = client_with(session)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await client.get_batch_zone_parses(PLAYERS, 73)

        sleep.assert_awaited_once_with(2.5)

    @pytest.mark.parametrize("retry_after", ["86400", "Fri, 01 Jan 2100 00:00:00 GMT"])
    async def test_long_retry_after_fails_fast(self, retry_after):
        session = make_session(make_response(status=429, headers={"Retry-After": retry_after}))
        client = client_with(session)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(ApiError) as exc:
                await client.get_batch_zone_parses(PLAYERS, 73)

        assert exc.value.status == 429
        sleep.assert_not_awaited()
        assert session.post.call_count == 1


class TestRetryAfterSeconds:
    @pytest.mark.parametrize("value, expected", [
        (None, 1.0),
        ("", 1.0),
        ("3", 3.0),
        ("0.5", 0.5),
        ("-4", 0.0),
        ("nan", 1.0),
        ("not a date", 1.0),
        ("Wed, 21 Oct 2015 07:28:00 GMT", 0.0),
    ])
    def test_parsing(self, value, expected):
        assert retry_after_seconds(value) == expected

    def test_future_date(self):
        assert retry_after_seconds("Fri, 01 Jan 2100 00:00:00 GMT") > 86400
