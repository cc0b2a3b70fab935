# fflogs/client.py

import asyncio
import logging
import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from rpf.fflogs.auth import TokenManager
from rpf.fflogs.errors import ApiError, QueryError
from rpf.fflogs.query import BatchPlayer, ZoneParses, build_batch_query, decode_batch

GRAPHQL_URL = "https://www.fflogs.com/api/v2/client"

# Au-delà, le lot échoue et sera retenté au prochain cycle
MAX_RETRY_AFTER = 30.0

log = logging.getLogger(__name__)


def retry_after_seconds(value: Optional[str]) -> float:
    """
    Seconds to wait from a Retry-After header (delta-seconds or HTTP-date).

    Anything unreadable counts as 1 second; a date in the past as 0.
    """
    if not value:
        return 1.0
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return 1.0
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        seconds = (when - datetime.now(timezone.utc)).total_seconds()
    if not math.isfinite(seconds):
        return 1.0
    return max(0.0, seconds)


class FFLogsClient:
    """Async FFLogs v2 (GraphQL) client with shared token and retry handling."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timeout: float = 15.0,
        graphql_url: str = GRAPHQL_URL,
        max_retry_after: float = MAX_RETRY_AFTER,
    ):
        self.graphql_url = graphql_url
        self.timeout = timeout
        self.max_retry_after = max_retry_after
        self._session: Optional[aiohttp.ClientSession] = None
        self.tokens = TokenManager(client_id, client_secret, self._get_session)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _query(self, query: str, max_retries: int = 3) -> Any:
        """
        POST a GraphQL query and return its ``data`` member.

        Raises:
            AuthError: when no token can be obtained
            QueryError: when the response carries errors and no data
            ApiError: for transport failures, non-2xx statuses, unparsable bodies
                or a Retry-After longer than ``max_retry_after``
        """
        body: Dict[str, Any] = {"query": query}

        for attempt in range(max_retries):
            token = await self.tokens.get_token()
            session = await self._get_session()
            try:
                async with session.post(
                    self.graphql_url,
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                ) as resp:
                    if resp.status == 429 and attempt < max_retries - 1:
                        retry_after = retry_after_seconds(resp.headers.get("Retry-After")) + 1
                        if retry_after > self.max_retry_after:
                            raise ApiError(f"FFLogs rate limited for {retry_after:.0f}s, giving up", status=429)
                        log.warning(f"429 Rate limited, retrying after {retry_after}s (attempt {attempt + 1}/{max_retries})")
                        await asyncio.sleep(retry_after)
                        continue

                    if resp.status >= 500 and attempt < max_retries - 1:
                        wait = 2 ** attempt  # Exponential backoff
                        log.warning(f"Server error {resp.status}, retrying in {wait}s")
                        await asyncio.sleep(wait)
                        continue

                    if resp.status == 401:
                        self.tokens.invalidate()

                    if resp.status < 200 or resp.status >= 300:
                        text = await resp.text(errors="replace")
                        raise ApiError(f"FFLogs API error {resp.status}: {text[:200]}", status=resp.status)

                    try:
                        payload = await resp.json(content_type=None)
                    except ValueError as e:
                        raise ApiError(f"FFLogs returned invalid JSON: {e}", status=resp.status) from e

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt < max_retries - 1:
                    wait = 2 ** attempt
                    log.warning(f"Network error, retrying in {wait}s: {e!r}")
                    await asyncio.sleep(wait)
                    continue
                raise ApiError(f"FFLogs request failed: {e!r}") from e

            return self._unwrap(payload)

        raise ApiError(f"Failed after {max_retries} attempts")

    @staticmethod
    def _unwrap(payload: Any) -> Any:
        if not isinstance(payload, dict):
            raise ApiError(f"Unexpected GraphQL payload: {type(payload).__name__}")

        errors = payload.get("errors") or []
        messages: List[str] = [
            e.get("message", str(e)) if isinstance(e, dict) else str(e)
            for e in errors
        ]
        data = payload.get("data")
        if data is None:
            if messages:
                raise QueryError(messages)
            raise ApiError("No data in GraphQL response")

        if messages:
            # Données partielles exploitables : on garde, on trace
            log.warning(f"GraphQL returned partial data with {len(messages)} error(s): {messages[:3]}")
        return data

    async def get_batch_zone_parses(
        self,
        players: Sequence[BatchPlayer],
        zone_id: int,
        difficulty_id: Optional[int] = None,
        partition: Optional[int] = None,
    ) -> List[Optional[ZoneParses]]:
        """
        Fetch every encounter of a zone for up to 20 players in one round trip.

        Returns:
            One slot per player, in input order: None when FFLogs has no usable
            data for that player, else a list of (encounter_id, EncounterScore).
        """
        if not players:
            return []

        query = build_batch_query(players, zone_id, difficulty_id, partition)
        data = await self._query(query)
        return decode_batch(data, len(players))
