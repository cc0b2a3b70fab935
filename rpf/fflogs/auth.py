# fflogs/auth.py
# ============================================================================
# Jeton OAuth2 (client credentials) partagé par toutes les requêtes FFLogs.
# Lecture sans verrou d'un objet immuable ; verrou uniquement pour le refresh.
# ============================================================================

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import aiohttp

from rpf.fflogs.errors import AuthError

OAUTH_TOKEN_URL = "https://www.fflogs.com/oauth/token"
REFRESH_MARGIN = 5 * 60  # secondes avant expiration

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessToken:
    token: str
    expires_at: float  # epoch (time.time())

    def is_valid(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return self.expires_at - now > REFRESH_MARGIN


class TokenManager:
    """Holds the FFLogs bearer token and refreshes it lazily."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        get_session: Callable[[], Awaitable[aiohttp.ClientSession]],
        token_url: str = OAUTH_TOKEN_URL,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self._get_session = get_session
        self._token: Optional[AccessToken] = None
        self._refresh_lock = asyncio.Lock()
        self.refresh_count = 0

    @property
    def current(self) -> Optional[AccessToken]:
        return self._token

    def invalidate(self) -> None:
        """Force a new exchange on the next get_token() (e.g. after a 401)."""
        self._token = None

    async def get_token(self) -> str:
        """
        Return a bearer token valid for at least REFRESH_MARGIN seconds.

        Raises:
            AuthError: if the credential exchange fails
        """
        token = self._token
        if token is not None and token.is_valid():
            return token.token

        async with self._refresh_lock:
            # Un autre appelant a pu rafraîchir pendant l'attente du verrou
            token = self._token
            if token is not None and token.is_valid():
                return token.token

            self._token = await self._exchange()
            return self._token.token

    async def _exchange(self) -> AccessToken:
        session = await self._get_session()
        try:
            async with session.post(
                self.token_url,
                data={"grant_type": "client_credentials"},
                auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
            ) as resp:
                if resp.status < 200 or resp.status >= 300:
                    body = await resp.text()
                    raise AuthError(f"FFLogs OAuth failed: {resp.status} - {body[:200]}")
                payload = await resp.json(content_type=None)
        except AuthError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthError(f"FFLogs OAuth request failed: {e!r}") from e
        except ValueError as e:
            raise AuthError(f"FFLogs OAuth returned invalid JSON: {e}") from e

        try:
            access_token = payload["access_token"]
            expires_in = int(payload["expires_in"])
        except (KeyError, TypeError, ValueError) as e:
            raise AuthError("FFLogs OAuth response is missing access_token/expires_in") from e
        if not isinstance(access_token, str) or not access_token:
            raise AuthError("FFLogs OAuth response has an empty access_token")

        self.refresh_count += 1
        log.info(f"FFLogs token refreshed (expires in {expires_in}s)")
        return AccessToken(token=access_token, expires_at=time.time() + expires_in)
