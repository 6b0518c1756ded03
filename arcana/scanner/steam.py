"""Steam library scanner using the Steam Web API."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from arcana.catalog.store import CatalogStore
from arcana.scanner.base import (
    CancellationToken,
    PlatformScanner,
    ProgressCallback,
    ScannedCandidate,
)

logger = logging.getLogger(__name__)


class SteamAPIError(Exception):
    """Steam Web API request failed."""
    pass


# HTTP status code mapping for GetOwnedGames
HTTP_STATUS_MESSAGES = {
    400: "Malformed request (check steam_id)",
    401: "Invalid Steam Web API key",
    403: "Access denied (invalid key or private profile)",
    429: "Rate limited by Steam",
    500: "Steam API internal error",
    503: "Steam API unavailable",
}


class SteamScanner(PlatformScanner):
    """
    Scans a Steam account's owned games.

    Credentials come from the `steam` config section (api_key, steam_id) or,
    failing that, from the catalog's stored API key for the Steam platform,
    where the key's client_id holds the SteamID.
    """

    name = "Steam"
    BASE_URL = "https://api.steampowered.com"
    OWNED_GAMES_PATH = "/IPlayerService/GetOwnedGames/v1/"

    def __init__(
        self,
        config: Dict[str, Any],
        store: Optional[CatalogStore] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize Steam scanner

        Args:
            config: Configuration dictionary
            store: Optional catalog store for stored credentials
            client: Optional httpx.AsyncClient (a client is created per scan if omitted)
        """
        steam_config = config.get('steam', {}) or {}
        self.api_key = steam_config.get('api_key')
        self.steam_id = steam_config.get('steam_id')
        self.include_free_games = steam_config.get('include_free_games', True)
        self.request_timeout = steam_config.get('request_timeout', 30)
        self._timeout = httpx.Timeout(
            connect=5.0,
            read=self.request_timeout,
            write=5.0,
            pool=5.0
        )
        self.store = store
        self.client = client

    def _resolve_credentials(self) -> Tuple[Optional[str], Optional[str]]:
        if self.api_key and self.steam_id:
            return self.api_key, str(self.steam_id)

        if self.store is None:
            return self.api_key, self.steam_id

        stored = self.store.get_api_key(self.name)
        if stored is None:
            return self.api_key, self.steam_id
        return self.api_key or stored.key, self.steam_id or stored.client_id

    async def can_run(self) -> bool:
        api_key, steam_id = await asyncio.to_thread(self._resolve_credentials)
        if not api_key:
            logger.warning("Steam scan unavailable: no Steam Web API key configured or stored")
            return False
        if not steam_id:
            logger.warning("Steam scan unavailable: no SteamID configured or stored")
            return False
        return True

    def _build_redacted_url(self, params: Dict[str, Any]) -> str:
        """Build URL with the API key redacted for logging."""
        redacted_params = params.copy()
        redacted_params['key'] = 'redacted'
        return f"{self.BASE_URL}{self.OWNED_GAMES_PATH}?{urlencode(redacted_params)}"

    async def fetch_owned_games(self, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
        """
        Fetch the raw owned-games list.

        Args:
            client: HTTP client to use

        Returns:
            List of game dicts as returned by Steam

        Raises:
            SteamAPIError: On HTTP errors or a malformed response
        """
        api_key, steam_id = await asyncio.to_thread(self._resolve_credentials)
        params = {
            'key': api_key,
            'steamid': steam_id,
            'include_appinfo': 1,
            'include_played_free_games': 1 if self.include_free_games else 0,
            'format': 'json',
        }
        logger.debug(f"GET {self._build_redacted_url(params)}")

        try:
            response = await client.get(
                f"{self.BASE_URL}{self.OWNED_GAMES_PATH}",
                params=params,
                timeout=self._timeout
            )
        except httpx.TimeoutException as e:
            raise SteamAPIError(f"Steam API request timed out: {e}") from e
        except httpx.RequestError as e:
            raise SteamAPIError(f"Steam API request failed: {e}") from e

        if response.status_code != 200:
            message = HTTP_STATUS_MESSAGES.get(
                response.status_code,
                f"Unexpected error (HTTP {response.status_code})"
            )
            raise SteamAPIError(message)

        try:
            payload = response.json()
        except ValueError as e:
            raise SteamAPIError(f"Invalid JSON from Steam API: {e}") from e

        body = payload.get('response') if isinstance(payload, dict) else None
        if not isinstance(body, dict):
            raise SteamAPIError("Steam API response missing 'response' object")

        # Private profiles return an empty response object
        games = body.get('games', [])
        if not isinstance(games, list):
            raise SteamAPIError("Steam API response 'games' is not a list")
        return games

    async def scan(
        self,
        progress: ProgressCallback,
        token: CancellationToken
    ) -> List[ScannedCandidate]:
        progress(phase='init', message='Starting Steam scan')

        progress(phase='fetch', message='Fetching owned games')
        if self.client is not None:
            games = await self.fetch_owned_games(self.client)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                games = await self.fetch_owned_games(client)

        candidates: List[ScannedCandidate] = []
        total = len(games)
        for index, game in enumerate(games, start=1):
            if token.cancelled:
                logger.debug(f"Steam scan stopping early at {index - 1}/{total}")
                break

            title = (game.get('name') or '').strip()
            if not title:
                logger.debug(f"Skipping Steam app without a name: {game.get('appid')}")
                continue

            progress(phase='collect', current=index, total=total, message=f"Found {title}")
            candidates.append(ScannedCandidate(
                title=title,
                platform=self.name,
                genre='Unknown',
                appid=game.get('appid'),
                playtime_minutes=game.get('playtime_forever'),
            ))

        progress(phase='finalize', message=f"Assembled {len(candidates)} games")
        return candidates
