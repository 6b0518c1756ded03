"""
Tests for the Steam scanner.

HTTP calls are mocked with respx; no requests reach api.steampowered.com.
"""

import re

import httpx
import pytest
import respx

from arcana.scanner.base import CancellationToken
from arcana.scanner.steam import SteamAPIError, SteamScanner

OWNED_GAMES_URL = "https://api.steampowered.com/IPlayerService/GetOwnedGames/v1/"

OWNED_GAMES = {
    "response": {
        "game_count": 3,
        "games": [
            {"appid": 70, "name": "Half-Life", "playtime_forever": 125},
            {"appid": 400, "name": "Portal", "playtime_forever": 0},
            {"appid": 999999, "playtime_forever": 3},
        ],
    }
}


def steam_config(api_key="test-key", steam_id="76561197960287930", **extra):
    return {'steam': {'api_key': api_key, 'steam_id': steam_id, 'request_timeout': 5, **extra}}


class ProgressLog:
    def __init__(self):
        self.calls = []

    def __call__(self, phase=None, current=None, total=None, message=None):
        self.calls.append((phase, current, total, message))

    @property
    def phases(self):
        return [c[0] for c in self.calls]


@pytest.mark.unit
@pytest.mark.asyncio
class TestCanRun:

    async def test_configured_credentials(self):
        assert await SteamScanner(steam_config()).can_run() is True

    async def test_missing_key(self, caplog):
        scanner = SteamScanner(steam_config(api_key=None))

        assert await scanner.can_run() is False
        assert "no Steam Web API key" in caplog.text

    async def test_missing_steam_id(self):
        assert await SteamScanner(steam_config(steam_id=None)).can_run() is False

    async def test_stored_credentials(self, store):
        user = store.ensure_user('alice')
        store.set_active_user(user.id)
        store.set_api_key(user.id, 'Steam', 'stored-key', client_id='76561197960287930')

        scanner = SteamScanner(steam_config(api_key=None, steam_id=None), store=store)

        assert await scanner.can_run() is True
        assert scanner._resolve_credentials() == ('stored-key', '76561197960287930')

    async def test_config_overrides_stored_key(self, store):
        user = store.ensure_user('alice')
        store.set_api_key(user.id, 'Steam', 'stored-key', client_id='1')

        scanner = SteamScanner(steam_config(api_key='config-key', steam_id=None), store=store)

        assert scanner._resolve_credentials() == ('config-key', '1')


@pytest.mark.unit
@pytest.mark.asyncio
class TestScan:

    @respx.mock
    async def test_scan_returns_candidates(self):
        route = respx.get(OWNED_GAMES_URL).mock(return_value=httpx.Response(200, json=OWNED_GAMES))
        progress = ProgressLog()

        candidates = await SteamScanner(steam_config()).scan(progress, CancellationToken())

        assert [c.title for c in candidates] == ['Half-Life', 'Portal']
        assert all(c.platform == 'Steam' for c in candidates)
        assert candidates[0].appid == 70
        assert candidates[0].playtime_minutes == 125
        assert candidates[0].genre == 'Unknown'

        request = route.calls.last.request
        assert request.url.params['key'] == 'test-key'
        assert request.url.params['steamid'] == '76561197960287930'
        assert request.url.params['include_appinfo'] == '1'
        assert request.url.params['include_played_free_games'] == '1'

        assert progress.phases[0] == 'init'
        assert progress.phases[-1] == 'finalize'
        assert progress.calls[-1][3] == 'Assembled 2 games'
        assert ('collect', 1, 3, 'Found Half-Life') in progress.calls

    @respx.mock
    async def test_exclude_free_games(self):
        route = respx.get(OWNED_GAMES_URL).mock(return_value=httpx.Response(200, json=OWNED_GAMES))

        await SteamScanner(steam_config(include_free_games=False)).scan(ProgressLog(), CancellationToken())

        assert route.calls.last.request.url.params['include_played_free_games'] == '0'

    @respx.mock
    async def test_private_profile_returns_nothing(self):
        respx.get(OWNED_GAMES_URL).mock(return_value=httpx.Response(200, json={"response": {}}))

        candidates = await SteamScanner(steam_config()).scan(ProgressLog(), CancellationToken())

        assert candidates == []

    @respx.mock
    async def test_stops_early_when_cancelled(self):
        respx.get(OWNED_GAMES_URL).mock(return_value=httpx.Response(200, json=OWNED_GAMES))
        token = CancellationToken()
        token.cancel()

        candidates = await SteamScanner(steam_config()).scan(ProgressLog(), token)

        assert candidates == []

    @respx.mock
    async def test_uses_injected_client(self):
        respx.get(OWNED_GAMES_URL).mock(return_value=httpx.Response(200, json=OWNED_GAMES))

        async with httpx.AsyncClient() as client:
            scanner = SteamScanner(steam_config(), client=client)
            candidates = await scanner.scan(ProgressLog(), CancellationToken())
            assert not client.is_closed

        assert len(candidates) == 2


@pytest.mark.unit
@pytest.mark.asyncio
class TestErrors:

    @pytest.mark.parametrize("status,message", [
        (401, "Invalid Steam Web API key"),
        (403, "Access denied"),
        (429, "Rate limited"),
        (502, "Unexpected error (HTTP 502)"),
    ])
    async def test_http_errors(self, status, message):
        with respx.mock:
            respx.get(OWNED_GAMES_URL).mock(return_value=httpx.Response(status))

            with pytest.raises(SteamAPIError, match=re.escape(message)):
                await SteamScanner(steam_config()).scan(ProgressLog(), CancellationToken())

    @respx.mock
    async def test_timeout(self):
        respx.get(OWNED_GAMES_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))

        with pytest.raises(SteamAPIError, match="timed out"):
            await SteamScanner(steam_config()).scan(ProgressLog(), CancellationToken())

    @respx.mock
    async def test_connection_error(self):
        respx.get(OWNED_GAMES_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(SteamAPIError, match="request failed"):
            await SteamScanner(steam_config()).scan(ProgressLog(), CancellationToken())

    @respx.mock
    async def test_invalid_json(self):
        respx.get(OWNED_GAMES_URL).mock(return_value=httpx.Response(200, text="<html>"))

        with pytest.raises(SteamAPIError, match="Invalid JSON"):
            await SteamScanner(steam_config()).scan(ProgressLog(), CancellationToken())

    @respx.mock
    async def test_missing_response_object(self):
        respx.get(OWNED_GAMES_URL).mock(return_value=httpx.Response(200, json={"error": "nope"}))

        with pytest.raises(SteamAPIError, match="missing 'response'"):
            await SteamScanner(steam_config()).scan(ProgressLog(), CancellationToken())

    @respx.mock
    async def test_games_not_a_list(self):
        respx.get(OWNED_GAMES_URL).mock(
            return_value=httpx.Response(200, json={"response": {"games": {"appid": 1}}})
        )

        with pytest.raises(SteamAPIError, match="not a list"):
            await SteamScanner(steam_config()).scan(ProgressLog(), CancellationToken())


@pytest.mark.unit
class TestRedaction:

    def test_redacted_url_hides_key(self):
        scanner = SteamScanner(steam_config())
        url = scanner._build_redacted_url({'key': 'secret', 'steamid': '1'})

        assert 'secret' not in url
        assert 'key=redacted' in url
