from __future__ import annotations

import asyncio
from collections.abc import Sequence

import httpx

from auth.session_auth import SpotifyAuth

from .constants import LOGGER, SPOTIFY_API_BASE_URL, TIME_RANGES
from .errors import ApiRequestFailed, AuthenticationExpired, InvalidRequest, NoAccessToken
from .http import RetryTransport, error_for_response, handle_rate_limits
from .models import Artist, AudioFeatures, RecentlyPlayedItem, SpotifyUser, Track

MAX_PAGE_LIMIT = 50
AUDIO_FEATURES_BATCH_SIZE = 100


def _check_limit(limit: int) -> int:
    if not 1 <= limit <= MAX_PAGE_LIMIT:
        raise InvalidRequest(f"limit must be between 1 and {MAX_PAGE_LIMIT}, got {limit}.")
    return limit


def _check_time_range(time_range: str) -> str:
    if time_range not in TIME_RANGES:
        raise InvalidRequest(f"time_range must be one of {', '.join(TIME_RANGES)}.")
    return time_range


def build_http_client(
    *,
    base_url: str = SPOTIFY_API_BASE_URL,
    timeout: float = 30.0,
    max_retries: int = 2,
    debug: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    async def log_request(request: httpx.Request) -> None:
        if not debug:
            return
        LOGGER.info("Spotify API request %s %s", request.method, request.url)

    async def log_response(response: httpx.Response) -> None:
        if not debug:
            return
        LOGGER.info(
            "Spotify API response %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )
        if response.status_code >= 400:
            body = await response.aread()
            text = body.decode("utf-8", errors="replace")
            if len(text) > 1000:
                text = text[:1000] + "...<truncated>"
            LOGGER.warning("Spotify API error body: %s", text)

    retry_transport = RetryTransport(
        transport or httpx.AsyncHTTPTransport(),
        max_retries=max_retries,
        logger=LOGGER,
    )
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        transport=retry_transport,
        event_hooks={
            "request": [log_request],
            "response": [handle_rate_limits, log_response],
        },
    )


class SpotifyApiClient:
    """Authenticated reads against the Spotify Web API.

    Every request fetches the current token from the auth core first and fails
    with ``NoAccessToken`` before touching the network when there is none. A
    401 from Spotify clears the session before ``AuthenticationExpired`` is
    raised, so the next call fails closed instead of reusing a stale token.
    """

    def __init__(
        self,
        auth: SpotifyAuth,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = SPOTIFY_API_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 2,
        debug: bool = False,
    ) -> None:
        self.auth = auth
        self._client = client or build_http_client(
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            debug=debug,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
        logout_on_unauthorized: bool = True,
    ):
        token = await self.auth.get_access_token()
        if token is None:
            raise NoAccessToken()

        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as error:
            LOGGER.warning("Spotify API request failed %s %s: %s", method, path, error)
            raise ApiRequestFailed(
                502, "Could not reach Spotify. Check your connection and try again."
            ) from error

        if response.is_error:
            error = error_for_response(response)
            if logout_on_unauthorized and isinstance(error, AuthenticationExpired):
                await self.auth.logout()
            raise error

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as error:
            raise ApiRequestFailed(502, "Spotify returned an unreadable response.") from error

    # -- reads -----------------------------------------------------------------

    async def get_current_user(self) -> SpotifyUser:
        return SpotifyUser.from_payload(await self._request("GET", "/me"))

    async def get_recently_played(
        self,
        limit: int = 20,
        *,
        before: int | None = None,
        after: int | None = None,
    ) -> list[RecentlyPlayedItem]:
        if before is not None and after is not None:
            raise InvalidRequest("Only one of before or after may be given.")
        params: dict = {"limit": _check_limit(limit)}
        if before is not None:
            params["before"] = before
        if after is not None:
            params["after"] = after

        payload = await self._request("GET", "/me/player/recently-played", params=params)
        return [RecentlyPlayedItem.from_payload(item) for item in payload.get("items", [])]

    async def get_top_tracks(self, time_range: str = "medium_term", limit: int = 20) -> list[Track]:
        payload = await self._request(
            "GET",
            "/me/top/tracks",
            params={"time_range": _check_time_range(time_range), "limit": _check_limit(limit)},
        )
        return [Track.from_payload(item) for item in payload.get("items", [])]

    async def get_top_artists(
        self, time_range: str = "medium_term", limit: int = 20
    ) -> list[Artist]:
        payload = await self._request(
            "GET",
            "/me/top/artists",
            params={"time_range": _check_time_range(time_range), "limit": _check_limit(limit)},
        )
        return [Artist.from_payload(item) for item in payload.get("items", [])]

    async def get_all_time_ranges(self, limit: int = 20) -> dict[str, dict[str, list]]:
        tracks = await asyncio.gather(
            *(self.get_top_tracks(time_range, limit) for time_range in TIME_RANGES)
        )
        artists = await asyncio.gather(
            *(self.get_top_artists(time_range, limit) for time_range in TIME_RANGES)
        )
        return {
            "tracks": dict(zip(TIME_RANGES, tracks)),
            "artists": dict(zip(TIME_RANGES, artists)),
        }

    async def get_audio_features(self, track_ids: Sequence[str]) -> list[AudioFeatures]:
        features: list[AudioFeatures] = []
        for start in range(0, len(track_ids), AUDIO_FEATURES_BATCH_SIZE):
            batch = track_ids[start : start + AUDIO_FEATURES_BATCH_SIZE]
            payload = await self._request(
                "GET", "/audio-features", params={"ids": ",".join(batch)}
            )
            features.extend(
                AudioFeatures.from_payload(item)
                for item in payload.get("audio_features", [])
                if item
            )
        return features

    async def get_track_with_features(self, track_id: str) -> tuple[Track, AudioFeatures]:
        track_payload, features_payload = await asyncio.gather(
            self._request("GET", f"/tracks/{track_id}"),
            self._request("GET", f"/audio-features/{track_id}"),
        )
        return Track.from_payload(track_payload), AudioFeatures.from_payload(features_payload)

    # -- playback --------------------------------------------------------------

    async def start_playback(self, device_id: str, uris: Sequence[str]) -> None:
        """Start ``uris`` on the given SDK device.

        A 401 here usually means the token lacks playback scopes, so the
        session is left in place and the caller decides what to do.
        """
        await self._request(
            "PUT",
            "/me/player/play",
            params={"device_id": device_id},
            json={"uris": list(uris)},
            logout_on_unauthorized=False,
        )
