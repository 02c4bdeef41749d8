import json

import httpx
import pytest

from auth.session_store import MemorySessionStore
from tests.api_helpers import build_api_client
from tests.auth_helpers import build_auth, session_items
from tunestats.api_client import SpotifyApiClient, build_http_client
from tunestats.errors import (
    AccessForbidden,
    ApiRequestFailed,
    AuthenticationExpired,
    InvalidRequest,
    NoAccessToken,
    RateLimited,
)
from tunestats.http import DEVELOPER_MODE_HINT

TRACK = {
    "id": "t1",
    "name": "Song",
    "uri": "spotify:track:t1",
    "duration_ms": 180000,
    "artists": [{"id": "a1", "name": "Artist"}],
    "album": {"name": "Album", "images": [{"url": "https://img/1"}]},
    "external_urls": {"spotify": "https://open.spotify.com/track/t1"},
}
FEATURES = {"id": "t1", "danceability": 0.5, "energy": 0.7, "tempo": 120.0, "key": 5, "mode": 1}
RECENT = {"items": [{"track": TRACK, "played_at": "2024-01-01T00:00:00Z"}]}
ARTISTS = {"items": [{"id": "a1", "name": "Artist", "genres": ["indie"]}]}


def _build_client(routes, *, items=None, max_retries: int = 0):
    api, auth, _, recorder = build_api_client(
        routes, items=items or session_items(), max_retries=max_retries
    )
    return api, auth, recorder


@pytest.mark.asyncio
async def test_request_sends_bearer_token() -> None:
    api, _, recorder = _build_client({"/v1/me": (200, {"json": {"id": "u1", "display_name": "User"}})})

    user = await api.get_current_user()

    assert user.id == "u1"
    assert user.display_name == "User"
    assert recorder.requests[0].headers["authorization"] == "Bearer access-token"


@pytest.mark.asyncio
async def test_no_token_fails_before_network() -> None:
    api, _, recorder = _build_client({}, items={"code_verifier": "x" * 43})

    with pytest.raises(NoAccessToken):
        await api.get_current_user()

    assert recorder.requests == []


@pytest.mark.asyncio
async def test_401_clears_session_even_before_expiry() -> None:
    api, auth, _ = _build_client(
        {"/v1/me": (401, {"json": {"error": {"status": 401, "message": "expired"}}})}
    )

    with pytest.raises(AuthenticationExpired, match="log in again"):
        await api.get_current_user()

    assert await auth.get_access_token() is None
    assert await auth.is_authenticated() is False


@pytest.mark.asyncio
async def test_403_surfaces_detail_and_hint_without_logout() -> None:
    message = "User not registered in the Developer Dashboard"
    api, auth, _ = _build_client(
        {"/v1/me": (403, {"json": {"error": {"status": 403, "message": message}}})}
    )

    with pytest.raises(AccessForbidden) as excinfo:
        await api.get_current_user()

    assert excinfo.value.detail == message
    assert excinfo.value.hint == DEVELOPER_MODE_HINT
    assert await auth.is_authenticated() is True


@pytest.mark.asyncio
async def test_429_is_not_retried_and_keeps_session() -> None:
    api, auth, recorder = _build_client(
        {"/v1/me": (429, {"headers": {"retry-after": "7"}})}, max_retries=2
    )

    with pytest.raises(RateLimited) as excinfo:
        await api.get_current_user()

    assert excinfo.value.retry_after == 7
    assert "wait 7 seconds" in excinfo.value.message
    assert len(recorder.requests) == 1
    assert await auth.is_authenticated() is True


@pytest.mark.asyncio
async def test_other_errors_are_reported() -> None:
    api, auth, _ = _build_client(
        {
            "/v1/tracks/missing": (404, {"json": {}}),
            "/v1/audio-features/missing": (404, {"json": {}}),
        }
    )

    with pytest.raises(ApiRequestFailed) as excinfo:
        await api.get_track_with_features("missing")

    assert excinfo.value.status_code == 404
    assert await auth.is_authenticated() is True


@pytest.mark.asyncio
async def test_recently_played_passes_limit() -> None:
    api, _, recorder = _build_client({"/v1/me/player/recently-played": (200, {"json": RECENT})})

    items = await api.get_recently_played(10)

    assert recorder.requests[0].url.params["limit"] == "10"
    assert items[0].track.name == "Song"
    assert items[0].track.artist_names == ["Artist"]
    assert items[0].played_at == "2024-01-01T00:00:00Z"


@pytest.mark.asyncio
async def test_top_tracks_uses_time_range() -> None:
    api, _, recorder = _build_client(
        {"/v1/me/top/tracks": (200, {"json": {"items": [TRACK], "total": 1}})}
    )

    tracks = await api.get_top_tracks("short_term", 5)

    assert recorder.requests[0].url.params["time_range"] == "short_term"
    assert recorder.requests[0].url.params["limit"] == "5"
    assert tracks[0].album_images == ["https://img/1"]


@pytest.mark.asyncio
async def test_invalid_arguments_rejected_without_network() -> None:
    api, _, recorder = _build_client({})

    with pytest.raises(InvalidRequest):
        await api.get_top_tracks("forever")
    with pytest.raises(InvalidRequest):
        await api.get_top_artists("long_term", 51)

    assert recorder.requests == []


@pytest.mark.asyncio
async def test_all_time_ranges() -> None:
    api, _, recorder = _build_client(
        {
            "/v1/me/top/tracks": (200, {"json": {"items": [TRACK]}}),
            "/v1/me/top/artists": (200, {"json": ARTISTS}),
        }
    )

    result = await api.get_all_time_ranges(10)

    assert set(result["tracks"]) == {"short_term", "medium_term", "long_term"}
    assert result["artists"]["long_term"][0].genres == ["indie"]
    assert len(recorder.requests) == 6


@pytest.mark.asyncio
async def test_audio_features_comma_joins_ids() -> None:
    api, _, recorder = _build_client(
        {"/v1/audio-features": (200, {"json": {"audio_features": [FEATURES, None]}})}
    )

    features = await api.get_audio_features(["t1", "t2"])

    assert recorder.requests[0].url.params["ids"] == "t1,t2"
    assert [item.id for item in features] == ["t1"]


@pytest.mark.asyncio
async def test_audio_features_batches_large_requests() -> None:
    api, _, recorder = _build_client(
        {"/v1/audio-features": (200, {"json": {"audio_features": []}})}
    )

    await api.get_audio_features([f"t{index}" for index in range(150)])

    assert len(recorder.requests) == 2
    assert len(recorder.requests[1].url.params["ids"].split(",")) == 50


@pytest.mark.asyncio
async def test_track_with_features() -> None:
    api, _, _ = _build_client(
        {
            "/v1/tracks/t1": (200, {"json": TRACK}),
            "/v1/audio-features/t1": (200, {"json": FEATURES}),
        }
    )

    track, features = await api.get_track_with_features("t1")

    assert track.id == "t1"
    assert features.energy == 0.7
    assert features.key == 5


@pytest.mark.asyncio
async def test_start_playback_sends_device_and_uris() -> None:
    api, _, recorder = _build_client({"/v1/me/player/play": (204, {})})

    await api.start_playback("device-1", ["spotify:track:t1"])

    request = recorder.requests[0]
    assert request.method == "PUT"
    assert request.url.params["device_id"] == "device-1"
    assert json.loads(request.content) == {"uris": ["spotify:track:t1"]}


@pytest.mark.asyncio
async def test_network_failure_is_reported_readably() -> None:
    async def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    auth, _, _ = build_auth(store=MemorySessionStore(session_items()))
    client = build_http_client(transport=httpx.MockTransport(unreachable), max_retries=0)
    api = SpotifyApiClient(auth, client=client)

    with pytest.raises(ApiRequestFailed, match="Could not reach Spotify") as excinfo:
        await api.get_current_user()

    assert excinfo.value.status_code == 502
    assert await auth.is_authenticated() is True


@pytest.mark.asyncio
async def test_unreadable_body_is_a_server_side_failure() -> None:
    api, _, _ = _build_client({"/v1/me": (200, {"content": b"<html>oops</html>"})})

    with pytest.raises(ApiRequestFailed, match="unreadable response") as excinfo:
        await api.get_current_user()

    assert excinfo.value.status_code == 502


@pytest.mark.asyncio
async def test_play_401_keeps_session() -> None:
    api, auth, _ = _build_client({"/v1/me/player/play": (401, {"json": {}})})

    with pytest.raises(AuthenticationExpired):
        await api.start_playback("device-1", ["spotify:track:t1"])

    assert await auth.is_authenticated() is True
