from __future__ import annotations

import contextlib
from dataclasses import asdict

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from auth.callback import handle_callback, render_callback_page
from auth.session_auth import SpotifyAuth
from auth.urls import redirect_path

from .analytics import build_summary
from .api_client import SpotifyApiClient
from .constants import APP_VERSION, AUTH_MODE, LOGGER
from .errors import DashboardError, InvalidRequest
from .playback import PlaybackBridge

INDEX_PAGE = """<!doctype html>
<html>
<head><title>tunestats</title></head>
<body>
<h1>Spotify Stats</h1>
{body}
</body>
</html>
"""

LOGGED_OUT_BODY = """
<p>Connect your Spotify account to view your listening stats</p>
<p><a href="/login">Login with Spotify</a></p>
"""

LOGGED_IN_BODY = """
<p>
<button onclick="load('/api/recent?limit=10')">Load My Recent Tracks</button>
<button onclick="load('/api/top/tracks')">Top Tracks</button>
<button onclick="load('/api/top/artists')">Top Artists</button>
<button onclick="load('/api/analytics')">Analytics</button>
<button onclick="load('/api/player')">Player</button>
</p>
<form method="post" action="/logout"><button type="submit">Logout</button></form>
<pre id="output"></pre>
<script>
async function load(path) {
  const response = await fetch(path);
  const payload = await response.json();
  document.getElementById('output').textContent = JSON.stringify(payload, null, 2);
}
</script>
"""


def _int_param(request: Request, key: str, default: int) -> int:
    raw = request.query_params.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidRequest(f"{key} must be an integer.")


class Dashboard:
    def __init__(
        self,
        *,
        auth: SpotifyAuth,
        api: SpotifyApiClient,
        playback: PlaybackBridge,
    ) -> None:
        self.auth = auth
        self.api = api
        self.playback = playback

    def routes(self) -> list[Route]:
        return [
            Route("/", self.index, methods=["GET"]),
            Route("/health", self.health, methods=["GET"]),
            Route("/login", self.login, methods=["GET"]),
            Route(redirect_path(self.auth.redirect_uri), self.callback, methods=["GET"]),
            Route("/logout", self.logout, methods=["GET", "POST"]),
            Route("/api/session", self.session_info, methods=["GET"]),
            Route("/api/me", self.me, methods=["GET"]),
            Route("/api/recent", self.recent, methods=["GET"]),
            Route("/api/top/{kind}", self.top, methods=["GET"]),
            Route("/api/analytics", self.analytics, methods=["GET"]),
            Route("/api/tracks/{track_id}", self.track, methods=["GET"]),
            Route("/api/player", self.player_status, methods=["GET"]),
            Route("/api/player/token", self.player_token, methods=["GET"]),
            Route("/api/player/play", self.player_play, methods=["POST"]),
            Route("/api/player/error", self.player_error, methods=["POST"]),
            Route("/player/upgrade", self.player_upgrade, methods=["GET"]),
        ]

    # -- pages -----------------------------------------------------------------

    async def index(self, request: Request) -> Response:
        del request
        body = LOGGED_IN_BODY if await self.auth.is_authenticated() else LOGGED_OUT_BODY
        return HTMLResponse(INDEX_PAGE.format(body=body))

    async def health(self, request: Request) -> Response:
        del request
        return JSONResponse({"status": "ok", "version": APP_VERSION, "auth_mode": AUTH_MODE})

    async def login(self, request: Request) -> Response:
        del request
        return RedirectResponse(url=await self.auth.initiate(), status_code=302)

    async def callback(self, request: Request) -> Response:
        result = await handle_callback(self.auth, request.query_params)
        return render_callback_page(result)

    async def logout(self, request: Request) -> Response:
        del request
        await self.auth.logout()
        return RedirectResponse(url="/", status_code=303)

    async def player_upgrade(self, request: Request) -> Response:
        del request
        return RedirectResponse(url=await self.playback.upgrade(), status_code=302)

    # -- api -------------------------------------------------------------------

    async def session_info(self, request: Request) -> Response:
        del request
        state = await self.auth.state()
        scopes = await self.auth.granted_scopes()
        return JSONResponse({"state": state.value, "scopes": sorted(scopes)})

    async def me(self, request: Request) -> Response:
        del request
        return JSONResponse(asdict(await self.api.get_current_user()))

    async def recent(self, request: Request) -> Response:
        items = await self.api.get_recently_played(_int_param(request, "limit", 20))
        return JSONResponse({"items": [asdict(item) for item in items]})

    async def top(self, request: Request) -> Response:
        kind = request.path_params["kind"]
        time_range = request.query_params.get("time_range", "medium_term")
        limit = _int_param(request, "limit", 20)
        if kind == "tracks":
            items = await self.api.get_top_tracks(time_range, limit)
        elif kind == "artists":
            items = await self.api.get_top_artists(time_range, limit)
        else:
            return JSONResponse(
                {"error": "not_found", "message": f"Unknown top item type: {kind}"},
                status_code=404,
            )
        return JSONResponse({"items": [asdict(item) for item in items]})

    async def analytics(self, request: Request) -> Response:
        limit = _int_param(request, "limit", 20)
        recent = await self.api.get_recently_played(limit)
        all_ranges = await self.api.get_all_time_ranges(limit)
        return JSONResponse(build_summary(recent, all_ranges))

    async def track(self, request: Request) -> Response:
        track, features = await self.api.get_track_with_features(request.path_params["track_id"])
        return JSONResponse({"track": asdict(track), "features": asdict(features)})

    async def player_status(self, request: Request) -> Response:
        del request
        status = await self.playback.status()
        return JSONResponse(status.to_payload())

    async def player_token(self, request: Request) -> Response:
        del request
        return JSONResponse({"access_token": await self.playback.sdk_token()})

    async def player_play(self, request: Request) -> Response:
        payload = await _json_body(request)
        await self.playback.play(str(payload.get("device_id") or ""), str(payload.get("uri") or ""))
        return Response(status_code=204)

    async def player_error(self, request: Request) -> Response:
        payload = await _json_body(request)
        status = await self.playback.report_player_error(
            str(payload.get("kind") or ""), payload.get("message")
        )
        return JSONResponse(status.to_payload())


async def _json_body(request: Request) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidRequest("Invalid JSON body.")
    if not isinstance(payload, dict):
        raise InvalidRequest("JSON body must be an object.")
    return payload


async def dashboard_error_handler(request: Request, exc: DashboardError) -> Response:
    if isinstance(exc, InvalidRequest):
        LOGGER.info("Rejected request %s: %s", request.url.path, exc.message)
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


def build_app(dashboard: Dashboard) -> Starlette:
    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        del app
        yield
        await dashboard.api.aclose()

    return Starlette(
        routes=dashboard.routes(),
        exception_handlers={
            DashboardError: dashboard_error_handler,
        },
        lifespan=lifespan,
    )
