from __future__ import annotations

import uvicorn
from starlette.applications import Starlette

from auth.session_auth import SpotifyAuth
from auth.session_store import FileSessionStore
from tunestats.api_client import SpotifyApiClient
from tunestats.constants import LOGGER
from tunestats.dashboard import Dashboard, build_app
from tunestats.env import load_env, load_settings, setup_logging, validate_env
from tunestats.playback import PlaybackBridge


def create_app() -> Starlette:
    load_env()
    debug_enabled = setup_logging()
    validate_env()
    settings = load_settings()

    store = FileSessionStore(settings.session_path)
    auth = SpotifyAuth(
        store,
        client_id=settings.client_id,
        redirect_uri=settings.redirect_uri,
        scopes=settings.scopes,
    )
    api = SpotifyApiClient(
        auth,
        base_url=settings.api_base_url,
        timeout=settings.api_timeout,
        max_retries=settings.api_max_retries,
        debug=debug_enabled,
    )
    dashboard = Dashboard(auth=auth, api=api, playback=PlaybackBridge(auth, api))
    LOGGER.info("Session stored at %s", store.path)
    return build_app(dashboard)


def main() -> None:
    load_env()
    settings = load_settings()
    app = create_app()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
