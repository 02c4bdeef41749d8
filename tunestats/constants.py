from __future__ import annotations

import logging

LOGGER = logging.getLogger("tunestats")
APP_VERSION = "0.1.0"
AUTH_MODE = "pkce-local"

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

READ_SCOPES = (
    "user-read-private",
    "user-read-email",
    "user-read-recently-played",
    "user-top-read",
    "user-read-currently-playing",
)
PLAYBACK_SCOPES = frozenset(
    {
        "streaming",
        "user-read-playback-state",
        "user-modify-playback-state",
    }
)
KNOWN_SCOPES = frozenset(READ_SCOPES) | PLAYBACK_SCOPES

TIME_RANGES = ("short_term", "medium_term", "long_term")
TIME_RANGE_LABELS = {
    "short_term": "Last 4 weeks",
    "medium_term": "Last 6 months",
    "long_term": "All time",
}

CALLBACK_REDIRECT_DELAY_SECONDS = 2
