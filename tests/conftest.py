import pytest

ENV_KEYS = (
    "SPOTIFY_CLIENT_ID",
    "SPOTIFY_REDIRECT_URI",
    "SPOTIFY_SCOPES",
    "SPOTIFY_API_BASE_URL",
    "SPOTIFY_API_TIMEOUT",
    "SPOTIFY_API_MAX_RETRIES",
    "TUNESTATS_ENABLE_PLAYBACK",
    "TUNESTATS_SESSION_PATH",
    "TUNESTATS_DEBUG",
    "HOST",
    "PORT",
)


@pytest.fixture
def spotify_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SPOTIFY_CLIENT_ID", "client-123")
    monkeypatch.setenv("SPOTIFY_REDIRECT_URI", "http://127.0.0.1:8888/callback")
    monkeypatch.setenv("TUNESTATS_SESSION_PATH", str(tmp_path / "session.json"))
    return monkeypatch
