from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from auth.urls import is_allowed_redirect_uri

from .constants import KNOWN_SCOPES, LOGGER, PLAYBACK_SCOPES, READ_SCOPES, SPOTIFY_API_BASE_URL

_URL_ADAPTER = TypeAdapter(AnyHttpUrl)


@dataclass
class Settings:
    client_id: str
    redirect_uri: str
    scopes: list[str]
    session_path: Path
    api_base_url: str = SPOTIFY_API_BASE_URL
    api_timeout: float = 30.0
    api_max_retries: int = 2
    host: str = "127.0.0.1"
    port: int = 8888


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")


def requested_scopes() -> list[str]:
    scopes = os.getenv("SPOTIFY_SCOPES", "").split() or list(READ_SCOPES)
    if is_truthy(os.getenv("TUNESTATS_ENABLE_PLAYBACK")):
        for scope in sorted(PLAYBACK_SCOPES):
            if scope not in scopes:
                scopes.append(scope)
    return scopes


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    from dotenv import load_dotenv

    load_dotenv(env_path, override=True)


def validate_env() -> None:
    required = ("SPOTIFY_CLIENT_ID", "SPOTIFY_REDIRECT_URI")
    missing = [key for key in required if not os.getenv(key, "").strip()]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    redirect_uri = os.getenv("SPOTIFY_REDIRECT_URI", "").strip()
    try:
        _URL_ADAPTER.validate_python(redirect_uri)
    except ValidationError as error:
        raise RuntimeError(
            "SPOTIFY_REDIRECT_URI must be a valid URL (for example: "
            "http://127.0.0.1:8888/callback)."
        ) from error
    if not is_allowed_redirect_uri(redirect_uri):
        raise RuntimeError(
            "SPOTIFY_REDIRECT_URI must use https or point at a loopback address over http."
        )

    unknown = [scope for scope in requested_scopes() if scope not in KNOWN_SCOPES]
    if unknown:
        LOGGER.warning("SPOTIFY_SCOPES contains unrecognized scopes: %s", " ".join(unknown))


def load_settings() -> Settings:
    return Settings(
        client_id=os.getenv("SPOTIFY_CLIENT_ID", "").strip(),
        redirect_uri=os.getenv("SPOTIFY_REDIRECT_URI", "").strip(),
        scopes=requested_scopes(),
        session_path=Path(os.getenv("TUNESTATS_SESSION_PATH", ".tunestats_session.json")),
        api_base_url=os.getenv("SPOTIFY_API_BASE_URL", SPOTIFY_API_BASE_URL),
        api_timeout=_get_env_float("SPOTIFY_API_TIMEOUT", 30.0),
        api_max_retries=_get_env_int("SPOTIFY_API_MAX_RETRIES", 2),
        host=os.getenv("HOST", "127.0.0.1"),
        port=_get_env_int("PORT", 8888),
    )


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("TUNESTATS_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
