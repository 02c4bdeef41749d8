from __future__ import annotations

import time
import urllib.parse
from collections.abc import Iterable
from dataclasses import dataclass

import httpx

from auth.session_store import TokenGroup
from tunestats.constants import LOGGER
from tunestats.errors import ExchangeFailed

SPOTIFY_AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class TokenResponse:
    access_token: str
    refresh_token: str | None
    expires_in: int
    expires_at: int  # epoch ms
    scope: str

    @property
    def scopes(self) -> frozenset[str]:
        return frozenset(self.scope.split())

    def to_token_group(self) -> TokenGroup:
        return TokenGroup(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.expires_at,
            granted_scopes=self.scopes,
        )

    @classmethod
    def from_payload(
        cls,
        payload: dict,
        requested_scopes: Iterable[str] = (),
        *,
        issued_at_ms: int | None = None,
    ) -> "TokenResponse":
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        expires_in = payload.get("expires_in")
        scope = payload.get("scope")

        if not isinstance(access_token, str) or not access_token:
            raise ExchangeFailed("Token response missing access_token.")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise ExchangeFailed("Token response refresh_token must be a string.")
        if isinstance(expires_in, bool) or not isinstance(expires_in, int):
            raise ExchangeFailed("Token response missing expires_in.")
        if scope is None:
            scope = " ".join(requested_scopes)
        if not isinstance(scope, str):
            raise ExchangeFailed("Token response scope must be a string.")

        issued_at = now_ms() if issued_at_ms is None else issued_at_ms
        return cls(
            access_token=access_token,
            refresh_token=refresh_token or None,
            expires_in=expires_in,
            expires_at=issued_at + expires_in * 1000,
            scope=scope,
        )


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: Iterable[str],
    code_challenge: str,
    state: str | None = None,
) -> str:
    query = {
        "response_type": "code",
        "client_id": client_id,
        "scope": " ".join(scopes),
        "code_challenge_method": "S256",
        "code_challenge": code_challenge,
        "redirect_uri": redirect_uri,
    }
    if state:
        query["state"] = state
    return f"{SPOTIFY_AUTHORIZE_URL}?{urllib.parse.urlencode(query)}"


def _provider_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        description = payload.get("error_description")
        if isinstance(description, str) and description:
            return description
        error = payload.get("error")
        if isinstance(error, str) and error:
            return error
    return f"Token exchange failed with status {response.status_code}."


async def exchange_code(
    client_id: str,
    code: str,
    redirect_uri: str,
    code_verifier: str,
    *,
    requested_scopes: Iterable[str] = (),
    client: httpx.AsyncClient | None = None,
) -> TokenResponse:
    own_client = client is None
    http_client = client or httpx.AsyncClient()
    payload = {
        "client_id": client_id,
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "code_verifier": code_verifier,
    }

    try:
        response = await http_client.post(SPOTIFY_TOKEN_URL, data=payload)
    except httpx.HTTPError as error:
        raise ExchangeFailed(f"Token request failed: {error}") from error
    finally:
        if own_client:
            await http_client.aclose()

    if response.is_error:
        message = _provider_error_message(response)
        LOGGER.warning(
            "Token exchange rejected status=%s message=%s", response.status_code, message
        )
        raise ExchangeFailed(message)

    try:
        body = response.json()
    except ValueError as error:
        raise ExchangeFailed("Token response was not valid JSON.") from error
    if not isinstance(body, dict):
        raise ExchangeFailed("Token response must be a JSON object.")
    return TokenResponse.from_payload(body, requested_scopes)
