from __future__ import annotations

import enum
from dataclasses import dataclass, field

from auth.session_auth import SpotifyAuth

from .api_client import SpotifyApiClient
from .constants import LOGGER, PLAYBACK_SCOPES
from .errors import AuthenticationExpired, InvalidRequest, NoAccessToken, ScopeInsufficient

PLAYER_NAME = "tunestats Player"
PLAYER_VOLUME = 0.5
SDK_ERROR_KINDS = {
    "initialization_error",
    "authentication_error",
    "account_error",
    "playback_error",
}


class PlayerState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    UPGRADE_REQUIRED = "upgrade_required"
    UNAVAILABLE = "unavailable"
    READY = "ready"


@dataclass
class PlayerStatus:
    state: PlayerState
    message: str | None = None
    missing_scopes: list[str] = field(default_factory=list)

    def to_payload(self) -> dict:
        payload: dict = {"state": self.state.value, "message": self.message}
        if self.state is PlayerState.UPGRADE_REQUIRED:
            payload["missing_scopes"] = self.missing_scopes
            payload["upgrade_url"] = "/player/upgrade"
        if self.state is PlayerState.READY:
            payload["player_name"] = PLAYER_NAME
            payload["volume"] = PLAYER_VOLUME
        return payload


class PlaybackBridge:
    """Gatekeeper between the session and the in-browser playback SDK.

    The SDK is only allowed to initialize once the session holds the playback
    scopes. Errors the SDK reports trigger a scope re-check; they never log
    the user out on their own. Observations about the player (account errors,
    a rejected play token) belong to the token they were made with and are
    dropped as soon as the session changes.
    """

    def __init__(self, auth: SpotifyAuth, api: SpotifyApiClient) -> None:
        self.auth = auth
        self.api = api
        self._session_token: str | None = None
        self._account_error: str | None = None
        self._token_rejected = False

    async def _sync_session(self) -> str | None:
        token = await self.auth.get_access_token()
        if token != self._session_token:
            self._session_token = token
            self._account_error = None
            self._token_rejected = False
        return token

    async def _missing_playback_scopes(self) -> frozenset[str]:
        if self._token_rejected:
            return PLAYBACK_SCOPES
        return await self.auth.missing_scopes(PLAYBACK_SCOPES)

    async def status(self) -> PlayerStatus:
        if await self._sync_session() is None:
            return PlayerStatus(PlayerState.UNAUTHENTICATED, "Log in to enable playback.")

        missing = await self._missing_playback_scopes()
        if missing:
            return PlayerStatus(
                PlayerState.UPGRADE_REQUIRED,
                "Your login needs additional permissions for music playback.",
                missing_scopes=sorted(missing),
            )
        if self._account_error:
            return PlayerStatus(PlayerState.UNAVAILABLE, self._account_error)
        return PlayerStatus(PlayerState.READY)

    async def _require_playback_scopes(self) -> str:
        token = await self._sync_session()
        if token is None:
            raise NoAccessToken()
        missing = await self._missing_playback_scopes()
        if missing:
            raise ScopeInsufficient(missing)
        return token

    async def sdk_token(self) -> str:
        """Token handed to the SDK's getOAuthToken callback."""
        return await self._require_playback_scopes()

    async def upgrade(self) -> str:
        self._account_error = None
        self._token_rejected = False
        return await self.auth.force_reauth(PLAYBACK_SCOPES)

    async def report_player_error(self, kind: str, message: str | None = None) -> PlayerStatus:
        if kind not in SDK_ERROR_KINDS:
            raise InvalidRequest(f"Unknown player error kind: {kind}")
        LOGGER.warning("Player reported %s: %s", kind, message)

        await self._sync_session()
        if kind == "account_error":
            self._account_error = message or "This account cannot use in-browser playback."
        return await self.status()

    async def play(self, device_id: str, track_uri: str) -> None:
        if not device_id:
            raise InvalidRequest("device_id is required.")
        if not track_uri:
            raise InvalidRequest("uri is required.")
        await self._require_playback_scopes()
        try:
            await self.api.start_playback(device_id, [track_uri])
        except AuthenticationExpired:
            LOGGER.warning("Play request rejected the token; asking for playback consent.")
            self._token_rejected = True
            raise ScopeInsufficient(await self._missing_playback_scopes())
