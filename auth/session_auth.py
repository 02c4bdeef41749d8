from __future__ import annotations

import enum
from collections.abc import Callable, Iterable

from auth import pkce, spotify_oauth2
from auth.session_store import PendingHandshake, SessionStore
from tunestats.constants import LOGGER, READ_SCOPES
from tunestats.errors import MissingVerifier


class AuthState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHORIZATION_PENDING = "authorization_pending"
    AUTHENTICATED = "authenticated"


class SpotifyAuth:
    """Authorization Code + PKCE session manager for a single local user.

    ``initiate`` and ``complete_handshake`` are independent entry points; the
    only thing correlating them is the verifier persisted in the store.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        client_id: str,
        redirect_uri: str,
        scopes: Iterable[str] | None = None,
        verifier_length: int = pkce.MAX_VERIFIER_LENGTH,
        exchange_code_fn=spotify_oauth2.exchange_code,
        clock: Callable[[], int] = spotify_oauth2.now_ms,
    ) -> None:
        self.store = store
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.scopes = list(scopes) if scopes else list(READ_SCOPES)
        self.verifier_length = verifier_length
        self._exchange_code_fn = exchange_code_fn
        self._clock = clock

    # -- handshake -------------------------------------------------------------

    async def initiate(self, scopes: Iterable[str] | None = None) -> str:
        """Persist a fresh verifier and return the provider URL to navigate to."""
        requested = list(scopes) if scopes is not None else self.scopes
        verifier = pkce.generate_verifier(self.verifier_length)
        challenge = pkce.derive_challenge(verifier)
        state = pkce.generate_state()

        await self.store.save_pending(
            PendingHandshake(verifier=verifier, state=state, requested_scopes=tuple(requested))
        )
        LOGGER.info("Authorization initiated scopes=%s", " ".join(requested))

        return spotify_oauth2.build_authorization_url(
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            scopes=requested,
            code_challenge=challenge,
            state=state,
        )

    async def complete_handshake(self, code: str, state: str | None = None) -> str:
        pending = await self.store.take_pending()
        if pending is None:
            raise MissingVerifier()
        if pending.state is not None and state != pending.state:
            LOGGER.warning("Callback state does not match the pending authorization.")
            raise MissingVerifier(
                "This login response does not match the most recent login attempt. "
                "Please start the login again."
            )

        token = await self._exchange_code_fn(
            client_id=self.client_id,
            code=code,
            redirect_uri=self.redirect_uri,
            code_verifier=pending.verifier,
            requested_scopes=pending.requested_scopes or self.scopes,
        )
        await self.store.save_tokens(token.to_token_group())
        LOGGER.info("Authorization completed granted_scopes=%s", token.scope)
        return token.access_token

    async def abandon_handshake(self) -> None:
        await self.store.take_pending()

    # -- session queries -------------------------------------------------------

    async def get_access_token(self) -> str | None:
        session = await self.store.load()
        if session.access_token is None:
            return None
        if session.is_expired(self._clock()):
            LOGGER.info("Access token expired; clearing session.")
            await self.store.clear_tokens()
            return None
        return session.access_token

    async def is_authenticated(self) -> bool:
        return await self.get_access_token() is not None

    async def granted_scopes(self) -> frozenset[str]:
        if not await self.is_authenticated():
            return frozenset()
        session = await self.store.load()
        return session.granted_scopes

    async def has_scopes(self, required: Iterable[str]) -> bool:
        granted = await self.granted_scopes()
        return set(required) <= granted

    async def missing_scopes(self, required: Iterable[str]) -> frozenset[str]:
        granted = await self.granted_scopes()
        return frozenset(required) - granted

    async def needs_upgrade(self, required_for_feature: Iterable[str]) -> bool:
        if not await self.is_authenticated():
            return False
        return not await self.has_scopes(required_for_feature)

    async def state(self) -> AuthState:
        if await self.is_authenticated():
            return AuthState.AUTHENTICATED
        session = await self.store.load()
        if session.pending_verifier:
            return AuthState.AUTHORIZATION_PENDING
        return AuthState.UNAUTHENTICATED

    # -- session changes -------------------------------------------------------

    async def force_reauth(self, extra_scopes: Iterable[str] = ()) -> str:
        requested = list(self.scopes)
        for scope in sorted(extra_scopes):
            if scope not in requested:
                requested.append(scope)

        await self.store.clear()
        LOGGER.info("Forcing re-authentication for additional scopes.")
        return await self.initiate(requested)

    async def logout(self) -> None:
        await self.store.clear_tokens()
