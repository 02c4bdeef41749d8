from __future__ import annotations

import html
from collections.abc import Mapping
from dataclasses import dataclass

from starlette.responses import HTMLResponse

from auth.session_auth import SpotifyAuth
from tunestats.constants import CALLBACK_REDIRECT_DELAY_SECONDS, LOGGER
from tunestats.errors import AuthorizationDenied, DashboardError, MissingAuthorizationCode


@dataclass
class CallbackResult:
    ok: bool
    message: str
    status_code: int = 200
    redirect_to: str | None = None
    redirect_delay_seconds: int | None = None


async def handle_callback(auth: SpotifyAuth, params: Mapping[str, str]) -> CallbackResult:
    """Finish a provider redirect exactly once; never retries on failure."""
    try:
        error = params.get("error")
        if error:
            await auth.abandon_handshake()
            raise AuthorizationDenied(error)

        code = params.get("code")
        if not code:
            raise MissingAuthorizationCode()

        await auth.complete_handshake(code, params.get("state"))
    except DashboardError as failure:
        LOGGER.warning("Authorization callback failed: %s", failure.message)
        return CallbackResult(
            ok=False,
            message=failure.message,
            status_code=failure.status_code,
        )

    return CallbackResult(
        ok=True,
        message="Redirecting you back to the app...",
        redirect_to="/",
        redirect_delay_seconds=CALLBACK_REDIRECT_DELAY_SECONDS,
    )


def render_callback_page(result: CallbackResult) -> HTMLResponse:
    message = html.escape(result.message)
    if result.ok:
        target = html.escape(result.redirect_to or "/", quote=True)
        body = (
            f'<meta http-equiv="refresh" content="{result.redirect_delay_seconds};url={target}">'
            "<h2>Authentication Successful!</h2>"
            f"<p>{message}</p>"
        )
    else:
        body = (
            "<h2>Authentication Failed</h2>"
            f"<p>{message}</p>"
            '<p><a href="/">Return to App</a></p>'
        )
    page = (
        "<!doctype html><html><head><title>tunestats</title></head>"
        f'<body style="padding: 20px; text-align: center">{body}</body></html>'
    )
    return HTMLResponse(page, status_code=result.status_code)
