from __future__ import annotations

import asyncio
import logging

import httpx

from .constants import LOGGER
from .errors import (
    AccessForbidden,
    ApiRequestFailed,
    AuthenticationExpired,
    DashboardError,
    RateLimited,
)

DEVELOPER_MODE_HINT = (
    "This Spotify app is in development mode. Add your Spotify account under "
    "'Users and Access' in the Spotify developer dashboard, then log in again."
)
PREMIUM_HINT = "In-browser playback requires a Spotify Premium account."


def retry_after_seconds(header: str | None) -> int | None:
    if header is None:
        return None
    try:
        return max(0, int(header))
    except ValueError:
        return None


class RetryTransport(httpx.AsyncBaseTransport):
    """Retries 5xx responses with exponential backoff. 429 is never retried."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        *,
        max_retries: int = 2,
        sleep=asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._transport = transport
        self._max_retries = max(0, max_retries)
        self._sleep = sleep
        self._logger = logger or LOGGER

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        body = request.content
        retries = 0

        while True:
            next_request = httpx.Request(
                method=request.method,
                url=request.url,
                headers=request.headers,
                content=body,
                extensions=request.extensions,
            )
            response = await self._transport.handle_async_request(next_request)

            if 500 <= response.status_code < 600 and retries < self._max_retries:
                backoff_seconds = 2**retries
                self._logger.warning(
                    "Retrying %s after %ss (%s %s)",
                    response.status_code,
                    backoff_seconds,
                    request.method,
                    request.url,
                )
                await response.aclose()
                await self._sleep(backoff_seconds)
                retries += 1
                continue

            return response

    async def aclose(self) -> None:
        await self._transport.aclose()


async def handle_rate_limits(response: httpx.Response) -> None:
    if response.status_code != 429:
        return
    wait_seconds = retry_after_seconds(response.headers.get("retry-after"))
    response.extensions["tunestats_wait_seconds"] = wait_seconds
    LOGGER.warning(
        "Rate limit warning endpoint=%s wait=%s",
        response.request.url,
        wait_seconds,
    )


def _error_detail(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text or None

    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        return message if isinstance(message, str) and message else None
    if isinstance(error, str):
        description = payload.get("error_description")
        return description if isinstance(description, str) and description else error
    return None


def _friendly_error_message(status_code: int) -> str:
    if status_code == 404:
        return "The requested resource was not found on Spotify."
    if status_code >= 500:
        return "Spotify is experiencing issues. Please try again later."
    return f"Spotify API request failed with status {status_code}."


def error_for_response(response: httpx.Response) -> DashboardError:
    """Map a failed Spotify API response onto the dashboard error taxonomy."""
    status_code = response.status_code
    detail = _error_detail(response)

    if status_code == 401:
        return AuthenticationExpired()
    if status_code == 403:
        hint = None
        if detail and "not registered" in detail.lower():
            hint = DEVELOPER_MODE_HINT
        elif detail and "premium" in detail.lower():
            hint = PREMIUM_HINT
        return AccessForbidden(
            "Spotify denied access to this resource.",
            detail=detail,
            hint=hint,
        )
    if status_code == 429:
        wait_seconds = response.extensions.get("tunestats_wait_seconds")
        if wait_seconds is None:
            wait_seconds = retry_after_seconds(response.headers.get("retry-after"))
        return RateLimited(wait_seconds)
    return ApiRequestFailed(status_code, _friendly_error_message(status_code))
