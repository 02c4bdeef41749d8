import httpx
import pytest

from tunestats.http import RetryTransport


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[int] = []

    async def __call__(self, seconds: int) -> None:
        self.calls.append(seconds)


def _make_handler(statuses: list[int]):
    attempt = {"count": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        index = attempt["count"]
        attempt["count"] += 1
        status = statuses[min(index, len(statuses) - 1)]
        return httpx.Response(status, request=request, json={"status": status})

    return handler, attempt


@pytest.mark.asyncio
async def test_retry_on_500() -> None:
    handler, attempt = _make_handler([500, 200])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://api.spotify.com/v1/me")

    assert response.status_code == 200
    assert attempt["count"] == 2
    assert sleep.calls == [1]


@pytest.mark.asyncio
async def test_no_retry_on_429() -> None:
    handler, attempt = _make_handler([429, 200])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://api.spotify.com/v1/me")

    assert response.status_code == 429
    assert attempt["count"] == 1
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_no_retry_on_4xx() -> None:
    handler, attempt = _make_handler([400, 200])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://api.spotify.com/v1/me")

    assert response.status_code == 400
    assert attempt["count"] == 1


@pytest.mark.asyncio
async def test_max_retries_exceeded() -> None:
    handler, attempt = _make_handler([500, 502, 503, 500])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://api.spotify.com/v1/me")

    assert response.status_code == 503
    assert attempt["count"] == 3
    assert sleep.calls == [1, 2]


@pytest.mark.asyncio
async def test_retries_disabled() -> None:
    handler, attempt = _make_handler([500, 200])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=0, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://api.spotify.com/v1/me")

    assert response.status_code == 500
    assert attempt["count"] == 1
