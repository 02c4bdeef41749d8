import pytest

from auth.callback import CallbackResult, handle_callback, render_callback_page
from tests.auth_helpers import build_auth, query_of
from tunestats.errors import ExchangeFailed


@pytest.mark.asyncio
async def test_callback_success_schedules_redirect() -> None:
    auth, _, _ = build_auth()
    url = await auth.initiate()

    result = await handle_callback(auth, {"code": "code-123", "state": query_of(url)["state"]})

    assert result.ok is True
    assert result.redirect_to == "/"
    assert result.redirect_delay_seconds == 2
    assert await auth.is_authenticated() is True


@pytest.mark.asyncio
async def test_callback_error_is_shown_verbatim() -> None:
    auth, store, _ = build_auth()
    await auth.initiate()

    result = await handle_callback(auth, {"error": "access_denied"})

    assert result.ok is False
    assert result.message == "access_denied"
    assert result.redirect_to is None
    assert (await store.load()).pending_verifier is None


@pytest.mark.asyncio
async def test_callback_without_code_or_error() -> None:
    auth, _, _ = build_auth()
    await auth.initiate()

    result = await handle_callback(auth, {})

    assert result.ok is False
    assert result.message == "No authorization code received."
    assert result.status_code == 400


@pytest.mark.asyncio
async def test_callback_without_initiate() -> None:
    auth, _, _ = build_auth()

    result = await handle_callback(auth, {"code": "code-123"})

    assert result.ok is False
    assert "code verifier" in result.message
    assert await auth.is_authenticated() is False


@pytest.mark.asyncio
async def test_callback_propagates_exchange_message() -> None:
    async def failing_exchange(**kwargs):
        raise ExchangeFailed("Invalid authorization code")

    auth, _, _ = build_auth(exchange_code_fn=failing_exchange)
    url = await auth.initiate()

    result = await handle_callback(auth, {"code": "bad-code", "state": query_of(url)["state"]})

    assert result.ok is False
    assert result.message == "Invalid authorization code"
    assert result.status_code == 502


def test_success_page_refreshes_to_main_surface() -> None:
    response = render_callback_page(
        CallbackResult(ok=True, message="ok", redirect_to="/", redirect_delay_seconds=2)
    )
    body = response.body.decode()

    assert response.status_code == 200
    assert 'content="2;url=/"' in body
    assert "Authentication Successful" in body


def test_failure_page_escapes_provider_message() -> None:
    response = render_callback_page(
        CallbackResult(ok=False, message="<script>x</script>", status_code=400)
    )
    body = response.body.decode()

    assert response.status_code == 400
    assert "&lt;script&gt;" in body
    assert "Return to App" in body


@pytest.mark.asyncio
async def test_callback_without_state_is_rejected() -> None:
    auth, store, _ = build_auth()
    await auth.initiate()

    result = await handle_callback(auth, {"code": "forged-code"})

    assert result.ok is False
    assert "most recent login attempt" in result.message
    assert result.status_code == 400
    assert (await store.load()).pending_verifier is None
    assert await auth.is_authenticated() is False
