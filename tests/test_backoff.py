import pytest
import discord
from unittest.mock import AsyncMock, MagicMock
from utils.rate_limiter import ExponentialBackoff, send_with_backoff

def http_error(status: int) -> discord.HTTPException:
    response = MagicMock()
    response.status = status
    response.reason = "test"
    return discord.HTTPException(response, "test error")

@pytest.fixture
def no_sleep(mocker):
    return mocker.patch("utils.rate_limiter.asyncio.sleep", new_callable=AsyncMock)

def test_exponential_backoff_delays():
    backoff = ExponentialBackoff(base_delay=1.0, max_delay=4.0, max_attempts=4)
    assert [backoff.get_delay() for _ in range(4)] == [1.0, 2.0, 4.0, 4.0]
    assert backoff.attempts_exhausted

@pytest.mark.asyncio
async def test_send_succeeds_first_try(no_sleep):
    send = AsyncMock()
    assert await send_with_backoff(send) == (True, None)
    send.assert_awaited_once()
    no_sleep.assert_not_called()

@pytest.mark.asyncio
async def test_send_retries_server_errors(no_sleep):
    send = AsyncMock(side_effect=[http_error(503), http_error(502), None])
    ok, error = await send_with_backoff(send, base_delay=1.0)
    assert ok is True and error is None
    assert [c.args[0] for c in no_sleep.await_args_list] == [1.0, 2.0]

@pytest.mark.asyncio
async def test_send_honours_retry_after(no_sleep):
    send = AsyncMock(side_effect=[discord.RateLimited(2.5), None])
    ok, _ = await send_with_backoff(send)
    assert ok is True
    assert no_sleep.await_args.args[0] == pytest.approx(2.6)

@pytest.mark.asyncio
async def test_send_gives_up_on_forbidden(no_sleep):
    send = AsyncMock(side_effect=http_error(403))
    ok, error = await send_with_backoff(send)
    assert ok is False
    assert error.status == 403
    send.assert_awaited_once()

@pytest.mark.asyncio
async def test_send_exhausts_attempts(no_sleep):
    send = AsyncMock(side_effect=http_error(500))
    ok, error = await send_with_backoff(send, max_attempts=3)
    assert ok is False
    assert error.status == 500
    assert send.await_count == 3

@pytest.mark.asyncio
async def test_send_returns_unexpected_errors(no_sleep):
    send = AsyncMock(side_effect=RuntimeError("socket closed"))
    ok, error = await send_with_backoff(send)
    assert ok is False
    assert isinstance(error, RuntimeError)
    send.assert_awaited_once()
    no_sleep.assert_not_called()
