"""Test the Redis slot lock."""

from unittest.mock import AsyncMock, patch

import pytest
from redis import RedisError

from salon_booking.core.redis import RedisClient


@pytest.fixture
def redis_connection():
    return AsyncMock()


@pytest.fixture
def client(redis_connection):
    client = RedisClient("redis://localhost:6379/0")
    with patch.object(client, "get_redis", AsyncMock(return_value=redis_connection)):
        yield client


class TestSlotLock:
    """Test acquiring and releasing per-day staff locks."""

    def test_lock_key(self):
        assert RedisClient.slot_lock_key(7, "2024-03-05") == "slot_lock:7:2024-03-05"

    @pytest.mark.asyncio
    async def test_acquire_returns_token(self, client, redis_connection):
        redis_connection.set.return_value = True

        token = await client.acquire_slot_lock(7, "2024-03-05", ttl_seconds=10)

        assert token
        redis_connection.set.assert_awaited_once_with(
            "slot_lock:7:2024-03-05", token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_waits_for_release(self, client, redis_connection):
        redis_connection.set.side_effect = [False, False, True]

        token = await client.acquire_slot_lock(
            7, "2024-03-05", wait_seconds=5, poll_interval=0
        )

        assert token
        assert redis_connection.set.await_count == 3

    @pytest.mark.asyncio
    async def test_acquire_times_out(self, client, redis_connection):
        redis_connection.set.return_value = False

        token = await client.acquire_slot_lock(
            7, "2024-03-05", wait_seconds=0, poll_interval=0
        )

        assert token is None

    @pytest.mark.asyncio
    async def test_acquire_propagates_connection_errors(self, client, redis_connection):
        redis_connection.set.side_effect = RedisError("connection refused")

        with pytest.raises(RedisError):
            await client.acquire_slot_lock(7, "2024-03-05")

    @pytest.mark.asyncio
    async def test_release_only_own_token(self, client, redis_connection):
        redis_connection.eval.return_value = 1

        released = await client.release_slot_lock(7, "2024-03-05", "token-1")

        assert released is True
        args = redis_connection.eval.await_args.args
        assert args[1:] == (1, "slot_lock:7:2024-03-05", "token-1")

    @pytest.mark.asyncio
    async def test_release_of_expired_lock(self, client, redis_connection):
        redis_connection.eval.return_value = 0

        assert await client.release_slot_lock(7, "2024-03-05", "token-1") is False

    @pytest.mark.asyncio
    async def test_release_errors_are_logged_not_raised(self, client, redis_connection):
        redis_connection.eval.side_effect = RedisError("connection reset")

        assert await client.release_slot_lock(7, "2024-03-05", "token-1") is False
