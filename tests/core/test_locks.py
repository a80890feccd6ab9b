"""Tests for per-key asyncio locking."""

import asyncio

import pytest

from retryflow.core.locks import KeyedLock


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_lock_created_and_dropped(self):
        locks = KeyedLock()

        async with locks.hold("a"):
            assert locks.is_held("a")
            assert len(locks) == 1

        assert not locks.is_held("a")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order = []

        async def worker(name: str):
            async with locks.hold("evt-1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("first"), worker("second"))

        assert order == ["first-in", "first-out", "second-in", "second-out"]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()

        async with locks.hold("a"):
            async with locks.hold("b"):
                assert locks.is_held("a")
                assert locks.is_held("b")

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.hold("a"):
                raise RuntimeError("boom")

        assert len(locks) == 0
