"""
Unit tests for per-key locking.

Tests cover:
- Serialization of holders of one key
- Independence of different keys
- Cleanup of released keys
"""

import asyncio

import pytest

from catalog.system_model.provider.locks import KeyedLock


class TestKeyedLock:
    """Tests for KeyedLock."""

    @pytest.mark.asyncio
    async def test_same_key_serialized(self):
        locks = KeyedLock()
        events = []

        async def worker(name):
            async with locks.hold(("org", "c-1")):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_different_keys_do_not_wait(self):
        locks = KeyedLock()
        entered = asyncio.Event()

        async def holder():
            async with locks.hold("k1"):
                await entered.wait()

        task = asyncio.create_task(holder())
        await asyncio.sleep(0)

        async with locks.hold("k2"):
            entered.set()

        await asyncio.wait_for(task, timeout=1.0)

    @pytest.mark.asyncio
    async def test_released_keys_discarded(self):
        locks = KeyedLock()

        async with locks.hold("k1"):
            assert len(locks) == 1

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_after_error(self):
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.hold("k1"):
                raise RuntimeError("boom")

        assert len(locks) == 0
