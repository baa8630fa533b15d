"""
Tests for per-user locking.
"""

import asyncio

import pytest

from planwise.billing.core.locks import UserLockRegistry

pytestmark = pytest.mark.asyncio


@pytest.mark.unit
class TestUserLockRegistry:
    """Test UserLockRegistry"""

    async def test_hold_serializes_same_user(self):
        """Test two holders of the same user run one after the other"""
        locks = UserLockRegistry()
        events: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("user-1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0)
                events.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    async def test_different_users_do_not_block(self):
        """Test holders of different users run concurrently"""
        locks = UserLockRegistry()
        events: list[str] = []

        async def worker(user_id: str) -> None:
            async with locks.hold(user_id):
                events.append(f"{user_id}-start")
                await asyncio.sleep(0)
                events.append(f"{user_id}-end")

        await asyncio.gather(worker("user-1"), worker("user-2"))

        assert events[:2] == ["user-1-start", "user-2-start"]

    async def test_is_locked(self):
        """Test lock state reporting"""
        locks = UserLockRegistry()

        assert locks.is_locked("user-1") is False
        async with locks.hold("user-1"):
            assert locks.is_locked("user-1") is True
            assert locks.is_locked("user-2") is False
        assert locks.is_locked("user-1") is False

    async def test_idle_locks_are_released(self):
        """Test the registry forgets users nobody holds or waits for"""
        locks = UserLockRegistry()

        for n in range(100):
            async with locks.hold(f"user-{n}"):
                assert len(locks) == 1

        assert len(locks) == 0

    async def test_waiter_keeps_lock_alive(self):
        """Test a waiting holder reuses the lock of the current holder"""
        locks = UserLockRegistry()
        release = asyncio.Event()
        events: list[str] = []

        async def first() -> None:
            async with locks.hold("user-1"):
                events.append("first")
                await release.wait()

        async def second() -> None:
            async with locks.hold("user-1"):
                events.append("second")

        first_task = asyncio.create_task(first())
        await asyncio.sleep(0)
        second_task = asyncio.create_task(second())
        await asyncio.sleep(0)

        assert events == ["first"]
        assert len(locks) == 1
        release.set()
        await asyncio.gather(first_task, second_task)

        assert events == ["first", "second"]
        assert len(locks) == 0

    async def test_released_after_error(self):
        """Test an exception inside hold releases the lock"""
        locks = UserLockRegistry()

        with pytest.raises(RuntimeError):
            async with locks.hold("user-1"):
                raise RuntimeError("boom")

        assert locks.is_locked("user-1") is False
        assert len(locks) == 0
