"""Unit tests for the per-account lock registry."""

import asyncio
import uuid

import pytest


class TestAccountLockRegistry:
    """Tests for AccountLockRegistry."""

    @pytest.mark.asyncio
    async def test_same_account_is_serialized(self, lock_registry):
        account = uuid.uuid4()
        trace = []

        async def _work(name: str):
            async with lock_registry.hold(account):
                trace.append(f"{name}:start")
                await asyncio.sleep(0.01)
                trace.append(f"{name}:end")

        await asyncio.gather(_work("a"), _work("b"))

        assert trace == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_different_accounts_run_concurrently(self, lock_registry):
        first_entered = asyncio.Event()
        second_entered = asyncio.Event()

        async def _first():
            async with lock_registry.hold(uuid.uuid4()):
                first_entered.set()
                await asyncio.wait_for(second_entered.wait(), timeout=1)

        async def _second():
            await first_entered.wait()
            async with lock_registry.hold(uuid.uuid4()):
                second_entered.set()

        await asyncio.gather(_first(), _second())

    @pytest.mark.asyncio
    async def test_lock_is_forgotten_after_release(self, lock_registry):
        account = uuid.uuid4()
        async with lock_registry.hold(account):
            assert lock_registry.is_locked(account)

        assert not lock_registry.is_locked(account)
        assert lock_registry._locks == {}
        assert lock_registry._waiters == {}

    @pytest.mark.asyncio
    async def test_lock_is_released_on_error(self, lock_registry):
        account = uuid.uuid4()
        with pytest.raises(RuntimeError):
            async with lock_registry.hold(account):
                raise RuntimeError("boom")

        assert not lock_registry.is_locked(account)
        async with lock_registry.hold(account):
            pass
