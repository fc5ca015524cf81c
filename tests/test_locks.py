"""Tests for the per-record lock providers."""

import asyncio
import json

import pytest

from app.core.exceptions import LockTimeoutError
from app.services.jobs.lock import InProcessJobLocks, RedisJobLocks


def test_same_record_is_serialized() -> None:
    locks = InProcessJobLocks()
    events = []

    async def worker(name: str):
        async with locks.hold("rec-1"):
            events.append(f"{name}-in")
            await asyncio.sleep(0.01)
            events.append(f"{name}-out")

    async def scenario():
        await asyncio.gather(worker("a"), worker("b"))

    asyncio.run(scenario())
    assert events in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])
    assert locks.active_keys() == []


def test_different_records_do_not_contend() -> None:
    locks = InProcessJobLocks(acquire_timeout=0.05)

    async def scenario():
        async with locks.hold("rec-1"):
            async with locks.hold("rec-2"):
                return sorted(locks.active_keys())

    assert asyncio.run(scenario()) == ["rec-1", "rec-2"]


def test_acquire_times_out() -> None:
    locks = InProcessJobLocks(acquire_timeout=0.02)

    async def scenario():
        async with locks.hold("rec-1"):
            async with locks.hold("rec-1"):
                pass

    with pytest.raises(LockTimeoutError):
        asyncio.run(scenario())
    assert locks.active_keys() == []


class FakeRedis:
    """The two commands the Redis lock uses, kept in a dict."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def eval(self, script, numkeys, key, token):
        current = self.data.get(key)
        if current is not None and json.loads(current)["token"] == token:
            del self.data[key]
            return 1
        return 0


def _redis_locks(fake: FakeRedis, **kwargs) -> RedisJobLocks:
    async def factory():
        return fake
    return RedisJobLocks(factory, **kwargs)


def test_redis_lock_sets_key_with_ttl_and_releases() -> None:
    fake = FakeRedis()
    locks = _redis_locks(fake, ttl_seconds=12)

    async def scenario():
        async with locks.hold("rec-1"):
            assert "job:rec-1:lock" in fake.data
            assert fake.ttls["job:rec-1:lock"] == 12

    asyncio.run(scenario())
    assert fake.data == {}


def test_redis_lock_waits_then_times_out() -> None:
    fake = FakeRedis()
    fake.data["job:rec-1:lock"] = json.dumps({"token": "someone-else"})
    locks = _redis_locks(fake, acquire_timeout=0.05, retry_interval=0.01)

    with pytest.raises(LockTimeoutError):
        asyncio.run(locks.acquire("rec-1"))


def test_redis_release_does_not_delete_foreign_lock() -> None:
    fake = FakeRedis()
    locks = _redis_locks(fake)

    async def scenario():
        token = await locks.acquire("rec-1")
        # TTL expired and another process took the lock
        fake.data["job:rec-1:lock"] = json.dumps({"token": "other"})
        await locks.release("rec-1", token)

    asyncio.run(scenario())
    assert json.loads(fake.data["job:rec-1:lock"])["token"] == "other"
