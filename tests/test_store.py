import os

import pytest

from globalsim.store import InMemoryStore, RedisStore
from tests.helpers import FakeClock


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock)


async def test_set_get_delete(store):
    assert await store.get("k") is None

    await store.set("k", {"count": 1})
    assert await store.get("k") == {"count": 1}

    assert await store.delete("k") is True
    assert await store.delete("k") is False
    assert await store.get("k") is None


async def test_values_are_copies(store):
    value = {"count": 1}
    await store.set("k", value)
    value["count"] = 99

    got = await store.get("k")
    got["count"] = 42
    assert await store.get("k") == {"count": 1}


async def test_ttl_expiry(store, clock: FakeClock):
    await store.set("k", {"v": 1}, ttl_ms=1500)

    clock.advance(1.4)
    assert await store.get("k") == {"v": 1}

    clock.advance(0.2)
    assert await store.get("k") is None


async def test_cas_on_absent_key(store):
    assert await store.compare_and_swap("k", None, {"v": 1}) is True
    # key now exists, so "expect absent" must fail
    assert await store.compare_and_swap("k", None, {"v": 2}) is False
    assert await store.get("k") == {"v": 1}


async def test_cas_requires_matching_value(store):
    await store.set("k", {"v": 1, "n": "a"})

    assert await store.compare_and_swap("k", {"v": 2, "n": "a"}, {"v": 3}) is False
    # key order must not matter
    assert await store.compare_and_swap("k", {"n": "a", "v": 1}, {"v": 3}) is True
    assert await store.get("k") == {"v": 3}


async def test_cas_delete(store):
    await store.set("k", {"v": 1})
    assert await store.compare_and_swap("k", {"v": 0}, None) is False
    assert await store.compare_and_swap("k", {"v": 1}, None) is True
    assert await store.get("k") is None


async def test_cas_against_expired_value(store, clock: FakeClock):
    await store.set("k", {"v": 1}, ttl_ms=1000)
    clock.advance(2)

    assert await store.compare_and_swap("k", {"v": 1}, {"v": 2}) is False
    assert await store.compare_and_swap("k", None, {"v": 2}) is True



async def test_fixed_window_hit_counts_then_refuses(store, clock: FakeClock):
    now = int(clock() * 1000)

    assert await store.hit_fixed_window("w", 2, 1000, now) == (True, 1, now + 1000)
    assert await store.hit_fixed_window("w", 2, 1000, now + 10) == (True, 2, now + 1000)
    # refused hits leave the counter alone
    assert await store.hit_fixed_window("w", 2, 1000, now + 20) == (False, 2, now + 1000)
    assert (await store.get("w"))["count"] == 2

    assert await store.hit_fixed_window("w", 2, 1000, now + 1001) == (True, 1, now + 2001)


async def test_fixed_window_record_outlives_window_by_grace(store, clock: FakeClock):
    now = int(clock() * 1000)
    await store.hit_fixed_window("w", 5, 1000, now, grace_ms=500)

    clock.advance(1.4)
    assert await store.get("w") is not None
    clock.advance(0.2)
    assert await store.get("w") is None


REDIS_TEST_HOST = os.getenv("REDIS_TEST_HOST")


@pytest.mark.skipif(not REDIS_TEST_HOST, reason="REDIS_TEST_HOST not set")
async def test_redis_store_cas():
    import redis.asyncio as redis

    client = redis.Redis(host=REDIS_TEST_HOST, port=int(os.getenv("REDIS_TEST_PORT", "6379")), db=15)
    store = RedisStore(client)
    try:
        await client.flushdb()

        assert await store.compare_and_swap("k", None, {"v": 1}, ttl_ms=5000) is True
        assert await store.compare_and_swap("k", None, {"v": 2}) is False
        assert await store.compare_and_swap("k", {"v": 1}, {"v": 2}, ttl_ms=5000) is True
        assert await store.get("k") == {"v": 2}
        assert await store.compare_and_swap("k", {"v": 2}, None) is True
        assert await store.get("k") is None

        assert await store.hit_fixed_window("w", 1, 5000, 1_000) == (True, 1, 6_000)
        assert await store.hit_fixed_window("w", 1, 5000, 2_000) == (False, 1, 6_000)
        assert await store.hit_fixed_window("w", 1, 5000, 6_001) == (True, 1, 11_001)
    finally:
        await client.flushdb()
        await store.close()
