import asyncio
import threading
import time

import pytest

from one_time_share.core.application.janitor import ExpiryJanitor


async def _wait_for_purges(janitor, n, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while janitor.purges < n:
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"janitor made {janitor.purges} purges, expected {n}")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_purge_once(storage, clock):
    storage.save_message("expired", clock.now - 1, "x")
    storage.save_message("fresh", clock.now + 60, "y")

    janitor = ExpiryJanitor(storage, clock=clock)
    assert await janitor.purge_once() == 1
    assert storage.consume_message("fresh").found
    assert storage.last_purge_timestamp() == clock.now


@pytest.mark.asyncio
async def test_purges_immediately_on_start(storage, clock):
    storage.save_message("expired", clock.now - 1, "x")
    janitor = ExpiryJanitor(storage, interval_sec=3600, clock=clock)

    janitor.start()
    await _wait_for_purges(janitor, 1)
    assert janitor.is_running()
    assert storage.messages.count() == 0

    # the hour-long sleep must not delay shutdown
    await asyncio.wait_for(janitor.shutdown(), timeout=1.0)
    assert not janitor.is_running()


@pytest.mark.asyncio
async def test_purges_repeatedly(storage, clock):
    janitor = ExpiryJanitor(storage, interval_sec=0.01, clock=clock)
    janitor.start()
    await _wait_for_purges(janitor, 3)
    await janitor.shutdown()


@pytest.mark.asyncio
async def test_stops_when_store_closed(storage, clock):
    janitor = ExpiryJanitor(storage, interval_sec=0.01, clock=clock)
    task = janitor.start()
    await _wait_for_purges(janitor, 1)

    storage.disconnect()

    await asyncio.wait_for(task, timeout=1.0)
    assert not janitor.is_running()


@pytest.mark.asyncio
async def test_shutdown_without_start(storage):
    janitor = ExpiryJanitor(storage)
    await janitor.shutdown()
    assert not janitor.is_running()


@pytest.mark.asyncio
async def test_busy_store_does_not_block_event_loop(storage, clock):
    janitor = ExpiryJanitor(storage, interval_sec=3600, clock=clock)

    # a request thread sitting inside a store operation
    storage._lock.acquire()
    release = threading.Timer(0.5, storage._lock.release)
    release.start()
    try:
        janitor.start()
        t0 = time.perf_counter()
        await asyncio.sleep(0.01)
        assert time.perf_counter() - t0 < 0.3
    finally:
        release.join()

    await _wait_for_purges(janitor, 1)
    await janitor.shutdown()
