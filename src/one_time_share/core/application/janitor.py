from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from typing import Optional

from one_time_share.core.infrastructure.storage.facade import Storage
from one_time_share.utils import metrics as M
from one_time_share.utils.exceptions import StoreConnectionError
from one_time_share.utils.logging import LogTimer, get_logger
from one_time_share.utils.time import now_sec

_log = get_logger("loop.janitor")


class ExpiryJanitor:
    """
    Purges expired messages: once on start, then every ``interval_sec``.

    ``stop()`` wakes the loop out of its sleep right away; a purge already
    running is allowed to finish. The loop also ends on its own once the
    store has been disconnected.
    """

    def __init__(
        self,
        storage: Storage,
        *,
        interval_sec: float = 60.0,
        clock: Callable[[], int] = now_sec,
    ) -> None:
        self.storage = storage
        self.interval = float(max(interval_sec, 0.01))
        self.clock = clock
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self.purges = 0

    def stop(self) -> None:
        self._stop.set()

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def purge_once(self) -> int:
        now_ts = self.clock()
        with LogTimer(_log, "expiry_purge", now_ts=now_ts), M.timer("expiry_purge_seconds"):
            # sqlite work stays off the event loop; the store lock serializes it with requests
            removed = await asyncio.to_thread(self.storage.clear_expired_messages, now_ts)
        self.purges += 1
        return removed

    async def run(self) -> None:
        _log.info("janitor_started", extra={"interval_sec": self.interval})
        try:
            while not self._stop.is_set():
                # the store lock may be held by a request thread
                if not await asyncio.to_thread(self.storage.is_open):
                    _log.info("janitor_store_closed")
                    break
                try:
                    await self.purge_once()
                except StoreConnectionError:
                    # disconnected between the check and the purge
                    _log.info("janitor_store_closed")
                    break
                except Exception:
                    _log.exception("expiry_purge_failed")
                    raise
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    continue
        finally:
            _log.info("janitor_stopped", extra={"purges": self.purges})

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._stop.clear()
            self._task = asyncio.create_task(self.run(), name="expiry-janitor")
        return self._task

    async def shutdown(self) -> None:
        """Signal stop and wait for the loop (and any in-flight purge) to finish."""
        self.stop()
        task, self._task = self._task, None
        if task is None:
            return
        # a failed loop was already logged by run()
        with contextlib.suppress(Exception):
            await task
