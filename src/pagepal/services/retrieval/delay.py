"""Per-domain request spacing."""

import asyncio
import logging
import threading
import time
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 0.1


class Delay:
    """Keeps consecutive accesses at least ``interval`` seconds apart.

    Each caller reserves its slot under a thread lock and then sleeps on its
    own event loop, so one Delay can be shared by workers running separate
    loops.
    """

    def __init__(self, interval: float = DEFAULT_INTERVAL):
        self.interval = max(0.0, interval)
        self.last_access: Optional[float] = None
        self._lock = threading.Lock()

    async def delay_if(self, min_interval: Optional[float] = None) -> float:
        """Sleep until ``min_interval`` has passed since the last access.

        Returns:
            Seconds actually slept.
        """
        interval = self.interval if min_interval is None else min_interval
        with self._lock:
            now = time.monotonic()
            wait_for = 0.0
            if self.last_access is not None:
                wait_for = max(0.0, self.last_access + interval - now)
            self.last_access = now + wait_for
        if wait_for > 0:
            await asyncio.sleep(wait_for)
        return wait_for


class DelayMap:
    """One Delay per domain, created on first access."""

    def __init__(self, interval: float = DEFAULT_INTERVAL):
        self.interval = interval
        self._delays: Dict[str, Delay] = {}
        self._lock = threading.Lock()

    def __contains__(self, domain: str) -> bool:
        with self._lock:
            return domain in self._delays

    def _delay_for(self, domain: str) -> Delay:
        with self._lock:
            delay = self._delays.get(domain)
            if delay is None:
                logger.debug("First access to %s", domain)
                delay = self._delays[domain] = Delay(self.interval)
            return delay

    async def access(self, domain: str) -> float:
        slept = await self._delay_for(domain).delay_if()
        if slept:
            logger.debug("Waited %.3fs before accessing %s", slept, domain)
        return slept
