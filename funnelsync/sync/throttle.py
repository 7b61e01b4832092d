"""FunnelSync — Per-Vendor Call Throttle.

Calls to the same vendor are serialized and spaced by a fixed minimum
delay; calls to different vendors run independently.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Dict

from funnelsync.core.logging import get_logger

logger = get_logger("sync.throttle")


class VendorThrottle:
    """One lock and one "last call" timestamp per vendor."""

    def __init__(self, min_interval_ms: int = 250):
        self.min_interval = min_interval_ms / 1000.0
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_call: Dict[str, float] = {}

    @asynccontextmanager
    async def slot(self, vendor: str):
        lock = self._locks.setdefault(vendor, asyncio.Lock())
        async with lock:
            last = self._last_call.get(vendor)
            if last is not None:
                wait = self.min_interval - (time.monotonic() - last)
                if wait > 0:
                    logger.debug(f"Throttling {vendor} for {wait * 1000:.0f}ms")
                    await asyncio.sleep(wait)
            try:
                yield
            finally:
                self._last_call[vendor] = time.monotonic()
