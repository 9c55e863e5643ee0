from __future__ import annotations

import asyncio


class Ticker:
    """Cancellable interval wait.

    ``wait()`` sleeps for the given number of seconds unless ``stop()`` is
    called first, in which case it returns ``False`` immediately.
    """

    def __init__(self) -> None:
        self._stopped = asyncio.Event()

    async def wait(self, seconds: float) -> bool:
        if self._stopped.is_set():
            return False
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    def stop(self) -> None:
        self._stopped.set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()
