"""
Synchronous entry point into the async services.

Clients such as AsyncOpenAI keep connection pools bound to the event loop
that first used them. The runner owns a single loop on a background thread
for the life of the process, so every call from the UI lands on that same
loop.
"""

import asyncio
import threading
from typing import Any, Awaitable, Optional

import structlog


logger = structlog.get_logger(__name__)


class LoopRunner:
    """Runs coroutines to completion on one long-lived event loop."""

    def __init__(self):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name="expense-assistant-loop",
            daemon=True,
        )
        self._thread.start()
        logger.debug("event_loop_started", thread=self._thread.name)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def is_closed(self) -> bool:
        return self._loop.is_closed()

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        """Block until the coroutine finishes on the runner's loop and return its result."""
        if self._loop.is_closed():
            raise RuntimeError("LoopRunner is closed")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    def close(self) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()
        logger.debug("event_loop_closed")
