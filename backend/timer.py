from typing import Awaitable, Callable, Optional
import asyncio
import logging

import config

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], Awaitable[None]]
ExpireCallback = Callable[[], Awaitable[None]]


class CountdownHandle:
    """Cancellation handle for one running countdown."""

    def __init__(self):
        self.task: Optional[asyncio.Task] = None
        self.cancelled = False

    def cancel(self):
        if self.cancelled:
            return
        self.cancelled = True
        # Never cancel the task delivering the callback that asked us to stop;
        # it finishes on its own once the callback returns.
        if self.task and not self.task.done() and self.task is not asyncio.current_task():
            self.task.cancel()

    @property
    def done(self) -> bool:
        return self.cancelled or self.task is None or self.task.done()


class Countdown:
    """Single-flight countdown: at most one live handle at a time.

    After each tick interval the remaining count is decremented and passed to
    ``on_tick``; once it has reached zero the next tick calls ``on_expire``
    instead and the countdown ends. Publishing the starting value is left to
    the caller.
    """

    def __init__(self, tick_interval: float = config.TICK_INTERVAL_SECONDS):
        self.tick_interval = tick_interval
        self.handle: Optional[CountdownHandle] = None

    @property
    def running(self) -> bool:
        return self.handle is not None and not self.handle.done

    def start(self, duration: int, on_tick: TickCallback, on_expire: ExpireCallback) -> CountdownHandle:
        self.stop()
        handle = CountdownHandle()
        handle.task = asyncio.create_task(self._run(handle, duration, on_tick, on_expire))
        self.handle = handle
        return handle

    def stop(self):
        """Cancel the pending countdown, if any. Idempotent."""
        if self.handle:
            self.handle.cancel()
            self.handle = None

    async def _run(self, handle: CountdownHandle, remaining: int,
                   on_tick: TickCallback, on_expire: ExpireCallback):
        try:
            while not handle.cancelled:
                await asyncio.sleep(self.tick_interval)
                if handle.cancelled:
                    return
                if remaining > 0:
                    remaining -= 1
                    await on_tick(remaining)
                else:
                    await on_expire()
                    return
        except Exception:
            logger.exception("Countdown callback failed; countdown stopped")
        finally:
            if self.handle is handle:
                self.handle = None
