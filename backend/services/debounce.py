"""Debounce utility built on the asyncio event loop."""
import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Delay a callback until no new trigger arrived for ``delay`` seconds.

    Every ``trigger()`` cancels the pending timer and starts a new one, so only
    the arguments of the last trigger inside a quiet window reach the callback.
    Coroutine callbacks run as tasks once the timer fires and are not cancelled
    by later triggers.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[..., Any],
        on_cancel: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            delay: Quiet period in seconds
            callback: Function or coroutine function to call after the quiet period
            on_cancel: Hook called whenever a pending timer is superseded or cancelled
        """
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self.delay = delay
        self._callback = callback
        self._on_cancel = on_cancel
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """Whether a timer is waiting to fire."""
        return self._handle is not None

    def trigger(self, *args: Any) -> None:
        """Restart the quiet period; the callback later receives ``args``."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, args)

    def cancel(self) -> bool:
        """Drop the pending timer, if any. Returns True if one was cancelled."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        if self._on_cancel is not None:
            self._on_cancel()
        return True

    def _fire(self, args: tuple) -> None:
        self._handle = None
        logger.debug(f"Quiet period of {self.delay:.3f}s elapsed, firing callback")
        result = self._callback(*args)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def wait(self) -> None:
        """Wait until the pending timer (if any) fired and its callback finished."""
        loop = asyncio.get_running_loop()
        while self._handle is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(max(self._handle.when() - loop.time(), 0))
