# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import asyncio
import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger("[ DEFERRED ]")

# threading.RLock is a factory function; this is the class it returns
RLockType = type(threading.RLock())


# Single-slot debounced task. Rescheduling the same key pushes the deadline back,
# scheduling a different key runs the pending one first. Never more than one pending.
# One timer serves a whole debounce window: when it fires before the deadline it re-arms
# for the remainder, so a burst of registrations does not start a thread per call.
class DeferredCompile:

    def __init__(self, delay_sec: float, lock: RLockType | None = None) -> None:
        self._delay = delay_sec
        self._lock = lock or threading.RLock()
        self._key: str | None = None
        self._callback: Callable[[], None] | None = None
        self._handle: asyncio.TimerHandle | threading.Timer | None = None
        self._deadline = 0.0
        # Bumped on every state change so a stale timer knows it lost the race
        self._generation = 0


    @property
    def pending(self) -> bool:
        return self._callback is not None


    @property
    def key(self) -> str | None:
        return self._key


    def schedule(self, key: str, callback: Callable[[], None]) -> None:
        with self._lock:
            if self._callback is not None and key != self._key:
                logger.debug("Flushing pending compile '%s' before scheduling '%s'", self._key, key)
                self.flush()

            if self._delay <= 0:
                self._cancel_timer()
                self._key, self._callback = None, None
                self._generation += 1
                self._run(callback)
                return

            self._deadline = time.monotonic() + self._delay
            if self._callback is not None and self._handle is not None:
                # same key, armed timer picks up the new deadline
                self._callback = callback
                return

            self._key, self._callback = key, callback
            self._generation += 1
            self._handle = self._start_timer(self._generation, self._delay)


    # Drop the pending task without running it
    def cancel(self) -> None:
        with self._lock:
            if self._callback is not None:
                logger.debug("Cancelled pending compile '%s'", self._key)
            self._cancel_timer()
            self._key, self._callback = None, None
            self._generation += 1


    # Run the pending task now. Returns False when nothing was pending.
    def flush(self) -> bool:
        with self._lock:
            callback = self._take()
            if callback is None:
                return False
            self._run(callback)
            return True


    def _take(self) -> Callable[[], None] | None:
        callback = self._callback
        self._cancel_timer()
        self._key, self._callback = None, None
        self._generation += 1
        return callback


    def _start_timer(self, generation: int, delay: float) -> asyncio.TimerHandle | threading.Timer:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            return loop.call_later(delay, self._fire, generation)

        timer = threading.Timer(delay, self._fire, args=(generation,))
        timer.daemon = True
        timer.start()
        return timer


    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._callback is None:
                return
            remaining = self._deadline - time.monotonic()
            if remaining > 0:
                self._handle = self._start_timer(generation, remaining)
                return

            self._handle = None
            callback = self._take()
            self._run(callback)


    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Deferred compile failed")
