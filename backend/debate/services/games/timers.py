import logging
import time

logger = logging.getLogger(__name__)


class BackgroundScheduler:
    """Runs delayed callbacks as Socket.IO background tasks."""

    def __init__(self, socketio):
        self._socketio = socketio

    def time(self) -> float:
        return time.time()

    def call_later(self, delay, callback, *args) -> None:
        def _runner():
            if delay > 0:
                self._socketio.sleep(delay)
            try:
                callback(*args)
            except Exception:
                logger.exception(f"[timer-error] callback {getattr(callback, '__name__', callback)!r} failed")

        self._socketio.start_background_task(_runner)


class PhaseTimer:
    """The single countdown slot owned by one lobby's round state.

    ``arm`` ticks ``duration, duration - 1, ..., 0`` (the first tick
    immediately, then one per second) and calls ``on_expire`` once after the
    zero tick. ``delay`` occupies the same slot without ticking. Arming
    always cancels what was there before.

    Every scheduled step runs under ``lock`` and carries the generation it
    was armed with; ``cancel`` bumps the generation, so a step that was
    already queued when the timer was cancelled or re-armed does nothing.
    """

    def __init__(self, scheduler, lock, label=''):
        self._scheduler = scheduler
        self._lock = lock
        self._generation = 0
        self._armed = False
        self.label = label
        self.remaining = 0

    @property
    def armed(self) -> bool:
        return self._armed

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            self._armed = False

    def arm(self, duration, on_tick, on_expire) -> None:
        with self._lock:
            self.cancel()
            generation = self._generation
            self._armed = True
            self.remaining = max(0, int(duration))
            logger.debug(f"[timer-set] lobby={self.label} duration={self.remaining}s")
            on_tick(self.remaining)
            if generation != self._generation:
                return
            if self.remaining == 0:
                self._expire(generation, on_expire)
                return
            self._scheduler.call_later(1, self._step, generation, on_tick, on_expire)

    def delay(self, seconds, on_expire) -> None:
        with self._lock:
            self.cancel()
            generation = self._generation
            self._armed = True
            self.remaining = 0
            logger.debug(f"[timer-delay] lobby={self.label} delay={seconds}s")
            self._scheduler.call_later(seconds, self._expire, generation, on_expire)

    def _step(self, generation, on_tick, on_expire) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug(f"[timer-abort] lobby={self.label} stale tick")
                return
            self.remaining -= 1
            on_tick(self.remaining)
            if generation != self._generation:
                return
            if self.remaining > 0:
                self._scheduler.call_later(1, self._step, generation, on_tick, on_expire)
                return
            self._expire(generation, on_expire)

    def _expire(self, generation, on_expire) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug(f"[timer-abort] lobby={self.label} stale expiry")
                return
            # Disarm before the callback so it fires exactly once and may re-arm
            self._generation += 1
            self._armed = False
            logger.debug(f"[timer-fire] lobby={self.label}")
            on_expire()
