"""
Countdown timing for question answers.

CountdownTimer is cooperative: it never sleeps or spawns anything itself, the
host calls ``tick()`` once per second. AsyncTicker is the asyncio host used by
the bot.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Optional

# Set up logger for timer operations
logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_start(timer_name: str, duration: int, generation: int) -> None:
        """Log countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Timer {timer_name}, Duration {duration}s",
            extra={
                'event_type': 'timer_countdown_start',
                'timer_name': timer_name,
                'duration': duration,
                'generation': generation,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(timer_name: str, remaining_time: int, total_duration: int) -> None:
        """Log timer update events (throttled to avoid spam)."""
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100
            logger.debug(
                f"Timer lifecycle: UPDATE - Timer {timer_name}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'timer_name': timer_name,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(timer_name: str, completion_type: str, total_duration: int) -> None:
        """Log timer completion (natural expiry or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Timer {timer_name}, Type {completion_type}, Duration {total_duration}s",
            extra={
                'event_type': 'timer_completed',
                'timer_name': timer_name,
                'completion_type': completion_type,
                'total_duration': total_duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(timer_name: str, from_state: str, to_state: str, reason: str = None) -> None:
        """Log timer state transitions."""
        logger.debug(
            f"Timer lifecycle: STATE_TRANSITION - Timer {timer_name}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'timer_name': timer_name,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(timer_name: str, error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Timer {timer_name}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'timer_name': timer_name,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )


class CountdownTimer:
    """Restartable countdown with per-tick and expiry callbacks."""

    def __init__(self, name: str = None):
        self._name = name or f"timer-{id(self):x}"
        self._on_tick: Optional[Callable[[int], Any]] = None
        self._on_expire: Optional[Callable[[], Any]] = None
        self._remaining = 0
        self._total_duration = 0
        self._running = False
        # Countdown number, bumped on every start.
        self._generation = 0

    def start(
        self,
        duration: int,
        on_tick: Callable[[int], Any],
        on_expire: Callable[[], Any]
    ) -> None:
        """
        Start counting down, replacing any countdown in progress.

        Args:
            duration: Countdown length in seconds (at least 1)
            on_tick: Called with the remaining seconds, first with ``duration``
            on_expire: Called once when the countdown reaches zero
        """
        if isinstance(duration, bool) or not isinstance(duration, int) or duration < 1:
            raise ValueError(f"Timer duration must be a positive integer, got {duration!r}")

        self._on_tick = on_tick
        self._on_expire = on_expire
        self._generation += 1
        self._remaining = duration
        self._total_duration = duration
        self._running = True

        TimerLifecycleLogger.log_timer_start(self._name, duration, self._generation)
        self._on_tick(self._remaining)

    def restart(self, duration: int) -> None:
        """Cancel pending ticks and start again with the current callbacks."""
        if self._on_tick is None or self._on_expire is None:
            raise RuntimeError("Timer was never started; call start() first")
        self.start(duration, self._on_tick, self._on_expire)

    def reset(self, duration: int) -> None:
        """Stop the countdown and show ``duration`` without running."""
        self.cancel()
        self._remaining = duration
        self._total_duration = duration

    def cancel(self) -> None:
        """Stop ticking. Safe to call repeatedly."""
        if self._running:
            TimerLifecycleLogger.log_timer_completion(self._name, "cancelled", self._total_duration)
        self._running = False

    def tick(self) -> None:
        """Advance the countdown by one second."""
        if not self._running:
            return

        self._remaining -= 1

        if self._remaining > 0:
            TimerLifecycleLogger.log_timer_update(self._name, self._remaining, self._total_duration)
            self._on_tick(self._remaining)
            return

        # Stop before calling out so on_expire may restart the timer.
        self._running = False
        TimerLifecycleLogger.log_timer_completion(self._name, "natural_expiry", self._total_duration)
        self._on_expire()

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def name(self) -> str:
        return self._name


class AsyncTicker:
    """Calls a tick callback from an asyncio task once per interval."""

    def __init__(self, tick_callback: Callable[[], Any], interval: float = 1.0, name: str = None):
        self._tick_callback = tick_callback
        self._interval = interval
        self._name = name or f"ticker-{id(self):x}"
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start ticking on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        TimerLifecycleLogger.log_timer_state_transition(self._name, "stopped", "running", "ticker started")

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._interval)
                try:
                    self._tick_callback()
                except Exception as e:
                    # Keep ticking after a failed callback.
                    TimerLifecycleLogger.log_timer_error(self._name, type(e).__name__, str(e), "tick")
                    logger.exception(f"Tick callback failed for {self._name}")
        except asyncio.CancelledError:
            TimerLifecycleLogger.log_timer_state_transition(self._name, "running", "stopped", "task cancelled")
            raise

    def stop(self) -> None:
        """Cancel the ticking task. Safe to call repeatedly."""
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()
