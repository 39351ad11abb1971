"""Tick driver — a wall-clock timer that advances the kernel.

The kernel never ticks by itself.  In the desktop simulator a GUI timer
fired every 500 ms; here a daemon thread plays that role.  The driver
only ever calls ``kernel.tick()``, so all synchronisation is the
kernel's job.

Usage::

    with TickDriver(kernel, interval=0.5):
        ...  # the simulation advances in the background
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Self

from py_sched.config import DEFAULT_TICK_INTERVAL

if TYPE_CHECKING:
    from types import TracebackType

    from py_sched.kernel import Kernel


class TickDriver:
    """Call ``kernel.tick()`` every ``interval`` seconds on a daemon thread."""

    def __init__(self, kernel: Kernel, *, interval: float = DEFAULT_TICK_INTERVAL) -> None:
        """Create a stopped driver.

        Args:
            kernel: The kernel to advance.
            interval: Seconds between ticks.

        Raises:
            ValueError: If interval is not positive.

        """
        if interval <= 0:
            msg = f"Tick interval must be positive, got {interval}"
            raise ValueError(msg)
        self._kernel = kernel
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._ticks = 0

    @property
    def interval(self) -> float:
        """Return the seconds between ticks."""
        return self._interval

    @property
    def ticks(self) -> int:
        """Return how many ticks this driver has issued."""
        return self._ticks

    @property
    def running(self) -> bool:
        """Return True while the background thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start ticking in the background.

        Raises:
            RuntimeError: If the driver is already running.

        """
        if self.running:
            msg = "Tick driver is already running"
            raise RuntimeError(msg)
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="py-sched-clock", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop ticking and wait for the thread to finish.  Safe to repeat."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        """Tick until stopped; ``Event.wait`` doubles as the sleep."""
        while not self._stop.wait(self._interval):
            self._kernel.tick()
            self._ticks += 1

    def __enter__(self) -> Self:
        """Start the driver."""
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Stop the driver."""
        self.stop()
