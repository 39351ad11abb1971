"""Simulator configuration — one frozen record of every tunable.

The defaults reproduce the desktop simulator's wiring: 1024 MB of
memory split into 64 MB pages, Round Robin with a quantum of 3, a run
history of 500 ticks, and a CPU clock that ticks twice per second.

Values can be overridden from the environment (``PY_SCHED_*``
variables), which is how the REPL and the web server pick them up::

    PY_SCHED_TOTAL_MEMORY=2048 PY_SCHED_ALGORITHM=sjf py-sched
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from py_sched.process.scheduler import SchedulingAlgorithm

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_TOTAL_MEMORY = 1024
DEFAULT_PAGE_SIZE = 64
DEFAULT_TIME_QUANTUM = 3
DEFAULT_HISTORY_LIMIT = 500
DEFAULT_TICK_INTERVAL = 0.5

ENV_PREFIX = "PY_SCHED_"


@dataclass(frozen=True)
class SimulatorConfig:
    """Every knob needed to build a kernel and drive it.

    Attributes:
        total_memory: Size of the simulated memory pool (MB).
        page_size: Size of one page (MB); must divide total_memory.
        algorithm: Initial scheduling algorithm.
        time_quantum: Round Robin quantum in ticks.
        history_limit: Maximum number of run-history entries kept.
        tick_interval: Seconds between ticks for the background driver.
        seed: Seed for the telemetry random generator (None = random).

    """

    total_memory: int = DEFAULT_TOTAL_MEMORY
    page_size: int = DEFAULT_PAGE_SIZE
    algorithm: SchedulingAlgorithm = SchedulingAlgorithm.ROUND_ROBIN
    time_quantum: int = DEFAULT_TIME_QUANTUM
    history_limit: int = DEFAULT_HISTORY_LIMIT
    tick_interval: float = DEFAULT_TICK_INTERVAL
    seed: int | None = None

    def __post_init__(self) -> None:
        """Reject values no simulator could be built from."""
        self.validate()

    def validate(self) -> None:
        """Check every field.

        Raises:
            ValueError: On the first invalid field.

        """
        if self.total_memory <= 0 or self.page_size <= 0:
            msg = "total_memory and page_size must be positive"
            raise ValueError(msg)
        if self.total_memory % self.page_size != 0:
            msg = (
                f"total_memory ({self.total_memory}) must be a multiple "
                f"of page_size ({self.page_size})"
            )
            raise ValueError(msg)
        if self.time_quantum < 1:
            msg = f"time_quantum must be at least 1, got {self.time_quantum}"
            raise ValueError(msg)
        if self.history_limit < 1:
            msg = f"history_limit must be at least 1, got {self.history_limit}"
            raise ValueError(msg)
        if self.tick_interval <= 0:
            msg = f"tick_interval must be positive, got {self.tick_interval}"
            raise ValueError(msg)

    @property
    def page_count(self) -> int:
        """Return the number of pages the memory pool is split into."""
        return self.total_memory // self.page_size

    def replace(self, **changes: object) -> SimulatorConfig:
        """Return a copy with the given fields changed (and re-validated)."""
        return dataclasses.replace(self, **changes)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SimulatorConfig:
        """Build a config from ``PY_SCHED_*`` environment variables.

        Unset variables keep their defaults.  Recognised names:
        ``TOTAL_MEMORY``, ``PAGE_SIZE``, ``ALGORITHM``, ``TIME_QUANTUM``,
        ``HISTORY_LIMIT``, ``TICK_INTERVAL``, ``SEED``.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``).

        Raises:
            ValueError: If a variable cannot be parsed or is out of range.

        """
        env = os.environ if environ is None else environ
        changes: dict[str, object] = {}
        for field, parse in _ENV_FIELDS.items():
            raw = env.get(ENV_PREFIX + field.upper())
            if raw is None or not raw.strip():
                continue
            try:
                changes[field] = parse(raw.strip())
            except ValueError as e:
                msg = f"Invalid {ENV_PREFIX}{field.upper()}={raw!r}: {e}"
                raise ValueError(msg) from e
        return cls(**changes)  # type: ignore[arg-type]


_ENV_FIELDS = {
    "total_memory": int,
    "page_size": int,
    "algorithm": SchedulingAlgorithm.parse,
    "time_quantum": int,
    "history_limit": int,
    "tick_interval": float,
    "seed": int,
}
