"""Kernel log buffer — a bounded, in-memory record of simulator events.

Real kernels keep a ring buffer of messages (``dmesg`` on Linux) so that
boot output and driver events can be inspected after the fact.  The
simulator does the same for its own events: processes admitted or
rejected, processes killed, scheduling policy changes.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — one immutable record (level, message, source).
- **Logger** — the buffer itself, with filtering and oldest-first eviction.
"""

from collections import deque
from dataclasses import dataclass
from enum import IntEnum

DEFAULT_MAX_ENTRIES = 1000


class LogLevel(IntEnum):
    """Severity levels for log entries.

    An IntEnum so minimum-level filtering is a plain ``>=`` comparison.
    """

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The subsystem that produced it (e.g. "kernel", "scheduler").
        tick: Kernel tick count when the event was recorded.

    """

    level: LogLevel
    message: str
    source: str
    tick: int = 0

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


class Logger:
    """Bounded log buffer with filtering.

    Once ``max_entries`` records are stored, each new record evicts the
    oldest one, so a long-running simulation never grows without limit.
    """

    def __init__(self, *, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        """Create an empty logger.

        Args:
            max_entries: Maximum number of records kept.

        Raises:
            ValueError: If max_entries is not positive.

        """
        if max_entries < 1:
            msg = f"max_entries must be positive, got {max_entries}"
            raise ValueError(msg)
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)

    @property
    def max_entries(self) -> int:
        """Return the buffer capacity."""
        maxlen = self._entries.maxlen
        assert maxlen is not None  # noqa: S101
        return maxlen

    @property
    def entries(self) -> list[LogEntry]:
        """Return all retained entries, oldest first."""
        return list(self._entries)

    def __len__(self) -> int:
        """Return the number of retained entries."""
        return len(self._entries)

    def log(self, level: LogLevel, message: str, *, source: str, tick: int = 0) -> None:
        """Append a new entry, evicting the oldest if the buffer is full.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Subsystem that generated the event.
            tick: Kernel tick at which the event happened.

        """
        self._entries.append(LogEntry(level=level, message=message, source=source, tick=tick))

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.

        Returns:
            A new list of matching entries, oldest first.

        """
        result = list(self._entries)
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        return result

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()
