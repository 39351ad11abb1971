"""Process and Process Control Block (PCB).

A simulated process is a record the kernel keeps about one program: its
PID, name, scheduling hints, memory footprint, and CPU accounting.  No
real thread or OS process stands behind it — the kernel "runs" it by
bumping its CPU counter once per tick.

Processes follow a strict state machine.  Each transition method
enforces the source state, so a bug in the kernel or scheduler shows up
as a RuntimeError instead of silently corrupting the table.

State machine::

    NEW ──admit──▶ READY ◀──preempt── RUNNING
     │               │ └──dispatch──▶    │
     │ reject        └──force_terminate──┤
     ▼                                   ▼
    TERMINATED ◀─────────────────────────┘

WAITING is part of the classic five-state model and is kept in the enum,
but no transition in this simulator produces it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from random import Random

DEFAULT_PRIORITY = 1
DEFAULT_BURST_TIME = 10

# Largest step (as a fraction of the profile's range) a single tick may
# move the simulated memory usage.
_FLUCTUATION_STEP = 0.1


class ProcessState(StrEnum):
    """Lifecycle states of a process.

    - NEW: created, waiting for the memory manager's answer.
    - READY: admitted and waiting in the ready queue.
    - RUNNING: executing during the current tick only.
    - WAITING: reserved; never entered by the tick loop.
    - TERMINATED: killed or rejected; absorbing.
    """

    NEW = "new"
    READY = "ready"
    RUNNING = "running"
    WAITING = "waiting"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class MemoryProfile:
    """Bounds for a process's simulated working-set size (MB).

    The task manager shows a "live" memory figure that wanders between
    these bounds as the process runs.  It is cosmetic: allocation is
    decided by ``required_memory`` and page rounding alone.
    """

    minimum: int
    maximum: int

    def __post_init__(self) -> None:
        """Reject empty or inverted ranges."""
        if self.minimum < 0 or self.maximum < self.minimum:
            msg = f"Invalid memory profile: {self.minimum}..{self.maximum}"
            raise ValueError(msg)

    def clamp(self, value: int) -> int:
        """Return *value* limited to the profile's bounds."""
        return max(self.minimum, min(self.maximum, value))


class Process:
    """A simulated process (the Process Control Block).

    The kernel is the only component that creates processes; it assigns
    the PID.  The memory manager writes ``allocated_memory`` and the
    scheduler reads ``priority`` and ``remaining_burst``.
    """

    def __init__(
        self,
        *,
        pid: int,
        name: str,
        required_memory: int = 0,
        priority: int = DEFAULT_PRIORITY,
        memory_profile: MemoryProfile | None = None,
    ) -> None:
        """Create a new process in the NEW state.

        Args:
            pid: Unique process identifier (assigned by the kernel).
            name: Human-readable label (e.g. "notepad").
            required_memory: Memory requested at creation (MB).
            priority: Scheduling priority (higher = more important).
            memory_profile: Optional bounds for the simulated memory usage.

        """
        self._pid = pid
        self._name = name
        self._required_memory = required_memory
        self._state = ProcessState.NEW
        self.priority = priority
        self.allocated_memory = 0
        self._cpu_time_used = 0
        self._estimated_burst_time = DEFAULT_BURST_TIME
        self._memory_profile = memory_profile
        self._memory_usage: int | None = memory_profile.minimum if memory_profile else None
        self.created_tick = 0

    @property
    def pid(self) -> int:
        """Return the unique process identifier."""
        return self._pid

    @property
    def name(self) -> str:
        """Return the process name."""
        return self._name

    @property
    def state(self) -> ProcessState:
        """Return the current process state."""
        return self._state

    @property
    def required_memory(self) -> int:
        """Return the memory requested at creation (MB)."""
        return self._required_memory

    @property
    def cpu_time_used(self) -> int:
        """Return the number of ticks this process has run."""
        return self._cpu_time_used

    @property
    def estimated_burst_time(self) -> int:
        """Return the estimated total CPU burst (ticks), used by SJF."""
        return self._estimated_burst_time

    @estimated_burst_time.setter
    def estimated_burst_time(self, ticks: int) -> None:
        """Set the burst estimate, clamped to at least one tick."""
        self._estimated_burst_time = max(1, ticks)

    @property
    def remaining_burst(self) -> int:
        """Return the estimated ticks still to run (never negative)."""
        return max(self._estimated_burst_time - self._cpu_time_used, 0)

    @property
    def memory_profile(self) -> MemoryProfile | None:
        """Return the simulated-usage bounds, or None if not configured."""
        return self._memory_profile

    @property
    def simulated_memory_usage(self) -> int:
        """Return the memory figure shown to users (MB).

        Without a profile this is simply the allocated memory.
        """
        if self._memory_usage is None:
            return self.allocated_memory
        return self._memory_usage

    def consume_tick(self) -> None:
        """Account one tick of CPU time."""
        self._cpu_time_used += 1

    def fluctuate_memory_usage(self, rng: Random) -> None:
        """Move the simulated memory usage by a small random step.

        The step is at most a tenth of the profile's range (and at least
        1 MB), and the result stays within the profile.  No-op when the
        process has no profile.

        Args:
            rng: Random source to draw the step from.

        """
        if self._memory_profile is None or self._memory_usage is None:
            return
        profile = self._memory_profile
        span = max(1, round((profile.maximum - profile.minimum) * _FLUCTUATION_STEP))
        step = rng.randint(-span, span)
        self._memory_usage = profile.clamp(self._memory_usage + step)

    def _transition(self, action: str, expected: ProcessState, target: ProcessState) -> None:
        """Enforce a state transition.

        Raises:
            RuntimeError: If the process is not in the expected state.

        """
        if self._state is not expected:
            msg = f"Cannot {action}: process {self._pid} is {self._state}, expected {expected}"
            raise RuntimeError(msg)
        self._state = target

    def admit(self) -> None:
        """Transition NEW → READY. Memory was granted."""
        self._transition("admit", ProcessState.NEW, ProcessState.READY)

    def reject(self) -> None:
        """Transition NEW → TERMINATED. Memory was denied."""
        self._transition("reject", ProcessState.NEW, ProcessState.TERMINATED)

    def dispatch(self) -> None:
        """Transition READY → RUNNING. Selected for the current tick."""
        self._transition("dispatch", ProcessState.READY, ProcessState.RUNNING)

    def preempt(self) -> None:
        """Transition RUNNING → READY. The tick's slice is over."""
        self._transition("preempt", ProcessState.RUNNING, ProcessState.READY)

    def force_terminate(self) -> None:
        """Kill the process from READY, RUNNING, or WAITING.

        Raises:
            RuntimeError: If the process is NEW or already TERMINATED.

        """
        if self._state is ProcessState.TERMINATED:
            msg = f"Cannot force_terminate: process {self._pid} is already terminated"
            raise RuntimeError(msg)
        if self._state is ProcessState.NEW:
            msg = f"Cannot force_terminate: process {self._pid} is not yet admitted"
            raise RuntimeError(msg)
        self._state = ProcessState.TERMINATED

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return f"Process(pid={self._pid}, name={self._name!r}, state={self._state})"
