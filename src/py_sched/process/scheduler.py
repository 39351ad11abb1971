"""CPU scheduler — decides which READY process runs on each tick.

The scheduler owns the ready queue and delegates the *selection* to a
pluggable SchedulingPolicy.  Four policies ship:

- **FCFSPolicy** (First Come, First Served): always the queue head, never
  rotated.  Whoever arrived first keeps the CPU until it is killed — the
  convoy effect in its purest form.
- **RoundRobinPolicy**: the head runs for ``quantum`` consecutive ticks,
  then rotates to the tail and the next process takes over.
- **PriorityPolicy**: the highest ``priority`` value wins; equal
  priorities fall back to arrival order.
- **SJFPolicy** (Shortest Job First): the smallest estimated remaining
  burst wins; ties fall back to arrival order.

Unlike a dispatcher that pops processes off the queue, ``Scheduler.next``
leaves the queue intact: the kernel runs the chosen process for one tick
and asks again on the next.  Only Round Robin reorders the queue, and
only when a quantum runs out.

Design: Strategy pattern
    The Scheduler is the *context*; each policy is a *strategy* that
    maps (ready queue, round-robin cursor) to (chosen process, new
    cursor).  The cursor is a small immutable value holding only a PID,
    so policies never own a process.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from py_sched.process.pcb import Process

DEFAULT_TIME_QUANTUM = 3


class SchedulingAlgorithm(StrEnum):
    """The scheduling algorithms a Scheduler can switch between."""

    FCFS = "fcfs"
    ROUND_ROBIN = "round_robin"
    PRIORITY = "priority"
    SJF = "sjf"

    @property
    def label(self) -> str:
        """Return a display name (e.g. "Round Robin")."""
        return _LABELS[self]

    @classmethod
    def parse(cls, text: str) -> SchedulingAlgorithm:
        """Parse a user-supplied algorithm name.

        Accepts the enum values, the member names, and the short forms
        ``rr`` and ``roundrobin``, case-insensitively.

        Raises:
            ValueError: If the name matches no algorithm.

        """
        key = text.strip().lower().replace("-", "_").replace(" ", "_")
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            choices = ", ".join(a.value for a in cls)
            msg = f"Unknown scheduling algorithm '{text}'. Use one of: {choices}"
            raise ValueError(msg) from None


_LABELS = {
    SchedulingAlgorithm.FCFS: "FCFS",
    SchedulingAlgorithm.ROUND_ROBIN: "Round Robin",
    SchedulingAlgorithm.PRIORITY: "Priority",
    SchedulingAlgorithm.SJF: "SJF",
}

_ALIASES = {"rr": "round_robin", "roundrobin": "round_robin"}


@dataclass(frozen=True)
class RoundRobinCursor:
    """Round Robin bookkeeping: who holds the CPU and for how much longer.

    Attributes:
        active_pid: PID of the process currently holding the slice.
        remaining: Ticks left in its quantum.

    """

    active_pid: int | None = None
    remaining: int = 0


_IDLE_CURSOR = RoundRobinCursor()


class SchedulingPolicy(Protocol):
    """Interface every scheduling algorithm satisfies."""

    def select(
        self,
        ready_queue: deque[Process],
        cursor: RoundRobinCursor,
        *,
        quantum: int,
    ) -> tuple[Process | None, RoundRobinCursor]:
        """Return the process to run next and the updated cursor."""
        ...  # pragma: no cover


class FCFSPolicy:
    """First Come, First Served — the head of the queue, every time."""

    def select(
        self,
        ready_queue: deque[Process],
        cursor: RoundRobinCursor,
        *,
        quantum: int,  # noqa: ARG002
    ) -> tuple[Process | None, RoundRobinCursor]:
        """Peek at the front of the queue without rotating it."""
        if not ready_queue:
            return None, cursor
        return ready_queue[0], cursor


class RoundRobinPolicy:
    """Round Robin — fixed time slices, rotating through the queue.

    The process holding the slice keeps getting selected until its
    remaining quantum reaches zero.  Then it moves to the tail and the
    new head starts a fresh quantum.  The remaining count is decremented
    on every selection, including the one that starts the slice, so a
    quantum of 2 yields ``A, A, B, B, A, A, ...``.
    """

    def select(
        self,
        ready_queue: deque[Process],
        cursor: RoundRobinCursor,
        *,
        quantum: int,
    ) -> tuple[Process | None, RoundRobinCursor]:
        """Continue the active slice or rotate to the next process."""
        if not ready_queue:
            return None, _IDLE_CURSOR
        active = _find(ready_queue, cursor.active_pid)
        remaining = cursor.remaining
        if active is None or remaining <= 0:
            if active is not None:
                ready_queue.remove(active)
                ready_queue.append(active)
            active = ready_queue[0]
            remaining = quantum
        return active, RoundRobinCursor(active_pid=active.pid, remaining=remaining - 1)


class PriorityPolicy:
    """Priority scheduling — highest priority value runs.

    Tiebreaker: the left-to-right scan keeps the first maximum it finds,
    and the deque preserves insertion order, so equal priorities run in
    arrival order.  Low priorities starve while anything higher waits.
    """

    def select(
        self,
        ready_queue: deque[Process],
        cursor: RoundRobinCursor,
        *,
        quantum: int,  # noqa: ARG002
    ) -> tuple[Process | None, RoundRobinCursor]:
        """Return the highest-priority process (first seen on ties)."""
        if not ready_queue:
            return None, cursor
        best = ready_queue[0]
        for process in ready_queue:
            if process.priority > best.priority:
                best = process
        return best, cursor


class SJFPolicy:
    """Shortest Job First — least estimated work remaining runs.

    Remaining work is ``estimated_burst_time - cpu_time_used`` floored at
    zero, so a process that overran its estimate looks like a zero-length
    job and keeps winning until it is killed.
    """

    def select(
        self,
        ready_queue: deque[Process],
        cursor: RoundRobinCursor,
        *,
        quantum: int,  # noqa: ARG002
    ) -> tuple[Process | None, RoundRobinCursor]:
        """Return the process with the shortest remaining burst (first seen on ties)."""
        if not ready_queue:
            return None, cursor
        best = ready_queue[0]
        for process in ready_queue:
            if process.remaining_burst < best.remaining_burst:
                best = process
        return best, cursor


_POLICIES: dict[SchedulingAlgorithm, SchedulingPolicy] = {
    SchedulingAlgorithm.FCFS: FCFSPolicy(),
    SchedulingAlgorithm.ROUND_ROBIN: RoundRobinPolicy(),
    SchedulingAlgorithm.PRIORITY: PriorityPolicy(),
    SchedulingAlgorithm.SJF: SJFPolicy(),
}


def _find(ready_queue: deque[Process], pid: int | None) -> Process | None:
    """Return the queued process with *pid*, or None."""
    if pid is None:
        return None
    for process in ready_queue:
        if process.pid == pid:
            return process
    return None


class Scheduler:
    """The CPU scheduler — manages the ready queue and the active policy.

    The scheduler holds non-owning references: the kernel's process
    table owns every process, and the queue only records who is
    eligible to run.  It has no lock of its own; the kernel serialises
    every call.
    """

    def __init__(
        self,
        algorithm: SchedulingAlgorithm = SchedulingAlgorithm.FCFS,
        *,
        time_quantum: int = DEFAULT_TIME_QUANTUM,
    ) -> None:
        """Create a scheduler with an empty ready queue.

        Args:
            algorithm: The initial scheduling algorithm.
            time_quantum: Round Robin slice length; clamped to at least 1.

        """
        self._algorithm = algorithm
        self._time_quantum = max(1, time_quantum)
        self._ready_queue: deque[Process] = deque()
        self._cursor = _IDLE_CURSOR

    @property
    def algorithm(self) -> SchedulingAlgorithm:
        """Return the active scheduling algorithm."""
        return self._algorithm

    @property
    def policy(self) -> SchedulingPolicy:
        """Return the strategy object for the active algorithm."""
        return _POLICIES[self._algorithm]

    @property
    def time_quantum(self) -> int:
        """Return the Round Robin quantum (ticks)."""
        return self._time_quantum

    @property
    def cursor(self) -> RoundRobinCursor:
        """Return the Round Robin bookkeeping."""
        return self._cursor

    @property
    def ready_count(self) -> int:
        """Return the number of queued processes."""
        return len(self._ready_queue)

    @property
    def ready_processes(self) -> list[Process]:
        """Return a snapshot of the ready queue, head first."""
        return list(self._ready_queue)

    def __contains__(self, process: object) -> bool:
        """Return True if *process* (by identity) is queued."""
        return any(queued is process for queued in self._ready_queue)

    def set_algorithm(self, algorithm: SchedulingAlgorithm) -> None:
        """Switch algorithms; Round Robin accounting restarts from scratch."""
        self._algorithm = algorithm
        self._cursor = _IDLE_CURSOR

    def set_time_quantum(self, quantum: int) -> None:
        """Set the Round Robin quantum, clamped to at least 1.

        The active slice keeps its remaining ticks; the new value applies
        from the next rotation.
        """
        self._time_quantum = max(1, quantum)

    def enqueue(self, process: Process) -> None:
        """Append *process* to the tail unless it is already queued."""
        if process not in self:
            self._ready_queue.append(process)

    def dequeue(self, process: Process) -> None:
        """Remove *process* from anywhere in the queue.

        If it held the Round Robin slice, the cursor is cleared.
        Removing a process that is not queued is a no-op.
        """
        for i, queued in enumerate(self._ready_queue):
            if queued is process:
                del self._ready_queue[i]
                break
        if self._cursor.active_pid == process.pid:
            self._cursor = _IDLE_CURSOR

    def next(self) -> Process | None:
        """Return the process that should run this tick, or None if idle.

        The process stays queued; only Round Robin's rotation reorders
        the queue.
        """
        process, self._cursor = self.policy.select(
            self._ready_queue, self._cursor, quantum=self._time_quantum
        )
        return process
