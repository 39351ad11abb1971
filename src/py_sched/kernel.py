"""The kernel — coordinator of the scheduling simulator.

The kernel owns the process table and wires the two other subsystems
together: the memory manager decides whether a process may exist at
all, and the scheduler decides which admitted process runs on each
tick.  Nothing else is allowed to create or destroy processes.

Nothing runs on its own.  A driver — the REPL, the web dashboard, a
``TickDriver`` thread, or a test — calls ``tick()`` repeatedly, and each
call is one unit of simulated CPU time:

    1. Ask the scheduler who runs.
    2. Nobody (or a dead process)?  Record an idle tick (PID 0).
    3. Otherwise mark it RUNNING, charge it one tick of CPU time, make a
       synthetic memory access, and jiggle its simulated memory usage.
    4. Put it back to READY.  RUNNING never survives a tick boundary.
    5. Append its PID to the bounded run history.

Observers (a task manager, a monitor) subscribe with ``add_listener``
and are called synchronously, in registration order, whenever a process
is admitted or killed.

Every public method runs under one re-entrant lock, so ticks, creations,
and kills never interleave, and a listener may safely call back into the
kernel (killing an already-dead PID is a no-op).
"""

from __future__ import annotations

import random
import threading
from collections import deque
from dataclasses import dataclass
from itertools import count
from typing import TYPE_CHECKING

from py_sched.config import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TIME_QUANTUM,
    DEFAULT_TOTAL_MEMORY,
)
from py_sched.logging import Logger, LogLevel
from py_sched.memory.manager import MemoryManager
from py_sched.process.pcb import DEFAULT_PRIORITY, MemoryProfile, Process, ProcessState
from py_sched.process.scheduler import Scheduler, SchedulingAlgorithm

if TYPE_CHECKING:
    from py_sched.config import SimulatorConfig

IDLE_PID = 0
PID_BASE = 1
DEFAULT_CPU_WINDOW = 120

# Burst estimate heuristic: one tick per 16 MB requested, at least 5.
_MIN_ESTIMATED_BURST = 5
_MEMORY_PER_BURST_TICK = 16


class ProcessListener:
    """Receive process lifecycle notifications.

    Subclass and override the hooks you care about; both default to
    doing nothing.  Hooks run inside the kernel's critical section, so
    keep them short.  They may call ``kill_process`` but must not
    assume the process is still in the table.
    """

    def on_process_created(self, process: Process) -> None:
        """Handle a process that was just admitted."""

    def on_process_terminated(self, process: Process) -> None:
        """Handle a process that was just killed."""


@dataclass(frozen=True)
class ProcessInfo:
    """One row of the process table, safe to hand to a UI."""

    pid: int
    name: str
    state: ProcessState
    priority: int
    required_memory: int
    allocated_memory: int
    memory_usage: int
    cpu_time_used: int
    estimated_burst_time: int
    remaining_burst: int
    uptime: int

    @classmethod
    def of(cls, process: Process, *, now: int) -> ProcessInfo:
        """Snapshot *process* as seen at tick *now*."""
        return cls(
            pid=process.pid,
            name=process.name,
            state=process.state,
            priority=process.priority,
            required_memory=process.required_memory,
            allocated_memory=process.allocated_memory,
            memory_usage=process.simulated_memory_usage,
            cpu_time_used=process.cpu_time_used,
            estimated_burst_time=process.estimated_burst_time,
            remaining_burst=process.remaining_burst,
            uptime=now - process.created_tick,
        )


@dataclass(frozen=True)
class MemoryStats:
    """Memory usage and access telemetry at one instant."""

    total_memory: int
    used_memory: int
    free_memory: int
    page_size: int
    page_count: int
    page_owners: tuple[int | None, ...]
    total_accesses: int
    tlb_hits: int
    tlb_misses: int
    page_faults: int

    @property
    def free_pages(self) -> int:
        """Return the number of unowned pages."""
        return sum(1 for owner in self.page_owners if owner is None)

    @property
    def hit_rate(self) -> float:
        """Return the TLB hit fraction (0.0 before any access)."""
        if self.total_accesses == 0:
            return 0.0
        return self.tlb_hits / self.total_accesses


class Kernel:
    """The central coordinator of the simulator.

    The kernel owns the process table (an arena of processes indexed by
    PID), the run history, and the listener list.  Callers only ever get
    copies or frozen snapshots of them.
    """

    def __init__(
        self,
        *,
        memory: MemoryManager | None = None,
        scheduler: Scheduler | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        rng: random.Random | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Create a kernel with an empty process table.

        Args:
            memory: The memory manager (default: 1024 MB in 64 MB pages).
            scheduler: The scheduler (default: Round Robin, quantum 3).
            history_limit: Maximum run-history length.
            rng: Random source for memory-usage fluctuation.
            logger: Log buffer (a fresh one by default).

        Raises:
            ValueError: If history_limit is not positive.

        """
        if history_limit < 1:
            msg = f"history_limit must be at least 1, got {history_limit}"
            raise ValueError(msg)
        self._rng = rng if rng is not None else random.Random()
        self._memory = (
            memory
            if memory is not None
            else MemoryManager(
                total_memory=DEFAULT_TOTAL_MEMORY, page_size=DEFAULT_PAGE_SIZE, rng=self._rng
            )
        )
        self._scheduler = (
            scheduler
            if scheduler is not None
            else Scheduler(SchedulingAlgorithm.ROUND_ROBIN, time_quantum=DEFAULT_TIME_QUANTUM)
        )
        self._logger = logger if logger is not None else Logger()
        self._lock = threading.RLock()
        self._processes: dict[int, Process] = {}
        self._listeners: list[ProcessListener] = []
        self._run_history: deque[int] = deque(maxlen=history_limit)
        self._pids = count(start=PID_BASE)
        self._tick_count = 0

        self._log(
            LogLevel.INFO,
            f"Memory manager: {self._memory.page_count} pages x {self._memory.page_size} MB",
        )
        self._log(LogLevel.INFO, f"Scheduler: {self._describe_scheduler()}", source="scheduler")

    @classmethod
    def from_config(cls, config: SimulatorConfig) -> Kernel:
        """Build a kernel and its subsystems from a config record."""
        rng = random.Random(config.seed)
        memory = MemoryManager(
            total_memory=config.total_memory, page_size=config.page_size, rng=rng
        )
        scheduler = Scheduler(config.algorithm, time_quantum=config.time_quantum)
        return cls(
            memory=memory,
            scheduler=scheduler,
            history_limit=config.history_limit,
            rng=rng,
        )

    # -- Subsystems ------------------------------------------------------------

    @property
    def memory(self) -> MemoryManager:
        """Return the memory manager."""
        return self._memory

    @property
    def scheduler(self) -> Scheduler:
        """Return the scheduler."""
        return self._scheduler

    @property
    def logger(self) -> Logger:
        """Return the kernel log buffer."""
        return self._logger

    @property
    def tick_count(self) -> int:
        """Return the number of ticks simulated so far."""
        with self._lock:
            return self._tick_count

    @property
    def history_limit(self) -> int:
        """Return the maximum run-history length."""
        maxlen = self._run_history.maxlen
        assert maxlen is not None  # noqa: S101
        return maxlen

    def dmesg(self) -> list[str]:
        """Return the kernel log as formatted lines (like Linux dmesg)."""
        return [str(entry) for entry in self._logger.entries]

    # -- Listeners -------------------------------------------------------------

    def add_listener(self, listener: ProcessListener) -> None:
        """Subscribe *listener* to lifecycle events (duplicates are ignored)."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: ProcessListener) -> None:
        """Unsubscribe *listener*; unknown listeners are ignored."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # -- Process lifecycle -----------------------------------------------------

    def create_process(
        self,
        name: str,
        required_memory: int,
        *,
        priority: int = DEFAULT_PRIORITY,
        memory_profile: MemoryProfile | None = None,
    ) -> Process | None:
        """Create a process and admit it if memory can be found.

        The new process gets the next PID and a burst estimate of one
        tick per 16 MB requested (at least 5).  If the memory manager
        cannot cover the request, the process is terminated on the spot
        and never enters the table or the ready queue.

        Args:
            name: Human-readable process name.
            required_memory: Memory to request (MB).
            priority: Scheduling priority (higher = more important).
            memory_profile: Optional bounds for the displayed memory usage.

        Returns:
            The admitted process, or None if memory was insufficient.

        Raises:
            ValueError: If required_memory is negative.

        """
        if required_memory < 0:
            msg = f"required_memory must not be negative, got {required_memory}"
            raise ValueError(msg)
        with self._lock:
            process = Process(
                pid=next(self._pids),
                name=name,
                required_memory=required_memory,
                priority=priority,
                memory_profile=memory_profile,
            )
            process.estimated_burst_time = max(
                _MIN_ESTIMATED_BURST, required_memory // _MEMORY_PER_BURST_TICK
            )

            if not self._memory.allocate(process, required_memory):
                process.reject()
                self._log(
                    LogLevel.WARNING,
                    f"Rejected '{name}' (PID {process.pid}): cannot allocate "
                    f"{required_memory} MB, {self._memory.free_memory} MB free",
                )
                return None

            process.admit()
            process.created_tick = self._tick_count
            self._processes[process.pid] = process
            self._scheduler.enqueue(process)
            self._log(
                LogLevel.INFO,
                f"Created '{name}' (PID {process.pid}, {process.allocated_memory} MB)",
            )
            for listener in list(self._listeners):
                listener.on_process_created(process)
            return process

    def kill_process(self, pid: int) -> bool:
        """Terminate a process and release everything it holds.

        Args:
            pid: The PID to kill.

        Returns:
            True if a process was killed, False if no such PID exists.

        """
        with self._lock:
            process = self._processes.get(pid)
            if process is None:
                return False
            process.force_terminate()
            self._memory.free(process)
            self._scheduler.dequeue(process)
            del self._processes[pid]
            self._log(LogLevel.INFO, f"Terminated '{process.name}' (PID {pid})")
            for listener in list(self._listeners):
                listener.on_process_terminated(process)
            return True

    def find_process(self, pid: int) -> Process | None:
        """Return the live process with *pid*, or None."""
        with self._lock:
            return self._processes.get(pid)

    @property
    def processes(self) -> tuple[Process, ...]:
        """Return the live processes in creation order."""
        with self._lock:
            return tuple(self._processes.values())

    def process_table(self) -> list[ProcessInfo]:
        """Return a frozen snapshot of every live process."""
        with self._lock:
            return [ProcessInfo.of(p, now=self._tick_count) for p in self._processes.values()]

    def set_priority(self, pid: int, priority: int) -> bool:
        """Change a process's priority.  Returns False for unknown PIDs."""
        with self._lock:
            process = self._processes.get(pid)
            if process is None:
                return False
            process.priority = priority
            self._log(LogLevel.DEBUG, f"PID {pid} priority set to {priority}", source="scheduler")
            return True

    def set_estimated_burst(self, pid: int, ticks: int) -> bool:
        """Change a process's burst estimate.  Returns False for unknown PIDs."""
        with self._lock:
            process = self._processes.get(pid)
            if process is None:
                return False
            process.estimated_burst_time = ticks
            self._log(
                LogLevel.DEBUG,
                f"PID {pid} burst estimate set to {process.estimated_burst_time}",
                source="scheduler",
            )
            return True

    # -- Scheduling ------------------------------------------------------------

    def set_algorithm(self, algorithm: SchedulingAlgorithm) -> None:
        """Switch the scheduling algorithm."""
        with self._lock:
            self._scheduler.set_algorithm(algorithm)
            self._log(
                LogLevel.INFO, f"Switched to {self._describe_scheduler()}", source="scheduler"
            )

    def set_time_quantum(self, quantum: int) -> None:
        """Set the Round Robin quantum (clamped to at least 1)."""
        with self._lock:
            self._scheduler.set_time_quantum(quantum)
            self._log(
                LogLevel.INFO,
                f"Time quantum set to {self._scheduler.time_quantum}",
                source="scheduler",
            )

    def tick(self) -> int:
        """Advance the simulation by one tick.

        Returns:
            The PID that ran, or ``IDLE_PID`` (0) if nothing did.

        """
        with self._lock:
            self._tick_count += 1
            process = self._scheduler.next()
            if process is None or process.state is ProcessState.TERMINATED:
                self._run_history.append(IDLE_PID)
                return IDLE_PID

            if process.state is ProcessState.NEW:
                process.admit()

            process.dispatch()
            process.consume_tick()
            self._memory.simulate_access(process)
            process.fluctuate_memory_usage(self._rng)

            if process.state is ProcessState.RUNNING:
                process.preempt()

            self._run_history.append(process.pid)
            return process.pid

    def run(self, ticks: int) -> list[int]:
        """Run *ticks* ticks and return the PIDs that ran, in order."""
        with self._lock:
            return [self.tick() for _ in range(ticks)]

    @property
    def run_history(self) -> list[int]:
        """Return the recent PIDs that ran (0 = idle), oldest first."""
        with self._lock:
            return list(self._run_history)

    def cpu_usage(self, window: int = DEFAULT_CPU_WINDOW) -> float:
        """Return the percentage of busy ticks among the last *window* ticks.

        Returns 0.0 before the first tick.
        """
        with self._lock:
            recent = list(self._run_history)[-window:] if window > 0 else []
        if not recent:
            return 0.0
        busy = sum(1 for pid in recent if pid != IDLE_PID)
        return 100.0 * busy / len(recent)

    def memory_stats(self) -> MemoryStats:
        """Return a snapshot of memory usage and access counters."""
        with self._lock:
            stats = self._memory.stats
            owners = tuple(self._memory.page_owners())
            used = sum(1 for owner in owners if owner is not None) * self._memory.page_size
            return MemoryStats(
                total_memory=self._memory.total_memory,
                used_memory=used,
                free_memory=self._memory.total_memory - used,
                page_size=self._memory.page_size,
                page_count=self._memory.page_count,
                page_owners=owners,
                total_accesses=stats.total_accesses,
                tlb_hits=stats.tlb_hits,
                tlb_misses=stats.tlb_misses,
                page_faults=stats.page_faults,
            )

    # -- Private helpers -------------------------------------------------------

    def _describe_scheduler(self) -> str:
        """Return e.g. ``Round Robin (quantum=3)`` or ``SJF``."""
        algorithm = self._scheduler.algorithm
        if algorithm is SchedulingAlgorithm.ROUND_ROBIN:
            return f"{algorithm.label} (quantum={self._scheduler.time_quantum})"
        return algorithm.label

    def _log(self, level: LogLevel, message: str, *, source: str = "kernel") -> None:
        """Record a kernel event stamped with the current tick."""
        self._logger.log(level, message, source=source, tick=self._tick_count)
