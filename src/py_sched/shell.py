"""The shell — a text front-end to the kernel.

The shell reads one command line, splits it into a command name and
arguments, dispatches to a handler, and returns the output as a string.
It covers what the desktop simulator's Task Manager and System Monitor
windows did: list and kill processes, start new ones, switch the
scheduling algorithm, and inspect memory and the run history.

Design choices:
    - **Returns strings, not prints.**  The shell stays fully testable;
      the REPL decides how to display output.
    - **Command dispatch via a dict.**  Adding a command means writing a
      ``_cmd_*`` method and adding one dict entry.
    - **Errors are output.**  Bad input produces ``Usage:`` or
      ``Error:`` text, never an exception.
"""

from collections.abc import Callable
from typing import TypeAlias

from py_sched.kernel import IDLE_PID, Kernel
from py_sched.process.pcb import DEFAULT_PRIORITY
from py_sched.process.scheduler import SchedulingAlgorithm

# Type alias for a command handler: takes a list of args, returns output.
_Handler: TypeAlias = Callable[[list[str]], str]

_DEFAULT_HISTORY_WINDOW = 40
_MAX_TICKS_PER_COMMAND = 10_000
_PAGES_PER_ROW = 8


def _parse_int(text: str, what: str) -> int:
    """Parse *text* as an int or raise ValueError with a friendly message."""
    try:
        return int(text)
    except ValueError:
        msg = f"invalid {what} '{text}'"
        raise ValueError(msg) from None


class Shell:
    """Command interpreter bound to one kernel."""

    EXIT_SENTINEL = "__EXIT__"

    def __init__(self, *, kernel: Kernel) -> None:
        """Create a shell attached to *kernel*."""
        self._kernel = kernel
        self._commands: dict[str, _Handler] = {
            "help": self._cmd_help,
            "ps": self._cmd_ps,
            "spawn": self._cmd_spawn,
            "kill": self._cmd_kill,
            "tick": self._cmd_tick,
            "scheduler": self._cmd_scheduler,
            "quantum": self._cmd_quantum,
            "nice": self._cmd_nice,
            "burst": self._cmd_burst,
            "mem": self._cmd_mem,
            "pages": self._cmd_pages,
            "history": self._cmd_history,
            "top": self._cmd_top,
            "log": self._cmd_log,
            "exit": self._cmd_exit,
        }

    @property
    def command_names(self) -> list[str]:
        """Return the sorted list of command names."""
        return sorted(self._commands)

    def execute(self, command: str) -> str:
        """Parse and execute one command line.

        Args:
            command: The raw command string (e.g. "spawn editor 128").

        Returns:
            The command output, or an error message.

        """
        parts = command.split()
        if not parts:
            return ""
        name, args = parts[0], parts[1:]
        handler = self._commands.get(name)
        if handler is None:
            return f"Unknown command: {name}"
        try:
            return handler(args)
        except ValueError as e:
            return f"Error: {e}"

    # -- Command handlers ------------------------------------------------------

    def _cmd_help(self, _args: list[str]) -> str:
        """List available commands."""
        return "Available commands: " + ", ".join(self.command_names)

    def _cmd_ps(self, _args: list[str]) -> str:
        """Show the process table."""
        rows = self._kernel.process_table()
        lines = ["PID    STATE       PRI  MEM(MB)  CPU   LEFT  NAME"]
        lines.extend(
            f"{p.pid:<6} {p.state!s:<11} {p.priority:<4} {p.memory_usage:<8} "
            f"{p.cpu_time_used:<5} {p.remaining_burst:<5} {p.name}"
            for p in rows
        )
        return "\n".join(lines)

    def _cmd_spawn(self, args: list[str]) -> str:
        """Create a process: ``spawn <name> <memory_mb> [priority]``."""
        if len(args) < 2:  # noqa: PLR2004
            return "Usage: spawn <name> <memory_mb> [priority]"
        name = args[0]
        memory = _parse_int(args[1], "memory size")
        priority = _parse_int(args[2], "priority") if len(args) > 2 else DEFAULT_PRIORITY  # noqa: PLR2004
        if memory < 0:
            return "Error: memory size must not be negative"
        process = self._kernel.create_process(name, memory, priority=priority)
        if process is None:
            free = self._kernel.memory.free_memory
            return f"Error: not enough memory for '{name}' ({memory} MB requested, {free} MB free)"
        return f"Started '{name}' as PID {process.pid} ({process.allocated_memory} MB allocated)"

    def _cmd_kill(self, args: list[str]) -> str:
        """Terminate a process by PID."""
        if not args:
            return "Usage: kill <pid>"
        pid = _parse_int(args[0], "PID")
        if not self._kernel.kill_process(pid):
            return f"Error: no process with PID {pid}"
        return f"Process {pid} terminated."

    def _cmd_tick(self, args: list[str]) -> str:
        """Advance the simulation: ``tick [n]``."""
        ticks = _parse_int(args[0], "tick count") if args else 1
        if not 1 <= ticks <= _MAX_TICKS_PER_COMMAND:
            return f"Error: tick count must be between 1 and {_MAX_TICKS_PER_COMMAND}"
        ran = self._kernel.run(ticks)
        return "Ran: " + " ".join(self._pid_label(pid) for pid in ran)

    def _cmd_scheduler(self, args: list[str]) -> str:
        """Show or switch the scheduling algorithm."""
        scheduler = self._kernel.scheduler
        if args:
            self._kernel.set_algorithm(SchedulingAlgorithm.parse(args[0]))
        label = scheduler.algorithm.label
        if scheduler.algorithm is SchedulingAlgorithm.ROUND_ROBIN:
            label += f" (quantum={scheduler.time_quantum})"
        prefix = "Switched to" if args else "Current algorithm:"
        return f"{prefix} {label}"

    def _cmd_quantum(self, args: list[str]) -> str:
        """Show or set the Round Robin time quantum."""
        if args:
            self._kernel.set_time_quantum(_parse_int(args[0], "quantum"))
        return f"Time quantum: {self._kernel.scheduler.time_quantum}"

    def _cmd_nice(self, args: list[str]) -> str:
        """Change a process's priority: ``nice <pid> <priority>``."""
        if len(args) < 2:  # noqa: PLR2004
            return "Usage: nice <pid> <priority>"
        pid = _parse_int(args[0], "PID")
        priority = _parse_int(args[1], "priority")
        if not self._kernel.set_priority(pid, priority):
            return f"Error: no process with PID {pid}"
        return f"PID {pid} priority set to {priority}"

    def _cmd_burst(self, args: list[str]) -> str:
        """Change a process's burst estimate: ``burst <pid> <ticks>``."""
        if len(args) < 2:  # noqa: PLR2004
            return "Usage: burst <pid> <ticks>"
        pid = _parse_int(args[0], "PID")
        ticks = _parse_int(args[1], "tick count")
        if not self._kernel.set_estimated_burst(pid, ticks):
            return f"Error: no process with PID {pid}"
        process = self._kernel.find_process(pid)
        assert process is not None  # noqa: S101
        return f"PID {pid} burst estimate set to {process.estimated_burst_time}"

    def _cmd_mem(self, _args: list[str]) -> str:
        """Show memory usage and access telemetry."""
        stats = self._kernel.memory_stats()
        return "\n".join(
            [
                f"RAM: {stats.total_memory} MB total, {stats.used_memory} MB used, "
                f"{stats.free_memory} MB free",
                f"Pages: {stats.page_count} x {stats.page_size} MB ({stats.free_pages} free)",
                f"Accesses: {stats.total_accesses}  TLB hits: {stats.tlb_hits}  "
                f"TLB misses: {stats.tlb_misses}  Page faults: {stats.page_faults}",
                f"TLB hit rate: {stats.hit_rate:.1%}",
            ]
        )

    def _cmd_pages(self, _args: list[str]) -> str:
        """Draw the page pool: owner PID per page, ``.`` for free."""
        owners = self._kernel.memory_stats().page_owners
        cells = [f"[{'.' if owner is None else owner:>3}]" for owner in owners]
        rows = [
            "".join(cells[i : i + _PAGES_PER_ROW]) for i in range(0, len(cells), _PAGES_PER_ROW)
        ]
        return "\n".join(rows)

    def _cmd_history(self, args: list[str]) -> str:
        """Show the most recent ticks: ``history [n]``."""
        window = _parse_int(args[0], "window") if args else _DEFAULT_HISTORY_WINDOW
        history = self._kernel.run_history
        if not history:
            return "No ticks yet."
        recent = history[-window:] if window > 0 else []
        return " ".join(self._pid_label(pid) for pid in recent)

    def _cmd_top(self, _args: list[str]) -> str:
        """Show a one-screen system summary."""
        kernel = self._kernel
        stats = kernel.memory_stats()
        scheduler = kernel.scheduler
        lines = [
            "=== py-sched System Monitor ===",
            f"Ticks:       {kernel.tick_count}",
            f"CPU:         {kernel.cpu_usage():.0f}% busy",
            f"Algorithm:   {scheduler.algorithm.label}",
            f"Quantum:     {scheduler.time_quantum}",
            f"Processes:   {len(kernel.processes)} ({scheduler.ready_count} ready)",
            f"Memory:      {stats.used_memory}/{stats.total_memory} MB used",
            f"Log entries: {len(kernel.logger)}",
        ]
        return "\n".join(lines)

    def _cmd_log(self, _args: list[str]) -> str:
        """Show the kernel log."""
        entries = self._kernel.dmesg()
        return "\n".join(entries) if entries else "No log entries."

    def _cmd_exit(self, _args: list[str]) -> str:
        """Signal the REPL to stop."""
        return self.EXIT_SENTINEL

    @staticmethod
    def _pid_label(pid: int) -> str:
        """Render a history entry: the PID, or ``-`` for idle."""
        return "-" if pid == IDLE_PID else str(pid)
