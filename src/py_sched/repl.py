"""Interactive REPL (Read-Eval-Print Loop) for the simulator.

The REPL builds a kernel, creates a shell, and enters the classic loop:

    1. **Read** — display a prompt and read user input.
    2. **Eval** — pass the command to ``shell.execute()``.
    3. **Print** — display the result.
    4. **Loop** — repeat until the shell returns the exit sentinel.

By default the simulation only advances when the user types ``tick``.
With ``--auto-tick`` a background ``TickDriver`` advances it on a
wall-clock cadence, like the desktop simulator's CPU clock.

The helper functions (``build_parser``, ``config_from_args``,
``format_banner``, ``build_prompt``) are pure and testable.  ``run()``
is the I/O entry point.
"""

from __future__ import annotations

import argparse
import readline
from typing import TYPE_CHECKING

from py_sched import __version__
from py_sched.clock import TickDriver
from py_sched.config import SimulatorConfig
from py_sched.kernel import Kernel
from py_sched.process.scheduler import SchedulingAlgorithm
from py_sched.shell import Shell

if TYPE_CHECKING:
    from collections.abc import Sequence

_BANNER_WIDTH = 38


def build_parser() -> argparse.ArgumentParser:
    """Return the command-line parser for ``py-sched``."""
    parser = argparse.ArgumentParser(
        prog="py-sched",
        description="Interactive process scheduling simulator.",
    )
    parser.add_argument("--memory", type=int, help="total simulated memory (MB)")
    parser.add_argument("--page-size", type=int, help="page size (MB)")
    parser.add_argument(
        "--algorithm",
        type=SchedulingAlgorithm.parse,
        help="fcfs, rr, priority, or sjf",
    )
    parser.add_argument("--quantum", type=int, help="Round Robin time quantum (ticks)")
    parser.add_argument("--seed", type=int, help="seed for the telemetry random generator")
    parser.add_argument(
        "--auto-tick",
        action="store_true",
        help="advance the simulation in the background",
    )
    parser.add_argument("--interval", type=float, help="seconds between background ticks")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(
    args: argparse.Namespace,
    base: SimulatorConfig | None = None,
) -> SimulatorConfig:
    """Overlay command-line options on *base* (default: the environment).

    Raises:
        ValueError: If the resulting configuration is invalid.

    """
    config = base if base is not None else SimulatorConfig.from_env()
    overrides = {
        "total_memory": args.memory,
        "page_size": args.page_size,
        "algorithm": args.algorithm,
        "time_quantum": args.quantum,
        "seed": args.seed,
        "tick_interval": args.interval,
    }
    changes = {key: value for key, value in overrides.items() if value is not None}
    return config.replace(**changes) if changes else config


def format_banner(kernel: Kernel) -> str:
    """Format the startup banner, followed by the kernel log."""
    border = "=" * _BANNER_WIDTH
    header = (
        f"\n  {border}\n          py-sched v{__version__}\n"
        f"   A process scheduling simulator\n  {border}\n\n"
    )
    body = "\n".join(f"  {line}" for line in kernel.dmesg())
    footer = "\nType 'help' for commands, 'exit' to quit.\n"
    return header + body + footer


def build_prompt(kernel: Kernel) -> str:
    """Build a prompt showing the tick count, e.g. ``[t=12] sched $ ``."""
    return f"[t={kernel.tick_count}] sched $ "


def run(argv: Sequence[str] | None = None) -> None:
    """Build the simulator and run the interactive loop.

    This is the ``py-sched`` console entry point.  It handles Ctrl+C and
    Ctrl+D gracefully and always stops the background driver.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    kernel = Kernel.from_config(config)
    shell = Shell(kernel=kernel)
    driver = TickDriver(kernel, interval=config.tick_interval) if args.auto_tick else None

    readline.parse_and_bind("tab: complete")
    print(format_banner(kernel))  # noqa: T201

    if driver is not None:
        driver.start()
    try:
        while True:
            try:
                command = input(build_prompt(kernel))
            except EOFError:
                # Ctrl+D: graceful exit
                print()  # noqa: T201
                break

            result = shell.execute(command)
            if result == Shell.EXIT_SENTINEL:
                break
            if result:
                print(result)  # noqa: T201

    except KeyboardInterrupt:
        print("\nInterrupted.")  # noqa: T201

    finally:
        if driver is not None:
            driver.stop()
        print(f"Simulation stopped after {kernel.tick_count} ticks.")  # noqa: T201
