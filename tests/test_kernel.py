"""Tests for the kernel — process creation, termination, and inspection.

The kernel is the only component that creates or destroys processes.
A creation either gets every page it needs or is rejected outright; a
kill releases memory and the ready-queue slot in one step.
"""

import random

import pytest

from py_sched.config import SimulatorConfig
from py_sched.kernel import PID_BASE, Kernel, MemoryStats
from py_sched.logging import LogLevel
from py_sched.memory import MemoryManager
from py_sched.process import MemoryProfile, ProcessState, Scheduler, SchedulingAlgorithm

TOTAL_MEMORY = 1024
PAGE_SIZE = 64
PAGE_COUNT = TOTAL_MEMORY // PAGE_SIZE


def _kernel(algorithm: SchedulingAlgorithm = SchedulingAlgorithm.FCFS) -> Kernel:
    rng = random.Random(0)
    return Kernel(
        memory=MemoryManager(total_memory=TOTAL_MEMORY, page_size=PAGE_SIZE, rng=rng),
        scheduler=Scheduler(algorithm),
        rng=rng,
    )


def _assert_memory_consistent(kernel: Kernel) -> None:
    owned = 0
    for process in kernel.processes:
        pages = kernel.memory.pages_owned_by(process)
        assert process.allocated_memory == len(pages) * PAGE_SIZE
        owned += len(pages)
    assert owned + kernel.memory.free_page_count == PAGE_COUNT


class TestKernelDefaults:
    """Verify the out-of-the-box configuration."""

    def test_default_kernel_matches_desktop_setup(self) -> None:
        """1024 MB in 64 MB pages, Round Robin with a quantum of 3."""
        kernel = Kernel()
        assert kernel.memory.total_memory == TOTAL_MEMORY
        assert kernel.memory.page_size == PAGE_SIZE
        assert kernel.scheduler.algorithm is SchedulingAlgorithm.ROUND_ROBIN
        assert kernel.scheduler.time_quantum == 3
        assert kernel.history_limit == 500
        assert kernel.tick_count == 0

    def test_boot_messages_are_logged(self) -> None:
        """The kernel logs its memory and scheduler setup on creation."""
        lines = Kernel().dmesg()
        assert "[INFO] kernel: Memory manager: 16 pages x 64 MB" in lines
        assert "[INFO] scheduler: Scheduler: Round Robin (quantum=3)" in lines

    def test_invalid_history_limit_raises(self) -> None:
        """The history must hold at least one entry."""
        with pytest.raises(ValueError, match="history_limit"):
            Kernel(history_limit=0)

    def test_from_config(self) -> None:
        """A config record wires every subsystem."""
        config = SimulatorConfig(
            total_memory=512,
            page_size=32,
            algorithm=SchedulingAlgorithm.SJF,
            time_quantum=5,
            history_limit=50,
            seed=1,
        )
        kernel = Kernel.from_config(config)
        assert kernel.memory.page_count == 16
        assert kernel.scheduler.algorithm is SchedulingAlgorithm.SJF
        assert kernel.scheduler.time_quantum == 5
        assert kernel.history_limit == 50


class TestCreateProcess:
    """Verify admission and rejection."""

    def test_admission_and_rejection_scenario(self) -> None:
        """A 100 MB process fits; a 1000 MB one no longer does."""
        kernel = Kernel()
        a = kernel.create_process("A", 100)
        assert a is not None
        assert a.pid == PID_BASE
        assert a.allocated_memory == 128
        assert a.state is ProcessState.READY
        assert a in kernel.scheduler

        b = kernel.create_process("B", 1000)
        assert b is None
        assert [p.name for p in kernel.processes] == ["A"]
        assert kernel.scheduler.ready_count == 1
        _assert_memory_consistent(kernel)

    def test_pids_increase_and_are_never_reused(self) -> None:
        """Each creation, admitted or not, consumes a fresh PID."""
        kernel = _kernel()
        first = kernel.create_process("a", 64)
        assert kernel.create_process("too-big", TOTAL_MEMORY * 2) is None
        second = kernel.create_process("b", 64)
        assert first is not None
        assert second is not None
        assert second.pid == first.pid + 2
        kernel.kill_process(first.pid)
        third = kernel.create_process("c", 64)
        assert third is not None
        assert third.pid == second.pid + 1

    def test_request_larger_than_total_is_rejected(self) -> None:
        """More than the whole pool is always refused and logged."""
        kernel = _kernel()
        assert kernel.create_process("huge", TOTAL_MEMORY + 1) is None
        assert kernel.processes == ()
        warnings = kernel.logger.filter(min_level=LogLevel.WARNING)
        assert len(warnings) == 1
        assert "Rejected 'huge'" in warnings[0].message

    def test_whole_pool_can_be_taken(self) -> None:
        """A request for exactly the pool succeeds, and the next one fails."""
        kernel = _kernel()
        assert kernel.create_process("all", TOTAL_MEMORY) is not None
        assert kernel.memory.free_memory == 0
        assert kernel.create_process("none-left", 1) is None

    def test_zero_memory_process_is_admitted(self) -> None:
        """A process may ask for no memory at all."""
        kernel = _kernel()
        process = kernel.create_process("tiny", 0)
        assert process is not None
        assert process.allocated_memory == 0

    def test_negative_memory_raises(self) -> None:
        """A negative request is a caller error."""
        with pytest.raises(ValueError, match="negative"):
            _kernel().create_process("bad", -1)

    @pytest.mark.parametrize(("memory", "burst"), [(0, 5), (64, 5), (100, 6), (1024, 64)])
    def test_burst_estimate_heuristic(self, memory: int, burst: int) -> None:
        """The burst estimate is one tick per 16 MB, at least 5."""
        process = _kernel().create_process("p", memory)
        assert process is not None
        assert process.estimated_burst_time == burst

    def test_priority_and_profile_are_applied(self) -> None:
        """Optional arguments reach the PCB."""
        profile = MemoryProfile(minimum=30, maximum=60)
        process = _kernel().create_process("p", 64, priority=4, memory_profile=profile)
        assert process is not None
        assert process.priority == 4
        assert process.memory_profile == profile


class TestKillProcess:
    """Verify termination."""

    def test_kill_releases_everything(self) -> None:
        """A killed process leaves the table, the queue, and the pool."""
        kernel = _kernel()
        process = kernel.create_process("victim", 200)
        assert process is not None
        assert kernel.kill_process(process.pid)
        assert process.state is ProcessState.TERMINATED
        assert process.allocated_memory == 0
        assert process not in kernel.scheduler
        assert kernel.find_process(process.pid) is None
        assert kernel.memory.free_page_count == PAGE_COUNT

    def test_kill_is_idempotent(self) -> None:
        """Killing the same PID twice reports False the second time."""
        kernel = _kernel()
        process = kernel.create_process("p", 64)
        assert process is not None
        assert kernel.kill_process(process.pid)
        assert not kernel.kill_process(process.pid)

    def test_kill_unknown_pid(self) -> None:
        """Unknown PIDs are reported, not raised."""
        assert not _kernel().kill_process(999)

    def test_kill_running_round_robin_process(self) -> None:
        """Killing the slice holder hands the CPU to the next process."""
        kernel = _kernel(SchedulingAlgorithm.ROUND_ROBIN)
        a = kernel.create_process("a", 64)
        b = kernel.create_process("b", 64)
        assert a is not None
        assert b is not None
        assert kernel.tick() == a.pid
        kernel.kill_process(a.pid)
        assert kernel.tick() == b.pid

    def test_freed_memory_admits_new_process(self) -> None:
        """Memory released by a kill is available immediately."""
        kernel = _kernel()
        hog = kernel.create_process("hog", TOTAL_MEMORY)
        assert hog is not None
        assert kernel.create_process("waiting", 128) is None
        kernel.kill_process(hog.pid)
        assert kernel.create_process("waiting", 128) is not None
        _assert_memory_consistent(kernel)


class TestInspection:
    """Verify snapshots and adjustments."""

    def test_process_table_rows(self) -> None:
        """Rows mirror the PCB and report uptime in ticks."""
        kernel = _kernel()
        kernel.create_process("a", 100, priority=2)
        kernel.run(4)
        [row] = kernel.process_table()
        assert row.name == "a"
        assert row.state is ProcessState.READY
        assert row.priority == 2
        assert row.required_memory == 100
        assert row.allocated_memory == 128
        assert row.cpu_time_used == 4
        assert row.uptime == 4

    def test_processes_are_in_creation_order(self) -> None:
        """The process tuple lists the oldest process first."""
        kernel = _kernel()
        for name in ("x", "y", "z"):
            kernel.create_process(name, 10)
        assert [p.name for p in kernel.processes] == ["x", "y", "z"]

    def test_set_priority_and_burst(self) -> None:
        """Adjustments apply to live processes and report unknown PIDs."""
        kernel = _kernel()
        process = kernel.create_process("p", 64)
        assert process is not None
        assert kernel.set_priority(process.pid, 9)
        assert process.priority == 9
        assert kernel.set_estimated_burst(process.pid, 0)
        assert process.estimated_burst_time == 1
        assert not kernel.set_priority(999, 1)
        assert not kernel.set_estimated_burst(999, 1)

    def test_set_algorithm_and_quantum_are_logged(self) -> None:
        """Scheduler changes go through the kernel and land in the log."""
        kernel = _kernel()
        kernel.set_algorithm(SchedulingAlgorithm.ROUND_ROBIN)
        kernel.set_time_quantum(0)
        assert kernel.scheduler.time_quantum == 1
        messages = [e.message for e in kernel.logger.filter(source="scheduler")]
        assert "Switched to Round Robin (quantum=3)" in messages
        assert "Time quantum set to 1" in messages

    def test_memory_stats_snapshot(self) -> None:
        """Memory stats report usage, page owners, and access counters."""
        kernel = _kernel()
        process = kernel.create_process("p", 100)
        assert process is not None
        kernel.run(10)
        stats = kernel.memory_stats()
        assert isinstance(stats, MemoryStats)
        assert stats.used_memory == 128
        assert stats.free_memory == TOTAL_MEMORY - 128
        assert stats.page_owners[:2] == (process.pid, process.pid)
        assert stats.free_pages == PAGE_COUNT - 2
        assert stats.total_accesses == 10
        assert stats.tlb_hits + stats.tlb_misses == 10
        assert 0.0 <= stats.hit_rate <= 1.0

    def test_mixed_workload_keeps_memory_consistent(self) -> None:
        """Random creates, kills, and ticks never break page accounting."""
        kernel = _kernel(SchedulingAlgorithm.ROUND_ROBIN)
        rng = random.Random(11)
        for step in range(300):
            action = rng.random()
            if action < 0.4:
                kernel.create_process(f"p{step}", rng.randint(0, 300))
            elif action < 0.6 and kernel.processes:
                kernel.kill_process(rng.choice(kernel.processes).pid)
            else:
                kernel.tick()
            _assert_memory_consistent(kernel)
            for process in kernel.processes:
                assert process.state is ProcessState.READY
                assert process in kernel.scheduler
