"""Tests for the memory manager.

The memory manager splits a fixed pool into pages and hands whole pages
to processes.  Requests are rounded up to page granularity and either
fully satisfied or refused outright.
"""

import random

import pytest

from py_sched.memory import AccessStats, MemoryConfigError, MemoryManager
from py_sched.process import Process

TOTAL_MEMORY = 1024
PAGE_SIZE = 64
PAGE_COUNT = TOTAL_MEMORY // PAGE_SIZE
SMALL_REQUEST = 100
SMALL_REQUEST_PAGES = 2


class _ScriptedRandom(random.Random):
    """A Random whose ``random()`` returns a fixed script of values."""

    def __init__(self, values: list[float]) -> None:
        super().__init__(0)
        self._values = iter(values)

    def random(self) -> float:
        return next(self._values)


def _manager(rng: random.Random | None = None) -> MemoryManager:
    return MemoryManager(total_memory=TOTAL_MEMORY, page_size=PAGE_SIZE, rng=rng)


def _owned(mm: MemoryManager, process: Process) -> int:
    return len(mm.pages_owned_by(process))


class TestMemoryManagerCreation:
    """Verify construction and configuration checks."""

    def test_pool_is_split_into_pages(self) -> None:
        """1024 MB in 64 MB pages is 16 pages, all free."""
        mm = _manager()
        assert mm.page_count == PAGE_COUNT
        assert mm.free_page_count == PAGE_COUNT
        assert mm.used_memory == 0
        assert mm.free_memory == TOTAL_MEMORY

    def test_pages_are_indexed_in_order(self) -> None:
        """Page indices run from 0 to page_count - 1."""
        mm = _manager()
        assert [page.index for page in mm.pages] == list(range(PAGE_COUNT))

    @pytest.mark.parametrize(("total", "page"), [(0, 64), (1024, 0), (-64, 64), (1024, -1)])
    def test_non_positive_sizes_raise(self, total: int, page: int) -> None:
        """Sizes must be positive."""
        with pytest.raises(MemoryConfigError, match="positive"):
            MemoryManager(total_memory=total, page_size=page)

    def test_total_must_be_whole_pages(self) -> None:
        """A pool that is not a whole number of pages is rejected."""
        with pytest.raises(MemoryConfigError, match="multiple"):
            MemoryManager(total_memory=1000, page_size=64)

    def test_config_error_is_a_value_error(self) -> None:
        """Callers may catch configuration errors as ValueError."""
        assert issubclass(MemoryConfigError, ValueError)


class TestAllocation:
    """Verify page-granular, all-or-nothing allocation."""

    def test_allocation_rounds_up_to_pages(self) -> None:
        """100 MB needs 2 pages, so the process gets 128 MB."""
        mm = _manager()
        process = Process(pid=1, name="a")
        assert mm.allocate(process, SMALL_REQUEST)
        assert process.allocated_memory == SMALL_REQUEST_PAGES * PAGE_SIZE
        assert _owned(mm, process) == SMALL_REQUEST_PAGES
        assert mm.used_memory == SMALL_REQUEST_PAGES * PAGE_SIZE

    def test_lowest_free_pages_are_taken_first(self) -> None:
        """Allocation scans the pool in index order."""
        mm = _manager()
        first = Process(pid=1, name="a")
        second = Process(pid=2, name="b")
        mm.allocate(first, 3 * PAGE_SIZE)
        mm.allocate(second, 2 * PAGE_SIZE)
        assert mm.pages_owned_by(first) == [0, 1, 2]
        assert mm.pages_owned_by(second) == [3, 4]

    def test_freed_holes_are_reused(self) -> None:
        """Pages need not be contiguous: holes left by a free are filled first."""
        mm = _manager()
        a = Process(pid=1, name="a")
        b = Process(pid=2, name="b")
        c = Process(pid=3, name="c")
        mm.allocate(a, 2 * PAGE_SIZE)
        mm.allocate(b, 2 * PAGE_SIZE)
        mm.free(a)
        mm.allocate(c, 3 * PAGE_SIZE)
        assert mm.pages_owned_by(c) == [0, 1, 4]

    def test_failed_allocation_changes_nothing(self) -> None:
        """If the pool is short, no page changes hands."""
        mm = _manager()
        hog = Process(pid=1, name="hog")
        mm.allocate(hog, 14 * PAGE_SIZE)
        owners_before = mm.page_owners()

        greedy = Process(pid=2, name="greedy")
        assert not mm.allocate(greedy, 3 * PAGE_SIZE)
        assert greedy.allocated_memory == 0
        assert mm.page_owners() == owners_before
        assert _owned(mm, greedy) == 0

    def test_request_larger_than_pool_fails(self) -> None:
        """Asking for more than the whole pool can never succeed."""
        mm = _manager()
        process = Process(pid=1, name="huge")
        assert not mm.allocate(process, TOTAL_MEMORY + 1)
        assert mm.free_memory == TOTAL_MEMORY

    def test_exact_fit_succeeds(self) -> None:
        """The last free pages can all be handed out."""
        mm = _manager()
        process = Process(pid=1, name="all")
        assert mm.allocate(process, TOTAL_MEMORY)
        assert mm.free_memory == 0
        assert mm.free_page_count == 0

    def test_zero_request_takes_no_pages(self) -> None:
        """A zero-size request succeeds without touching the pool."""
        mm = _manager()
        process = Process(pid=1, name="tiny")
        assert mm.allocate(process, 0)
        assert process.allocated_memory == 0
        assert mm.free_page_count == PAGE_COUNT

    def test_negative_request_raises(self) -> None:
        """A negative request is a programming error."""
        mm = _manager()
        with pytest.raises(ValueError, match="negative"):
            mm.allocate(Process(pid=1, name="bad"), -1)


class TestFree:
    """Verify releasing memory."""

    def test_free_returns_every_page(self) -> None:
        """Freeing a process releases all its pages and zeroes its allocation."""
        mm = _manager()
        process = Process(pid=1, name="a")
        mm.allocate(process, SMALL_REQUEST)
        mm.free(process)
        assert process.allocated_memory == 0
        assert mm.free_memory == TOTAL_MEMORY
        assert _owned(mm, process) == 0

    def test_free_is_idempotent(self) -> None:
        """Freeing twice, or freeing a process with no pages, is harmless."""
        mm = _manager()
        process = Process(pid=1, name="a")
        mm.free(process)
        mm.allocate(process, SMALL_REQUEST)
        mm.free(process)
        mm.free(process)
        assert mm.free_page_count == PAGE_COUNT

    def test_free_leaves_other_processes_alone(self) -> None:
        """Only the freed process's pages are released."""
        mm = _manager()
        a = Process(pid=1, name="a")
        b = Process(pid=2, name="b")
        mm.allocate(a, SMALL_REQUEST)
        mm.allocate(b, SMALL_REQUEST)
        mm.free(a)
        assert _owned(mm, b) == SMALL_REQUEST_PAGES
        assert b.allocated_memory == SMALL_REQUEST_PAGES * PAGE_SIZE


class TestInvariants:
    """Verify the page accounting invariants across a mixed workload."""

    def test_pages_and_allocations_stay_consistent(self) -> None:
        """Owned pages always match allocated memory, and pages are conserved."""
        mm = _manager()
        rng = random.Random(42)
        processes = [Process(pid=i, name=f"p{i}") for i in range(1, 9)]
        for _ in range(200):
            process = rng.choice(processes)
            if process.allocated_memory:
                mm.free(process)
            else:
                mm.allocate(process, rng.randint(0, 400))
            for p in processes:
                assert p.allocated_memory == _owned(mm, p) * PAGE_SIZE
            owned = sum(_owned(mm, p) for p in processes)
            assert owned + mm.free_page_count == PAGE_COUNT
            assert mm.used_memory + mm.free_memory == TOTAL_MEMORY

    def test_page_owners_lists_pids(self) -> None:
        """page_owners maps each page to its owner PID, or None."""
        mm = _manager()
        mm.allocate(Process(pid=7, name="a"), PAGE_SIZE)
        owners = mm.page_owners()
        assert owners[0] == 7
        assert owners[1:] == [None] * (PAGE_COUNT - 1)


class TestAccessSimulation:
    """Verify the synthetic TLB and page-fault counters."""

    def test_hit_increments_hits_only(self) -> None:
        """A draw below the hit probability counts as a TLB hit."""
        mm = _manager(_ScriptedRandom([0.0]))
        process = Process(pid=1, name="a")
        mm.simulate_access(process)
        assert mm.stats == AccessStats(total_accesses=1, tlb_hits=1)

    def test_miss_without_fault(self) -> None:
        """A miss followed by a high draw is a TLB miss but no page fault."""
        mm = _manager(_ScriptedRandom([0.99, 0.99]))
        mm.simulate_access(Process(pid=1, name="a"))
        assert mm.stats == AccessStats(total_accesses=1, tlb_misses=1)

    def test_miss_with_fault(self) -> None:
        """A miss followed by a low draw also counts a page fault."""
        mm = _manager(_ScriptedRandom([0.99, 0.1]))
        mm.simulate_access(Process(pid=1, name="a"))
        assert mm.stats == AccessStats(total_accesses=1, tlb_misses=1, page_faults=1)

    def test_bigger_share_means_better_hit_probability(self) -> None:
        """A draw of 0.6 misses with no memory but hits with half the pool."""
        small = Process(pid=1, name="small")
        mm = _manager(_ScriptedRandom([0.6, 0.99]))
        mm.simulate_access(small)
        assert mm.stats.tlb_misses == 1

        big = Process(pid=2, name="big")
        mm = _manager(_ScriptedRandom([0.6]))
        mm.allocate(big, TOTAL_MEMORY // 2)
        mm.simulate_access(big)
        assert mm.stats.tlb_hits == 1

    def test_counters_are_monotonic(self) -> None:
        """Counters only ever grow and always add up."""
        mm = _manager(random.Random(7))
        process = Process(pid=1, name="a")
        mm.allocate(process, 256)
        previous = mm.stats
        for _ in range(100):
            mm.simulate_access(process)
            current = mm.stats
            assert current.total_accesses == previous.total_accesses + 1
            assert current.tlb_hits >= previous.tlb_hits
            assert current.tlb_misses >= previous.tlb_misses
            assert current.page_faults >= previous.page_faults
            previous = current
        assert previous.tlb_hits + previous.tlb_misses == previous.total_accesses
        assert previous.page_faults <= previous.tlb_misses

    def test_hit_rate(self) -> None:
        """hit_rate is hits over accesses, and 0.0 before any access."""
        assert AccessStats().hit_rate == 0.0
        assert AccessStats(total_accesses=4, tlb_hits=3, tlb_misses=1).hit_rate == 0.75
