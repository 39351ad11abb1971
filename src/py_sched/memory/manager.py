"""Memory manager — page-based allocation from a fixed pool.

Memory is split once, at construction, into ``total_memory / page_size``
pages.  A process asks for some amount of memory; the manager rounds the
request up to whole pages and hands out that many free pages, wherever
they sit in the pool.  Nothing here models addresses: a process only
cares *how many* pages it got, not *which* ones.

Why pages instead of variable-size blocks?
    Any free page can satisfy any request, so there is no external
    fragmentation to manage.  The price is internal fragmentation: a
    100 MB request with 64 MB pages gets 128 MB.

Allocation is all-or-nothing.  If the pool cannot cover the whole
request, no page changes hands and the process's ``allocated_memory``
is left alone — the kernel then rejects the process.

The manager also keeps a few synthetic counters (TLB hits and misses,
page faults) so a monitor has something lively to plot.  They are
telemetry only: no access ever fails because of them.
"""

from __future__ import annotations

import math
import random
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from py_sched.memory.page import MemoryPage

if TYPE_CHECKING:
    from py_sched.process.pcb import Process

# Hit probability is _BASE_HIT_RATE plus the process's share of memory,
# capped at _MAX_SHARE_BONUS.
_BASE_HIT_RATE = 0.4
_MAX_SHARE_BONUS = 0.5
_FAULT_RATE_ON_MISS = 0.3


class MemoryConfigError(ValueError):
    """Raise when a memory manager is built with impossible sizes."""


@dataclass(frozen=True)
class AccessStats:
    """Snapshot of the synthetic access counters."""

    total_accesses: int = 0
    tlb_hits: int = 0
    tlb_misses: int = 0
    page_faults: int = 0

    @property
    def hit_rate(self) -> float:
        """Return the fraction of accesses that hit the TLB (0.0 when idle)."""
        if self.total_accesses == 0:
            return 0.0
        return self.tlb_hits / self.total_accesses


class MemoryManager:
    """Hand out pages of a fixed pool to processes.

    Every public method takes the manager's lock, so allocations, frees,
    and statistics reads never interleave.
    """

    def __init__(
        self,
        *,
        total_memory: int,
        page_size: int,
        rng: random.Random | None = None,
    ) -> None:
        """Create a memory manager with every page free.

        Args:
            total_memory: Size of the pool (MB).
            page_size: Size of one page (MB).
            rng: Random source for access simulation.

        Raises:
            MemoryConfigError: If either size is not positive, or the
                total is not a whole number of pages.

        """
        if total_memory <= 0 or page_size <= 0:
            msg = f"Total memory and page size must be positive (got {total_memory}, {page_size})"
            raise MemoryConfigError(msg)
        if total_memory % page_size != 0:
            msg = f"Total memory ({total_memory}) must be a multiple of page size ({page_size})"
            raise MemoryConfigError(msg)
        self._total_memory = total_memory
        self._page_size = page_size
        self._pages = tuple(
            MemoryPage(index=i, size=page_size) for i in range(total_memory // page_size)
        )
        self._rng = rng if rng is not None else random.Random()
        self._lock = threading.Lock()
        self._total_accesses = 0
        self._tlb_hits = 0
        self._tlb_misses = 0
        self._page_faults = 0

    @property
    def total_memory(self) -> int:
        """Return the size of the pool (MB)."""
        return self._total_memory

    @property
    def page_size(self) -> int:
        """Return the size of one page (MB)."""
        return self._page_size

    @property
    def page_count(self) -> int:
        """Return the number of pages in the pool."""
        return len(self._pages)

    @property
    def pages(self) -> tuple[MemoryPage, ...]:
        """Return every page, in index order."""
        return self._pages

    @property
    def used_memory(self) -> int:
        """Return the memory held by processes (MB), counted page by page."""
        with self._lock:
            return self._used_pages() * self._page_size

    @property
    def free_memory(self) -> int:
        """Return the memory not held by any process (MB)."""
        with self._lock:
            return self._total_memory - self._used_pages() * self._page_size

    @property
    def free_page_count(self) -> int:
        """Return the number of unowned pages."""
        with self._lock:
            return len(self._pages) - self._used_pages()

    @property
    def stats(self) -> AccessStats:
        """Return a consistent snapshot of the access counters."""
        with self._lock:
            return AccessStats(
                total_accesses=self._total_accesses,
                tlb_hits=self._tlb_hits,
                tlb_misses=self._tlb_misses,
                page_faults=self._page_faults,
            )

    def pages_needed(self, amount: int) -> int:
        """Return how many pages a request for *amount* MB occupies."""
        return math.ceil(amount / self._page_size)

    def pages_owned_by(self, process: Process) -> list[int]:
        """Return the indices of the pages *process* holds."""
        with self._lock:
            return [page.index for page in self._pages if page.owner is process]

    def page_owners(self) -> list[int | None]:
        """Return the owner PID of each page (None for free pages)."""
        with self._lock:
            return [page.owner.pid if page.owner is not None else None for page in self._pages]

    def allocate(self, process: Process, amount: int) -> bool:
        """Give *process* enough pages to cover *amount* MB.

        Free pages are taken lowest index first.  On success the
        process's ``allocated_memory`` becomes the page-rounded size,
        which may exceed *amount*.

        Args:
            process: The process receiving memory.
            amount: Requested memory (MB).

        Returns:
            True on success; False if too few pages are free, in which
            case nothing was allocated.

        Raises:
            ValueError: If *amount* is negative.

        """
        if amount < 0:
            msg = f"Cannot allocate a negative amount of memory ({amount}) for PID {process.pid}"
            raise ValueError(msg)
        needed = self.pages_needed(amount)
        with self._lock:
            free_pages: list[MemoryPage] = []
            for page in self._pages:
                if len(free_pages) >= needed:
                    break
                if not page.allocated:
                    free_pages.append(page)
            if len(free_pages) < needed:
                return False
            for page in free_pages:
                page.claim(process)
            process.allocated_memory = needed * self._page_size
            return True

    def free(self, process: Process) -> None:
        """Release every page *process* holds.  Safe to repeat."""
        with self._lock:
            for page in self._pages:
                if page.owner is process:
                    page.release()
            process.allocated_memory = 0

    def simulate_access(self, process: Process) -> None:
        """Record one synthetic memory access by *process*.

        Processes holding a bigger share of memory hit the TLB more
        often.  A miss turns into a page fault some of the time.
        """
        with self._lock:
            self._total_accesses += 1
            share = process.allocated_memory / self._total_memory
            hit_probability = _BASE_HIT_RATE + min(share, _MAX_SHARE_BONUS)
            if self._rng.random() < hit_probability:
                self._tlb_hits += 1
                return
            self._tlb_misses += 1
            if self._rng.random() < _FAULT_RATE_ON_MISS:
                self._page_faults += 1

    def _used_pages(self) -> int:
        """Count owned pages.  Caller holds the lock."""
        return sum(1 for page in self._pages if page.allocated)
