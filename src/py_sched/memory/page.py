"""A single page of simulated memory."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from py_sched.process.pcb import Process


class MemoryPage:
    """One fixed-size page of the memory pool.

    A page records who currently holds it but does not own that process:
    the kernel's process table does.  Pages live as long as their
    memory manager; only the owner changes.
    """

    __slots__ = ("_index", "_owner", "_size")

    def __init__(self, *, index: int, size: int) -> None:
        """Create a free page.

        Args:
            index: Position of the page in the pool (0-based).
            size: Page size (MB).

        """
        self._index = index
        self._size = size
        self._owner: Process | None = None

    @property
    def index(self) -> int:
        """Return the page number."""
        return self._index

    @property
    def size(self) -> int:
        """Return the page size (MB)."""
        return self._size

    @property
    def owner(self) -> Process | None:
        """Return the process holding this page, or None if free."""
        return self._owner

    @property
    def allocated(self) -> bool:
        """Return True if some process holds this page."""
        return self._owner is not None

    def claim(self, owner: Process) -> None:
        """Hand the page to *owner*.

        Raises:
            RuntimeError: If the page already has an owner.

        """
        if self._owner is not None:
            msg = f"Page {self._index} is already owned by PID {self._owner.pid}"
            raise RuntimeError(msg)
        self._owner = owner

    def release(self) -> None:
        """Mark the page free."""
        self._owner = None

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        owner = self._owner.pid if self._owner is not None else None
        return f"MemoryPage(index={self._index}, owner={owner})"
