"""Memory subsystem — a fixed pool of pages shared by all processes.

Re-exports public symbols so callers can write::

    from py_sched.memory import MemoryManager, MemoryPage
"""

from py_sched.memory.manager import AccessStats, MemoryConfigError, MemoryManager
from py_sched.memory.page import MemoryPage

__all__ = [
    "AccessStats",
    "MemoryConfigError",
    "MemoryManager",
    "MemoryPage",
]
