"""Process subsystem — PCB and CPU scheduling.

Re-exports public symbols so callers can write::

    from py_sched.process import Process, Scheduler, SchedulingAlgorithm
"""

from py_sched.process.pcb import MemoryProfile, Process, ProcessState
from py_sched.process.scheduler import (
    FCFSPolicy,
    PriorityPolicy,
    RoundRobinCursor,
    RoundRobinPolicy,
    Scheduler,
    SchedulingAlgorithm,
    SchedulingPolicy,
    SJFPolicy,
)

__all__ = [
    "FCFSPolicy",
    "MemoryProfile",
    "PriorityPolicy",
    "Process",
    "ProcessState",
    "RoundRobinCursor",
    "RoundRobinPolicy",
    "SJFPolicy",
    "Scheduler",
    "SchedulingAlgorithm",
    "SchedulingPolicy",
]
