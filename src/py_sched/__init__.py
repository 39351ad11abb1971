"""py-sched — a process scheduling simulator for teaching.

The package models the scheduling core of a desktop-style teaching OS:
a process table, four interchangeable CPU scheduling algorithms, and a
paged memory allocator that processes compete for.  An external driver
(the REPL, the web dashboard, a background timer, or a test) advances
the simulation by calling ``Kernel.tick()``.
"""

__version__ = "0.1.0"
