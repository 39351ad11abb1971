"""Browser-based dashboard for py-sched.

This package provides a Flask application that exposes the simulator's
process table, scheduler controls, memory map, and run history over
HTTP.  It is an **optional** extra — install with::

    pip install py-sched[web]

The ``create_app`` factory in ``app.py`` takes a kernel (or builds one
from the environment) and serves an HTML task manager plus a JSON API.
"""
