"""Flask application factory for the py-sched web dashboard.

The ``create_app`` function builds (or accepts) a kernel and returns a
Flask app that serves a task-manager page plus a small JSON API:

- ``GET /`` — the HTML task manager.
- ``GET /api/processes`` — the process table.
- ``POST /api/processes`` — start a process (``{"name", "memory", "priority"?}``).
- ``DELETE /api/processes/<pid>`` — kill a process.
- ``POST /api/tick`` — advance the simulation (``{"count"?}``).
- ``GET|PUT /api/scheduler`` — read or change algorithm and quantum.
- ``GET /api/memory`` — memory usage, page owners, access counters.
- ``GET /api/history`` — the run history and CPU usage.
- ``GET /api/log`` — the kernel log.
"""

from __future__ import annotations

import dataclasses
from typing import Any

from flask import Flask, Response, jsonify, render_template, request

from py_sched.clock import TickDriver
from py_sched.config import SimulatorConfig
from py_sched.kernel import Kernel, ProcessInfo
from py_sched.process.pcb import DEFAULT_PRIORITY
from py_sched.process.scheduler import SchedulingAlgorithm

_HTTP_CREATED = 201
_HTTP_BAD_REQUEST = 400
_HTTP_NOT_FOUND = 404
_HTTP_CONFLICT = 409
_MAX_TICKS_PER_REQUEST = 1000


def _process_json(info: ProcessInfo) -> dict[str, Any]:
    """Serialise one process-table row."""
    data = dataclasses.asdict(info)
    data["state"] = str(info.state)
    return data


def _scheduler_json(kernel: Kernel) -> dict[str, Any]:
    """Serialise the scheduler settings."""
    scheduler = kernel.scheduler
    return {
        "algorithm": str(scheduler.algorithm),
        "label": scheduler.algorithm.label,
        "quantum": scheduler.time_quantum,
        "ready": [p.pid for p in scheduler.ready_processes],
        "algorithms": [str(a) for a in SchedulingAlgorithm],
    }


def _int_field(data: dict[str, Any], key: str, default: int | None = None) -> int:
    """Read an integer field from a JSON body.

    Raises:
        ValueError: If the field is missing (with no default) or not an int.

    """
    value = data.get(key, default)
    if value is None:
        msg = f"Missing '{key}' field"
        raise ValueError(msg)
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"'{key}' must be an integer"
        raise ValueError(msg)
    return value


def create_app(kernel: Kernel | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        kernel: The kernel to expose; built from ``SimulatorConfig.from_env()``
            when omitted.

    Returns:
        A configured Flask application ready to serve.

    """
    if kernel is None:
        kernel = Kernel.from_config(SimulatorConfig.from_env())

    app = Flask(__name__)
    app.extensions["py_sched.kernel"] = kernel

    def bad_request(message: str) -> tuple[Response, int]:
        return jsonify({"error": message}), _HTTP_BAD_REQUEST

    @app.route("/")
    def index() -> str:  # pyright: ignore[reportUnusedFunction]
        """Render the task manager page."""
        return render_template("index.html", algorithms=list(SchedulingAlgorithm))

    @app.route("/api/processes", methods=["GET"])
    def list_processes() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the process table."""
        return jsonify({"processes": [_process_json(p) for p in kernel.process_table()]})

    @app.route("/api/processes", methods=["POST"])
    def create_process() -> tuple[Response, int]:  # pyright: ignore[reportUnusedFunction]
        """Start a process.

        Returns:
            201 with the process row, 409 if memory is insufficient,
            400 on malformed input.

        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not isinstance(data.get("name"), str):
            return bad_request("Missing 'name' field")
        try:
            memory = _int_field(data, "memory")
            priority = _int_field(data, "priority", DEFAULT_PRIORITY)
        except ValueError as e:
            return bad_request(str(e))
        if memory < 0:
            return bad_request("'memory' must not be negative")

        process = kernel.create_process(data["name"], memory, priority=priority)
        if process is None:
            free = kernel.memory.free_memory
            body = {"error": f"Not enough memory: {memory} MB requested, {free} MB free"}
            return jsonify(body), _HTTP_CONFLICT
        info = ProcessInfo.of(process, now=kernel.tick_count)
        return jsonify(_process_json(info)), _HTTP_CREATED

    @app.route("/api/processes/<int:pid>", methods=["DELETE"])
    def kill_process(pid: int) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Kill a process by PID."""
        if not kernel.kill_process(pid):
            return jsonify({"error": f"No process with PID {pid}"}), _HTTP_NOT_FOUND
        return jsonify({"killed": pid})

    @app.route("/api/tick", methods=["POST"])
    def tick() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Advance the simulation by ``count`` ticks (default 1)."""
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return bad_request("Expected a JSON object")
        try:
            count = _int_field(data, "count", 1)
        except ValueError as e:
            return bad_request(str(e))
        if not 1 <= count <= _MAX_TICKS_PER_REQUEST:
            return bad_request(f"'count' must be between 1 and {_MAX_TICKS_PER_REQUEST}")
        return jsonify({"ran": kernel.run(count), "tick": kernel.tick_count})

    @app.route("/api/scheduler", methods=["GET"])
    def get_scheduler() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the scheduler settings."""
        return jsonify(_scheduler_json(kernel))

    @app.route("/api/scheduler", methods=["PUT"])
    def update_scheduler() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Change the algorithm and/or the quantum."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return bad_request("Expected a JSON object")
        try:
            algorithm = (
                SchedulingAlgorithm.parse(str(data["algorithm"])) if "algorithm" in data else None
            )
            quantum = _int_field(data, "quantum") if "quantum" in data else None
        except ValueError as e:
            return bad_request(str(e))
        if algorithm is not None:
            kernel.set_algorithm(algorithm)
        if quantum is not None:
            kernel.set_time_quantum(quantum)
        return jsonify(_scheduler_json(kernel))

    @app.route("/api/memory")
    def memory() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return memory usage, per-page owners, and access telemetry."""
        stats = kernel.memory_stats()
        data = dataclasses.asdict(stats)
        data["page_owners"] = list(stats.page_owners)
        data["free_pages"] = stats.free_pages
        data["hit_rate"] = stats.hit_rate
        return jsonify(data)

    @app.route("/api/history")
    def history() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the run history (0 = idle) and recent CPU usage."""
        return jsonify(
            {
                "history": kernel.run_history,
                "tick": kernel.tick_count,
                "cpu_usage": kernel.cpu_usage(),
            }
        )

    @app.route("/api/log")
    def log() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the kernel log lines."""
        return jsonify({"entries": kernel.dmesg()})

    return app


def main() -> None:
    """Run the dashboard with a background tick driver.

    This is the ``py-sched-web`` console entry point.
    """
    config = SimulatorConfig.from_env()
    kernel = Kernel.from_config(config)
    app = create_app(kernel)
    with TickDriver(kernel, interval=config.tick_interval):
        app.run(debug=False, port=8080)
