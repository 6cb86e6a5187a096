"""
Process graph for one PostgreSQL instance.

Each instance contributes two processes to the supervisor's graph:

- ``<name>-init``: prepares the data directory and runs the bootstrap plan,
  then exits.  It may wait on other services via caller-supplied edges.
- ``<name>``: the long-running server.  Starts only once ``<name>-init``
  has completed successfully, is probed with ``pg_isready``, and is
  restarted on failure.

Descriptors serialise to the process-compose schema via ``to_dict()``.
"""

from __future__ import annotations

import shlex
import signal
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DependencyCondition(str, Enum):
    """Condition a dependency must reach before a process starts."""

    PROCESS_COMPLETED = "process_completed"
    PROCESS_COMPLETED_SUCCESSFULLY = "process_completed_successfully"
    PROCESS_HEALTHY = "process_healthy"
    PROCESS_STARTED = "process_started"


@dataclass(frozen=True)
class ReadinessProbe:
    """Periodic readiness check run by the supervisor."""

    command: str | None = None
    initial_delay_seconds: int = 2
    period_seconds: int = 10
    timeout_seconds: int = 4
    success_threshold: int = 1
    failure_threshold: int = 5

    def to_dict(self) -> dict[str, Any]:
        return {
            "exec": {"command": self.command},
            "initial_delay_seconds": self.initial_delay_seconds,
            "period_seconds": self.period_seconds,
            "timeout_seconds": self.timeout_seconds,
            "success_threshold": self.success_threshold,
            "failure_threshold": self.failure_threshold,
        }


@dataclass(frozen=True)
class ProcessDescriptor:
    """
    One process entry for the supervisor.

    Attributes:
        command: Command line the supervisor executes.
        namespace: Grouping label shared by an instance's processes.
        depends_on: Dependency process name -> required condition.
        readiness_probe: Optional readiness probe.
        restart: Restart policy (``"on_failure"``, ``"no"``, ...).
        shutdown_signal: Signal number sent on shutdown.
    """

    command: str
    namespace: str
    depends_on: dict[str, DependencyCondition] = field(default_factory=dict)
    readiness_probe: ReadinessProbe | None = None
    restart: str | None = None
    shutdown_signal: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the process-compose process schema."""
        data: dict[str, Any] = {"command": self.command}
        if self.depends_on:
            data["depends_on"] = {
                dep: {"condition": cond.value} for dep, cond in self.depends_on.items()
            }
        if self.readiness_probe is not None:
            data["readiness_probe"] = self.readiness_probe.to_dict()
        if self.shutdown_signal is not None:
            data["shutdown"] = {"signal": self.shutdown_signal}
        if self.restart is not None:
            data["availability"] = {"restart": self.restart}
        data["namespace"] = self.namespace
        return data


def init_process_name(name: str) -> str:
    return f"{name}-init"


def build_readiness_command(
    socket_dir: str,
    port: int,
    superuser: str | None = None,
    *,
    pg_isready: str = "pg_isready",
) -> str:
    """Render the ``pg_isready`` readiness check for an instance."""
    args = [
        f"-h $(readlink -f {shlex.quote(socket_dir)})",
        f"-p {port}",
        "-d template1",
    ]
    if superuser is not None:
        args.append(f"-U {superuser}")
    return f"{pg_isready} {' '.join(args)}"


def build_processes(
    name: str,
    init_command: str,
    main_command: str,
    port: int,
    socket_dir: str,
    superuser: str | None = None,
    extra_deps: dict[str, DependencyCondition] | None = None,
    *,
    probe: ReadinessProbe | None = None,
    pg_isready: str = "pg_isready",
) -> dict[str, ProcessDescriptor]:
    """
    Build the ``<name>-init`` / ``<name>`` process pair.

    Args:
        name: Instance name; also the namespace.
        init_command: Command for the init process.
        main_command: Command that starts the server in the foreground.
        port: Server port, used by the readiness probe.
        socket_dir: Socket directory, used by the readiness probe.
        superuser: Connect as this user when probing (optional).
        extra_deps: Extra dependency edges for the init process.
        probe: Probe timing; its ``command`` is replaced by ``pg_isready``.
        pg_isready: ``pg_isready`` binary to call.

    Returns:
        Mapping of process name to descriptor.  Each call returns fresh
        objects, so several instances can coexist in one graph.
    """
    init_name = init_process_name(name)
    timing = probe or ReadinessProbe()
    readiness = ReadinessProbe(
        command=build_readiness_command(socket_dir, port, superuser, pg_isready=pg_isready),
        initial_delay_seconds=timing.initial_delay_seconds,
        period_seconds=timing.period_seconds,
        timeout_seconds=timing.timeout_seconds,
        success_threshold=timing.success_threshold,
        failure_threshold=timing.failure_threshold,
    )

    init = ProcessDescriptor(
        command=init_command,
        namespace=name,
        depends_on=dict(extra_deps or {}),
    )
    main = ProcessDescriptor(
        command=main_command,
        namespace=name,
        depends_on={init_name: DependencyCondition.PROCESS_COMPLETED_SUCCESSFULLY},
        readiness_probe=readiness,
        restart="on_failure",
        # SIGINT is PostgreSQL's "fast shutdown"
        shutdown_signal=int(signal.SIGINT),
    )
    return {init_name: init, name: main}
