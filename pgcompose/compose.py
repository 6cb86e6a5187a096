"""
process-compose generation.

Writes each enabled instance's generated files and merges the instances'
process pairs into a single process-compose document.  Instances are
independent: each gets its own generated directory, process names and
namespace.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Any

import yaml

from pgcompose.config import ProjectConfig
from pgcompose.exceptions import ConfigError
from pgcompose.postgres.config import PostgresServiceConfig
from pgcompose.postgres.process import ProcessDescriptor, build_processes
from pgcompose.postgres.render import write_instance_files

logger = logging.getLogger(__name__)

PROCESS_COMPOSE_VERSION = "0.5"


def init_command(project: ProjectConfig, name: str) -> str:
    """Command line the supervisor runs for ``<name>-init``."""
    parts = [project.project.launcher]
    if project.path is not None:
        parts.extend(["-c", shlex.quote(str(project.path.resolve()))])
    parts.extend(["init", shlex.quote(name)])
    return " ".join(parts)


def generate_instance(
    project: ProjectConfig, config: PostgresServiceConfig
) -> dict[str, ProcessDescriptor]:
    """
    Validate *config*, write its files, and build its process pair.

    Raises:
        ConfigError: If the configuration is invalid.  Nothing is written.
    """
    config.validate()
    files = write_instance_files(config, project.instance_dir(config.name))
    package = config.resolved_package()
    return build_processes(
        config.name,
        init_command(project, config.name),
        shlex.quote(str(files.start_script)),
        config.port,
        str(config.socket_dir),
        config.superuser,
        config.depends_on,
        probe=config.readiness,
        pg_isready=package.binary("pg_isready"),
    )


def render_compose(project: ProjectConfig) -> dict[str, Any]:
    """
    Generate every enabled instance and return the process-compose document.

    Raises:
        ConfigError: If any instance is invalid, or two instances produce
            the same process name.
    """
    # Validate everything before writing anything.
    for config in project.enabled_instances():
        config.validate()

    processes: dict[str, Any] = {}
    for config in project.enabled_instances():
        for proc_name, descriptor in generate_instance(project, config).items():
            if proc_name in processes:
                raise ConfigError(f"Process name {proc_name!r} is produced twice")
            processes[proc_name] = descriptor.to_dict()
        logger.info(f"Generated processes for {config.name}")

    return {"version": PROCESS_COMPOSE_VERSION, "processes": processes}


def write_compose(project: ProjectConfig, output: Path) -> Path:
    """Render the process-compose document and write it as YAML."""
    document = render_compose(project)
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(yaml.safe_dump(document, sort_keys=False, default_flow_style=False))
    logger.info(f"Wrote {output}")
    return output
