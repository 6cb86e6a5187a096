"""
Generated files for one instance.

Every invocation re-renders ``pg_hba.conf``, ``postgresql.conf`` and the
start script from the configuration and overwrites the previous copies.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pgcompose.postgres._bash import PgBashParams, render_start_script
from pgcompose.postgres.config import PostgresServiceConfig
from pgcompose.postgres.hba import compile_hba
from pgcompose.postgres.settings import default_settings, merge_settings, render_settings

logger = logging.getLogger(__name__)

HBA_FILENAME = "pg_hba.conf"
CONF_FILENAME = "postgresql.conf"
START_SCRIPT_FILENAME = "start.sh"


@dataclass(frozen=True)
class InstanceFiles:
    """Paths of an instance's generated files."""

    root: Path

    @property
    def hba_file(self) -> Path:
        return self.root / HBA_FILENAME

    @property
    def conf_file(self) -> Path:
        return self.root / CONF_FILENAME

    @property
    def start_script(self) -> Path:
        return self.root / START_SCRIPT_FILENAME


def final_settings(config: PostgresServiceConfig, files: InstanceFiles) -> dict:
    """Computed defaults merged with the user's ``settings``."""
    return merge_settings(default_settings(config, files.hba_file), config.settings)


def write_instance_files(config: PostgresServiceConfig, root: Path) -> InstanceFiles:
    """
    Render and write the instance's config files and start script.

    Args:
        config: A validated instance configuration.
        root: Directory for this instance's generated files.

    Returns:
        The written file locations.
    """
    files = InstanceFiles(Path(root).resolve())
    files.root.mkdir(parents=True, exist_ok=True)

    files.hba_file.write_text(compile_hba(config.hba_conf))
    files.conf_file.write_text(render_settings(final_settings(config, files)))

    package = config.resolved_package()
    params = PgBashParams(
        name=config.name,
        postgres=package.binary("postgres"),
        data_dir=config.data_dir,
        socket_dir=config.socket_dir,
    )
    files.start_script.write_text(render_start_script(params))
    os.chmod(files.start_script, 0o755)

    logger.debug(f"Wrote generated files for {config.name} to {files.root}")
    return files
