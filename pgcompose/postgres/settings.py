"""
``postgresql.conf`` settings: computed defaults, merging and rendering.

Merging is an explicit ordered operation: computed defaults first, user
``settings`` second, later writers winning on key collision.  Every computed
key (``listen_addresses``, ``port``, ``unix_socket_directories``,
``hba_file``) can be overridden through ``settings``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pgcompose.exceptions import InvalidSettingType

if TYPE_CHECKING:
    from pgcompose.postgres.config import PostgresServiceConfig, SettingValue

GENERATED_HEADER = "# Generated by pgcompose. Changes will be overwritten."


def default_settings(config: PostgresServiceConfig, hba_file: Path) -> dict[str, SettingValue]:
    """Settings computed from other options of *config*."""
    return {
        "listen_addresses": config.listen_addresses,
        "port": config.port,
        "unix_socket_directories": str(Path(config.socket_dir).resolve()),
        "hba_file": str(Path(hba_file).resolve()),
    }


def merge_settings(*layers: Mapping[str, Any]) -> dict[str, SettingValue]:
    """
    Merge settings layers; later layers win on key collision.

    Typically called as ``merge_settings(defaults, overrides)``.  Neither
    input is mutated.

    Raises:
        InvalidSettingType: If any value is not a bool, float, int or str.
    """
    merged: dict[str, SettingValue] = {}
    for layer in layers:
        for key, value in layer.items():
            if not isinstance(value, (bool, float, int, str)):
                raise InvalidSettingType(key, value)
            merged[key] = value
    return merged


def format_value(value: SettingValue) -> str:
    """Render one value in ``postgresql.conf`` syntax."""
    # bool before int: True is an int
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    raise InvalidSettingType("<value>", value)


def render_settings(settings: Mapping[str, SettingValue]) -> str:
    """Render *settings* as ``postgresql.conf`` text, keys sorted."""
    lines = [GENERATED_HEADER]
    for key in sorted(settings):
        try:
            lines.append(f"{key} = {format_value(settings[key])}")
        except InvalidSettingType:
            raise InvalidSettingType(key, settings[key]) from None
    return "\n".join(lines) + "\n"
