"""
Exception types raised by pgcompose.

Configuration-shape errors (``InvalidSettingType``, ``DuplicateDatabaseName``,
``MissingExtensionSupport``, ``ConfigError``) are raised while building a
plan, before any process is launched.  Runtime errors (``ServerUnavailable``,
``SqlScriptFailure``) abort the init process with a non-zero exit status.
"""

from __future__ import annotations


class PgComposeError(Exception):
    """Base class for all pgcompose errors."""


class ConfigError(PgComposeError, ValueError):
    """Malformed instance or project configuration."""


class InvalidSettingType(ConfigError):
    """A ``postgresql.conf`` value is not a bool, float, int or str."""

    def __init__(self, key: str, value: object) -> None:
        self.key = key
        self.value = value
        super().__init__(
            f"Invalid type for setting {key!r}: {type(value).__name__} "
            f"(expected bool, float, int or str)"
        )


class DuplicateDatabaseName(ConfigError):
    """Two initial databases share the same name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Database {name!r} is listed more than once")


class MissingExtensionSupport(ConfigError):
    """Extensions were requested but the PostgreSQL package cannot provide them."""


class ServerUnavailable(PgComposeError, RuntimeError):
    """The server did not accept connections before the retry budget ran out."""


class InitTimeout(ServerUnavailable):
    """The temporary init server did not come up within its timeout."""


class SqlScriptFailure(PgComposeError, RuntimeError):
    """A before/after script or schema file exited non-zero."""

    def __init__(self, label: str, returncode: int, stderr: str = "") -> None:
        self.label = label
        self.returncode = returncode
        self.stderr = stderr
        message = f"SQL step {label!r} failed with exit code {returncode}"
        if stderr:
            message += f"\nstderr: {stderr.strip()}"
        super().__init__(message)
