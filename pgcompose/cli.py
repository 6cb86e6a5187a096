"""
pgcompose CLI: Command-line interface for pgcompose.

Provides commands for:
- generate: Write generated files and process-compose.yaml
- init: Initialise one instance (the ``<name>-init`` process body)
- plan: Show an instance's bootstrap plan
- show: Print an instance's rendered configuration files
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import psycopg

from pgcompose.config import ProjectConfig
from pgcompose.exceptions import PgComposeError


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="pgcompose",
        description="pgcompose: PostgreSQL instances for process-compose",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to pgcompose.toml (default: search upwards from cwd)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # generate
    generate_parser = subparsers.add_parser(
        "generate",
        help="Write generated files and the process-compose file",
    )
    generate_parser.add_argument(
        "--output", "-o",
        default="process-compose.yaml",
        help="Output file (default: process-compose.yaml)",
    )

    # init
    init_parser = subparsers.add_parser(
        "init",
        help="Initialise a PostgreSQL instance",
    )
    init_parser.add_argument("name", help="Instance name")
    init_parser.add_argument(
        "--retries",
        type=_positive_int,
        default=30,
        help="Connection attempts while waiting for the server (default: 30)",
    )
    init_parser.add_argument(
        "--interval",
        type=float,
        default=1.0,
        help="Seconds between connection attempts (default: 1.0)",
    )

    # plan
    plan_parser = subparsers.add_parser(
        "plan",
        help="Show the bootstrap plan for an instance",
    )
    plan_parser.add_argument("name", help="Instance name")

    # show
    show_parser = subparsers.add_parser(
        "show",
        help="Print rendered pg_hba.conf and postgresql.conf",
    )
    show_parser.add_argument("name", help="Instance name")

    args = parser.parse_args(argv)

    # Setup logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    try:
        project = ProjectConfig.load(Path(args.config) if args.config else None)
        if args.command == "generate":
            return handle_generate(project, args)
        elif args.command == "init":
            return handle_init(project, args)
        elif args.command == "plan":
            return handle_plan(project, args)
        elif args.command == "show":
            return handle_show(project, args)
    except (PgComposeError, psycopg.Error, RuntimeError, OSError, KeyError) as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        print(f"Error: {message}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


def handle_generate(project: ProjectConfig, args: argparse.Namespace) -> int:
    """Handle ``pgcompose generate``."""
    from pgcompose.compose import write_compose

    output = write_compose(project, Path(args.output))
    print(f"Wrote {output}")
    for config in project.enabled_instances():
        print(f"  {config.name}: {project.instance_dir(config.name)}")
    return 0


def handle_init(project: ProjectConfig, args: argparse.Namespace) -> int:
    """Handle ``pgcompose init NAME``."""
    from pgcompose.postgres.lifecycle import run_init

    config = project.instance(args.name)
    ran = run_init(
        config,
        project.instance_dir(config.name),
        retries=args.retries,
        interval=args.interval,
    )
    if ran:
        print(f"PostgreSQL instance {config.name} initialized")
    else:
        print(f"PostgreSQL instance {config.name} already initialized")
    return 0


def handle_plan(project: ProjectConfig, args: argparse.Namespace) -> int:
    """Handle ``pgcompose plan NAME``."""
    from rich.console import Console
    from rich.table import Table

    from pgcompose.postgres.bootstrap import plan_bootstrap
    from pgcompose.postgres.config import default_user

    config = project.instance(args.name)
    config.validate()
    plan = plan_bootstrap(
        config.initial_databases,
        config.initial_script,
        config.create_database,
        default_user=default_user(),
    )

    table = Table(title=f"Bootstrap plan: {config.name}", show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Step", style="cyan")
    for i, step in enumerate(plan, start=1):
        table.add_row(str(i), step.describe())
    Console().print(table)
    return 0


def handle_show(project: ProjectConfig, args: argparse.Namespace) -> int:
    """Handle ``pgcompose show NAME``."""
    from pgcompose.postgres.hba import compile_hba
    from pgcompose.postgres.render import InstanceFiles, final_settings
    from pgcompose.postgres.settings import render_settings

    config = project.instance(args.name)
    config.validate()
    files = InstanceFiles(project.instance_dir(config.name).resolve())

    print(f"# --- {files.hba_file}")
    print(compile_hba(config.hba_conf), end="")
    print(f"# --- {files.conf_file}")
    print(render_settings(final_settings(config, files)), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
