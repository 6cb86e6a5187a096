"""
``pg_hba.conf`` generation.

The six built-in trust rules always come first, followed by user rules in
the order given.  Rules are passed through verbatim; PostgreSQL resolves
overlaps first-match-wins at runtime.
"""

from __future__ import annotations

from collections.abc import Iterable

from pgcompose.postgres.config import HbaRule

HBA_HEADER = "# Generated by pgcompose"
HBA_COLUMNS = "# TYPE\tDATABASE\tUSER\tADDRESS\tMETHOD"

DEFAULT_HBA_RULES: tuple[HbaRule, ...] = (
    HbaRule("local", "all", "all", "", "trust"),
    HbaRule("host", "all", "all", "127.0.0.1/32", "trust"),
    HbaRule("host", "all", "all", "::1/128", "trust"),
    HbaRule("local", "replication", "all", "", "trust"),
    HbaRule("host", "replication", "all", "127.0.0.1/32", "trust"),
    HbaRule("host", "replication", "all", "::1/128", "trust"),
)


def render_rule(rule: HbaRule) -> str:
    return "\t".join((rule.type, rule.database, rule.user, rule.address, rule.method))


def compile_hba(user_rules: Iterable[HbaRule] = ()) -> str:
    """Render the defaults plus *user_rules* as ``pg_hba.conf`` text."""
    rules = [*DEFAULT_HBA_RULES, *user_rules]
    lines = [HBA_HEADER, HBA_COLUMNS, *(render_rule(r) for r in rules)]
    return "\n".join(lines) + "\n"
