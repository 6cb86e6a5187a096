"""Tests for pg_hba.conf generation."""

from __future__ import annotations

from pgcompose.postgres.config import HbaRule
from pgcompose.postgres.hba import DEFAULT_HBA_RULES, HBA_COLUMNS, compile_hba, render_rule


class TestCompileHba:
    def test_header_lines(self):
        lines = compile_hba().splitlines()
        assert lines[0].startswith("#")
        assert lines[1] == "# TYPE\tDATABASE\tUSER\tADDRESS\tMETHOD"
        assert lines[1] == HBA_COLUMNS

    def test_six_defaults_without_user_rules(self):
        lines = compile_hba().splitlines()
        assert lines[2:] == [
            "local\tall\tall\t\ttrust",
            "host\tall\tall\t127.0.0.1/32\ttrust",
            "host\tall\tall\t::1/128\ttrust",
            "local\treplication\tall\t\ttrust",
            "host\treplication\tall\t127.0.0.1/32\ttrust",
            "host\treplication\tall\t::1/128\ttrust",
        ]

    def test_defaults_precede_user_rules(self):
        user_rules = [
            HbaRule("host", "all", "all", "0.0.0.0/0", "md5"),
            HbaRule("local", "all", "postgres", "", "md5"),
        ]
        lines = compile_hba(user_rules).splitlines()
        assert lines[2:8] == [render_rule(r) for r in DEFAULT_HBA_RULES]
        assert lines[8:] == [
            "host\tall\tall\t0.0.0.0/0\tmd5",
            "local\tall\tpostgres\t\tmd5",
        ]

    def test_no_deduplication(self):
        duplicate = DEFAULT_HBA_RULES[0]
        lines = compile_hba([duplicate, duplicate]).splitlines()
        assert lines.count(render_rule(duplicate)) == 3

    def test_trailing_newline(self):
        assert compile_hba().endswith("\n")
