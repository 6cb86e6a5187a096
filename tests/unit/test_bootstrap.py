"""Tests for bootstrap planning."""

from __future__ import annotations

from pathlib import Path

import pytest

from pgcompose.exceptions import DuplicateDatabaseName
from pgcompose.postgres.bootstrap import (
    ApplySchema,
    CreateDatabase,
    RunSql,
    WaitForServer,
    plan_bootstrap,
    schema_files,
)
from pgcompose.postgres.config import DatabaseSpec, InitialScript


def _plan(databases=(), before=None, after=None, create_default_db=True):
    return plan_bootstrap(
        list(databases),
        InitialScript(before=before, after=after),
        create_default_db,
        default_user="alice",
    )


class TestPlanBootstrap:
    def test_wait_is_first(self):
        plan = _plan([DatabaseSpec("foo")], before="SELECT 1;")
        assert isinstance(plan.steps[0], WaitForServer)

    def test_schemas_applied_in_declared_order(self):
        plan = _plan([DatabaseSpec("foo", (Path("a.sql"), Path("b.sql")))])
        assert plan.steps[1:] == (
            CreateDatabase("foo"),
            ApplySchema("foo", Path("a.sql")),
            ApplySchema("foo", Path("b.sql")),
        )

    def test_databases_in_declared_order(self):
        plan = _plan([DatabaseSpec("b"), DatabaseSpec("a")])
        assert plan.databases == ["b", "a"]

    def test_default_database_when_empty(self):
        plan = _plan([])
        assert plan.databases == ["alice"]

    def test_no_default_database_when_disabled(self):
        plan = _plan([], create_default_db=False)
        assert plan.databases == []
        assert plan.steps == (WaitForServer(),)

    def test_default_database_skipped_when_databases_given(self):
        plan = _plan([DatabaseSpec("foo")])
        assert plan.databases == ["foo"]

    @pytest.mark.parametrize(
        "databases,create_default_db",
        [([DatabaseSpec("foo", (Path("s.sql"),))], True), ([], True), ([], False)],
    )
    def test_before_first_and_after_last(self, databases, create_default_db):
        plan = _plan(databases, before="B", after="A", create_default_db=create_default_db)
        assert plan.steps[1] == RunSql("before", "B")
        assert plan.steps[-1] == RunSql("after", "A")

    def test_scripts_omitted_when_unset(self):
        plan = _plan([DatabaseSpec("foo")])
        assert not any(isinstance(s, RunSql) for s in plan)

    def test_duplicate_names_rejected(self):
        with pytest.raises(DuplicateDatabaseName, match="foo"):
            _plan([DatabaseSpec("foo"), DatabaseSpec("bar"), DatabaseSpec("foo")])

    def test_steps_describe_themselves(self):
        plan = _plan([DatabaseSpec("foo", (Path("a.sql"),))], before="B")
        descriptions = [s.describe() for s in plan]
        assert descriptions == [
            "wait for server",
            "run before script on postgres",
            "create database foo (if absent)",
            "apply a.sql to foo",
        ]


class TestSchemaFiles:
    def test_file_yields_itself(self, tmp_path):
        f = tmp_path / "schema.sql"
        f.write_text("CREATE TABLE t ();")
        assert schema_files(f) == [f]

    def test_directory_sorted_by_name(self, tmp_path):
        for name in ("02_data.sql", "01_tables.sql", "notes.txt"):
            (tmp_path / name).write_text("")
        nested = tmp_path / "03_more"
        nested.mkdir()
        (nested / "x.sql").write_text("")
        assert schema_files(tmp_path) == [
            tmp_path / "01_tables.sql",
            tmp_path / "02_data.sql",
            nested / "x.sql",
        ]

    def test_missing_source_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            schema_files(tmp_path / "missing.sql")
