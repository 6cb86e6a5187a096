"""Tests for PostgresServiceConfig construction and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from pgcompose.exceptions import (
    ConfigError,
    DuplicateDatabaseName,
    InvalidSettingType,
    MissingExtensionSupport,
)
from pgcompose.postgres.config import (
    DatabaseSpec,
    HbaRule,
    PostgresPackage,
    PostgresServiceConfig,
    default_user,
)
from pgcompose.postgres.process import DependencyCondition


class TestDefaults:
    def test_paths(self):
        config = PostgresServiceConfig(name="pg1")
        assert config.data_dir == Path("data") / "pg1"
        assert config.socket_dir == config.data_dir

    def test_option_defaults(self):
        config = PostgresServiceConfig(name="pg1")
        assert config.port == 5432
        assert config.listen_addresses == ""
        assert config.create_database is True
        assert config.initdb_args == ["--locale=C", "--encoding=UTF8"]
        assert config.hba_conf == []
        assert config.depends_on is None
        assert config.initial_script.before is None
        assert config.initial_script.after is None

    def test_initdb_args_not_shared(self):
        a = PostgresServiceConfig(name="a")
        b = PostgresServiceConfig(name="b")
        a.initdb_args.append("--data-checksums")
        assert "--data-checksums" not in b.initdb_args


class TestFromDict:
    def test_camel_case_aliases(self):
        config = PostgresServiceConfig.from_dict(
            "pg1",
            {
                "dataDir": "/srv/pg1",
                "socketDir": "/run/pg1",
                "createDatabase": False,
                "initdbArgs": ["--data-checksums"],
                "initialScript": {"before": "CREATE USER bar;"},
                "hbaConf": [
                    {"type": "host", "database": "all", "user": "all",
                     "address": "0.0.0.0/0", "method": "md5"},
                ],
            },
        )
        assert config.data_dir == Path("/srv/pg1")
        assert config.socket_dir == Path("/run/pg1")
        assert config.create_database is False
        assert config.initdb_args == ["--data-checksums"]
        assert config.initial_script.before == "CREATE USER bar;"
        assert config.hba_conf == [HbaRule("host", "all", "all", "0.0.0.0/0", "md5")]

    def test_unknown_option_raises(self):
        with pytest.raises(ConfigError, match="Unknown option"):
            PostgresServiceConfig.from_dict("pg1", {"prot": 5432})

    def test_hba_rule_missing_field(self):
        with pytest.raises(ConfigError, match="method"):
            PostgresServiceConfig.from_dict(
                "pg1", {"hbaConf": [{"type": "local", "database": "all", "user": "all"}]}
            )

    def test_hba_address_optional(self):
        config = PostgresServiceConfig.from_dict(
            "pg1",
            {"hba_conf": [{"type": "local", "database": "all", "user": "x", "method": "peer"}]},
        )
        assert config.hba_conf[0].address == ""

    def test_database_shorthand(self):
        config = PostgresServiceConfig.from_dict("pg1", {"initialDatabases": ["foo"]})
        assert config.initial_databases == [DatabaseSpec("foo")]

    def test_package_bin_dir(self):
        config = PostgresServiceConfig.from_dict("pg1", {"package": "/opt/pg16/bin"})
        assert config.package.bin_dir == Path("/opt/pg16/bin")
        assert config.package.binary("initdb") == "/opt/pg16/bin/initdb"

    def test_invalid_condition(self):
        with pytest.raises(ConfigError, match="process_healthy"):
            PostgresServiceConfig.from_dict(
                "pg1", {"depends_on": {"redis": {"condition": "healthy"}}}
            )

    def test_condition_shorthand(self):
        config = PostgresServiceConfig.from_dict(
            "pg1", {"depends_on": {"redis": "process_started"}}
        )
        assert config.depends_on == {"redis": DependencyCondition.PROCESS_STARTED}

    def test_readiness_timing(self):
        config = PostgresServiceConfig.from_dict("pg1", {"readiness": {"period_seconds": 1}})
        assert config.readiness.period_seconds == 1
        assert config.readiness.failure_threshold == 5

    def test_readiness_unknown_key(self):
        with pytest.raises(ConfigError, match="readiness"):
            PostgresServiceConfig.from_dict("pg1", {"readiness": {"period": 1}})

    def test_readiness_command_rejected(self):
        with pytest.raises(ConfigError, match="readiness.command"):
            PostgresServiceConfig.from_dict(
                "pg1", {"readiness": {"command": "true", "period_seconds": 1}}
            )


class TestValidate:
    def test_valid_config(self):
        PostgresServiceConfig(name="pg1", settings={"log_statement": "all"}).validate()

    def test_duplicate_database(self):
        config = PostgresServiceConfig(
            name="pg1", initial_databases=[DatabaseSpec("foo"), DatabaseSpec("foo")]
        )
        with pytest.raises(DuplicateDatabaseName):
            config.validate()

    def test_invalid_setting_type(self):
        config = PostgresServiceConfig(name="pg1", settings={"x": [1, 2]})  # type: ignore[dict-item]
        with pytest.raises(InvalidSettingType, match="'x'"):
            config.validate()

    @pytest.mark.parametrize("port", [0, 70000, True, "5432"])
    def test_bad_port(self, port):
        with pytest.raises(ConfigError):
            PostgresServiceConfig(name="pg1", port=port).validate()

    def test_bad_name(self):
        with pytest.raises(ConfigError, match="Invalid instance name"):
            PostgresServiceConfig(name="pg 1").validate()


class TestPackage:
    def test_no_extensions_returns_package(self):
        config = PostgresServiceConfig(name="pg1")
        assert config.resolved_package() is config.package

    def test_extensions_applied(self):
        config = PostgresServiceConfig(name="pg1", extensions=["postgis", "pg_cron"])
        assert config.resolved_package().extensions == ("postgis", "pg_cron")

    def test_unsupported_package(self):
        config = PostgresServiceConfig(
            name="pg1",
            package=PostgresPackage(supports_extensions=False),
            extensions=["postgis"],
        )
        with pytest.raises(MissingExtensionSupport):
            config.validate()

    def test_extensions_already_applied(self):
        config = PostgresServiceConfig(
            name="pg1",
            package=PostgresPackage(extensions=("postgis",)),
            extensions=["pg_cron"],
        )
        with pytest.raises(MissingExtensionSupport, match="already applied"):
            config.resolved_package()

    def test_path_binaries(self):
        assert PostgresPackage().binary("psql") == "psql"


class TestUser:
    def test_default_user_from_env(self, monkeypatch):
        monkeypatch.setenv("USER", "alice")
        assert default_user() == "alice"

    def test_default_user_fallback(self, monkeypatch):
        monkeypatch.delenv("USER", raising=False)
        assert default_user() == "postgres"

    def test_effective_superuser(self, monkeypatch):
        monkeypatch.setenv("USER", "alice")
        assert PostgresServiceConfig(name="pg1").effective_superuser() == "alice"
        assert PostgresServiceConfig(name="pg1", superuser="root").effective_superuser() == "root"
