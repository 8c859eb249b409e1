"""Tests for ConfigurationBuilder."""

import datetime as _datetime
import pathlib as _pathlib

import pytest as _pytest

import strata.builder as builder
import strata.errors as errors
import strata.navigation as navigation
import strata.settings as settings

import tests.conftest as conftest


def _quiet_settings(**overrides: object) -> settings.Settings:
    return settings.Settings(_env_file=None, **overrides)


class TestBuild:
    """Tests for assembling and building configurations."""

    def test_layered_sources(self, tmp_path: _pathlib.Path) -> None:
        """File, environment and memory sources layer in registration order."""
        config_file = tmp_path / "app.yaml"
        config_file.write_text("server:\n  port: 8080\n  host: 0.0.0.0\n", encoding="utf-8")

        config = (
            builder.ConfigurationBuilder(_quiet_settings())
            .add_yaml_file(config_file)
            .add_environment("APP_", environ={"APP_SERVER__PORT": "9090"})
            .add_memory({"server": {"debug": True}})
            .build()
        )
        try:
            assert config.server.port.to(int) == 9090
            assert config.server.host.value == "0.0.0.0"
            assert config.server.debug.to(bool) is True
        finally:
            config.root.close()

    def test_use_existing_has_lowest_precedence(self) -> None:
        """Seeded configuration is overridden by every added source."""
        seed = navigation.ConfigNode.from_mapping({"a": "seed", "b": "seed"})
        config = (
            builder.ConfigurationBuilder(_quiet_settings())
            .add_memory({"b": "mine"})
            .use_existing(seed)
            .build()
        )
        assert config.as_dict() == {"a": "seed", "b": "mine"}
        assert config.root.sources[0].name == "Existing"
        config.root.close()

    def test_missing_optional_files_are_fine(self, tmp_path: _pathlib.Path) -> None:
        """Optional file sources default to tolerating absence."""
        config = (
            builder.ConfigurationBuilder(_quiet_settings())
            .add_json_file(tmp_path / "absent.json")
            .add_dotenv(tmp_path / ".env")
            .build()
        )
        assert not config.exists
        config.root.close()

    def test_build_error(self, tmp_path: _pathlib.Path) -> None:
        """A required source failure aborts the build."""
        with _pytest.raises(errors.BuildError):
            builder.ConfigurationBuilder(_quiet_settings()).add_json_file(
                tmp_path / "absent.json", optional=False
            ).build()

    def test_build_only_once(self) -> None:
        """A builder produces exactly one configuration."""
        config_builder = builder.ConfigurationBuilder(_quiet_settings())
        config_builder.build().root.close()
        with _pytest.raises(RuntimeError):
            config_builder.build()
        with _pytest.raises(RuntimeError):
            config_builder.add_memory({})


class TestSettingsDefaults:
    """Tests for engine-wide defaults applied at build time."""

    def test_default_reload_interval_starts_remote_polling(self, secret_client: conftest.FakeSecretClient) -> None:
        """Remote sources without an interval pick up the default and are scheduled."""
        config = (
            builder.ConfigurationBuilder(_quiet_settings(default_reload_seconds=3600))
            .add_secret_store(["other-token"], client=secret_client)
            .build()
        )
        try:
            source = config.root.sources[0]
            assert source.reload_interval == _datetime.timedelta(hours=1)
            assert config.other.token.value == "abc"
        finally:
            config.root.close()

    def test_default_timeout(self) -> None:
        """Sources without a timeout pick up the default."""
        config_builder = builder.ConfigurationBuilder(_quiet_settings(default_timeout=2.5)).add_memory({"a": "1"})
        config = config_builder.build()
        assert config_builder.sources[0].timeout == 2.5
        config.root.close()
