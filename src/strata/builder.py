"""
Source registration and build.

    config = (
        ConfigurationBuilder()
        .add_yaml_file("appsettings.yaml")
        .add_environment(prefix="MYAPP_")
        .add_secret_store(["myapp-*"], client=secrets_client, optional=True,
                          reload_interval=300)
        .build()
    )
    port = config.server.port.to(int)

Sources are applied in registration order: later sources override
earlier ones per key.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import strata.navigation as navigation
import strata.root as root
import strata.settings as settings_module
import strata.sources as sources

_logger = _logging.getLogger(__name__)


class ConfigurationBuilder:
    """Collects sources in precedence order and builds the configuration once."""

    def __init__(self, settings: settings_module.Settings | None = None) -> None:
        """
        Args:
            settings: Engine defaults (timeout, reload interval). Loaded
                from the environment at build time when not given.
        """
        self._sources: list[sources.Source] = []
        self._settings = settings
        self._built = False

    @property
    def sources(self) -> list[sources.Source]:
        return list(self._sources)

    def _check_not_built(self) -> None:
        if self._built:
            raise RuntimeError("Cannot add sources after build() has been called")

    def add_source(self, source: sources.Source) -> ConfigurationBuilder:
        """Append a source; it overrides every source added before it."""
        self._check_not_built()
        self._sources.append(source)
        return self

    def use_existing(
        self,
        data: _abc.Mapping[str, _typing.Any] | navigation.ConfigNode,
    ) -> ConfigurationBuilder:
        """Seed with existing configuration at the lowest precedence."""
        self._check_not_built()
        flat = data.as_dict() if isinstance(data, navigation.ConfigNode) else data
        self._sources.insert(0, sources.MemorySource(flat, name="Existing"))
        return self

    def add_memory(self, data: _abc.Mapping[str, _typing.Any], **options: _typing.Any) -> ConfigurationBuilder:
        return self.add_source(sources.MemorySource(data, **options))

    def add_environment(self, prefix: str | None = None, **options: _typing.Any) -> ConfigurationBuilder:
        return self.add_source(sources.EnvironmentSource(prefix, **options))

    def add_dotenv(
        self,
        path: str | _pathlib.Path = ".env",
        optional: bool = True,
        **options: _typing.Any,
    ) -> ConfigurationBuilder:
        return self.add_source(sources.DotEnvSource(path, optional=optional, **options))

    def add_json_file(
        self,
        path: str | _pathlib.Path,
        optional: bool = True,
        **options: _typing.Any,
    ) -> ConfigurationBuilder:
        return self.add_source(sources.JsonFileSource(path, optional=optional, **options))

    def add_yaml_file(
        self,
        path: str | _pathlib.Path,
        optional: bool = True,
        **options: _typing.Any,
    ) -> ConfigurationBuilder:
        return self.add_source(sources.YamlFileSource(path, optional=optional, **options))

    def add_secret_store(
        self,
        secret_names: _abc.Sequence[str] | None = None,
        client: _typing.Any = None,
        **options: _typing.Any,
    ) -> ConfigurationBuilder:
        return self.add_source(sources.SecretStoreSource(secret_names, client, **options))

    def add_parameter_store(
        self,
        path: str,
        client: _typing.Any = None,
        **options: _typing.Any,
    ) -> ConfigurationBuilder:
        return self.add_source(sources.ParameterStoreSource(path, client, **options))

    def add_http_config(self, endpoint: str, **options: _typing.Any) -> ConfigurationBuilder:
        return self.add_source(sources.HttpConfigSource(endpoint, **options))

    def build(
        self,
        *,
        on_reload_error: root.ReloadErrorHook | None = None,
    ) -> navigation.ConfigNode:
        """
        Load every source, merge, and start background reloads.

        Returns:
            Root ConfigNode. ``node.root`` is the ConfigurationRoot; close
            it to stop reloading.

        Raises:
            RuntimeError: If called more than once.
            BuildError: If any required source failed to load.
        """
        if self._built:
            raise RuntimeError("build() can only be called once")
        self._built = True

        engine_settings = self._settings if self._settings is not None else settings_module.Settings()
        for source in self._sources:
            source.apply_defaults(
                timeout=engine_settings.default_timeout,
                reload_interval=engine_settings.default_reload_interval,
            )

        configuration = root.ConfigurationRoot.load(self._sources, on_reload_error=on_reload_error)
        scheduled = configuration.start()
        _logger.info(
            "Configuration built from %d source(s); %d reloading in background",
            len(self._sources),
            scheduled,
        )
        return navigation.ConfigNode(configuration)
