"""
File-backed sources: .env, JSON and YAML.

Missing files are an error for required sources and contribute nothing for
optional ones. Parse errors always fail the load; whether that aborts the
build depends on the source's ``optional`` flag.
"""

import abc as _abc
import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import dotenv as _dotenv
import yaml as _yaml

import strata.errors as errors
import strata.flatten as flatten
import strata.keys as keys
import strata.mapping as mapping
import strata.sources.base as base
import strata.sources.environment as environment

_logger = _logging.getLogger(__name__)


class ConfigFileError(Exception):
    """Error reading or parsing a configuration file."""

    def __init__(self, path: _pathlib.Path, message: str) -> None:
        self.path = path
        super().__init__(f"Error in config file {path}: {message}")


class FileSource(base.Source):
    """Base for sources reading one file."""

    kind = "File"

    def __init__(
        self,
        path: str | _pathlib.Path,
        options: base.SourceOptions | None = None,
        **kwargs: _typing.Any,
    ) -> None:
        super().__init__(options, **kwargs)
        self.path = _pathlib.Path(path)

    def describe(self) -> str:
        return f"{self.kind}[{self.path}]"

    def _collect(self, builder: mapping.FlatMappingBuilder) -> None:
        if not self.path.exists():
            if self.optional:
                _logger.debug("Optional file %s not found, skipping", self.path)
                return
            raise ConfigFileError(self.path, "file not found")
        self._parse(builder)

    def _read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except PermissionError as e:
            raise ConfigFileError(self.path, f"permission denied: {e}") from e
        except OSError as e:
            raise ConfigFileError(self.path, f"cannot read file: {e}") from e

    @_abc.abstractmethod
    def _parse(self, builder: mapping.FlatMappingBuilder) -> None:
        """Read ``self.path`` (known to exist) into ``builder``."""

    def _add_document(self, builder: mapping.FlatMappingBuilder, document: _typing.Any) -> None:
        if document is None:
            return
        if not isinstance(document, dict):
            raise ConfigFileError(
                self.path,
                f"top level must be a mapping, got {type(document).__name__}",
            )
        for name, value in document.items():
            try:
                key = self.transform_key(str(name))
            except errors.KeyTransformError as e:
                self._entry_failed(e)
                continue
            flatten.flatten_into(builder, value, key)


class DotEnvSource(FileSource):
    """
    ``.env`` file source, parsed with python-dotenv.

    ``__`` in names becomes the key delimiter, as for environment variables.
    Variables without a value (a bare ``NAME`` line) are present with no value.
    """

    kind = "DotEnv"

    def rewrite_name(self, raw_name: str) -> str:
        return raw_name.replace(environment.NESTING_SEPARATOR, keys.DELIMITER)

    def _parse(self, builder: mapping.FlatMappingBuilder) -> None:
        values = _dotenv.dotenv_values(self.path, interpolate=False, encoding="utf-8")
        for name, value in values.items():
            self._add_entry(builder, name, value)


class JsonFileSource(FileSource):
    """JSON file source. Numbers keep their original spelling."""

    kind = "Json"

    def _parse(self, builder: mapping.FlatMappingBuilder) -> None:
        text = self._read_text()
        if not text.strip():
            return
        try:
            document = flatten.parse_json(text)
        except _json.JSONDecodeError as e:
            raise ConfigFileError(self.path, f"invalid JSON: {e}") from e
        self._add_document(builder, document)


class YamlFileSource(FileSource):
    """YAML file source, parsed with ``yaml.safe_load``."""

    kind = "Yaml"

    def _parse(self, builder: mapping.FlatMappingBuilder) -> None:
        text = self._read_text()
        try:
            document = _yaml.safe_load(text)
        except _yaml.YAMLError as e:
            raise ConfigFileError(self.path, f"invalid YAML: {e}") from e
        self._add_document(builder, document)
