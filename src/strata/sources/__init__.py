"""
Configuration sources.

Local: MemorySource, EnvironmentSource, DotEnvSource, JsonFileSource,
YamlFileSource. Remote: SecretStoreSource, ParameterStoreSource,
HttpConfigSource.
"""

from strata.sources.base import Source, SourceOptions
from strata.sources.environment import EnvironmentSource
from strata.sources.files import (
    ConfigFileError,
    DotEnvSource,
    FileSource,
    JsonFileSource,
    YamlFileSource,
)
from strata.sources.http import HttpConfigSource
from strata.sources.memory import MemorySource
from strata.sources.parameters import ParameterStoreSource
from strata.sources.remote import RemoteSource
from strata.sources.secrets import SecretStoreSource

__all__ = [
    "ConfigFileError",
    "DotEnvSource",
    "EnvironmentSource",
    "FileSource",
    "HttpConfigSource",
    "JsonFileSource",
    "MemorySource",
    "ParameterStoreSource",
    "RemoteSource",
    "SecretStoreSource",
    "Source",
    "SourceOptions",
    "YamlFileSource",
]
