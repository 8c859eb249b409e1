"""
Hierarchical parameter store source.

Loads every parameter under a path, e.g. ``/myapp/prod/db/host`` under
``/myapp/prod`` becomes ``db:host``. ``StringList`` parameters expand into
indexed keys (``hosts:0``, ``hosts:1``...).

Client protocol::

    get_parameters_by_path(path: str, next_token: str | None) -> ParameterPage
"""

import dataclasses as _dataclasses
import typing as _typing

import strata.errors as errors
import strata.keys as keys
import strata.mapping as mapping
import strata.sources.base as base
import strata.sources.remote as remote

STRING = "String"
STRING_LIST = "StringList"
SECURE_STRING = "SecureString"


@_dataclasses.dataclass(frozen=True)
class Parameter:
    name: str
    value: str | None
    type: str = STRING


@_dataclasses.dataclass(frozen=True)
class ParameterPage:
    parameters: list[Parameter]
    next_token: str | None = None


class ParameterStoreClient(_typing.Protocol):
    def get_parameters_by_path(self, path: str, next_token: str | None) -> ParameterPage: ...


class ParameterStoreSource(remote.RemoteSource):
    """
    Source loading every parameter below ``path``.

    ``String`` and ``SecureString`` values go through structured processing
    when enabled; ``StringList`` values are split on commas; unknown types
    are stored verbatim.
    """

    def __init__(
        self,
        path: str,
        client: ParameterStoreClient | None = None,
        options: base.SourceOptions | None = None,
        **kwargs: _typing.Any,
    ) -> None:
        super().__init__(client, options, **kwargs)
        self.path = path

    def describe(self) -> str:
        return f"ParameterStore[{self.path}]"

    def rewrite_name(self, raw_name: str) -> str:
        name = raw_name
        if self.path and keys.normalize(name).startswith(keys.normalize(self.path)):
            name = name[len(self.path) :]
        return name.lstrip("/").replace("/", keys.DELIMITER)

    def _collect(self, builder: mapping.FlatMappingBuilder) -> None:
        token: str | None = None
        parameters: list[Parameter] = []
        while True:
            page = self.client.get_parameters_by_path(self.path, token)
            parameters.extend(page.parameters)
            token = page.next_token
            if not token:
                break

        for parameter in parameters:
            if parameter.type == STRING_LIST:
                self._add_string_list(builder, parameter)
            else:
                self._add_entry(builder, parameter.name, parameter.value)

    def _add_string_list(self, builder: mapping.FlatMappingBuilder, parameter: Parameter) -> None:
        if not parameter.value:
            return
        try:
            key = self.transform_key(parameter.name)
        except errors.KeyTransformError as e:
            self._entry_failed(e)
            return
        items = [item.strip() for item in parameter.value.split(",") if item.strip()]
        for index, item in enumerate(items):
            builder[keys.combine(key, index)] = item
