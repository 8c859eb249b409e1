"""In-memory source, mainly for defaults and tests."""

import collections.abc as _abc
import typing as _typing

import strata.errors as errors
import strata.flatten as flatten
import strata.mapping as mapping
import strata.sources.base as base


class MemorySource(base.Source):
    """
    Source backed by a dict.

    Values may be strings, None, scalars (rendered like flattened JSON) or
    nested dicts/lists, which are flattened under their key.

    Example:
        >>> MemorySource({"db": {"host": "localhost"}, "debug": True})
        ... # contributes {"db:host": "localhost", "debug": "true"}
    """

    def __init__(
        self,
        data: _abc.Mapping[str, _typing.Any] | None = None,
        options: base.SourceOptions | None = None,
        **kwargs: _typing.Any,
    ) -> None:
        super().__init__(options, **kwargs)
        self._data = dict(data or {})

    def describe(self) -> str:
        return f"Memory[{len(self._data)} keys]"

    def _collect(self, builder: mapping.FlatMappingBuilder) -> None:
        for raw_name, value in self._data.items():
            if isinstance(value, str) or value is None:
                self._add_entry(builder, str(raw_name), value)
                continue
            try:
                key = self.transform_key(str(raw_name))
            except errors.KeyTransformError as e:
                self._entry_failed(e)
                continue
            flatten.flatten_into(builder, value, key)
