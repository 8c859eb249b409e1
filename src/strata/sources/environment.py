"""Environment variable source."""

import collections.abc as _abc
import os as _os
import typing as _typing

import strata.keys as keys
import strata.mapping as mapping
import strata.sources.base as base

# Environment variable names can't contain ":", so "__" stands in for it.
NESTING_SEPARATOR = "__"


class EnvironmentSource(base.Source):
    """
    Source reading process environment variables.

    With a prefix, only variables starting with it (case-insensitive) are
    read and the prefix is removed. ``__`` in names becomes the key
    delimiter, so ``APP_DB__HOST`` with prefix ``APP_`` maps to ``DB:HOST``.
    """

    def __init__(
        self,
        prefix: str | None = None,
        environ: _abc.Mapping[str, str] | None = None,
        options: base.SourceOptions | None = None,
        **kwargs: _typing.Any,
    ) -> None:
        super().__init__(options, **kwargs)
        self.prefix = prefix or ""
        self._environ = environ

    def describe(self) -> str:
        return f"Environment[{self.prefix}]" if self.prefix else "Environment"

    def rewrite_name(self, raw_name: str) -> str:
        name = raw_name
        if self.prefix and keys.normalize(name).startswith(keys.normalize(self.prefix)):
            name = name[len(self.prefix) :]
        return name.replace(NESTING_SEPARATOR, keys.DELIMITER)

    def _collect(self, builder: mapping.FlatMappingBuilder) -> None:
        environ = self._environ if self._environ is not None else _os.environ
        folded_prefix = keys.normalize(self.prefix)
        for name, value in environ.items():
            if folded_prefix and not keys.normalize(name).startswith(folded_prefix):
                continue
            self._add_entry(builder, name, value)
