"""
Error types raised by strata.

Navigation never raises. Conversion raises FormatError (bad leaf text) and,
in strict mode, UnsupportedShapeError. Sources raise SourceLoadError,
KeyTransformError and EntryLoadError according to their failure policy,
and ConfigurationBuilder.build() raises BuildError when required sources
fail.
"""

import typing as _typing


class StrataError(Exception):
    """Base class for all strata errors."""

    pass


def _shape_name(shape: _typing.Any) -> str:
    return getattr(shape, "__name__", None) or repr(shape)


class FormatError(StrataError, ValueError):
    """A leaf value cannot be parsed into the requested shape."""

    def __init__(
        self,
        raw: str | None,
        shape: _typing.Any,
        key: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.raw = raw
        self.shape = shape
        self.key = key
        where = f" at '{key}'" if key else ""
        message = f"Cannot convert {raw!r}{where} to {_shape_name(shape)}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnsupportedShapeError(StrataError, TypeError):
    """The requested shape is not one the conversion engine recognizes."""

    def __init__(self, shape: _typing.Any) -> None:
        self.shape = shape
        super().__init__(f"Unsupported conversion target: {_shape_name(shape)}")


class SourceLoadError(StrataError):
    """A source failed to produce its snapshot."""

    def __init__(self, source: str, cause: BaseException | None = None) -> None:
        self.source = source
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to load configuration from {source}{detail}")


class EntryLoadError(StrataError):
    """A single entry of a source could not be fetched or parsed."""

    def __init__(self, source: str, entry: str, reason: str) -> None:
        self.source = source
        self.entry = entry
        super().__init__(f"{source}: entry '{entry}' failed: {reason}")


class KeyTransformError(EntryLoadError):
    """A key rewrite produced an invalid Key Path for one entry."""

    def __init__(self, source: str, raw_name: str, result: _typing.Any) -> None:
        self.raw_name = raw_name
        self.result = result
        super().__init__(source, raw_name, f"key transform produced invalid key {result!r}")


class BuildError(StrataError):
    """One or more required sources failed during build."""

    def __init__(self, errors: list[SourceLoadError]) -> None:
        self.errors = list(errors)
        names = ", ".join(e.source for e in self.errors)
        super().__init__(f"Configuration build failed; required source(s) failed: {names}")
