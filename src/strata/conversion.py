"""
Type conversion engine.

Converts a node of the merged key space into a Python shape. The shape is
classified once into a small closed set of kinds, and each kind has one
strategy:

- PRIMITIVE: parse the leaf text with locale-independent rules
- ENUM: case-insensitive member name (or value) match
- ARRAY: immediate children, in child order, converted to the element shape
- DICTIONARY: immediate children keyed by their own segment
- OBJECT: members bound from same-named children, defaults kept for the rest
- UNSUPPORTED: anything else; resolves to None (or raises in strict mode)

Missing nodes convert to the shape's default unless ``required=True``.
Only unparseable text raises FormatError.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import datetime as _datetime
import decimal as _decimal
import enum as _enum
import pathlib as _pathlib
import re as _re
import types as _types
import typing as _typing
import uuid as _uuid

import pydantic as _pydantic

import strata.errors as errors
import strata.keys as keys
import strata.mapping as mapping


class ShapeKind(_enum.Enum):
    PRIMITIVE = "primitive"
    ENUM = "enum"
    ARRAY = "array"
    DICTIONARY = "dictionary"
    OBJECT = "object"
    UNSUPPORTED = "unsupported"


class DictionaryRule(_enum.Enum):
    """How DICTIONARY shapes read their entries."""

    CHILD = "child"
    """Each immediate child's key maps to that child's value."""

    GRANDCHILD = "grandchild"
    """Legacy: each child's own children supply the keys; the child's key is ignored."""


@_dataclasses.dataclass(frozen=True)
class ShapeDescriptor:
    """Classification of a target shape."""

    kind: ShapeKind
    shape: _typing.Any
    container: type | None = None
    element: _typing.Any = None
    key: _typing.Any = None
    value: _typing.Any = None


# =============================================================================
# Leaf parsing
# =============================================================================

_INT_RE = _re.compile(r"^[+-]?\d+$", _re.ASCII)
_FLOAT_RE = _re.compile(
    r"^[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|nan|inf|infinity)$",
    _re.IGNORECASE | _re.ASCII,
)
# [-][d.]hh:mm[:ss[.fffffff]]
_TIMESPAN_RE = _re.compile(
    r"^(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})"
    r"(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?$",
    _re.ASCII,
)
_DAYS_RE = _re.compile(r"^(?P<sign>-)?(?P<days>\d+)$", _re.ASCII)
_ISO_DURATION_RE = _re.compile(
    r"^(?P<sign>-)?P(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
    _re.IGNORECASE | _re.ASCII,
)


def _parse_bool(text: str) -> bool:
    folded = text.strip().casefold()
    if folded == "true":
        return True
    if folded == "false":
        return False
    raise ValueError("expected 'true' or 'false'")


def _parse_int(text: str) -> int:
    stripped = text.strip()
    if not _INT_RE.match(stripped):
        raise ValueError("not an integer")
    return int(stripped)


def _parse_float(text: str) -> float:
    stripped = text.strip()
    if not _FLOAT_RE.match(stripped):
        raise ValueError("not a number")
    return float(stripped)


def _parse_decimal(text: str) -> _decimal.Decimal:
    stripped = text.strip()
    if not _FLOAT_RE.match(stripped):
        raise ValueError("not a decimal number")
    try:
        return _decimal.Decimal(stripped)
    except _decimal.InvalidOperation as e:
        raise ValueError("not a decimal number") from e


def _parse_timedelta(text: str) -> _datetime.timedelta:
    stripped = text.strip()
    if match := _TIMESPAN_RE.match(stripped):
        hours, minutes = int(match["hours"]), int(match["minutes"])
        seconds = int(match["seconds"] or 0)
        if hours > 23 or minutes > 59 or seconds > 59:
            raise ValueError("time component out of range")
        fraction = (match["fraction"] or "").ljust(7, "0")
        result = _datetime.timedelta(
            days=int(match["days"] or 0),
            hours=hours,
            minutes=minutes,
            seconds=seconds,
            microseconds=int(fraction) // 10,
        )
    elif match := _DAYS_RE.match(stripped):
        result = _datetime.timedelta(days=int(match["days"]))
    elif (match := _ISO_DURATION_RE.match(stripped)) and stripped.lstrip("-").upper() not in ("P", "PT"):
        result = _datetime.timedelta(
            days=int(match["days"] or 0),
            hours=int(match["hours"] or 0),
            minutes=int(match["minutes"] or 0),
            seconds=float(match["seconds"] or 0),
        )
    else:
        raise ValueError("expected [-][d.]hh:mm[:ss[.fffffff]] or an ISO-8601 duration")
    return -result if match["sign"] else result


def _parse_datetime(text: str) -> _datetime.datetime:
    return _datetime.datetime.fromisoformat(text.strip())


def _parse_date(text: str) -> _datetime.date:
    return _datetime.date.fromisoformat(text.strip())


def _parse_time(text: str) -> _datetime.time:
    return _datetime.time.fromisoformat(text.strip())


def _parse_uuid(text: str) -> _uuid.UUID:
    return _uuid.UUID(text.strip())


_PARSERS: dict[type, _typing.Callable[[str], _typing.Any]] = {
    str: lambda text: text,
    bool: _parse_bool,
    int: _parse_int,
    float: _parse_float,
    _decimal.Decimal: _parse_decimal,
    _datetime.datetime: _parse_datetime,
    _datetime.date: _parse_date,
    _datetime.time: _parse_time,
    _datetime.timedelta: _parse_timedelta,
    _uuid.UUID: _parse_uuid,
    _pathlib.Path: _pathlib.Path,
}

_DEFAULTS: dict[type, _typing.Any] = {
    bool: False,
    int: 0,
    float: 0.0,
    _decimal.Decimal: _decimal.Decimal(0),
    _datetime.timedelta: _datetime.timedelta(0),
}


def _enum_member(text: str, shape: type[_enum.Enum]) -> _enum.Enum:
    stripped = text.strip()
    folded = stripped.casefold()
    for member in shape:
        if member.name.casefold() == folded:
            return member
    for member in shape:
        if str(member.value).casefold() == folded:
            return member
    raise ValueError(f"not one of {', '.join(m.name for m in shape)}")


def parse_text(text: str, shape: _typing.Any, key: str | None = None) -> _typing.Any:
    """
    Parse one leaf string into a primitive or enum shape.

    Raises:
        FormatError: If the text doesn't parse.
        UnsupportedShapeError: If the shape is not primitive or enum.
    """
    descriptor = describe(shape)
    try:
        if descriptor.kind is ShapeKind.PRIMITIVE:
            return _PARSERS[descriptor.shape](text)
        if descriptor.kind is ShapeKind.ENUM:
            return _enum_member(text, descriptor.shape)
    except ValueError as e:
        raise errors.FormatError(text, descriptor.shape, key, str(e)) from e
    raise errors.UnsupportedShapeError(shape)


def split_list(
    text: str | None,
    shape: _typing.Any,
    separator: str = ",",
) -> list[_typing.Any] | None:
    """
    Parse a separated string (``"a, b, c"``) into a list of ``shape``.

    Returns None for None or empty text.
    """
    if not text:
        return None
    return [parse_text(item.strip(), shape) for item in text.split(separator)]


# =============================================================================
# Shape classification
# =============================================================================


def _unwrap_optional(shape: _typing.Any) -> _typing.Any:
    origin = _typing.get_origin(shape)
    if origin is _typing.Union or origin is _types.UnionType:
        args = [a for a in _typing.get_args(shape) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return shape


def _is_object_shape(shape: _typing.Any) -> bool:
    if not isinstance(shape, type):
        return False
    if _dataclasses.is_dataclass(shape):
        return True
    if issubclass(shape, _pydantic.BaseModel):
        return True
    if shape.__module__ == "builtins":
        return False
    return bool(getattr(shape, "__annotations__", None))


def describe(shape: _typing.Any) -> ShapeDescriptor:
    """Classify ``shape`` into a ShapeDescriptor."""
    shape = _unwrap_optional(shape)
    origin = _typing.get_origin(shape)
    args = _typing.get_args(shape)

    if origin in (list, set, frozenset, _abc.Sequence, _abc.Iterable):
        container = origin if origin in (list, set, frozenset) else list
        return ShapeDescriptor(ShapeKind.ARRAY, shape, container=container, element=args[0] if args else str)
    if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
        return ShapeDescriptor(ShapeKind.ARRAY, shape, container=tuple, element=args[0])
    if origin in (dict, _abc.Mapping, _abc.MutableMapping):
        key, value = args if len(args) == 2 else (str, str)
        return ShapeDescriptor(ShapeKind.DICTIONARY, shape, container=dict, key=key, value=value)
    if shape in (list, set, frozenset, tuple):
        return ShapeDescriptor(ShapeKind.ARRAY, shape, container=shape, element=str)
    if shape is dict:
        return ShapeDescriptor(ShapeKind.DICTIONARY, shape, container=dict, key=str, value=str)

    if isinstance(shape, type):
        if issubclass(shape, _enum.Enum):
            return ShapeDescriptor(ShapeKind.ENUM, shape)
        if shape in _PARSERS:
            return ShapeDescriptor(ShapeKind.PRIMITIVE, shape)
        if _is_object_shape(shape):
            return ShapeDescriptor(ShapeKind.OBJECT, shape)
    return ShapeDescriptor(ShapeKind.UNSUPPORTED, shape)


def default_for(shape: _typing.Any) -> _typing.Any:
    """
    The value a missing node converts to.

    Numbers, bool and timedelta get their zero value, arrays and
    dictionaries an empty container, everything else None.
    """
    descriptor = describe(shape)
    if descriptor.kind is ShapeKind.PRIMITIVE:
        return _DEFAULTS.get(descriptor.shape)
    if descriptor.kind is ShapeKind.ARRAY:
        return _typing.cast(type, descriptor.container)()
    if descriptor.kind is ShapeKind.DICTIONARY:
        return {}
    return None


# =============================================================================
# Conversion
# =============================================================================


class _Converter:
    """One conversion over a single, fixed mapping snapshot."""

    def __init__(self, flat: mapping.FlatMapping, dictionary_rule: DictionaryRule) -> None:
        self._flat = flat
        self._rule = dictionary_rule

    def exists(self, path: str) -> bool:
        if path and path in self._flat:
            return True
        return self._flat.has_descendants(path)

    def leaf(self, path: str) -> str | None:
        if not path:
            return None
        return self._flat.get(path)

    def convert(self, path: str, descriptor: ShapeDescriptor, required: bool) -> _typing.Any:
        kind = descriptor.kind
        if kind in (ShapeKind.PRIMITIVE, ShapeKind.ENUM):
            return self._leaf(path, descriptor, required)
        if kind is ShapeKind.UNSUPPORTED:
            raise errors.UnsupportedShapeError(descriptor.shape)
        if not self.exists(path):
            if required:
                raise errors.FormatError(None, descriptor.shape, path or None, "value is required")
            return default_for(descriptor.shape) if kind is not ShapeKind.OBJECT else None
        if kind is ShapeKind.ARRAY:
            return self._array(path, descriptor)
        if kind is ShapeKind.DICTIONARY:
            return self._dictionary(path, descriptor)
        return self._object(path, descriptor)

    def _leaf(self, path: str, descriptor: ShapeDescriptor, required: bool) -> _typing.Any:
        text = self.leaf(path)
        if text is None:
            if required:
                raise errors.FormatError(None, descriptor.shape, path or None, "value is required")
            return default_for(descriptor.shape)
        return parse_text(text, descriptor.shape, path or None)

    def _element(self, path: str, shape: _typing.Any) -> tuple[bool, _typing.Any]:
        """Convert one element; (False, None) when a leaf element has no value."""
        descriptor = describe(shape)
        if descriptor.kind in (ShapeKind.PRIMITIVE, ShapeKind.ENUM):
            text = self.leaf(path)
            if text is None:
                return False, None
            return True, parse_text(text, descriptor.shape, path)
        return True, self.convert(path, descriptor, required=False)

    def _array(self, path: str, descriptor: ShapeDescriptor) -> _typing.Any:
        items: list[_typing.Any] = []
        for child in self._flat.children(path):
            present, value = self._element(keys.combine(path, child), descriptor.element)
            if present:
                items.append(value)
        return _typing.cast(type, descriptor.container)(items)

    def _dictionary(self, path: str, descriptor: ShapeDescriptor) -> dict[_typing.Any, _typing.Any]:
        result: dict[_typing.Any, _typing.Any] = {}
        if self._rule is DictionaryRule.CHILD:
            entries = [(child, keys.combine(path, child)) for child in self._flat.children(path)]
        else:
            entries = [
                (grandchild, keys.combine(path, child, grandchild))
                for child in self._flat.children(path)
                for grandchild in self._flat.children(keys.combine(path, child))
            ]
        for segment, entry_path in entries:
            present, value = self._element(entry_path, descriptor.value)
            if present:
                result[parse_text(segment, descriptor.key, entry_path)] = value
        return result

    def _object(self, path: str, descriptor: ShapeDescriptor) -> _typing.Any:
        shape = descriptor.shape
        children = {keys.normalize(c): c for c in self._flat.children(path)}
        values: dict[str, _typing.Any] = {}
        for member, member_shape in _members(shape).items():
            segment = children.get(keys.normalize(member))
            if segment is None:
                continue
            member_path = keys.combine(path, segment)
            member_descriptor = describe(member_shape)
            if member_descriptor.kind is ShapeKind.UNSUPPORTED:
                continue
            if member_descriptor.kind in (ShapeKind.PRIMITIVE, ShapeKind.ENUM) and self.leaf(member_path) is None:
                continue
            values[member] = self.convert(member_path, member_descriptor, required=False)
        return _instantiate(shape, values, path)


def _members(shape: type) -> dict[str, _typing.Any]:
    if issubclass(shape, _pydantic.BaseModel):
        return {name: field.annotation for name, field in shape.model_fields.items()}
    try:
        hints = _typing.get_type_hints(shape)
    except (NameError, TypeError):
        hints = dict(getattr(shape, "__annotations__", {}))
    if _dataclasses.is_dataclass(shape):
        return {f.name: hints.get(f.name, f.type) for f in _dataclasses.fields(shape) if f.init}
    return {name: hint for name, hint in hints.items() if _typing.get_origin(hint) is not _typing.ClassVar}


def _instantiate(shape: type, values: dict[str, _typing.Any], path: str) -> _typing.Any:
    try:
        if issubclass(shape, _pydantic.BaseModel):
            return shape.model_validate(values)
        if _dataclasses.is_dataclass(shape):
            return shape(**values)
        instance = shape()
    except (_pydantic.ValidationError, TypeError) as e:
        raise errors.FormatError(None, shape, path or None, str(e)) from e
    for name, value in values.items():
        setattr(instance, name, value)
    return instance


def convert(
    flat: mapping.FlatMapping,
    path: str,
    shape: _typing.Any,
    *,
    required: bool = False,
    dictionary_rule: DictionaryRule = DictionaryRule.CHILD,
) -> _typing.Any:
    """
    Convert the node at ``path`` to ``shape``.

    Unsupported shapes resolve to None.

    Raises:
        FormatError: If leaf text doesn't parse, or ``required`` and the
            node is missing.
    """
    try:
        return convert_strict(flat, path, shape, required=required, dictionary_rule=dictionary_rule)
    except errors.UnsupportedShapeError:
        return None


def convert_strict(
    flat: mapping.FlatMapping,
    path: str,
    shape: _typing.Any,
    *,
    required: bool = False,
    dictionary_rule: DictionaryRule = DictionaryRule.CHILD,
) -> _typing.Any:
    """
    Like convert(), but unsupported shapes raise.

    Raises:
        FormatError: As for convert().
        UnsupportedShapeError: If the shape is not recognized.
    """
    converter = _Converter(flat, dictionary_rule)
    return converter.convert(path, describe(shape), required)
