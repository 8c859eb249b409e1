"""
Recursive flattening of document-shaped values into flat Key Paths.

Shared by every source that receives nested documents: JSON and YAML
files, structured secrets, centralized-config values.

    {"a": {"b": "v"}}        -> {"a:b": "v"}
    ["x", "y"] at prefix "p" -> {"p:0": "x", "p:1": "y"}

Flattening is total: malformed document text is stored verbatim under the
prefix instead of failing.
"""

import json as _json
import logging as _logging
import typing as _typing

import strata.keys as keys
import strata.mapping as mapping

_logger = _logging.getLogger(__name__)


class _RawNumber(str):
    """Number kept in its original JSON spelling."""

    __slots__ = ()


def looks_like_json(text: _typing.Any) -> bool:
    """
    Cheap check for document-shaped text.

    True when the trimmed text is wrapped in ``{...}`` or ``[...]``. This
    does not parse; flatten_json() still falls back to verbatim storage if
    parsing fails.
    """
    if not isinstance(text, str):
        return False
    stripped = text.strip()
    if not stripped:
        return False
    return (stripped[0] == "{" and stripped[-1] == "}") or (
        stripped[0] == "[" and stripped[-1] == "]"
    )


def _scalar_text(value: _typing.Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, _RawNumber):
        return str.__str__(value)
    if isinstance(value, str):
        return value
    if isinstance(value, float):
        # repr gives the shortest round-tripping text; integral floats keep ".0"
        return repr(value)
    return str(value)


def flatten_into(
    target: _typing.MutableMapping[str, str | None],
    value: _typing.Any,
    prefix: str = "",
    delimiter: str = keys.DELIMITER,
) -> None:
    """
    Flatten ``value`` into ``target`` under ``prefix``.

    Args:
        target: Mapping receiving the flat entries (usually a builder).
        value: Parsed document: dict, list/tuple, or scalar.
        prefix: Key Path under which to place the value.
        delimiter: Segment delimiter.
    """
    if isinstance(value, dict):
        for name, child in value.items():
            flatten_into(target, child, keys.combine(prefix, str(name), delimiter=delimiter), delimiter)
    elif isinstance(value, (list, tuple)):
        for index, child in enumerate(value):
            flatten_into(target, child, keys.combine(prefix, index, delimiter=delimiter), delimiter)
    elif value is None:
        # A null document at the root has nowhere to go.
        if prefix:
            target[prefix] = None
    elif prefix:
        target[prefix] = _scalar_text(value)


def flatten(
    value: _typing.Any,
    prefix: str = "",
    delimiter: str = keys.DELIMITER,
) -> mapping.FlatMapping:
    """Flatten an already-parsed document into a new FlatMapping."""
    builder = mapping.FlatMapping.builder(delimiter)
    flatten_into(builder, value, prefix, delimiter)
    return builder.freeze()


def parse_json(text: str) -> _typing.Any:
    """
    Parse JSON keeping numbers in their original spelling.

    Raises:
        ValueError: If the text is not valid JSON.
    """
    return _json.loads(text, parse_float=_RawNumber, parse_int=_RawNumber)


def flatten_json_into(
    target: _typing.MutableMapping[str, str | None],
    text: str,
    prefix: str = "",
    delimiter: str = keys.DELIMITER,
) -> None:
    """
    Flatten JSON text into ``target``; store it verbatim if it is not a document.

    Never raises for string input. Documents nested too deeply to parse or
    walk are stored verbatim as well, and nothing partial reaches ``target``.
    """
    if not looks_like_json(text):
        if prefix:
            target[prefix] = text
        return
    staged: dict[str, str | None] = {}
    try:
        flatten_into(staged, parse_json(text), prefix, delimiter)
    except (ValueError, RecursionError):
        _logger.debug("Value at '%s' is not a usable JSON document, storing verbatim", prefix)
        if prefix:
            target[prefix] = text
        return
    target.update(staged)


def flatten_json(
    text: str,
    prefix: str = "",
    delimiter: str = keys.DELIMITER,
) -> mapping.FlatMapping:
    """
    Flatten JSON text into a new FlatMapping.

    Example:
        >>> dict(flatten_json('{"a": {"b": 1.50}}'))
        {'a:b': '1.50'}
        >>> dict(flatten_json("not json", "p"))
        {'p': 'not json'}
    """
    builder = mapping.FlatMapping.builder(delimiter)
    flatten_json_into(builder, text, prefix, delimiter)
    return builder.freeze()
