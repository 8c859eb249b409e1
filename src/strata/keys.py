"""
Key Path helpers.

A Key Path is a string of segments joined by ``DELIMITER`` (``:``).
Segments are property names or non-negative integers (array positions).
Paths compare case-insensitively: ``Database:Host`` and ``database:HOST``
denote the same entry.
"""

import typing as _typing

DELIMITER = ":"


def normalize(key: str) -> str:
    """Return the comparison form of a key (case-folded)."""
    return key.casefold()


def combine(*segments: str | int, delimiter: str = DELIMITER) -> str:
    """
    Join segments into a Key Path, skipping empty ones.

    Example:
        >>> combine("", "a", 0, "b")
        'a:0:b'
    """
    return delimiter.join(str(s) for s in segments if str(s) != "")


def split(key: str, delimiter: str = DELIMITER) -> list[str]:
    """Split a Key Path into its segments."""
    if not key:
        return []
    return key.split(delimiter)


def is_valid(key: _typing.Any, delimiter: str = DELIMITER) -> bool:
    """
    Check whether ``key`` is a usable Key Path.

    Valid keys are non-empty strings that are not whitespace-only and
    contain no empty segment (no leading, trailing, or doubled delimiter).
    """
    if not isinstance(key, str) or not key.strip():
        return False
    return all(segment != "" for segment in key.split(delimiter))


def is_blank(key: str | None) -> bool:
    """True for None, empty, or whitespace-only input."""
    return key is None or not key.strip()


def is_index(segment: str) -> bool:
    """True if ``segment`` is an array position (ASCII digits only)."""
    return segment.isascii() and segment.isdigit()


def child_segment(
    key: str,
    prefix: str,
    delimiter: str = DELIMITER,
) -> str | None:
    """
    Return the segment of ``key`` directly below ``prefix``.

    Matching is case-insensitive. The returned segment keeps the case of
    ``key``. Returns None if ``key`` is not strictly below ``prefix``.

    Example:
        >>> child_segment("Db:Hosts:0", "db")
        'Hosts'
        >>> child_segment("Db", "db") is None
        True
    """
    if prefix:
        head = prefix + delimiter
        if len(key) <= len(head) or normalize(key[: len(head)]) != normalize(head):
            return None
        rest = key[len(head) :]
    else:
        rest = key
    if not rest:
        return None
    return rest.split(delimiter, 1)[0]


def is_under(key: str, prefix: str, delimiter: str = DELIMITER) -> bool:
    """True if ``key`` equals ``prefix`` or lies below it (case-insensitive)."""
    if not prefix:
        return True
    nk, np = normalize(key), normalize(prefix)
    return nk == np or nk.startswith(np + delimiter)
