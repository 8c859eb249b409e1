"""
Immutable, case-insensitive flat key space.

FlatMapping is the unit every source produces and the merge engine
publishes. It is never mutated after construction: sources accumulate
entries in a FlatMappingBuilder and freeze it, and the merge engine builds
a fresh mapping on every (re)load instead of patching the live one.

Example:
    >>> builder = FlatMapping.builder()
    >>> builder["Db:Host"] = "localhost"
    >>> builder["db:port"] = "5432"
    >>> mapping = builder.freeze()
    >>> mapping["DB:HOST"]
    'localhost'
    >>> mapping.children("db")
    ['Host', 'port']
"""

from __future__ import annotations

import collections.abc as _abc
import typing as _typing

import strata.keys as keys

Value = _typing.Optional[str]


def _segment_sort_key(segment: str) -> tuple[int, int, str]:
    # Integer segments first, in numeric order; names after, case-insensitive.
    if keys.is_index(segment):
        return (0, int(segment), "")
    return (1, 0, keys.normalize(segment))


class FlatMappingBuilder(_abc.MutableMapping[str, Value]):
    """Mutable accumulator for FlatMapping. Last write wins per key."""

    def __init__(self, delimiter: str = keys.DELIMITER) -> None:
        self._delimiter = delimiter
        self._entries: dict[str, tuple[str, Value]] = {}

    def __getitem__(self, key: str) -> Value:
        return self._entries[keys.normalize(key)][1]

    def __setitem__(self, key: str, value: Value) -> None:
        norm = keys.normalize(key)
        # Existing entries keep their position; spelling follows the latest writer.
        self._entries[norm] = (key, value)

    def __delitem__(self, key: str) -> None:
        del self._entries[keys.normalize(key)]

    def __iter__(self) -> _typing.Iterator[str]:
        return (original for original, _ in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and keys.normalize(key) in self._entries

    def merge(self, other: _abc.Mapping[str, Value]) -> None:
        """Write every entry of ``other``, overriding existing keys."""
        for key, value in other.items():
            self[key] = value

    def freeze(self) -> FlatMapping:
        """Return an immutable snapshot of the accumulated entries."""
        return FlatMapping._from_entries(dict(self._entries), self._delimiter)


class FlatMapping(_abc.Mapping[str, Value]):
    """
    Read-only flat mapping of Key Path to optional string value.

    Lookups are case-insensitive. A key mapped to None is present (``in``
    is True) but has no value, which is distinct from an empty string and
    from a missing key.
    """

    __slots__ = ("_entries", "_delimiter", "_children_cache")

    def __init__(
        self,
        data: _abc.Mapping[str, Value] | _abc.Iterable[tuple[str, Value]] | None = None,
        delimiter: str = keys.DELIMITER,
    ) -> None:
        builder = FlatMappingBuilder(delimiter)
        if data is not None:
            items = data.items() if isinstance(data, _abc.Mapping) else data
            for key, value in items:
                builder[key] = value
        self._entries = builder._entries
        self._delimiter = delimiter
        self._children_cache: dict[str, list[str]] = {}

    @classmethod
    def _from_entries(
        cls,
        entries: dict[str, tuple[str, Value]],
        delimiter: str,
    ) -> FlatMapping:
        instance = cls.__new__(cls)
        instance._entries = entries
        instance._delimiter = delimiter
        instance._children_cache = {}
        return instance

    @staticmethod
    def builder(delimiter: str = keys.DELIMITER) -> FlatMappingBuilder:
        """Create a mutable builder for a new mapping."""
        return FlatMappingBuilder(delimiter)

    @classmethod
    def empty(cls) -> FlatMapping:
        return cls()

    @property
    def delimiter(self) -> str:
        return self._delimiter

    def __getitem__(self, key: str) -> Value:
        return self._entries[keys.normalize(key)][1]

    def __iter__(self) -> _typing.Iterator[str]:
        return (original for original, _ in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and keys.normalize(key) in self._entries

    def __repr__(self) -> str:
        return f"FlatMapping({dict(self.items())!r})"

    def __eq__(self, other: object) -> bool:
        """Compare equal to any Mapping with the same (case-folded) content."""
        if isinstance(other, _abc.Mapping):
            try:
                other_entries = {keys.normalize(k): v for k, v in other.items()}
            except AttributeError:
                return False
            return {k: v for k, (_, v) in self._entries.items()} == other_entries
        return NotImplemented

    def __hash__(self) -> int:
        raise TypeError(f"unhashable type: '{type(self).__name__}'")

    def has_descendants(self, prefix: str) -> bool:
        """True if any key lies strictly below ``prefix``."""
        return bool(self.children(prefix))

    def children(self, prefix: str = "") -> list[str]:
        """
        List the distinct segments directly below ``prefix``.

        Integer segments come first in numeric order, then names in
        case-insensitive order. Each segment keeps the case of the first
        key that introduced it.
        """
        cache_key = keys.normalize(prefix)
        cached = self._children_cache.get(cache_key)
        if cached is not None:
            return list(cached)

        seen: dict[str, str] = {}
        for original, _ in self._entries.values():
            segment = keys.child_segment(original, prefix, self._delimiter)
            if segment is not None:
                seen.setdefault(keys.normalize(segment), segment)
        result = sorted(seen.values(), key=_segment_sort_key)
        # Empty results are not cached, so absent paths leave no entry.
        if result:
            self._children_cache[cache_key] = result
        return list(result)

    def subtree(self, prefix: str) -> dict[str, Value]:
        """Return every entry at or below ``prefix`` as a plain dict."""
        return {
            original: value
            for original, value in self._entries.values()
            if keys.is_under(original, prefix, self._delimiter)
        }
