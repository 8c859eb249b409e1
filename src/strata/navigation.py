"""
Navigation façade over the merged key space.

Every navigation step returns either a ConfigNode (found) or a MissingNode
(not found). Both support the same operations, and MissingNode only ever
yields more MissingNodes or MISSING, so chains through absent sections
never raise:

    >>> config.database.hosts[0].port.to(int)     # 0 if any step is missing
    >>> config["database:hosts:0:port"]           # leaf text, None, or MISSING

Only the terminal ``to()`` conversion can raise (FormatError).

Nodes hold the root, not the mapping: each read fetches the current
mapping, so a node never goes stale after a reload.
"""

from __future__ import annotations

import typing as _typing

import strata.conversion as conversion
import strata.keys as keys
import strata.mapping as mapping
import strata.root as root_module


def _get_missing_singleton() -> _MissingType:
    """Return the MISSING singleton. Called by pickle to reconstruct."""
    return MISSING


class _MissingType:
    """Sentinel for a key that is not present at all (distinct from None and "")."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<MISSING>"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> tuple[_typing.Callable[[], _MissingType], tuple[()]]:
        return (_get_missing_singleton, ())


MISSING = _MissingType()

Leaf = _typing.Union[str, None, _MissingType]


class MappingProvider(_typing.Protocol):
    """Anything exposing the current merged mapping."""

    @property
    def mapping(self) -> mapping.FlatMapping: ...


class _StaticProvider:
    __slots__ = ("mapping",)

    def __init__(self, flat: mapping.FlatMapping) -> None:
        self.mapping = flat


class ConfigNode:
    """
    A found position in the key space.

    Attributes are looked up as child sections (case-insensitive), so
    ``node.Database`` and ``node.database`` are the same section. Names
    that collide with methods (``value``, ``to``...) are reachable with
    ``section()``. Names starting with an underscore are never treated as
    sections.
    """

    __slots__ = ("_provider", "_path")

    def __init__(self, provider: MappingProvider, path: str = "") -> None:
        self._provider = provider
        self._path = path

    @classmethod
    def from_mapping(cls, data: _typing.Mapping[str, str | None]) -> ConfigNode:
        """Root node over a fixed mapping (no sources, no reloads)."""
        flat = data if isinstance(data, mapping.FlatMapping) else mapping.FlatMapping(data)
        return cls(_StaticProvider(flat))

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def found(self) -> bool:
        return True

    @property
    def path(self) -> str:
        """Full Key Path of this node ("" at the root)."""
        return self._path

    @property
    def key(self) -> str:
        """Last segment of the path ("" at the root)."""
        return self._path.rsplit(keys.DELIMITER, 1)[-1] if self._path else ""

    @property
    def root(self) -> root_module.ConfigurationRoot | None:
        """The ConfigurationRoot behind this node, if any."""
        provider = self._provider
        return provider if isinstance(provider, root_module.ConfigurationRoot) else None

    @property
    def mapping(self) -> mapping.FlatMapping:
        """The merged mapping as of this call."""
        return self._provider.mapping

    @property
    def value(self) -> str | None:
        """Leaf text at this node, or None."""
        if not self._path:
            return None
        return self._provider.mapping.get(self._path)

    @property
    def exists(self) -> bool:
        """True if the node has a leaf entry or anything below it."""
        flat = self._provider.mapping
        if not self._path:
            return len(flat) > 0
        return self._path in flat or flat.has_descendants(self._path)

    def __repr__(self) -> str:
        return f"ConfigNode({self._path!r})"

    def __str__(self) -> str:
        return self.value or ""

    def __bool__(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _child(self, name: str) -> ConfigNode | MissingNode:
        if keys.is_blank(name):
            return MissingNode(keys.combine(self._path, name))
        wanted = keys.normalize(name)
        for segment in self._provider.mapping.children(self._path):
            if keys.normalize(segment) == wanted:
                return ConfigNode(self._provider, keys.combine(self._path, segment))
        return MissingNode(keys.combine(self._path, name))

    def section(self, path: str) -> ConfigNode | MissingNode:
        """
        Navigate to a child section; ``path`` may span several segments.

        Returns MissingNode for blank paths or absent sections.
        """
        if keys.is_blank(path):
            return MissingNode(self._path)
        node: ConfigNode | MissingNode = self
        for segment in keys.split(path):
            if not isinstance(node, ConfigNode):
                return MissingNode(keys.combine(self._path, path))
            node = node._child(segment)
        return node

    def __getattr__(self, name: str) -> ConfigNode | MissingNode:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._child(name)

    @_typing.overload
    def __getitem__(self, key: int) -> ConfigNode | MissingNode: ...

    @_typing.overload
    def __getitem__(self, key: str) -> Leaf: ...

    def __getitem__(self, key: int | str) -> ConfigNode | MissingNode | Leaf:
        """
        ``node[i]`` returns the child keyed ``str(i)``; ``node["a:b"]``
        returns the leaf text below this node, None if present without a
        value, or MISSING.
        """
        if isinstance(key, int) and not isinstance(key, bool):
            return self._child(str(key))
        if not isinstance(key, str) or keys.is_blank(key):
            return MISSING
        full = keys.combine(self._path, key)
        flat = self._provider.mapping
        if full in flat:
            return flat[full]
        return MISSING

    def get(self, path: str, default: _typing.Any = None) -> _typing.Any:
        """Leaf text at ``path`` below this node, or ``default`` when missing or None."""
        found = self[path]
        if found is MISSING or found is None:
            return default
        return found

    def children(self) -> list[ConfigNode]:
        """Direct child sections, integer keys first in numeric order."""
        return [
            ConfigNode(self._provider, keys.combine(self._path, segment))
            for segment in self._provider.mapping.children(self._path)
        ]

    def __iter__(self) -> _typing.Iterator[ConfigNode]:
        return iter(self.children())

    def __len__(self) -> int:
        return len(self._provider.mapping.children(self._path))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.section(name).found

    def as_dict(self) -> dict[str, str | None]:
        """Flat copy of every entry at or below this node."""
        return self._provider.mapping.subtree(self._path)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to(
        self,
        shape: _typing.Any,
        *,
        required: bool = False,
        dictionary_rule: conversion.DictionaryRule = conversion.DictionaryRule.CHILD,
    ) -> _typing.Any:
        """
        Convert this node to ``shape``.

        Raises:
            FormatError: If leaf text doesn't parse, or ``required`` and
                the node has no value.
        """
        return conversion.convert(
            self._provider.mapping,
            self._path,
            shape,
            required=required,
            dictionary_rule=dictionary_rule,
        )

    convert = to

    def __int__(self) -> int:
        return _typing.cast(int, self.to(int))

    def __float__(self) -> float:
        return _typing.cast(float, self.to(float))


class MissingNode:
    """
    Not-found result of a navigation step.

    Every navigation from here yields another MissingNode (or MISSING for
    leaf lookups). Conversion yields the shape's default, or raises
    FormatError when ``required=True``.
    """

    __slots__ = ("_path",)

    def __init__(self, path: str = "") -> None:
        self._path = path

    @property
    def found(self) -> bool:
        return False

    @property
    def path(self) -> str:
        """The path that was looked up."""
        return self._path

    @property
    def key(self) -> str:
        return self._path.rsplit(keys.DELIMITER, 1)[-1] if self._path else ""

    @property
    def value(self) -> None:
        return None

    @property
    def exists(self) -> bool:
        return False

    @property
    def root(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"MissingNode({self._path!r})"

    def __str__(self) -> str:
        return ""

    def __bool__(self) -> bool:
        return False

    def section(self, path: str) -> MissingNode:
        return MissingNode(keys.combine(self._path, path) if not keys.is_blank(path) else self._path)

    def __getattr__(self, name: str) -> MissingNode:
        if name.startswith("_"):
            raise AttributeError(name)
        return MissingNode(keys.combine(self._path, name))

    @_typing.overload
    def __getitem__(self, key: int) -> MissingNode: ...

    @_typing.overload
    def __getitem__(self, key: str) -> _MissingType: ...

    def __getitem__(self, key: int | str) -> MissingNode | _MissingType:
        if isinstance(key, int) and not isinstance(key, bool):
            return MissingNode(keys.combine(self._path, key))
        return MISSING

    def get(self, path: str, default: _typing.Any = None) -> _typing.Any:
        return default

    def children(self) -> list[ConfigNode]:
        return []

    def __iter__(self) -> _typing.Iterator[ConfigNode]:
        return iter(())

    def __len__(self) -> int:
        return 0

    def __contains__(self, name: object) -> bool:
        return False

    def as_dict(self) -> dict[str, str | None]:
        return {}

    def to(
        self,
        shape: _typing.Any,
        *,
        required: bool = False,
        dictionary_rule: conversion.DictionaryRule = conversion.DictionaryRule.CHILD,
    ) -> _typing.Any:
        """Default for ``shape``; FormatError if ``required``."""
        return conversion.convert(
            mapping.FlatMapping.empty(),
            self._path,
            shape,
            required=required,
            dictionary_rule=dictionary_rule,
        )

    convert = to

    def __int__(self) -> int:
        return _typing.cast(int, self.to(int))

    def __float__(self) -> float:
        return _typing.cast(float, self.to(float))
