"""
Merge engine and configuration root.

The root owns the ordered sources, each source's last good snapshot, and
the merged FlatMapping readers see. The merged mapping is replaced by
reference on every (re)build and never mutated in place, so a reader holds
either the complete previous mapping or the complete new one.

Precedence: later sources override earlier ones per key. A source never
removes keys it does not define.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import threading as _threading
import types as _types
import typing as _typing

import strata.errors as errors
import strata.mapping as mapping
import strata.reload as reload
import strata.sources.base as sources_base

_logger = _logging.getLogger(__name__)

ReloadErrorHook = _typing.Callable[[errors.SourceLoadError], None]


def merge(snapshots: _abc.Iterable[_abc.Mapping[str, str | None]]) -> mapping.FlatMapping:
    """
    Merge snapshots in registration order; the last writer of a key wins.

    Example:
        >>> dict(merge([{"x:y": "1"}, {"X:Y": "2", "x:z": "3"}]))
        {'X:Y': '2', 'x:z': '3'}
    """
    builder = mapping.FlatMapping.builder()
    for snapshot in snapshots:
        builder.merge(snapshot)
    return builder.freeze()


class ConfigurationRoot:
    """
    Ordered sources plus the currently published merged mapping.

    Create with ``ConfigurationRoot.load()`` (or via ConfigurationBuilder),
    which performs the initial synchronous build.
    """

    def __init__(
        self,
        sources: _abc.Sequence[sources_base.Source],
        *,
        on_reload_error: ReloadErrorHook | None = None,
    ) -> None:
        self._sources = list(sources)
        self._snapshots: list[mapping.FlatMapping] = [
            mapping.FlatMapping.empty() for _ in self._sources
        ]
        self._mapping = mapping.FlatMapping.empty()
        self._version = 0
        self._closed = False
        self._publish_lock = _threading.Lock()
        self._on_reload_error = on_reload_error
        self._scheduler = reload.ReloadScheduler(self.reload_source)

    @classmethod
    def load(
        cls,
        sources: _abc.Sequence[sources_base.Source],
        *,
        on_reload_error: ReloadErrorHook | None = None,
    ) -> ConfigurationRoot:
        """
        Load every source once and publish the merged mapping.

        All sources are attempted so the error names every failing one.

        Raises:
            BuildError: If any required source failed. No root is returned
                and every source is closed.
        """
        root = cls(sources, on_reload_error=on_reload_error)
        failures: list[errors.SourceLoadError] = []
        for index, source in enumerate(root._sources):
            try:
                snapshot = source.load()
            except errors.SourceLoadError as e:
                _logger.error("Required source %s failed: %s", source.name, e)
                failures.append(e)
                continue
            if snapshot is not None:
                root._snapshots[index] = snapshot

        if failures:
            for source in root._sources:
                source.close()
            raise errors.BuildError(failures)

        with root._publish_lock:
            root._publish(merge(root._snapshots))
        _logger.debug(
            "Built configuration from %d source(s), %d key(s)",
            len(root._sources),
            len(root._mapping),
        )
        return root

    @property
    def mapping(self) -> mapping.FlatMapping:
        """The current merged mapping. Re-read for each lookup to see reloads."""
        return self._mapping

    @property
    def sources(self) -> list[sources_base.Source]:
        return list(self._sources)

    @property
    def version(self) -> int:
        """Incremented every time a new mapping is published."""
        return self._version

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot_of(self, source: sources_base.Source) -> mapping.FlatMapping:
        """The cached snapshot currently contributed by ``source``."""
        return self._snapshots[self._index_of(source)]

    def start(self) -> int:
        """
        Start background reloading for sources with a reload interval.

        Returns:
            Number of sources scheduled.
        """
        return sum(1 for source in self._sources if self._scheduler.schedule(source))

    def _index_of(self, source: sources_base.Source) -> int:
        for index, candidate in enumerate(self._sources):
            if candidate is source:
                return index
        raise ValueError(f"{source!r} is not registered with this configuration")

    def _publish(self, merged: mapping.FlatMapping) -> None:
        # Caller holds _publish_lock. Single reference assignment; readers
        # never see a half-built mapping.
        self._mapping = merged
        self._version += 1

    def reload_source(self, source: sources_base.Source) -> bool:
        """
        Re-fetch one source and republish the merged mapping.

        Other sources contribute their cached snapshots; they are not
        re-fetched. On failure the previous mapping stays in effect: a
        required source's error is logged and passed to the reload hook,
        an optional source keeps its last good snapshot.

        Returns:
            True if a new mapping was published.
        """
        index = self._index_of(source)
        if self._closed:
            return False
        try:
            snapshot = source.load()
        except errors.SourceLoadError as e:
            _logger.error("Reload of required source %s failed: %s", source.name, e)
            self._report_reload_error(e)
            return False
        if snapshot is None:
            return False

        with self._publish_lock:
            if self._closed:
                _logger.debug("Discarding reload of %s after close", source.name)
                return False
            snapshots = list(self._snapshots)
            snapshots[index] = snapshot
            merged = merge(snapshots)
            self._snapshots = snapshots
            self._publish(merged)
        _logger.debug("Reloaded %s (version %d)", source.name, self._version)
        return True

    def reload(self) -> int:
        """
        Reload every source now, in registration order.

        Returns:
            Number of sources whose reload published a new mapping.
        """
        return sum(1 for source in list(self._sources) if self.reload_source(source))

    def _report_reload_error(self, error: errors.SourceLoadError) -> None:
        if self._on_reload_error is None:
            return
        try:
            self._on_reload_error(error)
        except Exception:
            _logger.exception("on_reload_error hook raised")

    def close(self) -> None:
        """Stop background reloads and release sources. Idempotent."""
        with self._publish_lock:
            if self._closed:
                return
            self._closed = True
        self._scheduler.stop()
        for source in self._sources:
            source.close()

    def __enter__(self) -> ConfigurationRoot:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: _types.TracebackType | None,
    ) -> None:
        self.close()
