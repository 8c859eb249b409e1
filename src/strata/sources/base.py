"""
Source adapter contract.

A Source produces a FlatMapping snapshot of its backing store. The base
class owns the behaviour shared by every adapter:

- key rewriting (fixed adapter rule, then an optional caller transform)
- structured processing (JSON values flattened under the entry's key)
- per-entry failure policy (skip when optional, abort when required)
- whole-source failure policy (empty contribution plus callback when
  optional, propagate when required)
- per-load timeout

Adapters implement ``_collect(builder)`` and call ``_add_entry()`` for each
raw entry they fetch.
"""

from __future__ import annotations

import abc as _abc
import concurrent.futures as _futures
import datetime as _datetime
import logging as _logging
import typing as _typing

import pydantic as _pydantic

import strata.errors as errors
import strata.flatten as flatten
import strata.keys as keys
import strata.mapping as mapping

_logger = _logging.getLogger(__name__)

KeyTransform = _typing.Callable[[str, str], str]
"""Custom key rewrite: ``(rewritten_key, original_name) -> key``."""

LoadErrorCallback = _typing.Callable[[errors.SourceLoadError], None]


class SourceOptions(_pydantic.BaseModel):
    """
    Options shared by all sources.

    Attributes:
        name: Identity used in logs and errors. Adapters supply a default.
        optional: Tolerate failures (skip entries, contribute nothing).
        reload_interval: Poll period for background reloads. None = never.
        timeout: Seconds a single load may take. None = unbounded.
        key_transform: Custom rewrite applied after the adapter's own rule.
        on_load_error: Called with the SourceLoadError when an optional
            source fails as a whole.
        structured: Flatten JSON-shaped values under their key.
        structured_keys: Restrict structured processing to keys starting
            with one of these names. Empty = every key.
    """

    model_config = _pydantic.ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    name: str | None = None
    optional: bool = False
    reload_interval: _datetime.timedelta | None = None
    timeout: float | None = _pydantic.Field(default=None, gt=0)
    key_transform: KeyTransform | None = None
    on_load_error: LoadErrorCallback | None = None
    structured: bool = False
    structured_keys: list[str] = _pydantic.Field(default_factory=list)

    @_pydantic.field_validator("reload_interval", mode="before")
    @classmethod
    def _seconds_to_interval(cls, value: _typing.Any) -> _typing.Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return _datetime.timedelta(seconds=value)
        return value

    @_pydantic.field_validator("reload_interval")
    @classmethod
    def _positive_interval(
        cls, value: _datetime.timedelta | None
    ) -> _datetime.timedelta | None:
        if value is not None and value.total_seconds() <= 0:
            raise ValueError("reload_interval must be positive")
        return value


class Source(_abc.ABC):
    """Base class for configuration sources."""

    def __init__(self, options: SourceOptions | None = None, **kwargs: _typing.Any) -> None:
        """
        Args:
            options: Prebuilt options. Mutually exclusive with kwargs.
            **kwargs: Fields of SourceOptions.
        """
        if options is not None and kwargs:
            raise TypeError("Pass either options or keyword options, not both")
        self.options = options if options is not None else SourceOptions(**kwargs)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"

    @property
    def name(self) -> str:
        return self.options.name or self.describe()

    @property
    def optional(self) -> bool:
        return self.options.optional

    @property
    def reload_interval(self) -> _datetime.timedelta | None:
        return self.options.reload_interval

    @property
    def timeout(self) -> float | None:
        return self.options.timeout

    def describe(self) -> str:
        """Default identity when options.name is unset."""
        return type(self).__name__

    def apply_defaults(
        self,
        *,
        timeout: float | None = None,
        reload_interval: _datetime.timedelta | None = None,
    ) -> None:
        """Fill unset timeout/reload interval from engine-wide settings."""
        updates: dict[str, _typing.Any] = {}
        if self.options.timeout is None and timeout is not None:
            updates["timeout"] = timeout
        if (
            self.options.reload_interval is None
            and reload_interval is not None
            and self.supports_reload
        ):
            updates["reload_interval"] = reload_interval
        if updates:
            self.options = self.options.model_copy(update=updates)

    @property
    def supports_reload(self) -> bool:
        """Whether engine-wide reload defaults apply to this source."""
        return False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @_abc.abstractmethod
    def _collect(self, builder: mapping.FlatMappingBuilder) -> None:
        """Fetch raw entries and add them with ``_add_entry``."""

    def load_snapshot(self) -> mapping.FlatMapping:
        """
        Produce a fresh snapshot, honoring the timeout.

        Returns:
            The source's flat mapping.

        Raises:
            SourceLoadError: If the load failed or timed out. Raised for
                optional sources too; see ``load()`` for the tolerant form.
        """
        try:
            if self.timeout is None:
                return self._collect_snapshot()
            return self._collect_with_timeout(self.timeout)
        except errors.SourceLoadError:
            raise
        except Exception as e:
            raise errors.SourceLoadError(self.name, e) from e

    def load(self) -> mapping.FlatMapping | None:
        """
        Load with the whole-source failure policy applied.

        Returns:
            The snapshot, or None if an optional source failed (the error
            has been logged and passed to ``on_load_error``).

        Raises:
            SourceLoadError: If a required source failed.
        """
        try:
            return self.load_snapshot()
        except errors.SourceLoadError as e:
            if not self.optional:
                raise
            _logger.warning("Optional source %s failed to load: %s", self.name, e)
            self._notify_load_error(e)
            return None

    def _notify_load_error(self, error: errors.SourceLoadError) -> None:
        callback = self.options.on_load_error
        if callback is None:
            return
        try:
            callback(error)
        except Exception:
            _logger.exception("on_load_error callback for %s raised", self.name)

    def _collect_snapshot(self) -> mapping.FlatMapping:
        builder = mapping.FlatMapping.builder()
        self._collect(builder)
        return builder.freeze()

    def _collect_with_timeout(self, timeout: float) -> mapping.FlatMapping:
        executor = _futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"strata-load-{self.name}"
        )
        try:
            future = executor.submit(self._collect_snapshot)
            try:
                return future.result(timeout=timeout)
            except _futures.TimeoutError as e:
                raise errors.SourceLoadError(
                    self.name, TimeoutError(f"load did not finish within {timeout}s")
                ) from e
        finally:
            # Don't wait for a timed-out worker; its result is dropped.
            executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def rewrite_name(self, raw_name: str) -> str:
        """Adapter-specific fixed rewrite of a raw entry name. Identity by default."""
        return raw_name

    def transform_key(self, raw_name: str) -> str:
        """
        Turn a raw entry name into a Key Path.

        Raises:
            KeyTransformError: If the rewrite fails or yields an invalid key.
        """
        key: _typing.Any = self.rewrite_name(raw_name)
        transform = self.options.key_transform
        if transform is not None:
            try:
                key = transform(key, raw_name)
            except Exception as e:
                raise errors.KeyTransformError(self.name, raw_name, None) from e
        if not keys.is_valid(key):
            raise errors.KeyTransformError(self.name, raw_name, key)
        return _typing.cast(str, key)

    def should_structure(self, key: str) -> bool:
        """Whether structured processing applies to ``key``."""
        if not self.options.structured:
            return False
        if not self.options.structured_keys:
            return True
        normalized = keys.normalize(key)
        return any(
            normalized.startswith(keys.normalize(self.rewrite_name(name.rstrip("*"))))
            for name in self.options.structured_keys
        )

    def _add_entry(
        self,
        builder: mapping.FlatMappingBuilder,
        raw_name: str,
        value: str | None,
    ) -> None:
        """
        Add one raw entry: transform its name, then store or flatten its value.

        Key failures follow the per-entry policy.
        """
        try:
            key = self.transform_key(raw_name)
        except errors.KeyTransformError as e:
            self._entry_failed(e)
            return
        self._add_value(builder, key, value)

    def _add_value(
        self,
        builder: mapping.FlatMappingBuilder,
        key: str,
        value: str | None,
    ) -> None:
        if value is not None and self.should_structure(key) and flatten.looks_like_json(value):
            flatten.flatten_json_into(builder, value, key)
        else:
            builder[key] = value

    def _entry_failed(self, error: errors.EntryLoadError) -> None:
        """
        Apply the per-entry failure policy.

        Raises:
            EntryLoadError: If the source is required.
        """
        if not self.optional:
            raise error
        _logger.warning("Skipping entry in optional source %s: %s", self.name, error)

    def close(self) -> None:
        """Release resources held by the source. No-op by default."""
