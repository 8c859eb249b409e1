"""Tests for merging, building and reloading a ConfigurationRoot."""

import threading as _threading

import pytest as _pytest

import strata.builder as builder
import strata.errors as errors
import strata.root as root
import strata.settings as settings
import strata.sources as sources

import tests.conftest as conftest


class TestMerge:
    """Tests for precedence rules."""

    def test_later_source_wins_per_key(self) -> None:
        """Overlapping keys take the later value; the rest are kept."""
        merged = root.merge([{"a": "1", "b": "1"}, {"b": "2", "c": "2"}])
        assert merged == {"a": "1", "b": "2", "c": "2"}

    def test_override_is_case_insensitive(self) -> None:
        """Keys differing only in case collide."""
        merged = root.merge([{"Db:Host": "a"}, {"DB:HOST": "b"}])
        assert len(merged) == 1
        assert merged["db:host"] == "b"

    def test_none_overrides_value(self) -> None:
        """A later None replaces an earlier value; the key stays present."""
        merged = root.merge([{"a": "1"}, {"a": None}])
        assert "a" in merged
        assert merged["a"] is None


class TestLoad:
    """Tests for the initial build."""

    def test_merges_in_order(self) -> None:
        """Sources are layered in registration order."""
        config = root.ConfigurationRoot.load(
            [sources.MemorySource({"a": "base", "b": "base"}), sources.MemorySource({"b": "top"})]
        )
        assert config.mapping == {"a": "base", "b": "top"}
        assert config.version == 1

    def test_required_failures_are_aggregated(self) -> None:
        """Every failing required source is named in the BuildError."""
        first = conftest.ScriptedSource([RuntimeError("one")], name="First")
        second = conftest.ScriptedSource([RuntimeError("two")], name="Second")
        with _pytest.raises(errors.BuildError) as exc_info:
            root.ConfigurationRoot.load([first, sources.MemorySource({"a": "1"}), second])
        assert [e.source for e in exc_info.value.errors] == ["First", "Second"]
        assert "First" in str(exc_info.value)
        assert "Second" in str(exc_info.value)

    def test_optional_failure_contributes_nothing(self) -> None:
        """The build succeeds without the optional source's keys."""
        failing = conftest.ScriptedSource([RuntimeError("down")], optional=True)
        config = root.ConfigurationRoot.load([sources.MemorySource({"a": "1"}), failing])
        assert config.mapping == {"a": "1"}

    def test_snapshot_of_unknown_source(self) -> None:
        """Asking for a source that isn't registered is an error."""
        config = root.ConfigurationRoot.load([])
        with _pytest.raises(ValueError):
            config.snapshot_of(sources.MemorySource({}))


class TestReload:
    """Tests for single-source reloads."""

    def test_reload_replaces_only_that_source(self) -> None:
        """Other sources keep their cached snapshots."""
        base = conftest.ScriptedSource([{"a": "1", "shared": "base"}], name="Base")
        remote = conftest.ScriptedSource([{"shared": "v1"}, {"shared": "v2", "new": "x"}], name="Remote")
        config = root.ConfigurationRoot.load([base, remote])
        assert config.mapping["shared"] == "v1"

        assert config.reload_source(remote)
        assert config.mapping == {"a": "1", "shared": "v2", "new": "x"}
        assert base.loads == 1
        assert config.version == 2

    def test_reload_removes_keys_dropped_by_source(self) -> None:
        """A key the source no longer defines disappears after reload."""
        remote = conftest.ScriptedSource([{"old": "1"}, {"new": "2"}])
        config = root.ConfigurationRoot.load([remote])
        config.reload_source(remote)
        assert config.mapping == {"new": "2"}

    def test_failed_required_reload_keeps_previous_mapping(self) -> None:
        """The last good mapping stays in effect and the hook hears about it."""
        reported: list[errors.SourceLoadError] = []
        remote = conftest.ScriptedSource([{"k": "good"}, RuntimeError("flaky")], name="Remote")
        config = root.ConfigurationRoot.load([remote], on_reload_error=reported.append)
        before = config.mapping

        assert not config.reload_source(remote)
        assert config.mapping is before
        assert [e.source for e in reported] == ["Remote"]

    def test_failed_optional_reload_keeps_last_snapshot(self) -> None:
        """An optional source keeps contributing its last good data."""
        remote = conftest.ScriptedSource([{"k": "good"}, RuntimeError("flaky")], optional=True)
        config = root.ConfigurationRoot.load([remote])
        assert not config.reload_source(remote)
        assert config.mapping == {"k": "good"}
        assert config.snapshot_of(remote) == {"k": "good"}

    def test_raising_hook_is_contained(self) -> None:
        """A broken reload hook doesn't escape reload_source()."""

        def hook(error: errors.SourceLoadError) -> None:
            raise RuntimeError("hook")

        remote = conftest.ScriptedSource([{"k": "1"}, RuntimeError("flaky")])
        config = root.ConfigurationRoot.load([remote], on_reload_error=hook)
        assert not config.reload_source(remote)

    def test_reload_all(self) -> None:
        """reload() refreshes every source and counts the publications."""
        one = conftest.ScriptedSource([{"a": "1"}, {"a": "2"}], name="One")
        two = conftest.ScriptedSource([{"b": "1"}, {"b": "2"}], name="Two")
        config = root.ConfigurationRoot.load([one, two])
        assert config.reload() == 2
        assert config.mapping == {"a": "2", "b": "2"}

    def test_reader_sees_old_or_new_mapping_never_partial(self) -> None:
        """While a reload is in flight readers keep the complete old mapping."""
        remote = conftest.ScriptedSource(
            [{"a": "1", "b": "1"}, {"a": "2", "b": "2"}], name="Remote"
        )
        config = root.ConfigurationRoot.load([remote])
        remote.gate = _threading.Event()
        remote.started.clear()
        worker = _threading.Thread(target=config.reload_source, args=(remote,))
        worker.start()
        try:
            assert remote.started.wait(5)
            assert config.mapping == {"a": "1", "b": "1"}
        finally:
            remote.gate.set()
            worker.join(5)
        assert config.mapping == {"a": "2", "b": "2"}


class TestClose:
    """Tests for shutdown."""

    def test_close_is_idempotent_and_closes_sources(self) -> None:
        """Sources are closed once; repeated close() is harmless."""
        closed: list[str] = []

        class _Tracking(sources.MemorySource):
            def close(self) -> None:
                closed.append(self.name)

        config = root.ConfigurationRoot.load([_Tracking({"a": "1"}, name="T")])
        config.close()
        config.close()
        assert closed == ["T"]
        assert config.closed

    def test_reload_after_close_is_discarded(self) -> None:
        """A load that finishes after close() doesn't publish."""
        remote = conftest.ScriptedSource([{"k": "1"}, {"k": "2"}])
        config = root.ConfigurationRoot.load([remote])
        remote.gate = _threading.Event()
        remote.started.clear()
        results: list[bool] = []
        worker = _threading.Thread(target=lambda: results.append(config.reload_source(remote)))
        worker.start()
        assert remote.started.wait(5)
        config.close()
        remote.gate.set()
        worker.join(5)
        assert results == [False]
        assert config.mapping == {"k": "1"}

    def test_failed_build_closes_sources(self) -> None:
        """When the build fails every source is released."""
        closed: list[str] = []

        class _Tracking(sources.MemorySource):
            def close(self) -> None:
                closed.append(self.name)

        with _pytest.raises(errors.BuildError):
            root.ConfigurationRoot.load(
                [_Tracking({}, name="Ok"), conftest.ScriptedSource([RuntimeError("x")])]
            )
        assert closed == ["Ok"]

    def test_context_manager_closes(self) -> None:
        """Leaving the with-block closes the root."""
        with root.ConfigurationRoot.load([sources.MemorySource({"a": "1"})]) as config:
            assert not config.closed
        assert config.closed


class TestScenarios:
    """End-to-end scenarios through the builder and façade."""

    def test_two_sources_merge(self) -> None:
        """The later source's value wins and its other keys are added."""
        config = (
            builder.ConfigurationBuilder(settings.Settings(_env_file=None))
            .add_memory({"x:y": "1"})
            .add_memory({"x:y": "2", "x:z": "3"})
            .build()
        )
        assert config.section("x:y").to(int) == 2
        assert config.x.z.to(int) == 3
        config.root.close()

    def test_optional_source_recovers_on_reload(self) -> None:
        """A source that failed at build time takes over once it loads."""
        required = sources.MemorySource({"k": "a"}, name="A")
        optional = conftest.ScriptedSource([RuntimeError("down"), {"k": "b"}], name="B", optional=True)
        config = root.ConfigurationRoot.load([required, optional])
        assert config.mapping["k"] == "a"

        observed: list[str | None] = []
        stop = _threading.Event()

        def read() -> None:
            while not stop.is_set():
                observed.append(config.mapping.get("k", "<absent>"))

        reader = _threading.Thread(target=read)
        reader.start()
        try:
            assert config.reload_source(optional)
        finally:
            stop.set()
            reader.join(5)
        assert config.mapping["k"] == "b"
        assert "<absent>" not in observed
