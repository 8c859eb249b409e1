"""Tests for SecretStoreSource."""

import base64 as _base64

import pytest as _pytest

import strata.errors as errors
import strata.sources.secrets as secrets

import tests.conftest as conftest


class TestExplicitNames:
    """Tests for loading named secrets."""

    def test_dash_becomes_delimiter(self, secret_client: conftest.FakeSecretClient) -> None:
        """'app-db-password' is read as 'app:db:password'."""
        source = secrets.SecretStoreSource(["app-db-password"], secret_client)
        assert source.load() == {"app:db:password": "hunter2"}

    def test_double_dash_naming(self) -> None:
        """With double-dash naming single dashes are kept."""
        client = conftest.FakeSecretClient({"my-app--db--password": "pw"})
        source = secrets.SecretStoreSource(["my-app--db--password"], client, naming="double-dash")
        assert source.load() == {"my-app:db:password": "pw"}

    def test_version_stage_passed_to_client(self, secret_client: conftest.FakeSecretClient) -> None:
        """The configured version label is requested."""
        source = secrets.SecretStoreSource(["other-token"], secret_client, version_stage="previous")
        source.load()
        assert secret_client.get_calls == [("other-token", "previous")]

    def test_binary_secret_is_base64(self, secret_client: conftest.FakeSecretClient) -> None:
        """Binary payloads are stored base64-encoded."""
        source = secrets.SecretStoreSource(["app-cert"], secret_client)
        expected = _base64.b64encode(b"\x00\x01\x02").decode("ascii")
        assert source.load() == {"app:cert": expected}

    def test_missing_secret_fails_required_source(self, secret_client: conftest.FakeSecretClient) -> None:
        """A required source aborts on an unknown secret."""
        source = secrets.SecretStoreSource(["nope"], secret_client)
        with _pytest.raises(errors.SourceLoadError) as exc_info:
            source.load()
        assert isinstance(exc_info.value.cause, errors.EntryLoadError)

    def test_missing_secret_skipped_in_optional_source(self, secret_client: conftest.FakeSecretClient) -> None:
        """An optional source skips the unknown secret and keeps the rest."""
        source = secrets.SecretStoreSource(["nope", "other-token"], secret_client, optional=True)
        assert source.load() == {"other:token": "abc"}


class TestEnumeration:
    """Tests for prefix and whole-store listing."""

    def test_prefix_lists_across_pages(self, secret_client: conftest.FakeSecretClient) -> None:
        """A trailing '*' loads every matching secret, following pagination."""
        source = secrets.SecretStoreSource(["app-*"], secret_client)
        snapshot = source.load()
        assert snapshot is not None
        assert set(snapshot) == {
            "app:cert",
            "app:db:password",
            "app:settings",
        }
        assert len(secret_client.list_calls) == 2

    def test_none_loads_every_enabled_secret(self) -> None:
        """Disabled secrets are not loaded."""
        client = conftest.FakeSecretClient({"a": "1", "b": "2", "c": "3"}, disabled={"b"})
        source = secrets.SecretStoreSource(None, client)
        assert source.load() == {"a": "1", "c": "3"}

    def test_prefix_matching_ignores_case(self) -> None:
        """'APP-*' matches 'app-x'."""
        client = conftest.FakeSecretClient({"app-x": "1", "zzz": "2"})
        source = secrets.SecretStoreSource(["APP-*"], client)
        assert source.load() == {"app:x": "1"}


class TestStructuredSecrets:
    """Tests for JSON secrets with structured processing."""

    def test_json_secret_is_flattened(self, secret_client: conftest.FakeSecretClient) -> None:
        """A JSON secret expands under the secret's key."""
        source = secrets.SecretStoreSource(["app-settings"], secret_client, structured=True)
        assert source.load() == {
            "app:settings:Color": "blue",
            "app:settings:Sizes:0": "1",
            "app:settings:Sizes:1": "2",
            "app:settings:Beta": "true",
            "app:settings:Legacy": None,
        }

    def test_structured_keys_use_secret_names(self, secret_client: conftest.FakeSecretClient) -> None:
        """Structured key filters are written as secret names."""
        source = secrets.SecretStoreSource(
            ["app-settings", "app-db-password"],
            secret_client,
            structured=True,
            structured_keys=["app-settings"],
        )
        snapshot = source.load()
        assert snapshot is not None
        assert snapshot["app:settings:color"] == "blue"
        assert snapshot["app:db:password"] == "hunter2"

    def test_deeply_nested_secret_is_kept_verbatim(self) -> None:
        """A pathological JSON secret loads as plain text instead of failing the source."""
        text = '{"a": ' * 50000 + "1" + "}" * 50000
        client = conftest.FakeSecretClient({"app-blob": text})
        source = secrets.SecretStoreSource(["app-blob"], client, structured=True)
        assert source.load() == {"app:blob": text}


class TestClientLifecycle:
    """Tests for client ownership."""

    def test_injected_client_not_closed(self, secret_client: conftest.FakeSecretClient) -> None:
        """The caller owns an injected client."""
        source = secrets.SecretStoreSource(["other-token"], secret_client)
        source.close()
        assert not secret_client.closed

    def test_missing_client_fails_load(self) -> None:
        """Without a client the load fails as a whole."""
        with _pytest.raises(errors.SourceLoadError, match="requires a client"):
            secrets.SecretStoreSource(["x"]).load()
