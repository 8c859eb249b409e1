"""
Shared pytest fixtures for strata tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import threading as _threading
import typing as _typing

import pytest as _pytest

import strata.mapping as mapping
import strata.sources.base as sources_base
import strata.sources.parameters as parameters
import strata.sources.secrets as secrets

# =============================================================================
# Fake remote clients
# =============================================================================


class FakeSecretClient:
    """In-memory secret store with paginated listing."""

    def __init__(
        self,
        secrets_by_name: dict[str, str | bytes] | None = None,
        *,
        page_size: int = 2,
        disabled: _typing.Iterable[str] = (),
    ) -> None:
        self.secrets = dict(secrets_by_name or {})
        self.page_size = page_size
        self.disabled = set(disabled)
        self.get_calls: list[tuple[str, str]] = []
        self.list_calls: list[tuple[str, str | None]] = []
        self.closed = False

    def get_secret(self, name: str, version_stage: str) -> secrets.SecretValue:
        self.get_calls.append((name, version_stage))
        if name not in self.secrets:
            raise secrets.SecretNotFoundError(name)
        value = self.secrets[name]
        if isinstance(value, bytes):
            return secrets.SecretValue(name=name, binary=value)
        return secrets.SecretValue(name=name, string=value)

    def list_secrets(self, prefix: str, next_token: str | None) -> secrets.SecretPage:
        self.list_calls.append((prefix, next_token))
        # The store's own filter is coarse; the source re-filters by prefix.
        names = sorted(self.secrets)
        start = int(next_token or 0)
        chunk = names[start : start + self.page_size]
        token = str(start + self.page_size) if start + self.page_size < len(names) else None
        return secrets.SecretPage(
            secrets=[secrets.SecretSummary(n, enabled=n not in self.disabled) for n in chunk],
            next_token=token,
        )

    def close(self) -> None:
        self.closed = True


class FakeParameterClient:
    """In-memory parameter store with paginated path queries."""

    def __init__(self, params: list[parameters.Parameter], *, page_size: int = 2) -> None:
        self.params = params
        self.page_size = page_size
        self.calls: list[tuple[str, str | None]] = []

    def get_parameters_by_path(self, path: str, next_token: str | None) -> parameters.ParameterPage:
        self.calls.append((path, next_token))
        matching = [p for p in self.params if p.name.lower().startswith(path.lower())]
        start = int(next_token or 0)
        chunk = matching[start : start + self.page_size]
        token = str(start + self.page_size) if start + self.page_size < len(matching) else None
        return parameters.ParameterPage(parameters=chunk, next_token=token)


class ScriptedSource(sources_base.Source):
    """
    Source returning scripted results, one per load.

    Each script item is a dict (the snapshot) or an exception to raise.
    The last item repeats once the script is exhausted.
    """

    def __init__(
        self,
        script: list[dict[str, str | None] | BaseException],
        **options: _typing.Any,
    ) -> None:
        options.setdefault("name", "Scripted")
        super().__init__(**options)
        self._script = list(script)
        self.loads = 0
        self.gate: _threading.Event | None = None
        self.started = _threading.Event()

    def _collect(self, builder: mapping.FlatMappingBuilder) -> None:
        self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        index = min(self.loads, len(self._script) - 1)
        self.loads += 1
        item = self._script[index]
        if isinstance(item, BaseException):
            raise item
        for key, value in item.items():
            self._add_entry(builder, key, value)


# =============================================================================
# Fixtures
# =============================================================================


@_pytest.fixture
def secret_client() -> FakeSecretClient:
    """Secret store with a plain, a JSON, and a binary secret."""
    return FakeSecretClient(
        {
            "app-db-password": "hunter2",
            "app-settings": '{"Color": "blue", "Sizes": [1, 2], "Beta": true, "Legacy": null}',
            "app-cert": b"\x00\x01\x02",
            "other-token": "abc",
        }
    )


@_pytest.fixture
def parameter_client() -> FakeParameterClient:
    """Parameter store rooted at /myapp/prod."""
    return FakeParameterClient(
        [
            parameters.Parameter("/myapp/prod/db/host", "db.internal"),
            parameters.Parameter("/myapp/prod/db/port", "5432"),
            parameters.Parameter("/myapp/prod/hosts", "a.example, b.example,,c.example", parameters.STRING_LIST),
            parameters.Parameter("/myapp/prod/features", '{"search": true}', parameters.SECURE_STRING),
            parameters.Parameter("/myapp/prod/odd", "raw", "Mystery"),
        ]
    )
