"""
Secret store source.

Loads named secrets (or every secret under a name prefix) from a secret
store client. Secret names use ``-`` (or ``--``, vault-style) where keys
use ``:``, so ``db-password`` becomes ``db:password``.

The wire protocol belongs to the client. Any object with these methods
works::

    get_secret(name: str, version_stage: str) -> SecretValue
    list_secrets(prefix: str, next_token: str | None) -> SecretPage

``get_secret`` raises SecretNotFoundError for unknown names.
"""

import base64 as _base64
import dataclasses as _dataclasses
import logging as _logging
import typing as _typing

import strata.errors as errors
import strata.keys as keys
import strata.mapping as mapping
import strata.sources.base as base
import strata.sources.remote as remote

_logger = _logging.getLogger(__name__)

DEFAULT_VERSION_STAGE = "current"

Naming = _typing.Literal["dash", "double-dash"]


class SecretNotFoundError(LookupError):
    """Raised by clients when a secret does not exist."""

    pass


@_dataclasses.dataclass(frozen=True)
class SecretValue:
    """A fetched secret. Exactly one of string/binary is normally set."""

    name: str
    string: str | None = None
    binary: bytes | None = None


@_dataclasses.dataclass(frozen=True)
class SecretSummary:
    """A secret listed during enumeration."""

    name: str
    enabled: bool = True


@_dataclasses.dataclass(frozen=True)
class SecretPage:
    """One page of a secret listing."""

    secrets: list[SecretSummary]
    next_token: str | None = None


class SecretStoreClient(_typing.Protocol):
    def get_secret(self, name: str, version_stage: str) -> SecretValue: ...

    def list_secrets(self, prefix: str, next_token: str | None) -> SecretPage: ...


class SecretStoreSource(remote.RemoteSource):
    """
    Source loading secrets from a secret store.

    Args:
        secret_names: Names to load. A trailing ``*`` loads every secret
            whose name starts with the rest (case-insensitive). None loads
            every enabled secret in the store.
        client: Secret store client (see module docstring).
        version_stage: Version label to fetch.
        naming: ``"dash"`` rewrites ``-`` to ``:``; ``"double-dash"``
            rewrites ``--`` to ``:`` and leaves single dashes alone.
    """

    def __init__(
        self,
        secret_names: _typing.Sequence[str] | None = None,
        client: SecretStoreClient | None = None,
        *,
        version_stage: str = DEFAULT_VERSION_STAGE,
        naming: Naming = "dash",
        options: base.SourceOptions | None = None,
        **kwargs: _typing.Any,
    ) -> None:
        super().__init__(client, options, **kwargs)
        self.secret_names = list(secret_names) if secret_names is not None else None
        self.version_stage = version_stage
        self.naming = naming

    def describe(self) -> str:
        if self.secret_names is None:
            return "SecretStore[*]"
        return f"SecretStore[{','.join(self.secret_names)}]"

    def rewrite_name(self, raw_name: str) -> str:
        if self.naming == "double-dash":
            return raw_name.replace("--", keys.DELIMITER)
        return raw_name.replace("-", keys.DELIMITER)

    def _collect(self, builder: mapping.FlatMappingBuilder) -> None:
        if self.secret_names is None:
            names = self._list_names("")
        else:
            names = []
            for name in self.secret_names:
                if name.endswith("*"):
                    names.extend(self._list_names(name.rstrip("*")))
                else:
                    names.append(name)
        for name in names:
            self._load_secret(builder, name)

    def _list_names(self, prefix: str) -> list[str]:
        folded = keys.normalize(prefix)
        names: list[str] = []
        token: str | None = None
        while True:
            page = self.client.list_secrets(prefix, token)
            names.extend(
                s.name
                for s in page.secrets
                if s.enabled and keys.normalize(s.name).startswith(folded)
            )
            token = page.next_token
            if not token:
                return names

    def _load_secret(self, builder: mapping.FlatMappingBuilder, name: str) -> None:
        try:
            secret = self.client.get_secret(name, self.version_stage)
        except SecretNotFoundError:
            self._entry_failed(errors.EntryLoadError(self.name, name, "secret not found"))
            return
        except Exception as e:
            failure = errors.EntryLoadError(self.name, name, str(e))
            failure.__cause__ = e
            self._entry_failed(failure)
            return

        if secret.string:
            self._add_entry(builder, secret.name or name, secret.string)
        elif secret.binary is not None:
            encoded = _base64.b64encode(secret.binary).decode("ascii")
            self._add_entry(builder, secret.name or name, encoded)
        else:
            _logger.debug("Secret %s has no value, skipping", name)
