"""
Base for sources backed by a remote service.

Remote sources talk to their store through a client object. Callers may
pass a prebuilt client (tests inject fakes here); otherwise the source
creates one on first load and closes it with the source.
"""

import logging as _logging
import typing as _typing

import strata.sources.base as base

_logger = _logging.getLogger(__name__)


class RemoteSource(base.Source):
    """Source whose entries come from a remote client."""

    def __init__(
        self,
        client: _typing.Any = None,
        options: base.SourceOptions | None = None,
        **kwargs: _typing.Any,
    ) -> None:
        super().__init__(options, **kwargs)
        self._client = client
        self._owns_client = client is None

    @property
    def supports_reload(self) -> bool:
        return True

    @property
    def client(self) -> _typing.Any:
        """The client, created on first use if none was injected."""
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self) -> _typing.Any:
        raise ValueError(f"{type(self).__name__} requires a client")

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            close = getattr(self._client, "close", None)
            if callable(close):
                try:
                    close()
                except Exception as e:
                    _logger.warning("Error closing client for %s: %s", self.name, e)
            self._client = None
