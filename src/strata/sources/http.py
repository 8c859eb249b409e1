"""
Centralized configuration service source over HTTP (httpx).

The service exposes key/value settings as pages of JSON::

    GET {endpoint}/kv?key=<filter>&label=<label>

    {
      "items": [
        {"key": "App:Color", "value": "blue", "label": "prod", "enabled": true}
      ],
      "@nextLink": "/kv?key=*&after=..."
    }

``@nextLink`` (relative or absolute) is followed until absent. Disabled
items and items without a value are skipped. Keys are used as-is, then
passed through the optional key transform.
"""

import logging as _logging
import typing as _typing

import httpx as _httpx

import strata.mapping as mapping
import strata.sources.base as base
import strata.sources.remote as remote

_logger = _logging.getLogger(__name__)

DEFAULT_KEY_FILTER = "*"
NEXT_LINK = "@nextLink"


def parse_connection_string(value: str) -> dict[str, str]:
    """
    Split ``Endpoint=...;Id=...;Secret=...`` into a dict with lowercase keys.

    Returns an empty dict if ``value`` does not look like a connection string.
    """
    if "endpoint=" not in value.lower():
        return {}
    parts: dict[str, str] = {}
    for part in value.split(";"):
        name, sep, rest = part.partition("=")
        if sep:
            parts[name.strip().lower()] = rest.strip()
    return parts


class HttpConfigSource(remote.RemoteSource):
    """
    Source loading settings from a centralized-config HTTP service.

    Args:
        endpoint: Base URL, or a connection string containing ``Endpoint=``.
        key_filter: Key filter sent to the service (``*`` = all).
        label: Label to select. None = the service's unlabeled settings.
        token: Bearer token sent as ``Authorization``. A connection
            string's ``Secret=`` is used when no token is given.
        client: Prebuilt ``httpx.Client``; its base URL must point at the
            service.
        http_timeout: Per-request timeout in seconds for created clients.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        key_filter: str = DEFAULT_KEY_FILTER,
        label: str | None = None,
        token: str | None = None,
        client: _httpx.Client | None = None,
        http_timeout: float = 30.0,
        options: base.SourceOptions | None = None,
        **kwargs: _typing.Any,
    ) -> None:
        super().__init__(client, options, **kwargs)
        connection = parse_connection_string(endpoint)
        self.endpoint = connection.get("endpoint", endpoint)
        self.key_filter = key_filter or DEFAULT_KEY_FILTER
        self.label = label
        self._token = token or connection.get("secret")
        self._http_timeout = http_timeout

    def describe(self) -> str:
        return f"HttpConfig[{self.endpoint}]"

    def _create_client(self) -> _httpx.Client:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return _httpx.Client(
            base_url=self.endpoint,
            headers=headers,
            timeout=self._http_timeout,
        )

    def _query(self) -> dict[str, str]:
        params = {"key": self.key_filter}
        if self.label is not None:
            params["label"] = self.label
        return params

    def _collect(self, builder: mapping.FlatMappingBuilder) -> None:
        client: _httpx.Client = self.client
        url: str | None = "/kv"
        params: dict[str, str] | None = self._query()
        while url:
            response = client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
            for item in payload.get("items", []):
                self._add_item(builder, item)
            url = payload.get(NEXT_LINK)
            # Next links carry their own query string.
            params = None

    def _add_item(self, builder: mapping.FlatMappingBuilder, item: dict[str, _typing.Any]) -> None:
        key = item.get("key")
        value = item.get("value")
        if not key or value is None:
            return
        if item.get("enabled", True) is False:
            _logger.debug("Skipping disabled setting %s", key)
            return
        self._add_entry(builder, key, str(value))
