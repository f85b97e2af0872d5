"""Shared HTTP helpers for task source adapters."""

from __future__ import annotations

import copy
import socket
from typing import Any, Dict, Iterator, Mapping
from urllib.parse import urlparse

import requests
from urllib3.exceptions import NameResolutionError

from taskpicker.ports.tasks.source import (
    SourceConfigError,
    SourceSchemaError,
    SourceTransportError,
)

REQUEST_TIMEOUT = 30


def join_url(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def check_url(url: str, *, label: str) -> str:
    parsed = urlparse(url or "")
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise SourceConfigError(f"{label}: invalid server url '{url}'")
    return url


def get_json(
    session: requests.Session,
    url: str,
    *,
    label: str,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, Any] | None = None,
    auth: tuple[str, str] | None = None,
) -> Any:
    """GET ``url`` and decode its JSON body, mapping failures to source errors."""

    try:
        response = session.get(
            url,
            params=dict(params) if params else None,
            headers=dict(headers) if headers else None,
            auth=auth,
            timeout=REQUEST_TIMEOUT,
        )
    except (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema) as exc:
        raise SourceConfigError(f"{label}: invalid url '{url}': {exc}") from exc
    except requests.RequestException as exc:
        dns = is_name_resolution_error(exc)
        kind = "cannot resolve host" if dns else "request failed"
        raise SourceTransportError(f"{label}: {kind}: {exc}", dns=dns) from exc
    if response.status_code >= 400:
        raise SourceTransportError(
            f"{label}: request failed: {response.status_code} {response.text}",
            status_code=response.status_code,
        )
    try:
        return response.json()
    except ValueError as exc:
        raise SourceSchemaError(f"{label}: response is not valid JSON") from exc


def is_name_resolution_error(exc: BaseException) -> bool:
    return any(isinstance(item, (socket.gaierror, NameResolutionError)) for item in _exception_chain(exc))


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        for candidate in (current.__cause__, current.__context__, getattr(current, "reason", None), *current.args):
            if isinstance(candidate, BaseException):
                pending.append(candidate)


def require(mapping: Any, key: str, kind: type | tuple[type, ...], *, label: str, what: str) -> Any:
    """Return ``mapping[key]`` if present with the expected type."""

    if not isinstance(mapping, dict):
        raise SourceSchemaError(f"{label}: {what} must be an object")
    value = mapping.get(key)
    if not isinstance(value, kind):
        raise SourceSchemaError(f"{label}: missing '{key}' field for {what}")
    # bool is an int subclass; ids and counters must not accept it
    if isinstance(value, bool) and kind is not bool:
        raise SourceSchemaError(f"{label}: missing '{key}' field for {what}")
    return value


def int_option(options: Mapping[str, Any], key: str, default: int, *, label: str) -> int:
    """Positive integer option, ``default`` when absent."""

    value = options.get(key, default)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise SourceConfigError(f"{label}: option '{key}' must be a positive integer, got {value!r}")
    return value


class SessionOwner:
    """Holds the requests session of an HTTP source.

    Clones of a source that created its own session get a fresh one, so
    snapshots used by different refresh cycles never share a connection pool.
    An injected session is shared as given.
    """

    _session: requests.Session
    _owns_session: bool

    def _use_session(self, session: requests.Session | None) -> None:
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()

    def clone(self):
        duplicate = copy.copy(self)
        if self._owns_session:
            duplicate._session = requests.Session()
        return duplicate


def auth_headers(token: str | None, *, scheme: str = "Bearer") -> Dict[str, str]:
    if not token:
        return {}
    return {"Authorization": f"{scheme} {token}"}


__all__ = [
    "REQUEST_TIMEOUT",
    "SessionOwner",
    "auth_headers",
    "check_url",
    "get_json",
    "int_option",
    "is_name_resolution_error",
    "join_url",
    "require",
]
