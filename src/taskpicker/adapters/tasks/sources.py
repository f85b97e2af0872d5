"""Factory helpers for task sources."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from taskpicker.domain.sources import SourceEntry
from taskpicker.ports.tasks.source import SourceConfigError, TaskSource

from .caldav_source import CalDavSource
from .github_source import GitHubSource
from .gitlab_source import GitLabSource
from .openproject_source import OpenProjectSource

logger = logging.getLogger(__name__)

SOURCE_TYPES: Dict[str, Callable[[Dict[str, Any]], TaskSource]] = {
    CalDavSource.config_type: CalDavSource,
    GitHubSource.config_type: GitHubSource,
    GitLabSource.config_type: GitLabSource,
    OpenProjectSource.config_type: OpenProjectSource,
}

SECRET_OPTION_KEYS = frozenset({"token", "password", "secret", "api_key", "apikey"})


def build_source(source_type: str, options: Dict[str, Any]) -> TaskSource:
    if not isinstance(source_type, str) or not source_type.strip():
        raise SourceConfigError("sources.config_invalid: missing source type")
    key = source_type.strip().lower()
    factory = SOURCE_TYPES.get(key)
    if factory is None:
        raise SourceConfigError(f"sources.type_not_supported: {source_type}")
    if not isinstance(options, dict):
        raise SourceConfigError("sources.config_invalid: options must be object")
    source = factory(_strip_secrets(key, options))
    if not source.name():
        raise SourceConfigError(f"sources.config_invalid: {key} source needs a name")
    return source


def build_entry_from_config(config: Dict[str, Any]) -> SourceEntry:
    if not isinstance(config, dict):
        raise SourceConfigError("sources.config_invalid: entry must be object")
    source = build_source(config.get("type", ""), dict(config.get("options") or {}))
    return SourceEntry(source=source, enabled=bool(config.get("enabled", True)))


def entry_to_config(entry: SourceEntry) -> Dict[str, Any]:
    return {
        "type": entry.source.config_type,
        "enabled": entry.enabled,
        "options": _strip_secrets(entry.source.config_type, entry.source.options()),
    }


def _strip_secrets(source_type: str, options: Dict[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, value in options.items():
        if key.lower() in SECRET_OPTION_KEYS:
            logger.warning(
                "ignoring '%s' option of %s source; secrets are resolved through the secret provider",
                key,
                source_type,
            )
            continue
        cleaned[key] = value
    return cleaned


__all__ = [
    "SECRET_OPTION_KEYS",
    "SOURCE_TYPES",
    "build_entry_from_config",
    "build_source",
    "entry_to_config",
]
