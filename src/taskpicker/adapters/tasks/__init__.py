"""Task source adapters."""

from .caldav_source import CALDAV_ICON, CalDavSource, parse_caldav_date, unescape
from .github_source import GITHUB_ICON, GitHubSource
from .gitlab_source import GITLAB_ICON, GitLabSource
from .openproject_source import OPENPROJECT_ICON, OpenProjectSource
from .sources import SOURCE_TYPES, build_entry_from_config, build_source, entry_to_config

__all__ = [
    "CALDAV_ICON",
    "GITHUB_ICON",
    "GITLAB_ICON",
    "OPENPROJECT_ICON",
    "SOURCE_TYPES",
    "CalDavSource",
    "GitHubSource",
    "GitLabSource",
    "OpenProjectSource",
    "build_entry_from_config",
    "build_source",
    "entry_to_config",
    "parse_caldav_date",
    "unescape",
]
