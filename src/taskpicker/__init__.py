"""Aggregate outstanding tasks from CalDAV, GitHub, GitLab and OpenProject."""

__version__ = "0.3.0"

__all__ = ["__version__"]
