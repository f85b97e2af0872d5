"""Source registry exports."""

from .registry import SourceEntry, SourceRegistry

__all__ = ["SourceEntry", "SourceRegistry"]
