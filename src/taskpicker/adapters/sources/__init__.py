"""Persistence adapters for the source registry."""

from .file_repository import FileSourceRepository, SourceRepositoryError

__all__ = ["FileSourceRepository", "SourceRepositoryError"]
