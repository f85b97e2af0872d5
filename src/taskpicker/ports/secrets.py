"""Port for per-source secret lookup."""

from __future__ import annotations

from abc import ABC, abstractmethod


class SecretProvider(ABC):
    @abstractmethod
    def get_secret(self, source_name: str) -> str | None:
        """Return the secret stored for ``source_name``, or ``None``."""


__all__ = ["SecretProvider"]
