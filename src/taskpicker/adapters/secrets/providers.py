"""Secret providers resolving per-source credentials by source name."""

from __future__ import annotations

import os
import re
from typing import Mapping

from taskpicker.ports.secrets import SecretProvider

DEFAULT_PREFIX = "TASKPICKER_SECRET_"

_NON_WORD = re.compile(r"[^A-Za-z0-9]+")


def secret_env_var(source_name: str, *, prefix: str = DEFAULT_PREFIX) -> str:
    """Environment variable holding the secret of ``source_name``.

    ``"My GitLab"`` maps to ``TASKPICKER_SECRET_MY_GITLAB``.
    """

    slug = _NON_WORD.sub("_", source_name).strip("_").upper()
    return f"{prefix}{slug}"


class EnvironmentSecretProvider(SecretProvider):
    def __init__(self, *, prefix: str = DEFAULT_PREFIX, environ: Mapping[str, str] | None = None) -> None:
        self._prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def get_secret(self, source_name: str) -> str | None:
        value = self._environ.get(secret_env_var(source_name, prefix=self._prefix))
        return value or None


class MappingSecretProvider(SecretProvider):
    def __init__(self, secrets: Mapping[str, str] | None = None) -> None:
        self._secrets = dict(secrets or {})

    def get_secret(self, source_name: str) -> str | None:
        return self._secrets.get(source_name)


__all__ = ["DEFAULT_PREFIX", "EnvironmentSecretProvider", "MappingSecretProvider", "secret_env_var"]
