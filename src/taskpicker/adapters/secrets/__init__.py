"""Secret provider adapters."""

from .providers import EnvironmentSecretProvider, MappingSecretProvider, secret_env_var

__all__ = ["EnvironmentSecretProvider", "MappingSecretProvider", "secret_env_var"]
