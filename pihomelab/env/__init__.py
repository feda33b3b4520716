"""Stack env file bootstrap: placeholder-aware resolution and secret generation."""

from .bootstrap import EnvBootstrapper, GeneratedSecretLog, stack_name_for
from .envfile import ConfigFileNotFound, ConfigFileUnreadable, EnvFile, KeyState, PersistFailure, resolve
from .generator import EntropyUnavailable, SecretGenerator
from .registry import KeyRequirement, RegistryError, StackRegistry, UnknownStrategyError, load_registry

__all__ = [
    "ConfigFileNotFound",
    "ConfigFileUnreadable",
    "EntropyUnavailable",
    "EnvBootstrapper",
    "EnvFile",
    "GeneratedSecretLog",
    "KeyRequirement",
    "KeyState",
    "PersistFailure",
    "RegistryError",
    "SecretGenerator",
    "StackRegistry",
    "UnknownStrategyError",
    "load_registry",
    "resolve",
    "stack_name_for",
]
