"""Fill each stack's env file with the keys its registry entry requires."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

from pihomelab.core.logger import get_logger
from pihomelab.env.envfile import ConfigFileNotFound, EnvFile, resolve
from pihomelab.env.generator import SecretGenerator
from pihomelab.env.registry import (
    FixedValue,
    GeneratedPassword,
    GeneratedToken,
    KeyRequirement,
    StackRegistry,
    UnknownStrategyError,
)

logger = get_logger(__name__)


class GeneratedSecretLog:
    """Ordered ``"<stack>/<KEY>" -> value`` record of values written this run.

    Only used to show the operator what was filled in; never persisted.
    """

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = dict(entries or {})

    def record(self, origin: str, value: str) -> None:
        self._entries[origin] = value

    def merge(self, other: "GeneratedSecretLog") -> "GeneratedSecretLog":
        self._entries.update(other._entries)
        return self

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._entries.items())

    def origins(self):
        return list(self._entries)

    def get(self, origin: str) -> Optional[str]:
        return self._entries.get(origin)

    def __contains__(self, origin: str) -> bool:
        return origin in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"GeneratedSecretLog(origins={self.origins()!r})"


def stack_name_for(env_path: Union[str, Path]) -> str:
    """Name of the directory holding ``env_path``.

    Uses the trailing segment of the normalised absolute path so
    ``/opt/pi-homelab/containers/dns/.env`` and ``./dns/.env`` both map to ``dns``.
    """
    return Path(os.path.abspath(env_path)).parent.name


class EnvBootstrapper:
    """Resolves registry requirements into env files."""

    def __init__(
        self,
        registry: Optional[StackRegistry] = None,
        generator: Optional[SecretGenerator] = None,
    ):
        self.registry = registry or StackRegistry.default()
        self.generator = generator or SecretGenerator()

    def bootstrap_file(self, env_path: Union[str, Path]) -> GeneratedSecretLog:
        """Bootstrap an env file, deriving the stack from its directory."""
        return self.bootstrap(stack_name_for(env_path), env_path)

    def bootstrap(self, stack_name: str, env_path: Union[str, Path]) -> GeneratedSecretLog:
        """Ensure every key required by ``stack_name`` holds a real value.

        Args:
            stack_name: Registry stack name (e.g. "dns", "monitoring")
            env_path: Existing env file for that stack

        Returns:
            Log of the values written during this call

        Raises:
            ConfigFileNotFound: If env_path does not exist
            ConfigFileUnreadable: If env_path cannot be read as UTF-8
            PersistFailure: If the updated file cannot be written
            UnknownStrategyError: If a requirement has an unsupported strategy
        """
        env_path = Path(env_path)
        if not env_path.is_file():
            raise ConfigFileNotFound(
                f"Env file not found: {env_path} (create it from .env.example first)"
            )

        log = GeneratedSecretLog()
        requirements = self.registry.requirements_for(stack_name)
        if not requirements:
            logger.debug(f"No env requirements registered for stack '{stack_name}'")
            return log

        env_file = EnvFile.load(env_path)
        for requirement in requirements:
            origin = f"{stack_name}/{requirement.key}"
            _, generated = resolve(
                env_file,
                requirement.key,
                lambda requirement=requirement: self._produce(requirement),
                origin,
            )
            if generated:
                log.record(origin, env_file.get(requirement.key))

        env_file.save()
        return log

    def _produce(self, requirement: KeyRequirement) -> str:
        strategy = requirement.strategy
        if isinstance(strategy, FixedValue):
            return strategy.value
        if isinstance(strategy, GeneratedPassword):
            return self.generator.generate_password()
        if isinstance(strategy, GeneratedToken):
            return self.generator.generate_token()
        raise UnknownStrategyError(
            f"No producer for strategy {type(strategy).__name__} on key {requirement.key}"
        )
