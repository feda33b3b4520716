"""Declarative registry of the env keys each stack needs."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Dict, Iterable, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from pihomelab.env.envfile import PLACEHOLDER_PREFIX

ENV_KEY_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")


class RegistryError(ValueError):
    """Raised when a stack registry file cannot be loaded."""
    pass


class UnknownStrategyError(TypeError):
    """Raised when a requirement carries a strategy the bootstrapper cannot produce."""
    pass


class FixedValue(BaseModel):
    """Literal default written verbatim."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["fixed"] = "fixed"
    value: str

    @field_validator("value")
    @classmethod
    def validate_value(cls, v):
        if v == "" or v.startswith(PLACEHOLDER_PREFIX):
            raise ValueError(
                f"Fixed value '{v}' would still count as unset; "
                f"it must be non-empty and not start with {PLACEHOLDER_PREFIX}"
            )
        return v


class GeneratedPassword(BaseModel):
    """Fresh admin password from the secret generator."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["password"] = "password"


class GeneratedToken(BaseModel):
    """Fresh API token from the secret generator."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["token"] = "token"


ValueStrategy = Annotated[
    Union[FixedValue, GeneratedPassword, GeneratedToken],
    Field(discriminator="kind"),
]


class KeyRequirement(BaseModel):
    """One key a stack's env file must hold, and how to fill it."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    key: str
    strategy: ValueStrategy

    @model_validator(mode="before")
    @classmethod
    def expand_shorthand(cls, data):
        """Accept ``{key, strategy: fixed, value}`` as well as the nested form."""
        if isinstance(data, dict) and isinstance(data.get("strategy"), str):
            data = dict(data)
            strategy = {"kind": data.pop("strategy")}
            if "value" in data:
                strategy["value"] = data.pop("value")
            data["strategy"] = strategy
        return data

    @field_validator("key")
    @classmethod
    def validate_key(cls, v):
        if not ENV_KEY_PATTERN.match(v):
            raise ValueError(
                f"Key '{v}' is not a valid env var name. "
                "Must be uppercase letters, numbers, and underscores only."
            )
        return v


def fixed(key: str, value: str) -> KeyRequirement:
    return KeyRequirement(key=key, strategy=FixedValue(value=value))


def password(key: str) -> KeyRequirement:
    return KeyRequirement(key=key, strategy=GeneratedPassword())


def token(key: str) -> KeyRequirement:
    return KeyRequirement(key=key, strategy=GeneratedToken())


DEFAULT_REQUIREMENTS: Dict[str, List[KeyRequirement]] = {
    "dns": [
        password("PIHOLE_WEBPASSWORD"),
    ],
    "monitoring": [
        fixed("INFLUXDB_USERNAME", "admin"),
        password("INFLUXDB_PASSWORD"),
        fixed("INFLUXDB_ORG", "pi-homelab"),
        fixed("INFLUXDB_BUCKET", "homeassistant"),
        token("INFLUXDB_ADMIN_TOKEN"),
        fixed("GRAFANA_ADMIN_USER", "admin"),
        password("GRAFANA_ADMIN_PASSWORD"),
    ],
}


class StackRegistry:
    """Maps stack names to their ordered key requirements."""

    def __init__(self, stacks: Optional[Dict[str, Iterable[KeyRequirement]]] = None):
        self._stacks: Dict[str, List[KeyRequirement]] = {
            name: list(requirements) for name, requirements in (stacks or {}).items()
        }

    @classmethod
    def default(cls) -> "StackRegistry":
        return cls(DEFAULT_REQUIREMENTS)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "StackRegistry":
        """Load stack requirements from a YAML file.

        Expected layout::

            stacks:
              smarthome:
                - key: MQTT_PASSWORD
                  strategy: password
                - key: MQTT_USER
                  strategy: fixed
                  value: homeassistant

        Raises:
            RegistryError: If the file is missing or invalid
        """
        path = Path(path)
        if not path.exists():
            raise RegistryError(f"Registry file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RegistryError(f"Invalid YAML in {path}: {e}") from e

        stacks = data.get("stacks") if isinstance(data, dict) else None
        if not isinstance(stacks, dict):
            raise RegistryError(f"{path}: expected a 'stacks' mapping")

        parsed: Dict[str, List[KeyRequirement]] = {}
        for name, entries in stacks.items():
            if not isinstance(entries, list):
                raise RegistryError(f"{path}: stack '{name}' must be a list of keys")
            try:
                requirements = [KeyRequirement.model_validate(entry) for entry in entries]
            except ValidationError as e:
                raise RegistryError(f"{path}: invalid requirement in stack '{name}': {e}") from e

            keys = [r.key for r in requirements]
            duplicates = sorted({k for k in keys if keys.count(k) > 1})
            if duplicates:
                raise RegistryError(f"{path}: stack '{name}' lists {', '.join(duplicates)} more than once")
            parsed[str(name)] = requirements

        return cls(parsed)

    def merged(self, other: "StackRegistry") -> "StackRegistry":
        """Return a registry where ``other``'s stacks replace same-named ones."""
        combined = dict(self._stacks)
        combined.update(other._stacks)
        return StackRegistry(combined)

    def requirements_for(self, stack_name: str) -> List[KeyRequirement]:
        return list(self._stacks.get(stack_name, []))

    def stacks(self) -> List[str]:
        return list(self._stacks)

    def __contains__(self, stack_name: str) -> bool:
        return stack_name in self._stacks


def load_registry(registry_file: Optional[Union[str, Path]] = None) -> StackRegistry:
    """Default registry, extended with ``registry_file`` when given."""
    registry = StackRegistry.default()
    if registry_file:
        registry = registry.merged(StackRegistry.from_yaml(registry_file))
    return registry
