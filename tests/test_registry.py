"""Tests for the stack key registry."""
import pytest
from pydantic import ValidationError

from pihomelab.env.registry import (
    FixedValue,
    GeneratedPassword,
    GeneratedToken,
    KeyRequirement,
    RegistryError,
    StackRegistry,
    load_registry,
)


class TestDefaultRegistry:
    """The built-in registry matches what the stack templates expect."""

    def test_dns(self):
        requirements = StackRegistry.default().requirements_for("dns")

        assert [r.key for r in requirements] == ["PIHOLE_WEBPASSWORD"]
        assert isinstance(requirements[0].strategy, GeneratedPassword)

    def test_monitoring_order_and_strategies(self):
        requirements = StackRegistry.default().requirements_for("monitoring")

        assert [(r.key, r.strategy) for r in requirements] == [
            ("INFLUXDB_USERNAME", FixedValue(value="admin")),
            ("INFLUXDB_PASSWORD", GeneratedPassword()),
            ("INFLUXDB_ORG", FixedValue(value="pi-homelab")),
            ("INFLUXDB_BUCKET", FixedValue(value="homeassistant")),
            ("INFLUXDB_ADMIN_TOKEN", GeneratedToken()),
            ("GRAFANA_ADMIN_USER", FixedValue(value="admin")),
            ("GRAFANA_ADMIN_PASSWORD", GeneratedPassword()),
        ]

    def test_unknown_stack_has_no_requirements(self):
        registry = StackRegistry.default()

        assert registry.requirements_for("unknown-stack") == []
        assert "unknown-stack" not in registry
        assert "dns" in registry


class TestKeyRequirement:

    def test_shorthand_fixed(self):
        requirement = KeyRequirement.model_validate({"key": "MQTT_USER", "strategy": "fixed", "value": "ha"})
        assert requirement.strategy == FixedValue(value="ha")

    def test_shorthand_token(self):
        requirement = KeyRequirement.model_validate({"key": "API_TOKEN", "strategy": "token"})
        assert isinstance(requirement.strategy, GeneratedToken)

    def test_invalid_key_name(self):
        with pytest.raises(ValidationError, match="not a valid env var name"):
            KeyRequirement.model_validate({"key": "lower-case", "strategy": "password"})

    def test_unknown_strategy_kind(self):
        with pytest.raises(ValidationError):
            KeyRequirement.model_validate({"key": "A", "strategy": "uuid"})

    def test_fixed_placeholder_rejected(self):
        """A CHANGEME default would never leave the placeholder state."""
        with pytest.raises(ValidationError, match="still count as unset"):
            FixedValue(value="CHANGEME-later")

    def test_fixed_empty_rejected(self):
        with pytest.raises(ValidationError):
            FixedValue(value="")


class TestRegistryFile:
    """Loading extra stacks from YAML."""

    def test_load_and_merge(self, tmp_path):
        registry_file = tmp_path / "extra.yml"
        registry_file.write_text(
            "stacks:\n"
            "  smarthome:\n"
            "    - key: MQTT_PASSWORD\n"
            "      strategy: password\n"
            "    - key: MQTT_USER\n"
            "      strategy: fixed\n"
            "      value: homeassistant\n"
        )

        registry = load_registry(registry_file)

        assert registry.stacks() == ["dns", "monitoring", "smarthome"]
        assert [r.key for r in registry.requirements_for("smarthome")] == ["MQTT_PASSWORD", "MQTT_USER"]
        assert len(registry.requirements_for("monitoring")) == 7

    def test_file_stack_replaces_default(self, tmp_path):
        registry_file = tmp_path / "extra.yml"
        registry_file.write_text("stacks:\n  dns:\n    - key: PIHOLE_WEBPASSWORD\n      strategy: token\n")

        registry = load_registry(registry_file)

        assert isinstance(registry.requirements_for("dns")[0].strategy, GeneratedToken)

    def test_missing_file(self, tmp_path):
        with pytest.raises(RegistryError, match="not found"):
            StackRegistry.from_yaml(tmp_path / "missing.yml")

    def test_invalid_yaml(self, tmp_path):
        registry_file = tmp_path / "bad.yml"
        registry_file.write_text("stacks: [unclosed\n")

        with pytest.raises(RegistryError, match="Invalid YAML"):
            StackRegistry.from_yaml(registry_file)

    def test_missing_stacks_section(self, tmp_path):
        registry_file = tmp_path / "bad.yml"
        registry_file.write_text("dns: []\n")

        with pytest.raises(RegistryError, match="'stacks' mapping"):
            StackRegistry.from_yaml(registry_file)

    def test_invalid_requirement(self, tmp_path):
        registry_file = tmp_path / "bad.yml"
        registry_file.write_text("stacks:\n  dns:\n    - key: PIHOLE_WEBPASSWORD\n      strategy: magic\n")

        with pytest.raises(RegistryError, match="stack 'dns'"):
            StackRegistry.from_yaml(registry_file)

    def test_duplicate_keys(self, tmp_path):
        registry_file = tmp_path / "bad.yml"
        registry_file.write_text(
            "stacks:\n  dns:\n"
            "    - {key: A, strategy: password}\n"
            "    - {key: A, strategy: token}\n"
        )

        with pytest.raises(RegistryError, match="more than once"):
            StackRegistry.from_yaml(registry_file)
