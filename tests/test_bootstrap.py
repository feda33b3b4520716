"""Tests for per-stack env bootstrap."""
import os
from unittest.mock import Mock

import pytest

from pihomelab.env.bootstrap import EnvBootstrapper, GeneratedSecretLog, stack_name_for
from pihomelab.env.envfile import ConfigFileNotFound, ConfigFileUnreadable, EnvFile, KeyState
from pihomelab.env.registry import KeyRequirement, StackRegistry, UnknownStrategyError

MONITORING_KEYS = [
    "INFLUXDB_USERNAME",
    "INFLUXDB_PASSWORD",
    "INFLUXDB_ORG",
    "INFLUXDB_BUCKET",
    "INFLUXDB_ADMIN_TOKEN",
    "GRAFANA_ADMIN_USER",
    "GRAFANA_ADMIN_PASSWORD",
]


class TestStackNameFor:
    """Stacks are matched on the directory holding the env file."""

    def test_absolute_path(self):
        assert stack_name_for("/opt/pi-homelab/containers/dns/.env") == "dns"

    def test_different_prefixes_match(self):
        assert stack_name_for("/srv/other/prefix/dns/.env") == stack_name_for("/opt/pi-homelab/containers/dns/.env")

    def test_relative_path(self, tmp_path, monkeypatch):
        (tmp_path / "monitoring").mkdir()
        monkeypatch.chdir(tmp_path / "monitoring")

        assert stack_name_for(".env") == "monitoring"
        assert stack_name_for("../monitoring/.env") == "monitoring"

    def test_substring_is_not_a_match(self):
        assert stack_name_for("/opt/containers/dns-backup/.env") == "dns-backup"


class TestBootstrap:
    """Scenarios for EnvBootstrapper.bootstrap()."""

    def test_dns_placeholder_replaced(self, stack_env, counting_generator):
        env_path = stack_env("dns", "TZ=Europe/Berlin\nPIHOLE_WEBPASSWORD=CHANGEME123\n")

        log = EnvBootstrapper(generator=counting_generator).bootstrap("dns", env_path)

        lines = env_path.read_text().splitlines()
        password_lines = [line for line in lines if line.startswith("PIHOLE_WEBPASSWORD=")]
        assert len(password_lines) == 1
        new_value = password_lines[0].split("=", 1)[1]
        assert new_value and not new_value.startswith("CHANGEME")
        assert lines[0] == "TZ=Europe/Berlin"
        assert log.origins() == ["dns/PIHOLE_WEBPASSWORD"]
        assert log.get("dns/PIHOLE_WEBPASSWORD") == new_value

    def test_existing_value_left_alone(self, stack_env, counting_generator):
        env_path = stack_env("monitoring", "INFLUXDB_ORG=myorg\n")

        log = EnvBootstrapper(generator=counting_generator).bootstrap("monitoring", env_path)

        assert "INFLUXDB_ORG=myorg" in env_path.read_text().splitlines()
        assert "monitoring/INFLUXDB_ORG" not in log
        assert len(log) == 6

    def test_empty_monitoring_file(self, stack_env, counting_generator):
        env_path = stack_env("monitoring", "")

        log = EnvBootstrapper(generator=counting_generator).bootstrap("monitoring", env_path)

        lines = env_path.read_text().splitlines()
        assert [line.split("=", 1)[0] for line in lines] == MONITORING_KEYS
        env_file = EnvFile.load(env_path)
        assert env_file.get("INFLUXDB_USERNAME") == "admin"
        assert env_file.get("INFLUXDB_ORG") == "pi-homelab"
        assert env_file.get("INFLUXDB_BUCKET") == "homeassistant"
        assert env_file.get("GRAFANA_ADMIN_USER") == "admin"
        assert len(env_file.get("INFLUXDB_PASSWORD")) == 32
        assert len(env_file.get("INFLUXDB_ADMIN_TOKEN")) == 64
        assert log.origins() == [f"monitoring/{key}" for key in MONITORING_KEYS]

    def test_unknown_stack_is_noop(self, stack_env):
        env_path = stack_env("unknown-stack", "A=CHANGEME\n")
        generator = Mock()

        log = EnvBootstrapper(generator=generator).bootstrap("unknown-stack", env_path)

        assert len(log) == 0
        assert env_path.read_text() == "A=CHANGEME\n"
        generator.generate_password.assert_not_called()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileNotFound):
            EnvBootstrapper().bootstrap("dns", tmp_path / "dns" / ".env")

    def test_second_run_is_idempotent(self, stack_env):
        env_path = stack_env("monitoring", "INFLUXDB_PASSWORD=\nGRAFANA_ADMIN_PASSWORD='CHANGEME'\n")
        bootstrapper = EnvBootstrapper()

        first = bootstrapper.bootstrap("monitoring", env_path)
        after_first = env_path.read_bytes()
        second = bootstrapper.bootstrap("monitoring", env_path)

        assert len(first) == 7
        assert len(second) == 0
        assert env_path.read_bytes() == after_first

    def test_generator_only_called_for_unset_keys(self, stack_env):
        env_path = stack_env(
            "monitoring",
            "INFLUXDB_PASSWORD=keep\nINFLUXDB_ADMIN_TOKEN=keep\nGRAFANA_ADMIN_PASSWORD=\n",
        )
        generator = Mock()
        generator.generate_password.return_value = "pw"

        log = EnvBootstrapper(generator=generator).bootstrap("monitoring", env_path)

        generator.generate_password.assert_called_once_with()
        generator.generate_token.assert_not_called()
        assert log.get("monitoring/GRAFANA_ADMIN_PASSWORD") == "pw"

    def test_fixed_value_respects_placeholder_policy(self, stack_env):
        env_path = stack_env("monitoring", 'INFLUXDB_USERNAME="CHANGEME"\nGRAFANA_ADMIN_USER=grafana\n')

        log = EnvBootstrapper().bootstrap("monitoring", env_path)
        env_file = EnvFile.load(env_path)

        assert env_file.get("INFLUXDB_USERNAME") == "admin"
        assert env_file.get("GRAFANA_ADMIN_USER") == "grafana"
        assert log.get("monitoring/INFLUXDB_USERNAME") == "admin"
        assert "monitoring/GRAFANA_ADMIN_USER" not in log

    def test_all_keys_set_afterwards(self, stack_env):
        env_path = stack_env("monitoring", "INFLUXDB_BUCKET=\n")

        EnvBootstrapper().bootstrap("monitoring", env_path)
        env_file = EnvFile.load(env_path)

        assert all(env_file.state_of(key) is KeyState.SET for key in MONITORING_KEYS)

    def test_bootstrap_file_derives_stack(self, stack_env):
        env_path = stack_env("dns", "PIHOLE_WEBPASSWORD=\n")

        log = EnvBootstrapper().bootstrap_file(env_path)

        assert log.origins() == ["dns/PIHOLE_WEBPASSWORD"]

    def test_unknown_strategy_fails_loudly(self, stack_env):
        env_path = stack_env("custom", "")
        requirement = KeyRequirement.model_construct(key="ODD", strategy=object())
        registry = StackRegistry({"custom": [requirement]})

        with pytest.raises(UnknownStrategyError, match="ODD"):
            EnvBootstrapper(registry=registry).bootstrap("custom", env_path)

        assert env_path.read_text() == ""

    def test_non_utf8_file_is_domain_error(self, stack_env):
        env_path = stack_env("dns")
        env_path.write_bytes(b"# Passwort f\xfcr Pi-hole\nPIHOLE_WEBPASSWORD=CHANGEME\n")

        with pytest.raises(ConfigFileUnreadable):
            EnvBootstrapper().bootstrap("dns", env_path)

    @pytest.mark.skipif(os.geteuid() != 0, reason="needs root to chown")
    def test_operator_keeps_ownership(self, stack_env):
        env_path = stack_env("dns", "PIHOLE_WEBPASSWORD=CHANGEME\n")
        os.chown(env_path, 1000, 1000)

        EnvBootstrapper().bootstrap("dns", env_path)

        assert (env_path.stat().st_uid, env_path.stat().st_gid) == (1000, 1000)


class TestGeneratedSecretLog:

    def test_merge_keeps_order(self):
        log = GeneratedSecretLog({"dns/A": "1"})
        log.merge(GeneratedSecretLog({"monitoring/B": "2", "monitoring/C": "3"}))

        assert list(log.items()) == [("dns/A", "1"), ("monitoring/B", "2"), ("monitoring/C", "3")]

    def test_repr_hides_values(self):
        log = GeneratedSecretLog({"dns/A": "topsecret"})
        assert "topsecret" not in repr(log)
