"""Shared test fixtures for pi-homelab tests."""
import itertools

import pytest

from pihomelab.core.config import set_config
from pihomelab.env.generator import SecretGenerator


@pytest.fixture(autouse=True)
def reset_config(monkeypatch):
    """Every test starts from defaults, not the developer's environment."""
    for var in (
        "REPO_OWNER",
        "REPO_NAME",
        "REPO_REF",
        "INSTALL_DIR",
        "PIHOMELAB_ALLOW_WEAK_ENTROPY",
        "PIHOMELAB_REGISTRY",
        "PIHOMELAB_LOCK_FILE",
        "PIHOMELAB_DOWNLOAD_TIMEOUT",
        "PIHOMELAB_MOCK",
    ):
        monkeypatch.delenv(var, raising=False)
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def counting_generator():
    """Generator whose entropy is a predictable byte counter."""
    counter = itertools.count(1)

    def entropy(n):
        start = next(counter)
        return bytes((start + i) % 256 for i in range(n))

    return SecretGenerator(entropy_source=entropy)


@pytest.fixture
def stack_env(tmp_path):
    """Create ``containers/<stack>/.env`` with the given content."""

    def _make(stack: str, content: str = ""):
        stack_dir = tmp_path / "containers" / stack
        stack_dir.mkdir(parents=True, exist_ok=True)
        env_file = stack_dir / ".env"
        env_file.write_text(content)
        return env_file

    return _make
