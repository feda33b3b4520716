"""Installer runtime configuration and settings."""
import os
from dataclasses import dataclass
from typing import Optional

_TRUTHY = ("1", "true", "yes")


@dataclass
class InstallerConfig:
    """Runtime configuration for an install run.

    Attributes:
        repo_owner: GitHub owner of the homelab repository
        repo_name: Repository name, also the tarball root prefix
        repo_ref: Branch, tag or commit to install
        install_dir: Where the repository is placed on the host
        download_timeout: Timeout in seconds for the tarball download
        allow_weak_entropy: Permit a non-cryptographic fallback when the
            OS entropy source is unavailable (logged as degraded)
        registry_file: Optional YAML file with extra stack requirements
        lock_file: Optional override for the install lock path
    """

    repo_owner: str = "Fry747"
    repo_name: str = "pi-homelab"
    repo_ref: str = "main"
    install_dir: str = "/opt/pi-homelab"

    download_timeout: int = 60
    allow_weak_entropy: bool = False

    registry_file: Optional[str] = None
    lock_file: Optional[str] = None

    @property
    def tarball_url(self) -> str:
        return (
            f"https://codeload.github.com/{self.repo_owner}/{self.repo_name}"
            f"/tar.gz/{self.repo_ref}"
        )

    @classmethod
    def from_env(cls) -> "InstallerConfig":
        """Create config from environment variables.

        Environment variables:
            REPO_OWNER, REPO_NAME, REPO_REF, INSTALL_DIR: Repository source and target
            PIHOMELAB_DOWNLOAD_TIMEOUT: Download timeout in seconds
            PIHOMELAB_ALLOW_WEAK_ENTROPY: Allow degraded secret generation
            PIHOMELAB_REGISTRY: Extra stack registry YAML file
            PIHOMELAB_LOCK_FILE: Install lock file path
        """
        return cls(
            repo_owner=os.getenv("REPO_OWNER", cls.repo_owner),
            repo_name=os.getenv("REPO_NAME", cls.repo_name),
            repo_ref=os.getenv("REPO_REF", cls.repo_ref),
            install_dir=os.getenv("INSTALL_DIR", cls.install_dir),
            download_timeout=int(
                os.getenv("PIHOMELAB_DOWNLOAD_TIMEOUT", cls.download_timeout)
            ),
            allow_weak_entropy=os.getenv("PIHOMELAB_ALLOW_WEAK_ENTROPY", "").lower() in _TRUTHY,
            registry_file=os.getenv("PIHOMELAB_REGISTRY") or None,
            lock_file=os.getenv("PIHOMELAB_LOCK_FILE") or None,
        )


# Global config instance (can be overridden)
_config: Optional[InstallerConfig] = None


def get_config() -> InstallerConfig:
    """Get the global installer configuration, reading the environment on first use."""
    global _config
    if _config is None:
        _config = InstallerConfig.from_env()
    return _config


def set_config(config: Optional[InstallerConfig]):
    """Set (or with None, reset) the global installer configuration."""
    global _config
    _config = config
