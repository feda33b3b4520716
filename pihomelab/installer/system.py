"""Host-level helpers: root check, invoking user, Docker installation."""
from __future__ import annotations

import grp
import os
import pwd
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List

from pihomelab.core.logger import get_logger

logger = get_logger(__name__)

DOCKER_KEYRING = "/etc/apt/keyrings/docker.gpg"
DOCKER_SOURCES_LIST = Path("/etc/apt/sources.list.d/docker.list")

DOCKER_PACKAGES = [
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
]


class InstallError(RuntimeError):
    """Raised when an install step cannot continue."""
    pass


def require_root(mock: bool = False) -> None:
    """Abort unless running as root."""
    if mock:
        logger.info("MOCK: Skipping root check")
        return
    if os.geteuid() != 0:
        raise InstallError("Please run as root (e.g. via sudo).")


@dataclass
class RealUser:
    """The user who invoked sudo, so installed files aren't left owned by root."""

    name: str
    group: str
    home: Path

    @classmethod
    def detect(cls) -> "RealUser":
        name = os.environ.get("SUDO_USER") or os.environ.get("USER") or "root"

        try:
            entry = pwd.getpwnam(name)
        except KeyError:
            return cls(name=name, group=name, home=Path("/home") / name)

        try:
            group = grp.getgrgid(entry.pw_gid).gr_name
        except KeyError:
            group = name

        return cls(name=name, group=group, home=Path(entry.pw_dir or f"/home/{name}"))


class DockerInstaller:
    """Installs Docker CE and the Compose plugin on Debian / Raspberry Pi OS."""

    def __init__(self, user: RealUser, mock: bool = False):
        self.user = user
        self.mock = mock
        self.added_to_docker_group = False

    def _run(self, cmd: List[str], check: bool = True) -> subprocess.CompletedProcess:
        logger.debug(f"Running: {' '.join(cmd)}")
        return subprocess.run(cmd, capture_output=True, text=True, check=check)

    def _apt_install(self, packages: List[str]) -> None:
        self._run(["apt-get", "update", "-y"])
        self._run(["apt-get", "install", "-y", *packages])

    def ensure_docker(self) -> bool:
        """Install Docker if missing.

        Returns:
            True if Docker was installed during this call
        """
        if shutil.which("docker"):
            logger.info("Docker already installed.")
            return False

        if self.mock:
            logger.info("MOCK: Would install Docker from download.docker.com")
            return False

        logger.info("Installing Docker (Debian/Raspberry Pi OS)...")
        try:
            self._apt_install(["ca-certificates", "curl", "gnupg", "lsb-release"])
            self._install_apt_repository()
            self._apt_install(DOCKER_PACKAGES)
            self._run(["systemctl", "enable", "--now", "docker"])
        except subprocess.CalledProcessError as e:
            raise InstallError(
                f"Docker installation failed: {' '.join(e.cmd)}\n{e.stderr or ''}".rstrip()
            ) from e

        self._add_user_to_docker_group()
        return True

    def _install_apt_repository(self) -> None:
        self._run(["install", "-m", "0755", "-d", str(Path(DOCKER_KEYRING).parent)])
        key = subprocess.run(
            ["curl", "-fsSL", "https://download.docker.com/linux/debian/gpg"],
            capture_output=True,
            check=True,
        ).stdout
        subprocess.run(
            ["gpg", "--dearmor", "--yes", "-o", DOCKER_KEYRING],
            input=key,
            capture_output=True,
            check=True,
        )
        os.chmod(DOCKER_KEYRING, 0o644)

        arch = self._run(["dpkg", "--print-architecture"]).stdout.strip()
        codename = _os_release().get("VERSION_CODENAME", "")
        DOCKER_SOURCES_LIST.write_text(
            f"deb [arch={arch} signed-by={DOCKER_KEYRING}] "
            f"https://download.docker.com/linux/debian {codename} stable\n"
        )

    def _add_user_to_docker_group(self) -> None:
        logger.info(f"Adding user '{self.user.name}' to docker group...")
        try:
            grp.getgrnam("docker")
        except KeyError:
            logger.warning("docker group does not exist; skipping")
            return

        result = self._run(["usermod", "-aG", "docker", self.user.name], check=False)
        if result.returncode == 0:
            self.added_to_docker_group = True
        else:
            logger.warning(f"Could not add {self.user.name} to docker group: {result.stderr.strip()}")

    def ensure_compose(self) -> bool:
        """Install the Compose plugin if ``docker compose`` is unavailable.

        Returns:
            True if the plugin was installed during this call
        """
        if self.mock:
            logger.info("MOCK: Would check for 'docker compose'")
            return False

        try:
            result = self._run(["docker", "compose", "version"], check=False)
            if result.returncode == 0:
                logger.info("Docker Compose plugin available.")
                return False
        except FileNotFoundError:
            pass

        logger.warning("Docker Compose plugin not found via 'docker compose'. Installing docker-compose-plugin...")
        try:
            self._apt_install(["docker-compose-plugin"])
        except subprocess.CalledProcessError as e:
            raise InstallError(f"Failed to install docker-compose-plugin: {e.stderr or e}") from e
        return True


def _os_release(path: Path = Path("/etc/os-release")) -> dict:
    values = {}
    try:
        lines = path.read_text().splitlines()
    except OSError:
        return values

    for line in lines:
        if "=" in line:
            key, _, value = line.partition("=")
            values[key.strip()] = value.strip().strip('"')
    return values


def chown_tree(root: Path, user: RealUser, mock: bool = False) -> None:
    """Recursively hand ``root`` to the real user."""
    if mock:
        logger.info(f"MOCK: Would chown -R {user.name}:{user.group} {root}")
        return

    logger.info(f"Setting ownership: {user.name}:{user.group} -> {root}")
    shutil.chown(root, user=user.name, group=user.group)
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = os.path.join(dirpath, name)
            if not os.path.islink(path):
                shutil.chown(path, user=user.name, group=user.group)


def chown_file(path: Path, user: RealUser, mode: int, mock: bool = False) -> None:
    """Set owner and mode of a single file; failures are warnings, not fatal."""
    if mock:
        logger.info(f"MOCK: Would chown {user.name}:{user.group} {path}")
    else:
        try:
            shutil.chown(path, user=user.name, group=user.group)
        except (LookupError, OSError) as e:
            logger.warning(f"Could not chown {path}: {e}")

    try:
        os.chmod(path, mode)
    except OSError as e:
        logger.warning(f"Could not chmod {path}: {e}")
