"""Pre-create bind-mounted files referenced by the stack compose files.

Docker creates a missing bind-mount source as a *directory*, which breaks
services that mount a single config file (e.g. mosquitto.conf). Directories
already ship in the repo via .gitkeep, so only relative file sources need
touching.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import yaml

from pihomelab.core.logger import get_logger
from pihomelab.installer.system import RealUser, chown_file

logger = get_logger(__name__)

COMPOSE_FILE_NAMES = ("docker-compose.yml", "compose.yml")
MOUNT_FILE_MODE = 0o644


@dataclass(frozen=True)
class BindMount:
    """A relative bind mount declared by a compose service."""

    source: str  # As written, e.g. "./mosquitto/config/mosquitto.conf"
    target: str
    service: str


def parse_volume(volume: Union[str, dict], service: str) -> Optional[BindMount]:
    """Return the mount if ``volume`` binds a path relative to the compose file."""
    if isinstance(volume, dict):
        # Long format: {type: bind, source: ./conf, target: /conf}
        if volume.get("type") != "bind":
            return None
        source = str(volume.get("source", ""))
        target = str(volume.get("target", ""))
    elif isinstance(volume, str):
        # Short format: "./conf:/conf" or "./conf:/conf:ro"
        if ":" not in volume:
            return None
        source, _, rest = volume.partition(":")
        target = rest.split(":", 1)[0]
    else:
        return None

    source = source.strip().strip("'\"")
    if not source.startswith("./"):
        return None
    return BindMount(source=source, target=target, service=service)


class BindMountFiles:
    """Touches missing bind-mount files for every compose file in a tree."""

    def __init__(self, user: Optional[RealUser] = None, mock: bool = False):
        self.user = user
        self.mock = mock

    def find_compose_files(self, containers_dir: Path) -> List[Path]:
        if not containers_dir.is_dir():
            return []
        found = []
        for name in COMPOSE_FILE_NAMES:
            found.extend(p for p in containers_dir.rglob(name) if p.is_file())
        return sorted(found)

    def mounts_in(self, compose_file: Path) -> List[BindMount]:
        """Relative bind mounts declared in one compose file.

        Files that fail to parse are skipped with a warning; compose syntax is
        not validated here.
        """
        try:
            compose = yaml.safe_load(compose_file.read_text())
        except (yaml.YAMLError, OSError) as e:
            logger.warning(f"Skipping {compose_file}: {e}")
            return []

        if not isinstance(compose, dict) or not isinstance(compose.get("services"), dict):
            return []

        mounts = []
        for service_name, service in compose["services"].items():
            if not isinstance(service, dict):
                continue
            for volume in service.get("volumes") or []:
                mount = parse_volume(volume, service_name)
                if mount is not None and mount not in mounts:
                    mounts.append(mount)
        return mounts

    def ensure(self, containers_dir: Path) -> List[Path]:
        """Touch every missing relative bind-mount file.

        Returns:
            Files that were created
        """
        logger.info("Ensuring bind-mount FILES exist (touch missing files).")
        touched = []

        for compose_file in self.find_compose_files(Path(containers_dir)):
            base_dir = compose_file.parent
            for mount in self.mounts_in(compose_file):
                if mount.source.endswith("/"):
                    continue

                path = base_dir / mount.source[2:]
                if path.exists():
                    continue

                path.parent.mkdir(parents=True, exist_ok=True)
                path.touch()
                if self.user is not None:
                    chown_file(path, self.user, MOUNT_FILE_MODE, mock=self.mock)
                else:
                    path.chmod(MOUNT_FILE_MODE)

                logger.info(f"Touched missing file: {path}")
                touched.append(path)

        return touched
