"""Fetch the homelab repository tarball and place it in the install directory."""
from __future__ import annotations

import shutil
import subprocess
import tarfile
import tempfile
from pathlib import Path
from typing import List, Optional

import requests

from pihomelab.core.config import InstallerConfig
from pihomelab.core.logger import get_logger
from pihomelab.core.retry import retry
from pihomelab.installer.system import InstallError

logger = get_logger(__name__)

# Operator-owned files that a re-sync must never overwrite or prune.
PROTECTED_PATTERNS = [".env"]


class RepoFetcher:
    """Downloads the repo as a GitHub tarball (no git clone needed) and syncs it."""

    def __init__(self, config: InstallerConfig, work_dir: Optional[Path] = None):
        self.config = config
        self.work_dir = Path(work_dir) if work_dir else None
        self._tmpdir: Optional[tempfile.TemporaryDirectory] = None

    def _workspace(self) -> Path:
        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)
            return self.work_dir
        if self._tmpdir is None:
            self._tmpdir = tempfile.TemporaryDirectory(prefix="pihomelab-")
        return Path(self._tmpdir.name)

    def cleanup(self) -> None:
        if self._tmpdir is not None:
            self._tmpdir.cleanup()
            self._tmpdir = None

    @retry((requests.ConnectionError, requests.Timeout))
    def _fetch(self, url: str, target: Path) -> None:
        with requests.get(url, stream=True, timeout=self.config.download_timeout) as response:
            response.raise_for_status()
            with open(target, "wb") as out:
                for chunk in response.iter_content(chunk_size=65536):
                    out.write(chunk)

    def download(self) -> Path:
        """Download and extract the tarball.

        Returns:
            Path to the extracted repository root

        Raises:
            InstallError: If the download fails or the archive has no repo root
        """
        cfg = self.config
        url = cfg.tarball_url
        workspace = self._workspace()
        archive = workspace / "repo.tar.gz"

        logger.info(f"Downloading repo tarball: {cfg.repo_owner}/{cfg.repo_name}@{cfg.repo_ref}")
        logger.info(f"URL: {url}")
        try:
            self._fetch(url, archive)
        except requests.RequestException as e:
            raise InstallError(
                f"Failed to download tarball ({e}). Check REPO_OWNER/REPO_NAME/REPO_REF."
            ) from e

        return self.extract(archive, workspace)

    def extract(self, archive: Path, destination: Path) -> Path:
        """Extract ``archive`` and return the ``<repo_name>-*`` root directory."""
        logger.info("Extracting...")
        try:
            with tarfile.open(archive, "r:gz") as tar:
                tar.extractall(destination, filter="data")
        except (tarfile.TarError, OSError) as e:
            raise InstallError(f"Failed to extract {archive}: {e}") from e

        # codeload names the root "<repo>-<ref>", with slashes in refs turned into dashes
        candidates = sorted(
            p for p in destination.glob(f"{self.config.repo_name}-*") if p.is_dir()
        )
        if not candidates:
            raise InstallError("Could not find extracted repo directory in tarball.")
        return candidates[0]

    def sync(self, src_dir: Path, prune: bool = False) -> Path:
        """Copy the extracted repo into the install directory.

        Args:
            src_dir: Extracted repository root
            prune: Delete files in the install dir that no longer exist upstream
                (rsync only; live .env files are always kept)

        Returns:
            The install directory
        """
        install_dir = Path(self.config.install_dir)
        logger.info(f"Installing to {install_dir}")
        install_dir.mkdir(parents=True, exist_ok=True)

        if shutil.which("rsync"):
            cmd = self.rsync_command(src_dir, install_dir, prune)
            try:
                subprocess.run(cmd, capture_output=True, text=True, check=True)
            except subprocess.CalledProcessError as e:
                raise InstallError(f"rsync failed: {e.stderr.strip() or e}") from e
        else:
            logger.warning("rsync not found; copying files instead (removed files are not deleted).")
            shutil.copytree(
                src_dir,
                install_dir,
                dirs_exist_ok=True,
                symlinks=True,
                ignore=shutil.ignore_patterns(*PROTECTED_PATTERNS),
            )

        return install_dir

    @staticmethod
    def rsync_command(src_dir: Path, install_dir: Path, prune: bool = False) -> List[str]:
        cmd = ["rsync", "-a"]
        if prune:
            cmd.append("--delete")
        for pattern in PROTECTED_PATTERNS:
            cmd.append(f"--exclude={pattern}")
        cmd.extend([f"{src_dir}/", f"{install_dir}/"])
        return cmd
