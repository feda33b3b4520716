"""Sequence the install steps: Docker, repo sync, env files, bind mounts."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pihomelab.core.config import InstallerConfig
from pihomelab.core.logger import get_logger
from pihomelab.env.bootstrap import EnvBootstrapper
from pihomelab.env.generator import SecretGenerator
from pihomelab.env.registry import StackRegistry, load_registry
from pihomelab.installer.bind_mounts import BindMountFiles
from pihomelab.installer.env_files import EnvFileProvisioner
from pihomelab.installer.report import InstallReport
from pihomelab.installer.repo import RepoFetcher
from pihomelab.installer.system import (
    DockerInstaller,
    InstallError,
    RealUser,
    chown_tree,
    require_root,
)

logger = get_logger(__name__)

UNSET_OWNER = "<OWNER>"
CONTAINERS_DIR = "containers"


class InstallOrchestrator:
    """Runs a full install.

    Steps run strictly in order: env files must exist before secrets are
    resolved into them, and every stack is bootstrapped before the report is
    built so the disclosed secrets are complete.
    """

    def __init__(
        self,
        config: InstallerConfig,
        mock: bool = False,
        prune: bool = False,
        user: Optional[RealUser] = None,
        registry: Optional[StackRegistry] = None,
        fetcher: Optional[RepoFetcher] = None,
        docker: Optional[DockerInstaller] = None,
    ):
        self.config = config
        self.mock = mock
        self.prune = prune
        self.user = user or RealUser.detect()
        self.registry = registry or load_registry(config.registry_file)
        self.fetcher = fetcher or RepoFetcher(config)
        self.docker = docker or DockerInstaller(self.user, mock=mock)

    def preflight(self) -> None:
        require_root(mock=self.mock)
        if self.config.repo_owner == UNSET_OWNER:
            raise InstallError("Please set REPO_OWNER (e.g. export REPO_OWNER=...).")

    def run(self) -> InstallReport:
        self.preflight()

        report = InstallReport(install_dir=Path(self.config.install_dir))

        report.docker_installed = self.docker.ensure_docker()
        report.docker_group_added = self.docker.added_to_docker_group
        self.docker.ensure_compose()

        try:
            src_dir = self.fetcher.download()
            install_dir = self.fetcher.sync(src_dir, prune=self.prune)
        finally:
            self.fetcher.cleanup()

        chown_tree(install_dir, self.user, mock=self.mock)

        self.configure(install_dir, report)
        return report

    def configure(self, install_dir: Path, report: InstallReport) -> InstallReport:
        """Env files and bind-mount files for an already synced install dir."""
        containers_dir = Path(install_dir) / CONTAINERS_DIR

        bootstrapper = EnvBootstrapper(
            registry=self.registry,
            generator=SecretGenerator(allow_weak_entropy=self.config.allow_weak_entropy),
        )
        provisioned = EnvFileProvisioner(bootstrapper, user=self.user, mock=self.mock).provision(containers_dir)
        report.created_env_files.extend(provisioned.created)
        report.secrets.merge(provisioned.secrets)

        report.touched_files.extend(
            BindMountFiles(user=self.user, mock=self.mock).ensure(containers_dir)
        )
        return report
