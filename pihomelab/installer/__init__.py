"""
Host installer for the pi-homelab stacks.

Installs Docker, syncs the repository into place, derives per-stack .env
files from their templates and pre-creates bind-mounted files.
"""

from .bind_mounts import BindMount, BindMountFiles
from .env_files import EnvFileProvisioner, ProvisionResult
from .orchestrator import InstallOrchestrator
from .report import InstallReport
from .repo import RepoFetcher
from .system import DockerInstaller, InstallError, RealUser

__all__ = [
    "BindMount",
    "BindMountFiles",
    "DockerInstaller",
    "EnvFileProvisioner",
    "InstallError",
    "InstallOrchestrator",
    "InstallReport",
    "ProvisionResult",
    "RealUser",
    "RepoFetcher",
]
