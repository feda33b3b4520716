"""Install CLI commands - install, mounts."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from pihomelab.cli_support import (
    handle_cli_error,
    is_mock,
    print_info,
    print_success,
    resolve_config,
    setup_file_logging,
)
from pihomelab.core.lock import LockError, install_lock
from pihomelab.env.envfile import ConfigFileNotFound, ConfigFileUnreadable, PersistFailure
from pihomelab.env.generator import EntropyUnavailable
from pihomelab.env.registry import RegistryError
from pihomelab.installer.bind_mounts import BindMountFiles
from pihomelab.installer.orchestrator import InstallOrchestrator
from pihomelab.installer.report import print_report
from pihomelab.installer.system import InstallError

# Module-level console instance (will be set by register function)
console: Console = Console()

INSTALL_ERRORS = (
    InstallError,
    LockError,
    RegistryError,
    ConfigFileNotFound,
    ConfigFileUnreadable,
    PersistFailure,
    EntropyUnavailable,
)


def install(
    owner: Optional[str] = typer.Option(None, "--owner", help="GitHub owner of the repo (env: REPO_OWNER)"),
    name: Optional[str] = typer.Option(None, "--name", help="Repository name (env: REPO_NAME)"),
    ref: Optional[str] = typer.Option(None, "--ref", help="Branch, tag or commit (env: REPO_REF)"),
    install_dir: Optional[str] = typer.Option(None, "--install-dir", help="Target directory (env: INSTALL_DIR)"),
    registry: Optional[str] = typer.Option(None, "--registry", help="Extra stack key registry (YAML)"),
    prune: bool = typer.Option(False, "--prune", help="Delete files removed upstream (rsync --delete)"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Write a log file here"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and tracebacks"),
):
    """Install Docker and the homelab stacks onto this host.

    Downloads the repo tarball, syncs it to the install directory, creates
    each stack's .env from .env.example (never overwriting) and fills in
    missing secrets.

    Examples:
        sudo pihomelab install
        sudo pihomelab install --owner me --ref v1.2.0
    """
    setup_file_logging(log_file, verbose)
    config = resolve_config(owner, name, ref, install_dir, registry)
    mock = is_mock()

    if mock:
        print_info(console, "Mock mode: system changes are logged, not applied")

    try:
        orchestrator = InstallOrchestrator(config, mock=mock, prune=prune)
        lock_file = Path(config.lock_file) if config.lock_file else None
        with install_lock(lock_file=lock_file):
            report = orchestrator.run()
    except INSTALL_ERRORS as e:
        handle_cli_error(e, console, verbose)

    print_report(console, report)


def mounts(
    path: Path = typer.Argument(..., help="Containers directory to scan for compose files"),
):
    """Create empty files for missing relative bind mounts."""
    touched = BindMountFiles(mock=is_mock()).ensure(path)
    if touched:
        for file in touched:
            print_success(console, f"Touched {file}")
    else:
        print_info(console, "All bind-mount files already exist")


def register_install_commands(app: typer.Typer, shared_console: Console) -> None:
    """Attach install commands to the main Typer app."""
    global console
    console = shared_console

    app.command()(install)
    app.command()(mounts)
