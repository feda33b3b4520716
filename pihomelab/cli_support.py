"""Shared utilities for pi-homelab CLI modules."""
from __future__ import annotations

import os
from dataclasses import replace
from typing import Optional

import typer
from rich.console import Console

from pihomelab.core.config import InstallerConfig, get_config


def is_mock() -> bool:
    """Return True when system-level steps should only be logged."""
    return os.environ.get("PIHOMELAB_MOCK", "").lower() in ("1", "true")


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    from pihomelab.core.logger import setup_file_logging as _setup_file_logging
    _setup_file_logging(log_file=log_file, verbose=verbose)


def resolve_config(
    owner: Optional[str] = None,
    name: Optional[str] = None,
    ref: Optional[str] = None,
    install_dir: Optional[str] = None,
    registry: Optional[str] = None,
) -> InstallerConfig:
    """Environment config with any CLI overrides applied."""
    overrides = {
        "repo_owner": owner,
        "repo_name": name,
        "repo_ref": ref,
        "install_dir": install_dir,
        "registry_file": registry,
    }
    return replace(get_config(), **{key: value for key, value in overrides.items() if value is not None})


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1,
) -> None:
    """Print an error consistently and exit."""
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    console.print(f"[cyan]{prefix}[/cyan] {message}")
