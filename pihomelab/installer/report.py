"""Operator-facing summary printed at the end of an install."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pihomelab.env.bootstrap import GeneratedSecretLog


@dataclass
class InstallReport:
    """What an install run changed on the host."""

    install_dir: Path
    docker_installed: bool = False
    docker_group_added: bool = False
    created_env_files: List[Path] = field(default_factory=list)
    touched_files: List[Path] = field(default_factory=list)
    secrets: GeneratedSecretLog = field(default_factory=GeneratedSecretLog)


def secrets_table(secrets: GeneratedSecretLog) -> Table:
    table = Table(title="Values written to .env files", show_lines=False)
    table.add_column("Stack/Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="bold")
    for origin, value in secrets.items():
        table.add_row(origin, value)
    return table


def print_secrets(console: Console, secrets: GeneratedSecretLog) -> None:
    """Show freshly written values once; they are not stored anywhere else."""
    if not secrets:
        console.print("[dim]No new values were written; existing .env files are complete.[/dim]")
        return
    console.print(secrets_table(secrets))
    console.print("[yellow]Save these now.[/yellow] They are only kept in the stacks' .env files.")


def next_steps(install_dir: Path, docker_group_added: bool = False) -> str:
    lines = [f"Repo installed to:\n  {install_dir}\n"]
    if docker_group_added:
        lines.append(
            "IMPORTANT:\n"
            "- You were added to the 'docker' group.\n"
            "  Log out/in (or reboot) so group membership applies.\n"
        )
    lines.append(
        "Next steps:\n"
        "1) Go to a stack directory, review .env, then start:\n"
        f"   cd {install_dir}/containers/dns\n"
        "   docker compose up -d\n"
        "\n"
        "2) Check status:\n"
        "   docker compose ps\n"
        "\n"
        "3) View logs:\n"
        "   docker compose logs -f\n"
        "\n"
        "To update later, re-run the installer (it re-syncs the repo contents), then run\n"
        "'docker compose pull && docker compose up -d' per stack."
    )
    return "\n".join(lines)


def print_report(console: Console, report: InstallReport) -> None:
    console.print()
    print_secrets(console, report.secrets)
    if report.touched_files:
        console.print(f"[dim]Created {len(report.touched_files)} empty bind-mount file(s).[/dim]")
    console.print(Panel(
        next_steps(report.install_dir, report.docker_group_added),
        title="✅ Installation complete",
        border_style="green",
    ))
