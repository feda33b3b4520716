"""Stack env file commands for the pi-homelab CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from pihomelab.cli_support import (
    handle_cli_error,
    is_mock,
    print_error,
    print_info,
    print_success,
    resolve_config,
)
from pihomelab.env.bootstrap import EnvBootstrapper, stack_name_for
from pihomelab.env.envfile import (
    ConfigFileNotFound,
    ConfigFileUnreadable,
    EnvFile,
    KeyState,
    PersistFailure,
)
from pihomelab.env.generator import EntropyUnavailable, SecretGenerator
from pihomelab.env.registry import (
    FixedValue,
    GeneratedPassword,
    RegistryError,
    StackRegistry,
    load_registry,
)
from pihomelab.installer.env_files import ENV_NAME, EnvFileProvisioner
from pihomelab.installer.report import print_secrets

env_app = typer.Typer(help="Inspect and bootstrap stack .env files", add_completion=False)
_ENV_APP_ATTACHED = False
console = Console()

ENV_ERRORS = (ConfigFileNotFound, ConfigFileUnreadable, PersistFailure, EntropyUnavailable, RegistryError)

_STATE_STYLES = {
    KeyState.ABSENT: "[red]absent[/red]",
    KeyState.PLACEHOLDER: "[yellow]placeholder[/yellow]",
    KeyState.SET: "[green]set[/green]",
}


def register_env_commands(app: typer.Typer, shared_console: Console) -> None:
    """Attach env subcommands to the main Typer app."""
    global console, _ENV_APP_ATTACHED
    console = shared_console

    if not _ENV_APP_ATTACHED:
        app.add_typer(env_app, name="env")
        _ENV_APP_ATTACHED = True


def _registry(registry_file: Optional[str]) -> StackRegistry:
    config = resolve_config(registry=registry_file)
    try:
        return load_registry(config.registry_file)
    except RegistryError as e:
        handle_cli_error(e, console)


def _env_path(path: Path) -> Path:
    """Accept either a stack directory or the .env file itself."""
    return path / ENV_NAME if path.is_dir() else path


def _strategy_label(requirement) -> str:
    strategy = requirement.strategy
    if isinstance(strategy, FixedValue):
        return f"fixed: {strategy.value}"
    if isinstance(strategy, GeneratedPassword):
        return "generated password"
    return "generated token"


@env_app.command("bootstrap")
def env_bootstrap(
    path: Path = typer.Argument(..., help="A .env file, or a directory of stacks with .env.example templates"),
    registry: Optional[str] = typer.Option(None, "--registry", help="Extra stack key registry (YAML)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show tracebacks on error"),
) -> None:
    """Fill missing, empty and CHANGEME values in stack .env files.

    Values an operator has already set are never changed.

    Examples:
        pihomelab env bootstrap /opt/pi-homelab/containers
        pihomelab env bootstrap containers/monitoring/.env
    """
    config = resolve_config(registry=registry)
    bootstrapper = EnvBootstrapper(
        registry=_registry(registry),
        generator=SecretGenerator(allow_weak_entropy=config.allow_weak_entropy),
    )

    try:
        if path.is_dir() and not (path / ENV_NAME).exists():
            result = EnvFileProvisioner(bootstrapper, mock=is_mock()).provision(path)
            for created in result.created:
                print_success(console, f"Created {created}")
            secrets = result.secrets
        else:
            env_path = _env_path(path)
            if stack_name_for(env_path) not in bootstrapper.registry:
                print_info(console, f"No keys registered for stack '{stack_name_for(env_path)}'")
            secrets = bootstrapper.bootstrap_file(env_path)
    except ENV_ERRORS as e:
        handle_cli_error(e, console, verbose)

    print_secrets(console, secrets)


@env_app.command("check")
def env_check(
    path: Path = typer.Argument(..., help="Stack directory or its .env file"),
    registry: Optional[str] = typer.Option(None, "--registry", help="Extra stack key registry (YAML)"),
) -> None:
    """Show which required keys are still unset (values are not printed)."""
    env_path = _env_path(path)
    stack = stack_name_for(env_path)
    requirements = _registry(registry).requirements_for(stack)

    if not requirements:
        print_info(console, f"No keys registered for stack '{stack}'")
        return

    try:
        env_file = EnvFile.load(env_path)
    except (ConfigFileNotFound, ConfigFileUnreadable) as e:
        handle_cli_error(e, console)

    table = Table(title=f"{stack}: {env_path}")
    table.add_column("Key", style="cyan")
    table.add_column("State")

    unset = 0
    for requirement in requirements:
        state = env_file.state_of(requirement.key)
        if state is not KeyState.SET:
            unset += 1
        table.add_row(requirement.key, _STATE_STYLES[state])

    console.print(table)

    if unset:
        print_error(console, f"{unset} key(s) need values. Run: pihomelab env bootstrap {env_path}")
        raise typer.Exit(1)
    print_success(console, "All required keys are set")


@env_app.command("stacks")
def env_stacks(
    registry: Optional[str] = typer.Option(None, "--registry", help="Extra stack key registry (YAML)"),
) -> None:
    """List the keys each stack's .env must provide."""
    stack_registry = _registry(registry)

    table = Table(title="Stack env requirements")
    table.add_column("Stack", style="cyan")
    table.add_column("Key")
    table.add_column("Default")

    for stack in stack_registry.stacks():
        for requirement in stack_registry.requirements_for(stack):
            table.add_row(stack, requirement.key, _strategy_label(requirement))

    console.print(table)


@env_app.command("generate")
def env_generate(
    token: bool = typer.Option(False, "--token", help="Generate a 48-byte API token instead of a password"),
) -> None:
    """Print a freshly generated password or token."""
    config = resolve_config()
    generator = SecretGenerator(allow_weak_entropy=config.allow_weak_entropy)
    try:
        value = generator.generate_token() if token else generator.generate_password()
    except EntropyUnavailable as e:
        handle_cli_error(e, console)

    typer.echo(value)
