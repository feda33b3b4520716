#!/usr/bin/env python3
"""pi-homelab CLI - install and configure the home server stacks."""

import typer
from rich.console import Console

from pihomelab.cli_env_commands import register_env_commands
from pihomelab.cli_install_commands import register_install_commands

app = typer.Typer(
    name="pihomelab",
    help="""pi-homelab - Docker Compose home server stack installer

DNS filtering, smart home, MQTT, InfluxDB, Grafana and Portainer.

Quick start:
  sudo pihomelab install             # Install Docker + stacks to /opt/pi-homelab
  pihomelab env check containers/dns # See which keys still need values
  pihomelab env bootstrap containers # Fill missing secrets

More commands: pihomelab --help
""",
    add_completion=False,
)

console = Console()

register_install_commands(app, console)
register_env_commands(app, console)


def main():
    app()


if __name__ == "__main__":
    main()
