"""pi-homelab - Docker Compose home server stack and installer."""

__version__ = "0.1.0"
