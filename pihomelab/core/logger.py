"""Unified logging for pi-homelab with console and file output."""
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

console = Console()

# Log file configuration
LOG_DIR = Path("/var/log/pi-homelab")
LOG_FILE = LOG_DIR / "pihomelab.log"
FALLBACK_LOG_FILE = Path("/tmp/pihomelab.log")

_file_logging_configured = False

# Level for every pihomelab.* logger until setup_file_logging() changes it
PACKAGE_LOGGER = "pihomelab"
logging.getLogger(PACKAGE_LOGGER).setLevel(logging.INFO)


def setup_file_logging(log_file: str = None, verbose: bool = False):
    """Set up file logging for installer runs.

    Args:
        log_file: Path to log file (defaults to /var/log/pi-homelab/pihomelab.log)
        verbose: Enable debug-level logging

    Note:
        Falls back to /tmp if /var/log/pi-homelab is not writable.
        Secret values are never logged, only the keys they belong to.
    """
    global _file_logging_configured

    if _file_logging_configured:
        return

    target_log_file = Path(log_file) if log_file else LOG_FILE

    try:
        target_log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target_log_file)
    except PermissionError:
        target_log_file = FALLBACK_LOG_FILE
        file_handler = logging.FileHandler(target_log_file)

    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    root_logger = logging.getLogger(PACKAGE_LOGGER)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    _file_logging_configured = True
    root_logger.info(f"pi-homelab logging initialized: {target_log_file}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with a Rich console handler attached.

    Module loggers keep the NOTSET level so they follow the ``pihomelab``
    package logger, which setup_file_logging() lowers to DEBUG when verbose.
    The console handler itself stays at INFO.
    """
    logger = logging.getLogger(name)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    return logger
