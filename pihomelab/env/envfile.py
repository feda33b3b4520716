"""Line-preserving .env file model and the placeholder-aware value resolver.

A stack's ``.env`` is treated as an ordered list of text lines. Only lines of
the form ``KEY=VALUE`` are interpreted; comments, blank lines and malformed
lines are carried through untouched. Values are only ever written for keys
that are missing, empty, or still hold a ``CHANGEME`` placeholder, so a
secret an operator has edited by hand is never replaced.
"""
from __future__ import annotations

import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from pihomelab.core.logger import get_logger

logger = get_logger(__name__)

PLACEHOLDER_PREFIX = "CHANGEME"

DesiredValue = Union[str, Callable[[], str]]


class ConfigFileNotFound(FileNotFoundError):
    """Raised when a stack env file has not been created from its template."""
    pass


class ConfigFileUnreadable(OSError):
    """Raised when a stack env file exists but cannot be read as UTF-8 text."""
    pass


class PersistFailure(OSError):
    """Raised when a modified env file cannot be written back."""
    pass


class KeyState(str, Enum):
    """Lifecycle of one key: ABSENT/PLACEHOLDER may move to SET, SET is final."""

    ABSENT = "absent"
    PLACEHOLDER = "placeholder"
    SET = "set"


def parse_line(line: str) -> Optional[Tuple[str, str]]:
    """Split a ``KEY=VALUE`` line, or return None for comments/blank/malformed lines."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    if "=" not in stripped:
        return None

    key, _, value = stripped.partition("=")
    key = key.strip()
    if not key:
        return None
    return key, value.strip()


def unquote(value: str) -> str:
    """Strip one layer of matching single or double quotes."""
    if len(value) >= 2 and value[0] in ("'", '"') and value[-1] == value[0]:
        return value[1:-1]
    return value


def is_placeholder(value: str) -> bool:
    """True for empty values and values starting with the CHANGEME sentinel."""
    bare = unquote(value)
    return bare == "" or bare.startswith(PLACEHOLDER_PREFIX)


class EnvFile:
    """In-memory view of one ``.env`` file."""

    def __init__(self, path: Path, lines: Optional[List[str]] = None, trailing_newline: bool = True):
        self.path = Path(path)
        self.lines: List[str] = list(lines or [])
        self.trailing_newline = trailing_newline
        self.modified = False

    @classmethod
    def load(cls, path: Union[str, Path]) -> "EnvFile":
        """Read an existing env file.

        Raises:
            ConfigFileNotFound: If the file does not exist
            ConfigFileUnreadable: If it cannot be read or is not UTF-8
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigFileNotFound(
                f"Env file not found: {path} (create it from .env.example first)"
            )

        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ConfigFileUnreadable(
                f"Env file {path} is not valid UTF-8 (byte {e.start}); re-save it as UTF-8"
            ) from e
        except OSError as e:
            raise ConfigFileUnreadable(f"Cannot read env file {path}: {e}") from e
        return cls(path, text.splitlines(), trailing_newline=text.endswith("\n"))

    def _indexes_of(self, key: str) -> List[int]:
        indexes = []
        for index, line in enumerate(self.lines):
            parsed = parse_line(line)
            if parsed is None:
                if line.strip() and not line.strip().startswith("#"):
                    logger.debug(f"{self.path}: skipping malformed line {index + 1}")
                continue
            if parsed[0] == key:
                indexes.append(index)
        return indexes

    def get(self, key: str) -> Optional[str]:
        """Return the raw (still quoted) value of the last definition of key."""
        indexes = self._indexes_of(key)
        if not indexes:
            return None
        return parse_line(self.lines[indexes[-1]])[1]

    def state_of(self, key: str) -> KeyState:
        value = self.get(key)
        if value is None:
            return KeyState.ABSENT
        if is_placeholder(value):
            return KeyState.PLACEHOLDER
        return KeyState.SET

    def keys(self) -> List[str]:
        seen = []
        for line in self.lines:
            parsed = parse_line(line)
            if parsed and parsed[0] not in seen:
                seen.append(parsed[0])
        return seen

    def set(self, key: str, value: str) -> None:
        """Write ``KEY=value``, replacing the last definition in place.

        Earlier duplicate definitions are dropped so the key appears once.
        """
        new_line = f"{key}={value}"
        indexes = self._indexes_of(key)

        if not indexes:
            self.lines.append(new_line)
            self.trailing_newline = True
        else:
            self.lines[indexes[-1]] = new_line
            for index in reversed(indexes[:-1]):
                del self.lines[index]

        self.modified = True

    def render(self) -> str:
        text = "\n".join(self.lines)
        if self.lines and self.trailing_newline:
            text += "\n"
        return text

    def save(self) -> bool:
        """Atomically write the file back if anything changed.

        The new content goes to a temporary file in the same directory which
        then replaces the original, so a failed write leaves the old file intact.

        Returns:
            True if the file was written

        Raises:
            PersistFailure: If the file cannot be written
        """
        if not self.modified:
            return False

        temp_path = None
        try:
            original = self.path.stat() if self.path.exists() else None
            mode = original.st_mode & 0o777 if original is not None else 0o600
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                temp_path = Path(f.name)
                f.write(self.render())
                f.flush()
                os.fsync(f.fileno())

            os.chmod(temp_path, mode)
            if original is not None:
                _copy_owner(temp_path, original)
            os.replace(temp_path, self.path)
        except OSError as e:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            raise PersistFailure(f"Failed to write {self.path}: {e}") from e

        self.modified = False
        logger.debug(f"Wrote {self.path}")
        return True


def _copy_owner(path: Path, original: os.stat_result) -> None:
    """Give the replacement file the owner and group of the file it replaces.

    A refusal is raised for root and only logged for an unprivileged caller.
    """
    try:
        os.chown(path, original.st_uid, original.st_gid)
    except PermissionError:
        if os.geteuid() == 0:
            raise
        logger.warning(
            f"Could not keep owner {original.st_uid}:{original.st_gid} on {path}; "
            "file is now owned by the current user"
        )


def resolve(
    env_file: EnvFile,
    key: str,
    desired_value: DesiredValue,
    origin: str = "",
) -> Tuple[EnvFile, bool]:
    """Give ``key`` a real value unless it already has one.

    Args:
        env_file: File to update in memory
        key: Variable name
        desired_value: Value to write, or a callable producing it; the callable
            is only invoked when a value is actually needed
        origin: Label used in log messages (e.g. ``dns/PIHOLE_WEBPASSWORD``)

    Returns:
        Tuple of (env_file, was_generated)
    """
    label = origin or key
    state = env_file.state_of(key)

    if state is KeyState.SET:
        logger.debug(f"{label}: already set, leaving untouched")
        return env_file, False

    value = desired_value() if callable(desired_value) else desired_value
    env_file.set(key, value)

    if state is KeyState.ABSENT:
        logger.info(f"{label}: added")
    else:
        logger.info(f"{label}: replaced placeholder")
    return env_file, True
