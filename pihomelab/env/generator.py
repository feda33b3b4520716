"""Random password and token generation for stack env files."""
import base64
import random
import secrets
from typing import Callable, Optional

from pihomelab.core.logger import get_logger

logger = get_logger(__name__)

PASSWORD_BYTES = 24
TOKEN_BYTES = 48

# Base64 artifacts that break unquoted KEY=VALUE lines, shell words and URLs.
_SAFE_SUBSTITUTES = str.maketrans({"/": "x", "+": "y", "=": "z"})


class EntropyUnavailable(RuntimeError):
    """Raised when no cryptographically secure random source is available."""
    pass


class SecretGenerator:
    """Produces opaque secrets in two strength classes.

    Passwords are built from 24 random bytes and tokens from 48, base64
    encoded with ``/``, ``+`` and ``=`` swapped for alphanumerics so the
    result can be pasted anywhere without quoting.
    """

    def __init__(
        self,
        allow_weak_entropy: bool = False,
        entropy_source: Optional[Callable[[int], bytes]] = None,
    ):
        self.allow_weak_entropy = allow_weak_entropy
        self._entropy_source = entropy_source or secrets.token_bytes

    def generate_password(self) -> str:
        """Generate an interactive admin password."""
        return self._encode(self._random_bytes(PASSWORD_BYTES))

    def generate_token(self) -> str:
        """Generate an API admin token."""
        return self._encode(self._random_bytes(TOKEN_BYTES))

    def _random_bytes(self, count: int) -> bytes:
        try:
            return self._entropy_source(count)
        except (NotImplementedError, OSError) as e:
            if not self.allow_weak_entropy:
                raise EntropyUnavailable(
                    f"Secure random source unavailable: {e}. "
                    "Set PIHOMELAB_ALLOW_WEAK_ENTROPY=1 to accept a degraded fallback."
                ) from e

        logger.warning(
            "Secure random source unavailable; generating secret with a "
            "non-cryptographic fallback (degraded). Rotate it once the host is fixed."
        )
        return random.Random().randbytes(count)

    @staticmethod
    def _encode(raw: bytes) -> str:
        return base64.b64encode(raw).decode("ascii").translate(_SAFE_SUBSTITUTES)
