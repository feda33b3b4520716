"""Derive each stack's .env from its .env.example and fill in missing secrets."""
from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from pihomelab.core.logger import get_logger
from pihomelab.env.bootstrap import EnvBootstrapper, GeneratedSecretLog
from pihomelab.installer.system import RealUser, chown_file

logger = get_logger(__name__)

TEMPLATE_NAME = ".env.example"
ENV_NAME = ".env"
ENV_FILE_MODE = 0o600


@dataclass
class ProvisionResult:
    """Outcome of provisioning env files under one containers directory."""

    created: List[Path] = field(default_factory=list)
    bootstrapped: List[Path] = field(default_factory=list)
    secrets: GeneratedSecretLog = field(default_factory=GeneratedSecretLog)


class EnvFileProvisioner:
    """Copies templates to live env files (never overwriting) then bootstraps them."""

    def __init__(
        self,
        bootstrapper: Optional[EnvBootstrapper] = None,
        user: Optional[RealUser] = None,
        mock: bool = False,
    ):
        self.bootstrapper = bootstrapper or EnvBootstrapper()
        self.user = user
        self.mock = mock

    def find_templates(self, containers_dir: Path) -> List[Path]:
        if not containers_dir.is_dir():
            logger.warning(f"No containers directory at {containers_dir}")
            return []
        return sorted(p for p in containers_dir.rglob(TEMPLATE_NAME) if p.is_file())

    def ensure_env_file(self, template: Path) -> Optional[Path]:
        """Create ``.env`` next to ``template`` if it doesn't exist yet.

        Returns:
            Path of the created file, or None if one already existed
        """
        env_file = template.with_name(ENV_NAME)
        if env_file.exists():
            return None

        shutil.copyfile(template, env_file)
        if self.user is not None:
            chown_file(env_file, self.user, ENV_FILE_MODE, mock=self.mock)
        else:
            env_file.chmod(ENV_FILE_MODE)

        logger.info(f"Created: {env_file} (from {TEMPLATE_NAME})")
        return env_file

    def provision(self, containers_dir: Path) -> ProvisionResult:
        """Create and bootstrap every stack env file under ``containers_dir``."""
        result = ProvisionResult()
        logger.info(f"Bootstrapping {ENV_NAME} from {TEMPLATE_NAME} (without overwriting existing {ENV_NAME})")

        for template in self.find_templates(Path(containers_dir)):
            created = self.ensure_env_file(template)
            if created is not None:
                result.created.append(created)

            env_file = template.with_name(ENV_NAME)
            result.secrets.merge(self.bootstrapper.bootstrap_file(env_file))
            result.bootstrapped.append(env_file)

        if result.secrets:
            logger.info(f"Generated {len(result.secrets)} value(s): {', '.join(result.secrets.origins())}")
        return result
