"""
Configuration du bridge, lue une seule fois depuis l'environnement.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from ..auth import AuthConfig
from ..core.constants import (
    ENV_BEARER_TOKEN,
    ENV_PASSWORD,
    ENV_SERVER_URL,
    ENV_USERNAME,
    LOG_DIR_NAME,
    LOG_FILE_NAME,
    MSG_CONFIG_CONFLICT,
)
from ..core.exceptions import ConfigConflictError, ConfigMissingError


def _env_str(environ: Mapping[str, str], name: str) -> Optional[str]:
    # Chaîne vide == non définie
    raw = environ.get(name)
    if raw is None or raw == "":
        return None
    return raw


def default_log_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    """`<home>/bridge_logs/bridge.log` (HOME, puis USERPROFILE, puis Path.home())."""
    environ = os.environ if environ is None else environ
    home = environ.get("HOME") or environ.get("USERPROFILE")
    base = Path(home) if home else Path.home()
    return base / LOG_DIR_NAME / LOG_FILE_NAME


@dataclass(frozen=True)
class BridgeSettings:
    """Configuration immuable du bridge."""
    server_url: str
    bearer_token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> BridgeSettings:
        """
        Charge la configuration depuis les variables d'environnement.

        Args:
            environ: Mapping à lire (défaut: os.environ)

        Returns:
            Instance BridgeSettings

        Raises:
            ConfigMissingError: si MCP_SERVER est absent ou vide
        """
        environ = os.environ if environ is None else environ

        server_url = _env_str(environ, ENV_SERVER_URL)
        if server_url is None:
            raise ConfigMissingError(
                f"{ENV_SERVER_URL} environment variable is not set.",
                config_key=ENV_SERVER_URL,
            )

        return cls(
            server_url=server_url,
            bearer_token=_env_str(environ, ENV_BEARER_TOKEN),
            username=_env_str(environ, ENV_USERNAME),
            password=_env_str(environ, ENV_PASSWORD),
        )

    @property
    def has_auth_conflict(self) -> bool:
        return bool(self.bearer_token) and bool(self.username or self.password)

    def validate(self) -> None:
        """Lève ConfigConflictError si bearer et basic sont configurés ensemble."""
        if self.has_auth_conflict:
            raise ConfigConflictError(MSG_CONFIG_CONFLICT, config_key=ENV_BEARER_TOKEN)

    def auth(self) -> AuthConfig:
        return AuthConfig.from_credentials(self.bearer_token, self.username, self.password)
