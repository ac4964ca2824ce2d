"""
Construction des en-têtes HTTP pour le serveur MCP distant.

Deux schémas mutuellement exclusifs:
- Bearer: `Authorization: Bearer <token>`
- Basic:  `Authorization: Basic base64(username:password)`
"""
from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Dict, Literal, Optional

from .core.constants import CONTENT_TYPE_JSON, MSG_CONFIG_CONFLICT
from .core.exceptions import ConfigConflictError


AuthScheme = Literal["none", "bearer", "basic"]


@dataclass(frozen=True)
class AuthConfig:
    """Choix d'authentification (aucune, bearer ou basic)."""
    scheme: AuthScheme = "none"
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_credentials(
        cls,
        bearer_token: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> AuthConfig:
        """
        Résout le schéma à partir des identifiants optionnels.

        Les chaînes vides comptent comme absentes. Un username sans password
        (ou l'inverse) ne donne pas d'auth Basic.

        Raises:
            ConfigConflictError: si un token est fourni avec username ou password
        """
        if bearer_token and (username or password):
            raise ConfigConflictError(
                MSG_CONFIG_CONFLICT,
                config_key="BEARER_TOKEN",
            )
        if bearer_token:
            return cls(scheme="bearer", token=bearer_token)
        if username and password:
            return cls(scheme="basic", username=username, password=password)
        return cls()

    def authorization(self) -> Optional[str]:
        if self.scheme == "bearer":
            return f"Bearer {self.token}"
        if self.scheme == "basic":
            raw = f"{self.username}:{self.password}".encode("utf-8")
            return f"Basic {base64.b64encode(raw).decode('ascii')}"
        return None

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": CONTENT_TYPE_JSON}
        authorization = self.authorization()
        if authorization is not None:
            headers["Authorization"] = authorization
        return headers


def build_headers(
    bearer_token: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> Dict[str, str]:
    """En-têtes du POST relayé; lève ConfigConflictError si les deux schémas sont configurés."""
    return AuthConfig.from_credentials(bearer_token, username, password).headers()
