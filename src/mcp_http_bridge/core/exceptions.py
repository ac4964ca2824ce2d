"""
Exceptions personnalisées pour MCP HTTP Bridge.

Deux familles:
- les erreurs de configuration, fatales pour le process entier;
- les erreurs par message, isolées au message qui les a produites.
"""


class BridgeError(Exception):
    """Exception de base pour toutes les erreurs du bridge."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(BridgeError):
    """Erreur de configuration (variable manquante, valeurs incompatibles)."""

    fatal = True

    def __init__(self, message: str, config_key: str = None, code: str = "config_error"):
        super().__init__(
            message=message,
            code=code,
            details={"key": config_key} if config_key else {}
        )


class ConfigMissingError(ConfigurationError):
    """MCP_SERVER absent: le bridge ne peut rien relayer."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(message, config_key=config_key, code="config_missing")


class ConfigConflictError(ConfigurationError):
    """BEARER_TOKEN configuré en même temps que USERNAME et/ou PASSWORD."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(message, config_key=config_key, code="config_conflict")


class MessageParseError(BridgeError):
    """Span framé qui n'est pas un objet JSON valide."""

    def __init__(self, message: str, preview: str = None):
        details = {}
        if preview:
            details["preview"] = preview[:200]
        super().__init__(
            message=message,
            code="message_parse_error",
            details=details
        )


class RelayTransportError(BridgeError):
    """Échec réseau du POST (DNS, TLS, connexion refusée...)."""

    def __init__(self, message: str, server_url: str = None):
        super().__init__(
            message=message,
            code="transport_error",
            details={"server": server_url} if server_url else {}
        )


class ResponseParseError(BridgeError):
    """Le serveur a répondu avec un corps qui n'est pas du JSON."""

    def __init__(self, message: str, raw_body: str = None):
        super().__init__(
            message=message,
            code="response_parse_error",
            details={"raw": raw_body[:200]} if raw_body else {}
        )


class EmptyResponseError(BridgeError):
    """Le serveur a répondu avec un corps vide."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(
            message=message,
            code="empty_response",
            details={"status_code": status_code} if status_code is not None else {}
        )
