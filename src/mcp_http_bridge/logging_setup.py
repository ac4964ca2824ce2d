"""
Journal d'audit du bridge (`~/bridge_logs/bridge.log`).

Format d'un enregistrement:

    2026-01-01T12:00:00.000Z [https://mcp.example.com] [RequestID: abc] message
    <ligne vide>

Important:
- Le bridge ne doit jamais écrire de logs sur stdout (sinon corruption JSON-RPC).
- Le journal n'est jamais relu par le process.
"""
from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


PACKAGE_LOGGER = "mcp_http_bridge"

_handler: Optional[logging.Handler] = None


class ServerTagFilter(logging.Filter):
    """Renseigne `server` et `request_id` quand l'appelant ne les passe pas via `extra`."""

    def __init__(self, server_url: Optional[str] = None) -> None:
        super().__init__()
        self.server_url = server_url

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "server"):
            record.server = self.server_url
        if not hasattr(record, "request_id"):
            record.request_id = None
        return True


class AuditFormatter(logging.Formatter):
    """Horodatage ISO 8601 UTC, tags optionnels, puis ligne vide de séparation."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        parts = [self.formatTime(record)]
        server = getattr(record, "server", None)
        if server:
            parts.append(f"[{server}]")
        request_id = getattr(record, "request_id", None)
        if request_id:
            parts.append(f"[RequestID: {request_id}]")
        if record.levelno >= logging.WARNING:
            parts.append(f"{record.levelname}:")
        parts.append(record.getMessage())

        text = " ".join(parts)
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text + "\n"


def configure_audit_logging(
    log_path: Path,
    server_url: Optional[str] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """
    Branche le fichier d'audit sur le logger du package.

    Crée le répertoire parent si besoin. Si le fichier n'est pas accessible
    en écriture, un avertissement est écrit sur stderr et le journal devient
    silencieux: le bridge continue de relayer.

    Args:
        log_path: Chemin du fichier de log
        server_url: URL du serveur, ajoutée en tag à chaque enregistrement
        level: Niveau minimal journalisé

    Returns:
        Le logger du package
    """
    global _handler

    reset_audit_logging()
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.propagate = False

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    except OSError:
        sys.stderr.write(f"Warning: Cannot write to {log_path}. Check permissions or file system.\n")
        sys.stderr.flush()
        handler = logging.NullHandler()

    handler.setFormatter(AuditFormatter())
    handler.addFilter(ServerTagFilter(server_url))
    logger.addHandler(handler)
    _handler = handler
    return logger


def set_server_tag(server_url: Optional[str]) -> None:
    """Met à jour le tag serveur une fois la configuration chargée."""
    if _handler is None:
        return
    for flt in _handler.filters:
        if isinstance(flt, ServerTagFilter):
            flt.server_url = server_url


def reset_audit_logging() -> None:
    """Détache (et ferme) le handler installé par configure_audit_logging."""
    global _handler

    if _handler is None:
        return
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.removeHandler(_handler)
    logger.propagate = True
    _handler.close()
    _handler = None
