"""
Dataclasses métier pour MCP HTTP Bridge.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

from .constants import JSONRPC_VERSION


_MISSING = object()

OutcomeKind = Literal["body", "empty", "invalid_body", "transport_error"]


@dataclass(frozen=True)
class FramedMessage:
    """Span `{...}` équilibré en accolades, découpé dans le buffer stdin.

    Garantit seulement l'équilibre des accolades hors chaînes: le contenu
    peut encore être du JSON invalide.
    """
    data: bytes
    start: int
    end: int

    def __len__(self) -> int:
        return len(self.data)

    def preview(self, limit: int = 200) -> str:
        return self.data[:limit].decode("utf-8", errors="replace")


@dataclass(frozen=True)
class RpcEnvelope:
    """Message JSON-RPC 2.0 reçu sur stdin (requête ou notification)."""
    raw: bytes
    payload: Dict[str, Any] = field(repr=False)
    has_id: bool = False
    id: Any = None

    @classmethod
    def from_payload(cls, raw: bytes, payload: Dict[str, Any]) -> RpcEnvelope:
        req_id = payload.get("id", _MISSING)
        if req_id is _MISSING:
            return cls(raw=raw, payload=payload)
        return cls(raw=raw, payload=payload, has_id=True, id=req_id)

    @property
    def is_notification(self) -> bool:
        # id absent ou null => aucune réponse attendue
        return not self.has_id or self.id is None

    @property
    def method(self) -> Optional[str]:
        method = self.payload.get("method")
        return method if isinstance(method, str) else None


@dataclass(frozen=True)
class RelayOutcome:
    """Résultat d'un relais HTTP pour un message."""
    kind: OutcomeKind
    body: Any = None
    raw: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    correlation_id: Optional[str] = None

    @classmethod
    def from_body(cls, body: Any, raw: str, status_code: int = None, correlation_id: str = None) -> RelayOutcome:
        return cls(kind="body", body=body, raw=raw, status_code=status_code, correlation_id=correlation_id)

    @classmethod
    def empty(cls, status_code: int = None, correlation_id: str = None) -> RelayOutcome:
        return cls(kind="empty", raw="", status_code=status_code, correlation_id=correlation_id)

    @classmethod
    def invalid_body(cls, raw: str, status_code: int = None, correlation_id: str = None) -> RelayOutcome:
        return cls(kind="invalid_body", raw=raw, status_code=status_code, correlation_id=correlation_id)

    @classmethod
    def transport_error(cls, error: str) -> RelayOutcome:
        return cls(kind="transport_error", error=error)


def jsonrpc_error(*, code: int, message: str, req_id: object | None, data: object = _MISSING) -> dict[str, object]:
    """Construit un objet d'erreur JSON-RPC 2.0 (clés dans l'ordre jsonrpc, error, id)."""
    error: dict[str, object] = {"code": int(code), "message": message}
    if data is not _MISSING:
        error["data"] = data
    return {
        "jsonrpc": JSONRPC_VERSION,
        "error": error,
        "id": req_id,
    }


def _reject_constant(name: str) -> float:
    # NaN / Infinity / -Infinity: acceptés par json.loads, mais pas du JSON.
    raise ValueError(f"invalid JSON constant: {name}")


def loads_strict(data: str | bytes) -> Any:
    """json.loads qui refuse NaN/Infinity; lève ValueError sur toute entrée invalide."""
    return json.loads(data, parse_constant=_reject_constant)
