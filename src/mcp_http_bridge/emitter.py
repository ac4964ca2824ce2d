"""
Écriture des réponses JSON-RPC sur stdout.

stdout ne contient que des réponses à des requêtes (id non null), une par
ligne, en JSON compact. Les notifications ne produisent jamais de sortie.
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Optional, TextIO

from .core.constants import (
    JSONRPC_INTERNAL_ERROR,
    MSG_EMPTY_RESPONSE,
    MSG_INVALID_RESPONSE,
    MSG_REQUEST_FAILED,
)
from .core.models import RelayOutcome, RpcEnvelope, jsonrpc_error

logger = logging.getLogger(__name__)


def dumps_compact(payload: object) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


class ResponseEmitter:
    """Traduit un RelayOutcome en ligne stdout (ou en simple ligne de log)."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream
        self.lines_written: int = 0

    @property
    def stream(self) -> TextIO:
        # Résolu à l'écriture: les tests remplacent sys.stdout après construction.
        return self._stream if self._stream is not None else sys.stdout

    def write_payload(self, payload: object) -> None:
        # Un seul write par ligne: pas d'entrelacement entre relais concurrents.
        self.stream.write(dumps_compact(payload) + "\n")
        self.stream.flush()
        self.lines_written += 1

    def emit(self, envelope: RpcEnvelope, outcome: RelayOutcome) -> Optional[dict]:
        """
        Publie le résultat d'un relais.

        Returns:
            Le payload écrit sur stdout, ou None si rien n'a été écrit
        """
        extra = {"request_id": outcome.correlation_id}

        if envelope.is_notification:
            logger.info(
                "Notification %s relayed: %s",
                envelope.method or "<no method>",
                self._describe(outcome),
                extra=extra,
            )
            return None

        req_id = envelope.id

        if outcome.kind == "body":
            logger.info("Response JSON: %s", outcome.raw, extra=extra)
            self.write_payload(outcome.body)
            return outcome.body

        if outcome.kind == "empty":
            # Erreur construite et journalisée, mais jamais écrite sur stdout.
            payload = jsonrpc_error(code=JSONRPC_INTERNAL_ERROR, message=MSG_EMPTY_RESPONSE, req_id=req_id)
            logger.warning("Empty response for id=%r: %s", req_id, dumps_compact(payload), extra=extra)
            return None

        if outcome.kind == "invalid_body":
            payload = jsonrpc_error(
                code=JSONRPC_INTERNAL_ERROR,
                message=MSG_INVALID_RESPONSE,
                req_id=req_id,
                data=outcome.raw,
            )
            logger.warning("Invalid JSON response for id=%r: %s", req_id, outcome.raw, extra=extra)
            self.write_payload(payload)
            return payload

        payload = jsonrpc_error(
            code=JSONRPC_INTERNAL_ERROR,
            message=MSG_REQUEST_FAILED,
            req_id=req_id,
            data=outcome.error,
        )
        logger.warning("Request failed for id=%r: %s", req_id, outcome.error, extra=extra)
        self.write_payload(payload)
        return payload

    @staticmethod
    def _describe(outcome: RelayOutcome) -> str:
        if outcome.kind == "body":
            return f"response {outcome.raw}"
        if outcome.kind == "empty":
            return "empty response"
        if outcome.kind == "invalid_body":
            return f"invalid JSON response {outcome.raw}"
        return f"request failed ({outcome.error})"
