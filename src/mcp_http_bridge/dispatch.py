"""
Classification JSON-RPC et lancement des relais.

Chaque message framé est parsé strictement. Un message invalide est
journalisé puis abandonné sans sortie: aucun id ne peut en être extrait de
façon fiable. Un message valide part en relais dans sa propre tâche asyncio,
qu'il s'agisse d'une requête ou d'une notification.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from .config.settings import BridgeSettings
from .core.constants import JSONRPC_CONFIG_CONFLICT, MSG_CONFIG_CONFLICT
from .core.exceptions import ConfigConflictError, MessageParseError
from .core.models import FramedMessage, RelayOutcome, RpcEnvelope, jsonrpc_error, loads_strict
from .emitter import ResponseEmitter
from .transport import RelayTransport

logger = logging.getLogger(__name__)


def parse_envelope(message: FramedMessage) -> RpcEnvelope:
    """
    Parse strict d'un span framé.

    Raises:
        MessageParseError: JSON invalide, UTF-8 invalide, ou valeur non-objet
    """
    try:
        payload = loads_strict(message.data)
    except ValueError as e:  # JSONDecodeError et UnicodeDecodeError en héritent
        raise MessageParseError(str(e), preview=message.preview()) from e

    if not isinstance(payload, dict):
        raise MessageParseError("top-level JSON value is not an object", preview=message.preview())

    return RpcEnvelope.from_payload(message.data, payload)


class Dispatcher:
    """
    Classe les messages et lance un relais par message valide.

    Les tâches de relais sont conservées (référence forte) jusqu'à leur fin;
    aucune n'est annulée, même après la fin de stdin.
    """

    def __init__(
        self,
        settings: BridgeSettings,
        transport: RelayTransport,
        emitter: ResponseEmitter,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.emitter = emitter
        self._tasks: Set[asyncio.Task] = set()
        self.dropped: int = 0
        self.relayed: int = 0

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def dispatch(self, message: FramedMessage) -> Optional[asyncio.Task]:
        """
        Traite un message framé.

        Returns:
            La tâche de relais, ou None si le message a été abandonné

        Raises:
            ConfigConflictError: configuration d'auth contradictoire (fatal)
        """
        logger.info("Input JSON: %s", message.data.decode("utf-8", errors="replace"))

        try:
            envelope = parse_envelope(message)
        except MessageParseError as e:
            self.dropped += 1
            logger.warning("Invalid JSON input dropped (%s): %s", e.message, message.preview())
            return None

        # Re-validation par message: la config ne change pas, mais un conflit
        # doit terminer le process même s'il n'a pas été vu au démarrage.
        if self.settings.has_auth_conflict:
            self._report_conflict(envelope)

        headers = self.settings.auth().headers()
        task = asyncio.create_task(self._relay(envelope, headers))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.relayed += 1
        return task

    async def wait_idle(self) -> None:
        """Attend la fin de tous les relais en cours (y compris ceux lancés entre-temps)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _report_conflict(self, envelope: RpcEnvelope) -> None:
        error = ConfigConflictError(MSG_CONFIG_CONFLICT, config_key="BEARER_TOKEN")
        logger.error("Error: %s", error.message)
        if not envelope.is_notification:
            self.emitter.write_payload(
                jsonrpc_error(
                    code=JSONRPC_CONFIG_CONFLICT,
                    message=error.message,
                    req_id=envelope.id,
                )
            )
        raise error

    async def _relay(self, envelope: RpcEnvelope, headers: dict) -> RelayOutcome:
        try:
            outcome = await self.transport.relay(envelope.raw, headers)
        except Exception as e:
            # Une erreur inattendue reste isolée à ce message.
            logger.exception("Unexpected relay failure for id=%r", envelope.id)
            outcome = RelayOutcome.transport_error(str(e) or e.__class__.__name__)

        logger.info(
            "Relay outcome for %s id=%r: %s (status=%s)",
            envelope.method or "<no method>",
            envelope.id,
            outcome.kind,
            outcome.status_code,
            extra={"request_id": outcome.correlation_id},
        )

        try:
            self.emitter.emit(envelope, outcome)
        except OSError:
            logger.exception("Cannot write response for id=%r to stdout", envelope.id)
        return outcome
