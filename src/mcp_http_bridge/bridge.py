"""
Boucle principale: stdin -> framer -> dispatcher -> relais HTTP -> stdout.

Une seule tâche lit stdin et possède le buffer de framing. Chaque message
complet lance un relais concurrent; les réponses sortent dans l'ordre où les
relais se terminent, pas dans l'ordre d'arrivée des requêtes.

À la fin de stdin, les relais en cours ne sont ni annulés ni limités dans le
temps: on attend qu'ils écrivent leur réponse avant de rendre la main.
"""
from __future__ import annotations

import asyncio
import logging
import os
import stat
import sys
from typing import Optional, TextIO

from .config.settings import BridgeSettings
from .core.constants import STDIN_CHUNK_SIZE
from .core.exceptions import ConfigConflictError
from .dispatch import Dispatcher
from .emitter import ResponseEmitter
from .framing import MessageFramer
from .transport import RelayTransport

logger = logging.getLogger(__name__)


class ThreadedStdinReader:
    """Lecture bloquante de stdin déportée dans un thread.

    Utilisé quand stdin ne peut pas être surveillé par la boucle asyncio
    (fichier régulier redirigé avec `<`, /dev/null).
    """

    def __init__(self, stream) -> None:
        self._stream = stream

    async def read(self, n: int) -> bytes:
        return await asyncio.to_thread(self._stream.read1, n)


def _is_watchable(stream) -> bool:
    # epoll refuse les fichiers réguliers et /dev/null: seuls pipes, sockets et terminaux.
    try:
        fd = stream.fileno()
        mode = os.fstat(fd).st_mode
    except (OSError, ValueError):
        return False
    if stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode):
        return True
    return stat.S_ISCHR(mode) and os.isatty(fd)


async def _connect_stdin_reader():
    """Retourne un lecteur non-bloquant connecté à stdin (binaire)."""
    stream = sys.stdin.buffer
    if not _is_watchable(stream):
        logger.info("stdin is not a pipe, reading it from a worker thread")
        return ThreadedStdinReader(stream)

    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    try:
        await loop.connect_read_pipe(lambda: protocol, stream)
    except ValueError as e:
        logger.info("stdin cannot be watched by the event loop (%s), using a worker thread", e)
        return ThreadedStdinReader(stream)
    return reader


async def pump_stdin(reader, framer: MessageFramer, dispatcher: Dispatcher) -> None:
    """Lit stdin jusqu'à EOF et dispatche chaque message complet.

    Le scan du buffer est synchrone: la tâche ne se suspend que sur `read`.
    """
    while True:
        chunk = await reader.read(STDIN_CHUNK_SIZE)
        if not chunk:
            return

        logger.info("Received data from stdin (%d bytes)", len(chunk))
        framer.feed(chunk)
        for message in framer.drain():
            dispatcher.dispatch(message)


async def run_bridge(
    settings: BridgeSettings,
    *,
    reader=None,
    stdout: Optional[TextIO] = None,
    transport: Optional[RelayTransport] = None,
) -> int:
    """
    Exécute le bridge jusqu'à la fin de stdin.

    Args:
        settings: Configuration chargée au démarrage
        reader: Source d'octets avec `async read(n)` (défaut: stdin)
        stdout: Flux texte de sortie (défaut: sys.stdout)
        transport: Transport HTTP (défaut: RelayTransport sur settings.server_url)

    Returns:
        Code de sortie du process (0 = fin normale, 1 = conflit de configuration)
    """
    if reader is None:
        reader = await _connect_stdin_reader()

    owns_transport = transport is None
    if transport is None:
        transport = RelayTransport(settings.server_url)

    framer = MessageFramer()
    dispatcher = Dispatcher(settings, transport, ResponseEmitter(stdout))

    try:
        try:
            await pump_stdin(reader, framer, dispatcher)
        except ConfigConflictError as e:
            sys.stderr.write(f"Error: {e.message}\n")
            sys.stderr.flush()
            return 1

        tail = framer.close()
        if tail:
            logger.warning(
                "Dropping incomplete JSON at end of stream (%d bytes): %s",
                len(tail),
                tail[:200].decode("utf-8", errors="replace"),
            )

        logger.info(
            "Bridge shutting down: %d framed, %d relayed, %d dropped, %d noise byte(s) discarded",
            framer.framed,
            dispatcher.relayed,
            dispatcher.dropped,
            framer.discarded,
        )
        if dispatcher.in_flight:
            logger.info("Waiting for %d in-flight relay(s)", dispatcher.in_flight)
        await dispatcher.wait_idle()
        return 0
    finally:
        if owns_transport:
            await transport.aclose()
