"""
Framing incrémental des messages JSON reçus sur stdin.

stdin n'est pas découpé en lignes fiables: un chunk peut contenir un objet
partiel, plusieurs objets concaténés, ou du bruit avant le premier `{`.
On extrait donc les objets de premier niveau par comptage d'accolades, en
ignorant celles qui apparaissent dans les chaînes JSON.

Le scan travaille directement sur les octets: en UTF-8, aucun octet d'un
caractère multi-octets ne vaut `"`, `\\`, `{` ou `}`.

L'état du scan (position, profondeur, état) est conservé entre deux chunks:
un objet de plusieurs MiB reçu par morceaux n'est parcouru qu'une fois.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from .core.models import FramedMessage


_OPEN_BRACE = ord("{")
_CLOSE_BRACE = ord("}")
_QUOTE = ord('"')
_BACKSLASH = ord("\\")

# Seuls octets significatifs dans chaque état: tout le reste est sauté d'un bloc.
_STRING_SPECIALS = re.compile(rb'["\\]')
_OBJECT_SPECIALS = re.compile(rb'["{}]')

Buffer = Union[bytes, bytearray, memoryview]


class ScanState(enum.Enum):
    OUTSIDE = "outside"
    IN_OBJECT = "in_object"
    IN_STRING = "in_string"
    ESCAPED = "escaped"


@dataclass
class ScanCursor:
    """Point de reprise du scan d'un objet (offsets relatifs au buffer)."""
    pos: int = 0
    depth: int = 0
    state: ScanState = ScanState.OUTSIDE


def scan_object(buffer: Buffer, cursor: ScanCursor) -> Optional[int]:
    """Avance le scan depuis `cursor` jusqu'à la fin de l'objet ou du buffer.

    Retourne l'offset exclusif après l'accolade fermante de premier niveau,
    ou None si le buffer se termine avant. Dans ce cas `cursor` est mis à
    jour et un appel ultérieur (buffer agrandi) reprend là où on s'est arrêté.
    """
    pos, depth, state = cursor.pos, cursor.depth, cursor.state
    end = len(buffer)

    while pos < end:
        if state is ScanState.ESCAPED:
            # Le caractère échappé est consommé tel quel, quel qu'il soit.
            state = ScanState.IN_STRING
            pos += 1
            continue

        if state is ScanState.OUTSIDE:
            if buffer[pos] != _OPEN_BRACE:
                raise ValueError(f"offset {pos} does not start a JSON object")
            state = ScanState.IN_OBJECT
            depth = 1
            pos += 1
            continue

        pattern = _STRING_SPECIALS if state is ScanState.IN_STRING else _OBJECT_SPECIALS
        match = pattern.search(buffer, pos)
        if match is None:
            pos = end
            break

        pos = match.start()
        byte = buffer[pos]
        pos += 1

        if state is ScanState.IN_STRING:
            state = ScanState.ESCAPED if byte == _BACKSLASH else ScanState.IN_OBJECT
        elif byte == _QUOTE:
            state = ScanState.IN_STRING
        elif byte == _OPEN_BRACE:
            depth += 1
        else:
            depth -= 1
            if depth == 0:
                cursor.pos, cursor.depth, cursor.state = pos, 0, ScanState.OUTSIDE
                return pos

    cursor.pos, cursor.depth, cursor.state = pos, depth, state
    return None


def find_object_end(buffer: Buffer, start: int) -> Optional[int]:
    """Cherche la fin de l'objet JSON qui commence à `buffer[start]`.

    `buffer[start]` doit être `{`. Retourne l'offset exclusif juste après
    l'accolade fermante de même profondeur, ou None si le buffer se termine
    avant (objet incomplet).
    """
    return scan_object(buffer, ScanCursor(pos=start))


class MessageFramer:
    """Buffer stdin + extraction paresseuse des objets JSON complets.

    Usage:
        framer.feed(chunk)
        for message in framer.drain():
            ...

    Le buffer n'est jamais partagé hors de la tâche qui lit stdin.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._offset = 0  # position absolue (depuis le début du flux) de _buffer[0]
        self._cursor: Optional[ScanCursor] = None  # objet en cours, commence à _buffer[0]
        self.discarded: int = 0
        self.framed: int = 0

    def feed(self, chunk: bytes) -> None:
        if chunk:
            self._buffer.extend(chunk)

    def drain(self) -> Iterator[FramedMessage]:
        """Génère les messages complets disponibles.

        Le bruit avant chaque `{` est jeté. Un objet incomplet en fin de
        buffer est conservé tel quel pour le prochain `feed`, avec l'état du
        scan. Le buffer est compacté avant chaque `yield`: un consommateur
        peut s'arrêter en cours de route et reprendre avec un nouvel appel
        à `drain()`.
        """
        while self._buffer:
            if self._cursor is None:
                brace = self._buffer.find(b"{")
                if brace < 0:
                    # Aucun `{`: rien de ce qui est bufferisé ne peut devenir du JSON.
                    self._discard(len(self._buffer))
                    return
                if brace > 0:
                    self._discard(brace)
                self._cursor = ScanCursor()

            end = scan_object(self._buffer, self._cursor)
            if end is None:
                return

            message = FramedMessage(
                data=bytes(self._buffer[:end]),
                start=self._offset,
                end=self._offset + end,
            )
            del self._buffer[:end]
            self._offset += end
            self._cursor = None
            self.framed += 1
            yield message

    def close(self) -> bytes:
        """Fin de flux: retourne (et oublie) l'objet incomplet restant."""
        tail = bytes(self._buffer)
        self._offset += len(self._buffer)
        self._buffer.clear()
        self._cursor = None
        return tail

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def pending_bytes(self) -> bytes:
        return bytes(self._buffer)

    def _discard(self, count: int) -> None:
        del self._buffer[:count]
        self._offset += count
        self.discarded += count
