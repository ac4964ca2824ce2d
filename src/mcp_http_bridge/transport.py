"""
Transport HTTP: un POST par message relayé.

Pas de retry, pas de timeout, pas de suivi de redirection: une seule
tentative par message, l'échec est rapporté et jamais rejoué. Le code de
statut HTTP n'est pas interprété: seul le corps compte (vide, JSON, ou non-JSON).
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from .core.constants import MSG_EMPTY_RESPONSE, MSG_INVALID_RESPONSE, REQUEST_ID_HEADER
from .core.exceptions import EmptyResponseError, RelayTransportError, ResponseParseError
from .core.models import RelayOutcome, loads_strict

logger = logging.getLogger(__name__)


def _describe_error(exc: BaseException) -> str:
    text = str(exc).strip()
    return text or exc.__class__.__name__


def parse_response_body(text: str, status_code: int = None) -> object:
    """
    Décode le corps de réponse du serveur.

    Raises:
        EmptyResponseError: corps vide (ou uniquement des blancs)
        ResponseParseError: corps non vide qui n'est pas du JSON
    """
    if not text.strip():
        raise EmptyResponseError(MSG_EMPTY_RESPONSE, status_code=status_code)
    try:
        return loads_strict(text)
    except ValueError as e:
        raise ResponseParseError(f"{MSG_INVALID_RESPONSE}: {e}", raw_body=text) from e


class RelayTransport:
    """
    Client de relais vers le serveur MCP.

    Un seul httpx.AsyncClient partagé par toutes les tâches de relais; les
    relais tournent en parallèle sans limite de concurrence côté bridge.
    """

    def __init__(self, server_url: str, client: Optional[httpx.AsyncClient] = None):
        self.server_url = server_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=None, follow_redirects=False)

    async def __aenter__(self) -> RelayTransport:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def _post(self, body: bytes, headers: Dict[str, str]) -> httpx.Response:
        try:
            return await self._client.post(self.server_url, content=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RelayTransportError(_describe_error(e), server_url=self.server_url) from e

    async def relay(self, body: bytes, headers: Dict[str, str]) -> RelayOutcome:
        """
        POST `body` (texte JSON d'origine, non modifié) vers le serveur.

        Returns:
            RelayOutcome de type body, empty, invalid_body ou transport_error
        """
        try:
            response = await self._post(body, headers)
        except RelayTransportError as e:
            logger.warning("Request failed: %s", e.message)
            return RelayOutcome.transport_error(e.message)

        correlation_id = response.headers.get(REQUEST_ID_HEADER)
        text = response.text

        try:
            parsed = parse_response_body(text, status_code=response.status_code)
        except EmptyResponseError:
            return RelayOutcome.empty(status_code=response.status_code, correlation_id=correlation_id)
        except ResponseParseError:
            return RelayOutcome.invalid_body(text, status_code=response.status_code, correlation_id=correlation_id)

        return RelayOutcome.from_body(
            parsed,
            text,
            status_code=response.status_code,
            correlation_id=correlation_id,
        )
