"""Tests unitaires — classification, dispatch et émission des réponses.

Objectifs:
    - Requête vs notification (id absent ou null)
    - Messages invalides abandonnés sans sortie
    - Forme exacte des erreurs JSON-RPC écrites sur stdout
    - Conflit d'auth re-vérifié par message
"""

from __future__ import annotations

import asyncio
import io
import json

import pytest

from mcp_http_bridge.config.settings import BridgeSettings
from mcp_http_bridge.core.exceptions import ConfigConflictError, MessageParseError
from mcp_http_bridge.core.models import FramedMessage, RelayOutcome, RpcEnvelope
from mcp_http_bridge.dispatch import Dispatcher, parse_envelope
from mcp_http_bridge.emitter import ResponseEmitter


def _framed(data: bytes) -> FramedMessage:
    return FramedMessage(data=data, start=0, end=len(data))


class _FakeTransport:
    """Transport factice: retourne un outcome fixe et mémorise les appels."""

    def __init__(self, outcome: RelayOutcome) -> None:
        self.outcome = outcome
        self.calls: list[tuple[bytes, dict]] = []

    async def relay(self, body: bytes, headers: dict) -> RelayOutcome:
        self.calls.append((body, headers))
        await asyncio.sleep(0)
        return self.outcome


@pytest.mark.unit
class TestParseEnvelope:
    def test_request_with_id(self):
        env = parse_envelope(_framed(b'{"jsonrpc":"2.0","id":7,"method":"x"}'))
        assert env.has_id and env.id == 7
        assert not env.is_notification
        assert env.method == "x"

    def test_notification_without_id(self):
        env = parse_envelope(_framed(b'{"jsonrpc":"2.0","method":"ping"}'))
        assert not env.has_id
        assert env.is_notification

    def test_null_id_is_notification(self):
        env = parse_envelope(_framed(b'{"jsonrpc":"2.0","id":null,"method":"ping"}'))
        assert env.has_id
        assert env.is_notification

    @pytest.mark.parametrize("req_id", ['"abc"', "0", "1.5"])
    def test_non_null_ids_are_requests(self, req_id):
        env = parse_envelope(_framed(('{"jsonrpc":"2.0","id":%s,"method":"m"}' % req_id).encode()))
        assert not env.is_notification

    def test_raw_text_is_kept_verbatim(self):
        raw = b'{ "jsonrpc" : "2.0", "id" : 1 }'
        assert parse_envelope(_framed(raw)).raw == raw

    @pytest.mark.parametrize(
        "raw",
        [b"{not json}", b'{"a":NaN}', b'{"a":1,}', b'{"a":"\xff"}'],
    )
    def test_invalid_json_raises(self, raw):
        with pytest.raises(MessageParseError):
            parse_envelope(_framed(raw))


@pytest.mark.unit
class TestResponseEmitter:
    def _request(self, req_id=7) -> RpcEnvelope:
        return RpcEnvelope.from_payload(b"{}", {"jsonrpc": "2.0", "id": req_id, "method": "x"})

    def _notification(self) -> RpcEnvelope:
        return RpcEnvelope.from_payload(b"{}", {"jsonrpc": "2.0", "method": "ping"})

    def test_body_is_written_compact(self):
        out = io.StringIO()
        body = {"jsonrpc": "2.0", "id": 7, "result": {"a": [1, 2]}}
        ResponseEmitter(out).emit(self._request(), RelayOutcome.from_body(body, json.dumps(body)))
        assert out.getvalue() == '{"jsonrpc":"2.0","id":7,"result":{"a":[1,2]}}\n'

    def test_transport_error_shape(self):
        out = io.StringIO()
        ResponseEmitter(out).emit(self._request(), RelayOutcome.transport_error("Connection refused"))
        payload = json.loads(out.getvalue())
        assert payload == {
            "jsonrpc": "2.0",
            "error": {"code": -32603, "message": "Request failed", "data": "Connection refused"},
            "id": 7,
        }
        assert out.getvalue().startswith('{"jsonrpc":"2.0","error":{"code":-32603,"message":"Request failed"')

    def test_invalid_body_shape(self):
        out = io.StringIO()
        ResponseEmitter(out).emit(self._request("abc"), RelayOutcome.invalid_body("<html/>"))
        payload = json.loads(out.getvalue())
        assert payload["error"]["code"] == -32603
        assert payload["error"]["message"] == "Invalid JSON response from server"
        assert payload["error"]["data"] == "<html/>"
        assert payload["id"] == "abc"

    def test_empty_body_for_request_writes_nothing(self, caplog):
        out = io.StringIO()
        with caplog.at_level("WARNING", logger="mcp_http_bridge"):
            result = ResponseEmitter(out).emit(self._request(), RelayOutcome.empty(status_code=204))
        assert result is None
        assert out.getvalue() == ""
        assert "Empty response from server" in caplog.text

    @pytest.mark.parametrize(
        "outcome",
        [
            RelayOutcome.from_body({"ok": True}, '{"ok": true}'),
            RelayOutcome.empty(),
            RelayOutcome.invalid_body("nope"),
            RelayOutcome.transport_error("boom"),
        ],
    )
    def test_notification_never_writes(self, outcome):
        out = io.StringIO()
        emitter = ResponseEmitter(out)
        assert emitter.emit(self._notification(), outcome) is None
        assert out.getvalue() == ""
        assert emitter.lines_written == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_request_relays_and_writes_response(settings, read_lines):
    body = {"jsonrpc": "2.0", "id": 1, "result": {}}
    transport = _FakeTransport(RelayOutcome.from_body(body, json.dumps(body)))
    out = io.StringIO()
    dispatcher = Dispatcher(settings, transport, ResponseEmitter(out))

    raw = b'{"jsonrpc":"2.0","id":1,"method":"initialize"}'
    task = dispatcher.dispatch(_framed(raw))
    assert task is not None
    await dispatcher.wait_idle()

    assert transport.calls == [(raw, {"Content-Type": "application/json"})]
    assert read_lines(out) == [body]
    assert dispatcher.in_flight == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_notification_is_relayed_but_silent(settings):
    transport = _FakeTransport(RelayOutcome.transport_error("refused"))
    out = io.StringIO()
    dispatcher = Dispatcher(settings, transport, ResponseEmitter(out))

    dispatcher.dispatch(_framed(b'{"jsonrpc":"2.0","method":"ping"}'))
    await dispatcher.wait_idle()

    assert len(transport.calls) == 1
    assert out.getvalue() == ""


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_malformed_message_is_dropped(settings, caplog):
    transport = _FakeTransport(RelayOutcome.empty())
    out = io.StringIO()
    dispatcher = Dispatcher(settings, transport, ResponseEmitter(out))

    with caplog.at_level("WARNING", logger="mcp_http_bridge"):
        assert dispatcher.dispatch(_framed(b'{"id":1, oops}')) is None

    assert transport.calls == []
    assert out.getvalue() == ""
    assert dispatcher.dropped == 1
    assert "Invalid JSON input dropped" in caplog.text


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_uses_configured_auth_headers(tmp_path):
    settings = BridgeSettings(server_url="http://mcp.test", username="u", password="p")
    transport = _FakeTransport(RelayOutcome.empty())
    dispatcher = Dispatcher(settings, transport, ResponseEmitter(io.StringIO()))

    dispatcher.dispatch(_framed(b'{"jsonrpc":"2.0","method":"n"}'))
    await dispatcher.wait_idle()

    headers = transport.calls[0][1]
    assert headers["Authorization"] == "Basic dTpw"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_conflict_emits_error_and_raises(read_lines):
    settings = BridgeSettings(server_url="http://mcp.test", bearer_token="t", username="u")
    transport = _FakeTransport(RelayOutcome.empty())
    out = io.StringIO()
    dispatcher = Dispatcher(settings, transport, ResponseEmitter(out))

    with pytest.raises(ConfigConflictError):
        dispatcher.dispatch(_framed(b'{"jsonrpc":"2.0","id":9,"method":"x"}'))

    assert transport.calls == []
    (payload,) = read_lines(out)
    assert payload["id"] == 9
    assert payload["error"]["code"] == -32000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_conflict_on_notification_has_no_output():
    settings = BridgeSettings(server_url="http://mcp.test", bearer_token="t", password="p")
    out = io.StringIO()
    dispatcher = Dispatcher(settings, _FakeTransport(RelayOutcome.empty()), ResponseEmitter(out))

    with pytest.raises(ConfigConflictError):
        dispatcher.dispatch(_framed(b'{"jsonrpc":"2.0","method":"x"}'))
    assert out.getvalue() == ""


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unexpected_relay_failure_is_isolated(settings, read_lines):
    class _ExplodingTransport:
        async def relay(self, body, headers):
            raise RuntimeError("kaboom")

    out = io.StringIO()
    dispatcher = Dispatcher(settings, _ExplodingTransport(), ResponseEmitter(out))
    dispatcher.dispatch(_framed(b'{"jsonrpc":"2.0","id":3,"method":"x"}'))
    await dispatcher.wait_idle()

    (payload,) = read_lines(out)
    assert payload["id"] == 3
    assert payload["error"]["message"] == "Request failed"
    assert payload["error"]["data"] == "kaboom"
