"""
Cœur métier du MCP HTTP Bridge.
Modules indépendants sans dépendances externes au package.
"""

from .exceptions import (
    BridgeError,
    ConfigurationError,
    ConfigMissingError,
    ConfigConflictError,
    MessageParseError,
    RelayTransportError,
    ResponseParseError,
    EmptyResponseError,
)
from .models import FramedMessage, RpcEnvelope, RelayOutcome, jsonrpc_error, loads_strict

__all__ = [
    # Exceptions
    "BridgeError",
    "ConfigurationError",
    "ConfigMissingError",
    "ConfigConflictError",
    "MessageParseError",
    "RelayTransportError",
    "ResponseParseError",
    "EmptyResponseError",
    # Models
    "FramedMessage",
    "RpcEnvelope",
    "RelayOutcome",
    "jsonrpc_error",
    "loads_strict",
]
