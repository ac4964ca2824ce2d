"""
Constantes globales pour MCP HTTP Bridge.
"""

# ============================================================================
# VARIABLES D'ENVIRONNEMENT
# ============================================================================
ENV_SERVER_URL = "MCP_SERVER"
ENV_BEARER_TOKEN = "BEARER_TOKEN"
ENV_USERNAME = "USERNAME"
ENV_PASSWORD = "PASSWORD"

# ============================================================================
# JOURNAL D'AUDIT
# ============================================================================
LOG_DIR_NAME = "bridge_logs"
LOG_FILE_NAME = "bridge.log"

# ============================================================================
# JSON-RPC
# ============================================================================
JSONRPC_VERSION = "2.0"
JSONRPC_INTERNAL_ERROR = -32603
JSONRPC_CONFIG_CONFLICT = -32000  # Plage "server error" réservée à l'implémentation

MSG_REQUEST_FAILED = "Request failed"
MSG_INVALID_RESPONSE = "Invalid JSON response from server"
MSG_EMPTY_RESPONSE = "Empty response from server"
MSG_CONFIG_CONFLICT = (
    "Both BEARER_TOKEN and USERNAME/PASSWORD are provided. "
    "Use only one authentication method."
)

# ============================================================================
# TRANSPORT / STDIN
# ============================================================================
STDIN_CHUNK_SIZE = 64 * 1024  # 64 KiB par lecture
REQUEST_ID_HEADER = "x-request-id"
CONTENT_TYPE_JSON = "application/json"
