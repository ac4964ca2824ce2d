"""
MCP HTTP Bridge.

Relaie des messages JSON-RPC 2.0 reçus sur stdin vers un serveur MCP HTTP,
et écrit les réponses sur stdout.
"""

__version__ = "1.0.0"
