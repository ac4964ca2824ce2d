"""
Configuration du MCP HTTP Bridge.
"""

from .settings import BridgeSettings, default_log_path

__all__ = [
    "BridgeSettings",
    "default_log_path",
]
