"""
Point d'entrée pour `python -m mcp_http_bridge` et la commande `mcp-http-bridge`.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .bridge import run_bridge
from .config.settings import BridgeSettings, default_log_path
from .core.exceptions import ConfigurationError
from .logging_setup import PACKAGE_LOGGER, configure_audit_logging, reset_audit_logging, set_server_tag

logger = logging.getLogger(PACKAGE_LOGGER)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-http-bridge",
        description="Relaie des messages JSON-RPC 2.0 de stdin vers un serveur MCP HTTP (variable MCP_SERVER).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Fichier d'audit (défaut: ~/bridge_logs/bridge.log)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv=None) -> int:
    """Fonction principale."""
    args = _build_parser().parse_args(argv)

    configure_audit_logging(args.log_file or default_log_path())

    try:
        try:
            settings = BridgeSettings.from_env()
            set_server_tag(settings.server_url)
            settings.validate()
        except ConfigurationError as e:
            logger.error("Error: %s", e.message)
            sys.stderr.write(f"Error: {e}\n")
            sys.stderr.flush()
            return 1

        logger.info("Bridge started")
        try:
            return asyncio.run(run_bridge(settings))
        except KeyboardInterrupt:
            logger.info("Bridge interrupted")
            return 130
    finally:
        reset_audit_logging()


if __name__ == "__main__":
    sys.exit(main())
