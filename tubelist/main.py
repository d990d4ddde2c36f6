"""
Main entry point for tubelist.

Initializes all components and starts the server.
"""

import argparse
import logging
import os
from typing import Optional

import uvicorn

from .backend import StorageBackend
from .config_manager import ConfigManager
from .database import Database, SQLiteBackend
from .json_store import JsonFileBackend
from .playback import PlaybackRegistry
from .playlist import PlaylistManager
from .user import UserManager
from .web.server import create_app
from .youtube import YouTubeClient

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

BACKENDS = ("sqlite", "json")


def create_backend(kind: str, data_path: Optional[str] = None) -> StorageBackend:
    """
    Create the storage backend.

    Args:
        kind: 'sqlite' or 'json'
        data_path: Database or JSON file path (adapter default if None)
    """
    if kind == "sqlite":
        return SQLiteBackend(Database(data_path))
    if kind == "json":
        return JsonFileBackend(data_path)
    raise ValueError(f"Unknown backend: {kind} (expected one of {', '.join(BACKENDS)})")


class TubelistServer:
    """Main server class that orchestrates all components."""

    def __init__(self, backend_kind: str = "sqlite", data_path: Optional[str] = None):
        """
        Initialize all components.

        Args:
            backend_kind: Storage backend to use
            data_path: Storage location (adapter default if None)
        """
        logger.info("Initializing tubelist server...")

        self.backend = create_backend(backend_kind, data_path)
        logger.info("Using %s storage backend", self.backend.name)

        self.config_manager = ConfigManager(self.backend)

        api_key = os.environ.get("TUBELIST_YOUTUBE_API_KEY")
        if api_key:
            self.config_manager.set("youtube_api_key", api_key)
            logger.info("YouTube API key set from environment")

        operator_pin = os.environ.get("TUBELIST_OPERATOR_PIN")
        if operator_pin:
            self.config_manager.set("operator_pin", operator_pin)
            logger.info("Operator PIN set from environment")
        elif not self.config_manager.get("operator_pin"):
            logger.warning(
                "Operator PIN not configured; /api/config is locked. Set TUBELIST_OPERATOR_PIN."
            )

        self.youtube_client = YouTubeClient(self.config_manager)
        if not self.youtube_client.is_configured():
            logger.warning(
                "YouTube API key not configured. Search and video titles will be unavailable. "
                "Set TUBELIST_YOUTUBE_API_KEY or configure it through /api/config as operator."
            )

        self.user_manager = UserManager(self.backend)
        self.playlist_manager = PlaylistManager(self.backend)
        self.playback_registry = PlaybackRegistry(self.playlist_manager)

        self.web_app = create_app(
            self.user_manager,
            self.playlist_manager,
            self.youtube_client,
            self.config_manager,
            self.playback_registry,
        )

        self.uvicorn_server = None

        logger.info("tubelist server initialized")

    def run(self, host: str = "0.0.0.0", port: int = 8000):
        """Start the server (blocks until it exits)."""
        logger.info("=" * 60)
        logger.info("tubelist is running!")
        logger.info("Web UI: http://%s:%s", host, port)
        logger.info("=" * 60)

        config = uvicorn.Config(self.web_app, host=host, port=port, log_level="info")
        self.uvicorn_server = uvicorn.Server(config)
        self.uvicorn_server.run()

    def stop(self):
        """Stop all components."""
        logger.info("Stopping tubelist server...")

        if self.uvicorn_server:
            self.uvicorn_server.should_exit = True

        if self.backend:
            self.backend.close()

        logger.info("tubelist server stopped")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="tubelist - YouTube playlist manager")
    parser.add_argument("--host", default="0.0.0.0", help="Address to listen on")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on")
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default=os.environ.get("TUBELIST_BACKEND", "sqlite"),
        help="Storage backend (env: TUBELIST_BACKEND)",
    )
    parser.add_argument(
        "--data-path",
        default=os.environ.get("TUBELIST_DATA_PATH"),
        help="Database or JSON file path (env: TUBELIST_DATA_PATH)",
    )
    args = parser.parse_args()

    server = TubelistServer(args.backend, args.data_path)
    try:
        server.run(args.host, args.port)
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()


if __name__ == "__main__":
    main()
