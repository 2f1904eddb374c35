"""
Run script for starting the Realtime Voice Relay server.

This script loads the relay configuration once, builds the FastAPI application
from it and serves it with uvicorn. A missing OPENAI_API_KEY stops the process
before anything is started.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]

Exit codes:
    0  graceful shutdown (SIGINT/SIGTERM)
    1  missing or invalid configuration
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from voice_relay.config.logging_config import configure_logging
from voice_relay.config.settings import load_env_file, load_settings
from voice_relay.exceptions import ConfigurationError
from voice_relay.main import create_app


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Start the Realtime Voice Relay server"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to run the server on (default: PORT env var or 3000)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind the server to (default: HOST env var or 0.0.0.0)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: LOG_LEVEL env var or INFO)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit code."""
    args = parse_args(argv)
    load_env_file()
    logger = configure_logging(args.log_level)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    if args.port is not None or args.host is not None:
        settings = settings.model_copy(update={
            key: value
            for key, value in (("port", args.port), ("host", args.host))
            if value is not None
        })

    logger.info("Starting Realtime Voice Server...")
    logger.info(f"Model: {settings.model}, voice: {settings.voice}, language: {settings.default_language}")
    logger.info(f"VAD silence duration: {settings.vad.silence_duration_ms}ms")
    logger.info(f"Web search: {'ENABLED' if settings.web_search_enabled else 'disabled'}")
    logger.info(f"WebSocket ready at ws://{settings.host}:{settings.port}/ws")

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=logging.getLevelName(logger.level).lower(),
        # Use HTTP/1.1 for lower overhead than HTTP/2
        http="h11",
        access_log=False,
        ws_ping_interval=5,
        ws_ping_timeout=20,
        ws_max_size=16 * 1024 * 1024,
    )
    logger.info("Shutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
