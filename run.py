"""
Run script for starting the voice session server.

Provider credentials are checked before uvicorn starts so a misconfigured
deployment fails immediately with a clear message.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import os
import sys

import uvicorn

from voice_session.config.logging_config import configure_logging
from voice_session.config.settings import load_settings
from voice_session.services.errors import ConfigurationError

# Configure logging
logger = configure_logging()


def parse_args(argv=None):
    """Parse command line arguments."""
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Start the voice session server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 8000 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO").upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point: validate configuration, then serve."""
    args = parse_args(argv)

    try:
        load_settings().validate()
    except ConfigurationError as e:
        logger.error(str(e))
        print(f"Error: {e}")
        print("Set the missing variables in the environment or a .env file")
        sys.exit(1)

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")

    uvicorn.run(
        "voice_session.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        # Disable access logs, we have our own logging
        access_log=False,
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
