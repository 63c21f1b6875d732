"""
Entrypoint that wires the sync HTTP server and logging.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from truetime.config import get_settings
from truetime.http_app import create_starlette_app
from truetime.logging_config import configure_logging

logger = logging.getLogger(__name__)


def main() -> None:
    """Load settings, configure logging and serve until interrupted."""
    load_dotenv()
    settings = get_settings()
    configure_logging(settings.log_file, settings.log_level)

    logger.info("Environment variables loaded")
    logger.info("Log level: %s", settings.log_level)
    logger.info(
        "NTP server %s:%s (v%s, timeout %.1fs)",
        settings.ntp_host,
        settings.ntp_port,
        settings.ntp_version,
        settings.ntp_timeout_seconds,
    )

    starlette_app = create_starlette_app(settings)

    logger.info("Server will listen on %s:%s", settings.host, settings.port)
    logger.info("Health check: http://%s:%s/health", settings.host, settings.port)

    try:
        uvicorn.run(
            starlette_app,
            host=settings.host,
            port=settings.port,
            log_config=None,
        )
    except KeyboardInterrupt:
        logger.info("Shutdown signal received - shutting down gracefully...")
    except Exception:
        logger.exception("Unexpected error while running uvicorn")
        raise
    finally:
        logger.info("Sync server stopped")
        for handler in logging.root.handlers[:]:
            handler.flush()
            handler.close()
            logging.root.removeHandler(handler)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nShutdown complete.", file=sys.stderr)
        sys.exit(0)
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)
    finally:
        logging.shutdown()
