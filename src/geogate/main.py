"""Main entry point for the geogate server."""

import logging

import uvicorn

from geogate.api.app import create_app
from geogate.config import Settings, get_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def serve(settings: Settings | None = None) -> None:
    """Run the API server (with the expiry sweeper) until interrupted."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    logger.info(f"Server is running on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    """Main entry point."""
    serve()


if __name__ == "__main__":
    main()
