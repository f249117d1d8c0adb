import logging

from .app import create_app
from .config import Settings
from .server import ProxyServer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main() -> None:
    """Console entry point: read the environment, then serve until signalled."""
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    logger.info("Setting up API proxy:")
    logger.info("API v1 URL: %s", settings.api_v1_url)
    logger.info("API v2 URL: %s", settings.api_v2_url)

    server = ProxyServer(create_app(settings), settings)
    server.serve_forever()


if __name__ == "__main__":
    main()
