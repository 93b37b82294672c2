"""Application entry point for the ProctorQuiz attempt service."""

from __future__ import annotations

from proctor_app.constants.about import APP_NAME, APP_VERSION
from proctor_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from proctor_app.core.proctor_manager import ProctorManager
from proctor_app.server.api_server import start_api_server
from proctor_app.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging, wire the services and serve the API until interrupted."""
    logger = configure_logging()
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    proctor_manager = ProctorManager()
    server_thread = start_api_server(proctor_manager=proctor_manager, host=DEFAULT_HOST, port=DEFAULT_PORT)
    logger.info("API available at http://%s:%s/api", DEFAULT_HOST, DEFAULT_PORT)
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down %s", APP_NAME)


if __name__ == "__main__":
    main()
