"""Run the HTTP service with uvicorn."""

import structlog
import uvicorn

from peg_valuation.api.app import create_app
from peg_valuation.config import config

logger = structlog.get_logger(__name__)


def run() -> None:
    logger.info(
        "server_starting",
        url=f"http://{config.host}:{config.port}",
        docs=f"http://{config.host}:{config.port}/api/docs",
    )
    uvicorn.run(create_app(), host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    run()
