"""Run the payout relay HTTP server."""

from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

from .api import create_app
from .evm.config import ServiceConfig
from .service import PayoutService

logger = logging.getLogger("payout_api")


def main() -> None:
    load_dotenv()

    logging.basicConfig(
        level=os.getenv("LOGLEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = ServiceConfig.from_env()
    service = PayoutService(config)
    logger.info(
        "Starting payout relay on %s:%s with %d RPC endpoints",
        config.host,
        config.port,
        len(service.connections.pool),
    )
    uvicorn.run(create_app(service), host=config.host, port=config.port, log_config=None)


if __name__ == "__main__":
    main()
