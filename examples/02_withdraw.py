"""Example: send ETH from the backend wallet and wait for inclusion."""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

from payout_api import (
    ConfirmationTimeoutError,
    InsufficientFundsError,
    PayoutService,
    ServiceConfig,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("withdraw")


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"{name} not found in environment variables")
    return value


async def run() -> None:
    destination = _require_env("WITHDRAW_TO")
    amount = os.getenv("WITHDRAW_AMOUNT_ETH", "0.001")

    service = PayoutService(ServiceConfig.from_env())
    await service.connect()

    try:
        result = await service.transfer_funds(destination, amount)
        logger.info(
            "Sent %s ETH to %s in block %s: %s",
            result.amount,
            result.destination,
            result.block_number,
            result.transaction_hash,
        )
    except InsufficientFundsError as exc:
        logger.error("Need %.6f ETH, backend holds %.6f ETH", exc.required, exc.available)
    except ConfirmationTimeoutError as exc:
        # Still pending; check the explorer before retrying
        logger.warning("Transaction %s not confirmed yet", exc.transaction_hash)
    finally:
        await service.disconnect()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
