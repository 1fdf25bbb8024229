"""Balance gate guarding every disbursement."""

from __future__ import annotations

import logging

from ..exceptions import ConnectivityError
from ..types import BalanceCheck, BalanceSnapshot
from ..utils import from_wei
from .connections import ConnectionManager

logger = logging.getLogger(__name__)


def is_sufficient(available_wei: int, required_wei: int, reserve_wei: int) -> bool:
    """The reserve must still be available after the disbursement."""
    return available_wei >= required_wei + reserve_wei


class BalanceGate:
    """Decide on live balance data whether a disbursement may proceed."""

    def __init__(self, connections: ConnectionManager) -> None:
        self._connections = connections

    async def snapshot(self) -> BalanceSnapshot:
        state = await self._connections.acquire()
        address = state.account.address

        try:
            balance = await state.web3.eth.get_balance(address)
        except Exception as exc:
            raise ConnectivityError(
                "Failed to read account balance",
                endpoint=state.endpoint.display,
                details={"error": str(exc)},
            ) from exc

        return BalanceSnapshot(address=address, available_wei=int(balance))

    async def check_sufficient(self, required_wei: int, reserve_wei: int) -> BalanceCheck:
        snapshot = await self.snapshot()
        check = BalanceCheck(
            sufficient=is_sufficient(snapshot.available_wei, required_wei, reserve_wei),
            available_wei=snapshot.available_wei,
            required_wei=required_wei + reserve_wei,
        )
        logger.info(
            "Balance gate: available=%.6f ETH required=%.6f ETH sufficient=%s",
            from_wei(check.available_wei),
            from_wei(check.required_wei),
            check.sufficient,
        )
        return check
