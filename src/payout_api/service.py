"""Payout service wiring the failover client, balance gate and dispatcher."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from web3 import Web3

from .base import PayoutEstimatorBase
from .constants import DEFAULT_PRINCIPAL_ETH
from .estimator import RandomPayoutEstimator
from .evm.balance import BalanceGate
from .evm.config import ServiceConfig
from .evm.connections import ConnectionManager, Web3Factory
from .evm.endpoints import EndpointPool
from .evm.transactions import TransactionDispatcher
from .exceptions import InsufficientFundsError
from .types import (
    BalanceCheck,
    BalanceReport,
    DisbursementResult,
    PayoutEstimate,
    TransferRequest,
    TransferResult,
)
from .utils import from_wei, parse_amount, to_wei, validate_address, validate_timeout

logger = logging.getLogger(__name__)


class PayoutService:
    """Disburse ETH from the custodial account to treasury or arbitrary wallets."""

    def __init__(
        self,
        config: ServiceConfig,
        *,
        estimator: PayoutEstimatorBase | None = None,
        pool: EndpointPool | None = None,
        web3_factory: Web3Factory | None = None,
    ) -> None:
        self._config = config
        self._estimator = estimator or RandomPayoutEstimator()
        self._connections = ConnectionManager(config, pool, web3_factory=web3_factory)
        self._gate = BalanceGate(self._connections)
        self._dispatcher = TransactionDispatcher(
            self._connections,
            self._gate,
            fee_reserve_wei=config.fee_reserve_wei,
            gas_limit=config.gas_limit,
            default_gas_price_wei=config.default_gas_price_wei,
            receipt_timeout=config.receipt_timeout,
            chain_id=config.chain_id,
        )

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------
    async def connect(self) -> bool:
        return await self._connections.connect()

    async def disconnect(self) -> None:
        await self._connections.disconnect()

    async def __aenter__(self) -> PayoutService:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def connections(self) -> ConnectionManager:
        return self._connections

    @property
    def address(self) -> str:
        return self._connections.address

    # ------------------------------------------------------------------
    # Disbursements
    # ------------------------------------------------------------------
    async def execute_disbursement(
        self,
        principal: Any = None,
        treasury: str | None = None,
        strategies: Sequence[str] | None = None,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> DisbursementResult:
        """Estimate a payout and send it to treasury when the account can afford it.

        When the balance cannot cover the payout plus the fee reserve, the
        estimate is returned tagged as simulated and nothing is sent.
        """

        amount = DEFAULT_PRINCIPAL_ETH if principal in (None, "") else principal
        amount = float(parse_amount(amount, field="principal"))
        destination = (
            validate_address(treasury, field="treasury")
            if treasury
            else self._config.treasury_address
        )
        wait_timeout = validate_timeout(timeout, self._config.receipt_timeout)
        logger.info(
            "Disbursement request: principal=%s ETH treasury=%s strategies=%s",
            amount,
            destination,
            ", ".join(strategies) if strategies else "all",
        )

        estimate = self._estimator.estimate(amount)
        payout_wei = to_wei(estimate.payout, field="payout")
        logger.info(
            "Estimated payout %.6f ETH (%s)",
            estimate.payout,
            estimate.percent,
        )

        check = await self._gate.check_sufficient(payout_wei, self._config.fee_reserve_wei)
        if check.available_wei < self._config.operating_gas_min_wei:
            raise InsufficientFundsError(
                "Backend needs gas for payout transfer",
                available_wei=check.available_wei,
                required_wei=self._config.operating_gas_min_wei,
                details={"solution": f"Send 0.01+ ETH to {self.address}"},
            )

        if not check.sufficient:
            return self._simulated(estimate, destination, check.available_wei)

        try:
            transfer = await self._dispatcher.dispatch(
                TransferRequest(destination=destination, amount_wei=payout_wei),
                timeout=wait_timeout,
                cancel=cancel,
            )
        except InsufficientFundsError as exc:
            # Balance moved between the estimate and the serialized re-check
            return self._simulated(estimate, destination, exc.available_wei)

        return DisbursementResult(
            confirmed=True,
            simulated=False,
            estimate=estimate,
            treasury=destination,
            transfer=transfer,
            available_wei=check.available_wei,
        )

    async def transfer_funds(
        self,
        destination: Any,
        amount: Any,
        *,
        gas_price_gwei: Any = None,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> TransferResult:
        """Send ``amount`` ETH to ``destination``; validation happens before any RPC call."""

        gas_price_wei = None
        if gas_price_gwei not in (None, ""):
            gas_price_wei = int(
                Web3.to_wei(parse_amount(gas_price_gwei, field="gas_price"), "gwei")
            )

        request = TransferRequest(
            destination=validate_address(destination, field="destination"),
            amount_wei=to_wei(amount),
            gas_price_wei=gas_price_wei,
        )
        logger.info("Transfer %.6f ETH -> %s", from_wei(request.amount_wei), request.destination)
        return await self._dispatcher.dispatch(request, timeout=timeout, cancel=cancel)

    async def transfer_to_treasury(
        self,
        amount: Any,
        treasury: str | None = None,
        *,
        source: str | None = None,
        timeout: float | None = None,
    ) -> TransferResult:
        destination = treasury or self._config.treasury_address
        logger.info("Treasury transfer from source=%s", source or "unknown")
        return await self.transfer_funds(destination, amount, timeout=timeout)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def check_balance(self, required: Any, reserve: Any = None) -> BalanceCheck:
        reserve_wei = (
            self._config.fee_reserve_wei
            if reserve is None
            else int(Web3.to_wei(Decimal(str(reserve)), "ether"))
        )
        return await self._gate.check_sufficient(to_wei(required, field="required"), reserve_wei)

    async def query_balance(self) -> BalanceReport:
        snapshot = await self._gate.snapshot()
        return BalanceReport(
            address=snapshot.address,
            balance_wei=snapshot.available_wei,
            usd_rate=self._config.usd_rate,
            operating_gas_min_wei=self._config.operating_gas_min_wei,
        )

    def query_status(self) -> dict[str, Any]:
        connections = self._connections
        endpoint = connections.state.endpoint.display if connections.is_live else None
        return {
            "status": "online",
            "treasury": self._config.treasury_address,
            "backend": connections.address,
            "connected": connections.is_live,
            "endpoint": endpoint,
        }

    async def query_readiness(self) -> dict[str, Any]:
        """Status plus a live balance read; ``ready`` once the gas minimum is held."""

        report = await self.query_balance()
        status = self.query_status()
        status.update({"balance": report.balance, "ready": report.has_gas})
        return status

    def query_health(self) -> dict[str, Any]:
        return {"healthy": True, "timestamp": int(time.time() * 1000)}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _simulated(
        self, estimate: PayoutEstimate, treasury: str, available_wei: int
    ) -> DisbursementResult:
        needed = estimate.payout + float(self._config.fee_reserve_eth)
        logger.info(
            "Backend needs %.4f ETH to send payout; returning simulated result", needed
        )
        return DisbursementResult(
            confirmed=False,
            simulated=True,
            estimate=estimate,
            treasury=treasury,
            available_wei=available_wei,
            needed=needed,
        )
