"""Balance-gated transfer dispatch for the payout relay."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from web3.exceptions import TimeExhausted

from ..exceptions import (
    ConfirmationTimeoutError,
    ConnectivityError,
    InsufficientFundsError,
    SubmissionError,
    ValidationError,
)
from ..types import ConnectionState, TransferRequest, TransferResult
from ..utils import (
    from_wei,
    receipt_field,
    serialise_receipt,
    to_hex_hash,
    validate_address,
    validate_timeout,
)
from .balance import BalanceGate
from .connections import ConnectionManager

logger = logging.getLogger(__name__)


def validate_transfer_request(request: TransferRequest) -> TransferRequest:
    """Check destination shape and amount; returns a checksummed copy."""

    destination = validate_address(request.destination, field="destination")

    amount = request.amount_wei
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Amount must be positive", field="amount", value=amount)

    gas_price = request.gas_price_wei
    if gas_price is not None and (
        isinstance(gas_price, bool) or not isinstance(gas_price, int) or gas_price <= 0
    ):
        raise ValidationError("Gas price must be positive", field="gas_price", value=gas_price)

    return TransferRequest(destination=destination, amount_wei=amount, gas_price_wei=gas_price)


class TransactionDispatcher:
    """Build, sign, broadcast and confirm value transfers from the bound account.

    Dispatches from one account are strictly ordered: the balance check,
    submission and confirmation wait all happen under a single lock, so two
    concurrent requests can never both pass the gate against the same funds.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        gate: BalanceGate,
        *,
        fee_reserve_wei: int,
        gas_limit: int,
        default_gas_price_wei: int,
        receipt_timeout: float,
        chain_id: int,
    ) -> None:
        self._connections = connections
        self._gate = gate
        self._fee_reserve_wei = fee_reserve_wei
        self._gas_limit = gas_limit
        self._default_gas_price_wei = default_gas_price_wei
        self._receipt_timeout = receipt_timeout
        self._chain_id = chain_id
        self._submission_lock = asyncio.Lock()

    @property
    def fee_reserve_wei(self) -> int:
        return self._fee_reserve_wei

    async def dispatch(
        self,
        request: TransferRequest,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> TransferResult:
        """Send ``request`` and wait for inclusion.

        ``timeout`` and ``cancel`` only bound the wait for inclusion; once
        broadcast, a transaction cannot be withdrawn.
        """

        request = validate_transfer_request(request)
        wait_timeout = validate_timeout(timeout, self._receipt_timeout)

        async with self._submission_lock:
            check = await self._gate.check_sufficient(request.amount_wei, self._fee_reserve_wei)
            if not check.sufficient:
                raise InsufficientFundsError(
                    "Insufficient balance",
                    available_wei=check.available_wei,
                    required_wei=check.required_wei,
                    details={"requested": from_wei(request.amount_wei)},
                )

            async with self._connections.pinned() as state:
                gas_price = request.gas_price_wei or await self._fee_rate(state)
                tx_hash = await self._submit(state, request, gas_price)

            receipt = await self._await_inclusion(state, tx_hash, wait_timeout, cancel)

        block_number = receipt_field(receipt, "blockNumber")
        if receipt_field(receipt, "status", 1) != 1:
            raise SubmissionError(
                "Transaction reverted",
                reason="reverted",
                transaction_hash=tx_hash,
                details={"blockNumber": block_number, "receipt": serialise_receipt(receipt)},
            )

        logger.info("Transfer %s confirmed in block %s", tx_hash, block_number)
        return TransferResult(
            transaction_hash=tx_hash,
            block_number=int(block_number),
            gas_used=int(receipt_field(receipt, "gasUsed", 0)),
            success=True,
            destination=request.destination,
            amount_wei=request.amount_wei,
            effective_gas_price=receipt_field(receipt, "effectiveGasPrice"),
        )

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------
    async def _fee_rate(self, state: ConnectionState) -> int:
        try:
            return int(await state.web3.eth.gas_price)
        except Exception as exc:
            logger.warning(
                "Gas price query failed on %s, using default %s wei: %s",
                state.endpoint.display,
                self._default_gas_price_wei,
                exc,
            )
            return self._default_gas_price_wei

    async def _submit(
        self, state: ConnectionState, request: TransferRequest, gas_price: int
    ) -> str:
        web3 = state.web3
        account = state.account

        try:
            nonce = await web3.eth.get_transaction_count(account.address, "pending")
        except Exception as exc:
            raise SubmissionError(
                "Failed to read account nonce",
                reason=str(exc),
                details={"endpoint": state.endpoint.display},
            ) from exc

        tx: dict[str, Any] = {
            "to": request.destination,
            "value": request.amount_wei,
            "gas": self._gas_limit,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": self._chain_id,
        }

        try:
            signed = account.sign_transaction(tx)
        except Exception as exc:
            raise SubmissionError("Failed to sign transaction", reason=str(exc)) from exc

        logger.info(
            "Sending %.6f ETH to %s (nonce=%s gasPrice=%s) via %s",
            from_wei(request.amount_wei),
            request.destination,
            nonce,
            gas_price,
            state.endpoint.display,
        )

        try:
            raw_hash = await web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            reason, code = _rejection_reason(exc)
            raise SubmissionError(
                "Transaction was rejected by the network",
                reason=reason,
                code=code,
                details={"endpoint": state.endpoint.display},
            ) from exc

        tx_hash = to_hex_hash(raw_hash)
        logger.info("Transaction sent hash=%s", tx_hash)
        return tx_hash

    async def _await_inclusion(
        self,
        state: ConnectionState,
        tx_hash: str,
        timeout: float,
        cancel: asyncio.Event | None,
    ) -> Any:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        waiter = asyncio.ensure_future(
            state.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        )
        watchers: set[asyncio.Future[Any]] = {waiter}
        if cancel is not None:
            watchers.add(asyncio.ensure_future(cancel.wait()))

        try:
            done, _ = await asyncio.wait(watchers, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in watchers:
                if not task.done():
                    task.cancel()

        if waiter not in done:
            logger.warning("Stopped waiting for %s on caller cancellation", tx_hash)
            raise ConfirmationTimeoutError(
                "Stopped waiting for confirmation; transaction may still be included",
                transaction_hash=tx_hash,
                timeout=timeout,
                cancelled=True,
            )

        try:
            return waiter.result()
        except TimeExhausted as exc:
            logger.warning("Transaction %s not included within %ss", tx_hash, timeout)
            raise ConfirmationTimeoutError(
                "Transaction not included before timeout",
                transaction_hash=tx_hash,
                timeout=timeout,
            ) from exc
        except Exception as exc:
            fresh = await self._replacement(state, deadline - loop.time())
            if fresh is None:
                raise ConfirmationTimeoutError(
                    "Lost track of broadcast transaction",
                    transaction_hash=tx_hash,
                    timeout=timeout,
                    details={"error": str(exc)},
                ) from exc

        logger.info("Following %s onto %s after endpoint swap", tx_hash, fresh.endpoint.display)
        return await self._await_inclusion(fresh, tx_hash, deadline - loop.time(), cancel)

    async def _replacement(
        self, state: ConnectionState, remaining: float
    ) -> ConnectionState | None:
        """The handle that replaced ``state`` after a swap, when one is reachable in time."""

        if remaining <= 0 or self._connections.is_current(state):
            return None
        try:
            return await self._connections.acquire()
        except ConnectivityError as exc:
            logger.warning("No endpoint left to track the transaction on: %s", exc.details)
            return None


def _rejection_reason(exc: Exception) -> tuple[str, Any]:
    """Extract the upstream JSON-RPC error message and code, when present."""

    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, Mapping) and isinstance(rpc_response.get("error"), Mapping):
        error = rpc_response["error"]
        return str(error.get("message") or exc), error.get("code")

    payload = exc.args[0] if exc.args else None
    if isinstance(payload, Mapping):
        return str(payload.get("message") or exc), payload.get("code")

    return str(exc) or type(exc).__name__, getattr(exc, "code", None)
