"""HTTP+JSON surface for the payout service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from . import __version__
from .exceptions import PayoutError, ValidationError
from .service import PayoutService
from .types import DisbursementResult, TransferResult
from .utils import explorer_url

logger = logging.getLogger(__name__)

DISBURSEMENT_PATHS = (
    "/execute-flash-loan",
    "/flash-loan-mev",
    "/api/strategy/flash-loan/execute",
    "/api/apex/flash-loan",
    "/mev-flash-execute",
)
WITHDRAW_PATHS = ("/withdraw", "/coinbase-withdraw", "/send-eth", "/transfer")
TREASURY_TRANSFER_PATH = "/transfer-earnings-to-treasury"

_WITHDRAW_HINT = 'Send { to: "0x...", amount: 0.1 } or { toAddress: "0x...", amountETH: 0.1 }'


class DisbursementBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    loan_amount: Any = Field(
        default=None, validation_alias=AliasChoices("loanAmountETH", "loanAmount")
    )
    treasury_wallet: str | None = Field(
        default=None, validation_alias=AliasChoices("treasuryWallet", "treasury")
    )
    strategies: list[str] | None = None
    timeout: float | None = None


class WithdrawBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    destination: Any = Field(
        default=None, validation_alias=AliasChoices("to", "toAddress", "recipient", "address")
    )
    amount: Any = Field(default=None, validation_alias=AliasChoices("amountETH", "amount"))
    gas_price_gwei: Any = Field(
        default=None, validation_alias=AliasChoices("gasPriceGwei", "gasPrice")
    )
    timeout: float | None = None


class TreasuryTransferBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: Any = Field(default=None, validation_alias=AliasChoices("amountETH", "amount"))
    treasury_wallet: str | None = Field(
        default=None, validation_alias=AliasChoices("treasuryWallet", "treasury")
    )
    source: str | None = None
    timeout: float | None = None


def create_app(service: PayoutService, *, connect_on_startup: bool = True) -> FastAPI:
    """Build the FastAPI application around an already configured service."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if connect_on_startup:
            await service.connect()
        logger.info(
            "Payout relay ready; treasury=%s backend=%s",
            service.config.treasury_address,
            service.address,
        )
        yield
        await service.disconnect()

    app = FastAPI(title="payout-api", version=__version__, lifespan=lifespan)
    app.state.service = service
    app.add_middleware(
        CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
    )

    usd_rate = service.config.usd_rate

    @app.exception_handler(PayoutError)
    async def _payout_error(request: Request, exc: PayoutError) -> JSONResponse:
        logger.warning(
            "%s %s failed: [%s] %s", request.method, request.url.path, exc.category, exc.message
        )
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def _body_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = ValidationError(
            "Invalid request body",
            details={"errors": jsonable_encoder(exc.errors()), "hint": _WITHDRAW_HINT},
        )
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected failure on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": str(exc), "category": "internal"})

    # ------------------------------------------------------------------
    # Health and identity
    # ------------------------------------------------------------------
    @app.get("/")
    async def index() -> dict[str, Any]:
        return {
            "status": "Payout relay online",
            "treasury": service.config.treasury_address,
            "backendWallet": service.address,
            "endpoints": [
                f"POST {DISBURSEMENT_PATHS[0]}",
                f"POST {WITHDRAW_PATHS[0]}",
                f"POST {TREASURY_TRANSFER_PATH}",
                "GET /balance",
                "GET /status",
            ],
        }

    @app.get("/status")
    async def status(balance: bool = False) -> dict[str, Any]:
        if balance:
            return await service.query_readiness()
        return service.query_status()

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return service.query_health()

    @app.get("/balance")
    async def balance() -> dict[str, Any]:
        report = await service.query_balance()
        return {
            "balance": report.balance,
            "balanceWei": str(report.balance_wei),
            "wallet": report.address,
            "usd": report.usd,
            "hasGas": report.has_gas,
        }

    # ------------------------------------------------------------------
    # Disbursements
    # ------------------------------------------------------------------
    async def execute_disbursement(body: DisbursementBody | None = None) -> dict[str, Any]:
        body = body or DisbursementBody()
        result = await service.execute_disbursement(
            body.loan_amount,
            body.treasury_wallet,
            body.strategies,
            timeout=body.timeout,
        )
        return _disbursement_payload(result, usd_rate)

    async def withdraw(body: WithdrawBody | None = None) -> dict[str, Any]:
        body = body or WithdrawBody()
        destination = "" if body.destination is None else str(body.destination).strip()
        transfer = await service.transfer_funds(
            destination,
            body.amount,
            gas_price_gwei=body.gas_price_gwei,
            timeout=body.timeout,
        )
        payload = _transfer_payload(transfer, usd_rate)
        payload["to"] = transfer.destination
        return payload

    async def transfer_to_treasury(body: TreasuryTransferBody | None = None) -> dict[str, Any]:
        body = body or TreasuryTransferBody()
        transfer = await service.transfer_to_treasury(
            body.amount,
            body.treasury_wallet,
            source=body.source,
            timeout=body.timeout,
        )
        payload = _transfer_payload(transfer, usd_rate)
        payload["treasury"] = transfer.destination
        return payload

    for path in DISBURSEMENT_PATHS:
        app.add_api_route(path, execute_disbursement, methods=["POST"])
    for path in WITHDRAW_PATHS:
        app.add_api_route(path, withdraw, methods=["POST"])
    app.add_api_route(TREASURY_TRANSFER_PATH, transfer_to_treasury, methods=["POST"])

    return app


def _transfer_payload(transfer: TransferResult, usd_rate: float) -> dict[str, Any]:
    amount = float(transfer.amount)
    return {
        "success": transfer.success,
        "txHash": transfer.transaction_hash,
        "hash": transfer.transaction_hash,
        "transactionHash": transfer.transaction_hash,
        "amountETH": amount,
        "amountUSD": amount * usd_rate,
        "blockNumber": transfer.block_number,
        "gasUsed": str(transfer.gas_used),
        "etherscanUrl": explorer_url(transfer.transaction_hash),
    }


def _disbursement_payload(result: DisbursementResult, usd_rate: float) -> dict[str, Any]:
    estimate = result.estimate
    payload: dict[str, Any] = {
        "success": True,
        "confirmed": result.confirmed,
        "simulated": result.simulated,
        "payout": estimate.payout,
        "payoutETH": estimate.payout,
        "payoutUSD": estimate.payout * usd_rate,
        "loanAmount": estimate.principal,
        "payoutRate": estimate.rate,
        "payoutPercent": estimate.percent,
        "treasury": result.treasury,
    }

    transfer = result.transfer
    if transfer is not None:
        payload.update(
            {
                "txHash": transfer.transaction_hash,
                "hash": transfer.transaction_hash,
                "transactionHash": transfer.transaction_hash,
                "blockNumber": transfer.block_number,
                "gasUsed": str(transfer.gas_used),
                "etherscanUrl": explorer_url(transfer.transaction_hash),
                "message": f"Payout {estimate.payout:.6f} ETH sent to treasury",
            }
        )
        return payload

    payload.update(
        {
            "backendBalance": float(result.available_wei or 0) / 10**18,
            "needed": result.needed,
            "shortfall": result.shortfall,
            "message": (
                f"Payout: {estimate.payout:.6f} ETH "
                f"(need {result.needed:.4f} ETH in backend to send)"
            ),
        }
    )
    return payload
