"""Configuration containers for the payout relay."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from web3 import Web3
from web3.types import ChecksumAddress

from ..constants import (
    ALCHEMY_RPC_TEMPLATE,
    DEFAULT_GAS_PRICE_GWEI,
    DEFAULT_USD_RATE,
    FEE_RESERVE_ETH,
    INFURA_RPC_TEMPLATE,
    MAINNET_CHAIN_ID,
    OPERATING_GAS_MIN_ETH,
    PUBLIC_RPC_ENDPOINTS,
    TRANSFER_GAS_LIMIT,
)
from ..exceptions import ValidationError
from ..utils import validate_address

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_RECEIPT_TIMEOUT = 120.0
DEFAULT_PORT = 8080
DEFAULT_HOST = "0.0.0.0"


def default_rpc_urls(
    infura_key: str | None = None, alchemy_key: str | None = None
) -> tuple[str, ...]:
    """Public endpoints followed by keyed providers when keys are configured."""

    urls = list(PUBLIC_RPC_ENDPOINTS)
    if infura_key:
        urls.append(INFURA_RPC_TEMPLATE.format(key=infura_key))
    if alchemy_key:
        urls.append(ALCHEMY_RPC_TEMPLATE.format(key=alchemy_key))
    return tuple(urls)


@dataclass(frozen=True)
class ServiceConfig:
    """Aggregated configuration used to construct the payout service."""

    private_key: str
    treasury_address: ChecksumAddress
    rpc_urls: tuple[str, ...] = field(default_factory=default_rpc_urls)
    chain_id: int = MAINNET_CHAIN_ID
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    gas_limit: int = TRANSFER_GAS_LIMIT
    default_gas_price_gwei: int = DEFAULT_GAS_PRICE_GWEI
    fee_reserve_eth: Decimal = FEE_RESERVE_ETH
    operating_gas_min_eth: Decimal = OPERATING_GAS_MIN_ETH
    usd_rate: float = DEFAULT_USD_RATE
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @property
    def fee_reserve_wei(self) -> int:
        return int(Web3.to_wei(self.fee_reserve_eth, "ether"))

    @property
    def operating_gas_min_wei(self) -> int:
        return int(Web3.to_wei(self.operating_gas_min_eth, "ether"))

    @property
    def default_gas_price_wei(self) -> int:
        return int(Web3.to_wei(self.default_gas_price_gwei, "gwei"))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServiceConfig:
        """Build a config from environment variables, trimming every value."""

        env = os.environ if environ is None else environ

        def _get(name: str) -> str | None:
            value = env.get(name)
            if value is None:
                return None
            value = value.strip()
            return value or None

        def _require(name: str) -> str:
            value = _get(name)
            if value is None:
                raise ValidationError(f"{name} not found in environment variables", field=name)
            return value

        def _number(name: str, default: float, kind: type = float):
            raw = _get(name)
            if raw is None:
                return default
            try:
                return kind(raw)
            except ValueError:
                raise ValidationError(f"{name} must be numeric", field=name, value=raw)

        raw_endpoints = _get("RPC_ENDPOINTS")
        if raw_endpoints:
            rpc_urls = tuple(url.strip() for url in raw_endpoints.split(",") if url.strip())
        else:
            rpc_urls = default_rpc_urls(_get("INFURA_KEY"), _get("ALCHEMY_KEY"))

        return cls(
            private_key=_require("PRIVATE_KEY"),
            treasury_address=validate_address(_require("TREASURY_WALLET"), field="TREASURY_WALLET"),
            rpc_urls=rpc_urls,
            chain_id=_number("CHAIN_ID", MAINNET_CHAIN_ID, int),
            request_timeout=_number("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            receipt_timeout=_number("RECEIPT_TIMEOUT", DEFAULT_RECEIPT_TIMEOUT),
            usd_rate=_number("USD_RATE", DEFAULT_USD_RATE),
            host=_get("HOST") or DEFAULT_HOST,
            port=_number("PORT", DEFAULT_PORT, int),
        )
