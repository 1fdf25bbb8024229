"""Tests for environment configuration."""

from decimal import Decimal

import pytest
from web3 import Web3

from payout_api.constants import PUBLIC_RPC_ENDPOINTS
from payout_api.evm.config import ServiceConfig, default_rpc_urls
from payout_api.exceptions import ValidationError

BASE_ENV = {
    "PRIVATE_KEY": "0x" + "4c" * 32,
    "TREASURY_WALLET": "0x" + "ab" * 20,
}


def test_from_env_defaults() -> None:
    config = ServiceConfig.from_env(dict(BASE_ENV))

    assert config.treasury_address == Web3.to_checksum_address("0x" + "ab" * 20)
    assert config.rpc_urls == PUBLIC_RPC_ENDPOINTS
    assert config.chain_id == 1
    assert config.port == 8080
    assert config.fee_reserve_wei == Web3.to_wei(Decimal("0.001"), "ether")
    assert config.operating_gas_min_wei == Web3.to_wei(Decimal("0.002"), "ether")
    assert config.default_gas_price_wei == Web3.to_wei(30, "gwei")


def test_from_env_trims_values() -> None:
    env = {
        "PRIVATE_KEY": f"  {BASE_ENV['PRIVATE_KEY']}\n",
        "TREASURY_WALLET": f" {BASE_ENV['TREASURY_WALLET']} ",
        "RPC_ENDPOINTS": " https://a , ,https://b ",
        "PORT": " 9000 ",
        "RECEIPT_TIMEOUT": "30",
    }

    config = ServiceConfig.from_env(env)

    assert config.private_key == BASE_ENV["PRIVATE_KEY"]
    assert config.rpc_urls == ("https://a", "https://b")
    assert config.port == 9000
    assert config.receipt_timeout == 30.0


def test_keyed_providers_are_appended() -> None:
    urls = default_rpc_urls("infura-key", "alchemy-key")

    assert urls[: len(PUBLIC_RPC_ENDPOINTS)] == PUBLIC_RPC_ENDPOINTS
    assert urls[-2].endswith("/infura-key")
    assert urls[-1].endswith("/alchemy-key")


@pytest.mark.parametrize("missing", ["PRIVATE_KEY", "TREASURY_WALLET"])
def test_missing_required_variable_raises(missing: str) -> None:
    env = {key: value for key, value in BASE_ENV.items() if key != missing}

    with pytest.raises(ValidationError) as excinfo:
        ServiceConfig.from_env(env)

    assert excinfo.value.field == missing


def test_blank_variable_counts_as_missing() -> None:
    with pytest.raises(ValidationError):
        ServiceConfig.from_env({**BASE_ENV, "PRIVATE_KEY": "   "})


def test_invalid_treasury_raises() -> None:
    with pytest.raises(ValidationError) as excinfo:
        ServiceConfig.from_env({**BASE_ENV, "TREASURY_WALLET": "0xabc"})

    assert excinfo.value.field == "TREASURY_WALLET"


def test_non_numeric_port_raises() -> None:
    with pytest.raises(ValidationError) as excinfo:
        ServiceConfig.from_env({**BASE_ENV, "PORT": "eighty"})

    assert excinfo.value.field == "PORT"
