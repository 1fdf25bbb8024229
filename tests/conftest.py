from __future__ import annotations

import asyncio
from typing import Any

import pytest
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TimeExhausted

from payout_api.evm.config import ServiceConfig
from payout_api.types import NetworkEndpoint

TEST_PRIVATE_KEY = "0x" + "4c" * 32
TREASURY = Web3.to_checksum_address("0x" + "ab" * 20)
DESTINATION = Web3.to_checksum_address("0x" + "cd" * 20)


class DummyEth:
    """Async stand-in for ``AsyncWeb3.eth`` recording every call."""

    def __init__(self, *, balance_eth: float | str = 0, alive: bool = True) -> None:
        self.alive = alive
        self.balance_wei = int(Web3.to_wei(str(balance_eth), "ether"))
        self.block = 19_000_000
        self.gas_price_wei = int(Web3.to_wei(12, "gwei"))
        self.gas_price_error: Exception | None = None
        self.nonce = 7
        self.send_error: Exception | None = None
        self.receipt_error: Exception | None = None
        self.receipt_status = 1
        self.receipt_delay = 0.0
        self.never_included = False
        self.probe_delay = 0.0
        self.debit_on_send = 0
        self.default_account: str | None = None
        self.calls: list[str] = []
        self.sent: list[bytes] = []

    def _check_alive(self) -> None:
        if not self.alive:
            raise ConnectionError("endpoint unreachable")

    async def _block_number(self) -> int:
        self.calls.append("block_number")
        if self.probe_delay:
            await asyncio.sleep(self.probe_delay)
        self._check_alive()
        return self.block

    @property
    def block_number(self) -> Any:
        return self._block_number()

    async def _gas_price(self) -> int:
        self.calls.append("gas_price")
        if self.gas_price_error is not None:
            raise self.gas_price_error
        return self.gas_price_wei

    @property
    def gas_price(self) -> Any:
        return self._gas_price()

    async def get_balance(self, address: str) -> int:
        self.calls.append("get_balance")
        self._check_alive()
        return self.balance_wei

    async def get_transaction_count(self, address: str, block_identifier: str = "latest") -> int:
        self.calls.append("get_transaction_count")
        self._check_alive()
        return self.nonce

    async def send_raw_transaction(self, raw: bytes) -> HexBytes:
        self.calls.append("send_raw_transaction")
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(bytes(raw))
        self.balance_wei -= self.debit_on_send
        self.nonce += 1
        return HexBytes(Web3.keccak(raw))

    async def wait_for_transaction_receipt(self, tx_hash: Any, timeout: float = 120) -> dict:
        self.calls.append("wait_for_transaction_receipt")
        if self.receipt_error is not None:
            raise self.receipt_error
        if self.never_included:
            await asyncio.sleep(timeout)
            raise TimeExhausted(f"Transaction {tx_hash!r} not in the chain after {timeout} seconds")
        if self.receipt_delay:
            await asyncio.sleep(self.receipt_delay)
        self.block += 1
        return {
            "transactionHash": tx_hash,
            "blockNumber": self.block,
            "gasUsed": 21_000,
            "status": self.receipt_status,
            "effectiveGasPrice": self.gas_price_wei,
        }


class DummyProvider:
    def __init__(self) -> None:
        self.disconnects = 0

    async def disconnect(self) -> None:
        self.disconnects += 1


class DummyWeb3:
    def __init__(self, eth: DummyEth) -> None:
        self.eth = eth
        self.provider = DummyProvider()


class DummyNetwork:
    """Web3 factory handing out dummy handles per URL; unknown URLs refuse to connect."""

    def __init__(self) -> None:
        self.handles: dict[str, DummyWeb3] = {}
        self.opened: list[str] = []

    def add(self, url: str, *, balance_eth: float | str = 0, alive: bool = True) -> DummyEth:
        eth = DummyEth(balance_eth=balance_eth, alive=alive)
        self.handles[url] = DummyWeb3(eth)
        return eth

    def eth(self, url: str) -> DummyEth:
        return self.handles[url].eth

    def disconnects(self, url: str) -> int:
        return self.handles[url].provider.disconnects

    def __call__(self, endpoint: NetworkEndpoint, request_timeout: float) -> DummyWeb3:
        self.opened.append(endpoint.url)
        handle = self.handles.get(endpoint.url)
        if handle is None:
            raise ConnectionError(f"cannot open {endpoint.url}")
        return handle

    @property
    def total_calls(self) -> int:
        return len(self.opened) + sum(len(handle.eth.calls) for handle in self.handles.values())


@pytest.fixture
def network() -> DummyNetwork:
    return DummyNetwork()


@pytest.fixture
def make_config():
    def _make(urls: tuple[str, ...] = ("https://rpc-a",), **overrides: Any) -> ServiceConfig:
        values: dict[str, Any] = {
            "private_key": TEST_PRIVATE_KEY,
            "treasury_address": TREASURY,
            "rpc_urls": tuple(urls),
            "request_timeout": 1.0,
            "receipt_timeout": 5.0,
        }
        values.update(overrides)
        return ServiceConfig(**values)

    return _make


@pytest.fixture
def treasury() -> str:
    return TREASURY


@pytest.fixture
def destination() -> str:
    return DESTINATION
