"""Type definitions and data models for the treasury payout relay."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING
from urllib.parse import urlsplit, urlunsplit

from web3 import Web3

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from eth_account.signers.local import LocalAccount
    from web3 import AsyncWeb3

Address = str  # 0x-prefixed account address
Wei = int  # smallest-unit amount

_SECRET_SEGMENT_LENGTH = 16


@dataclass(frozen=True)
class NetworkEndpoint:
    """A JSON-RPC endpoint; ``rank`` is its failover priority."""

    url: str
    rank: int

    @property
    def display(self) -> str:
        """URL with API-key looking path segments masked, safe for logs."""

        parts = urlsplit(self.url)
        segments = [
            f"{segment[:4]}***" if len(segment) >= _SECRET_SEGMENT_LENGTH else segment
            for segment in parts.path.split("/")
        ]
        return urlunsplit((parts.scheme, parts.netloc, "/".join(segments), "", ""))


@dataclass(frozen=True)
class ConnectionState:
    """The live connection handle; swapped wholesale, never patched."""

    index: int
    endpoint: NetworkEndpoint
    web3: AsyncWeb3
    account: LocalAccount
    generation: int


@dataclass(frozen=True)
class TransferRequest:
    """A value transfer from the custodial account."""

    destination: Address
    amount_wei: Wei
    gas_price_wei: Wei | None = None

    @property
    def amount(self) -> Decimal:
        return Web3.from_wei(self.amount_wei, "ether")


@dataclass(frozen=True)
class TransferResult:
    """Outcome of an included transfer; only built from a receipt."""

    transaction_hash: str
    block_number: int
    gas_used: int
    success: bool
    destination: Address
    amount_wei: Wei
    effective_gas_price: Wei | None = None

    @property
    def amount(self) -> Decimal:
        return Web3.from_wei(self.amount_wei, "ether")

    @property
    def fee_wei(self) -> Wei | None:
        if self.effective_gas_price is None:
            return None
        return self.gas_used * self.effective_gas_price


@dataclass(frozen=True)
class BalanceSnapshot:
    """Liquid balance of the custodial account at query time."""

    address: Address
    available_wei: Wei

    @property
    def available(self) -> Decimal:
        return Web3.from_wei(self.available_wei, "ether")


@dataclass(frozen=True)
class BalanceCheck:
    """Balance gate decision; ``required_wei`` already includes the reserve."""

    sufficient: bool
    available_wei: Wei
    required_wei: Wei

    @property
    def shortfall_wei(self) -> Wei:
        return max(0, self.required_wei - self.available_wei)


@dataclass(frozen=True)
class PayoutEstimate:
    """Simulated payout for a requested principal, in ETH."""

    principal: float
    payout: float
    rate: float

    @property
    def percent(self) -> str:
        return f"{self.rate * 100:.3f}%"


@dataclass(frozen=True)
class BalanceReport:
    """Balance query response enriched with display currency figures."""

    address: Address
    balance_wei: Wei
    usd_rate: float
    operating_gas_min_wei: Wei

    @property
    def balance(self) -> float:
        return float(Web3.from_wei(self.balance_wei, "ether"))

    @property
    def usd(self) -> float:
        return self.balance * self.usd_rate

    @property
    def has_gas(self) -> bool:
        return self.balance_wei >= self.operating_gas_min_wei


@dataclass(frozen=True)
class DisbursementResult:
    """Two-outcome disbursement: confirmed on chain, or simulated only."""

    confirmed: bool
    simulated: bool
    estimate: PayoutEstimate
    treasury: Address
    transfer: TransferResult | None = None
    available_wei: Wei | None = None
    needed: float | None = None

    @property
    def shortfall(self) -> float | None:
        if self.needed is None or self.available_wei is None:
            return None
        return self.needed - float(Web3.from_wei(self.available_wei, "ether"))
