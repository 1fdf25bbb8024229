"""Utility functions for the treasury payout relay."""

import math
from collections.abc import Mapping, Sequence
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any

from eth_utils import is_hex_address
from hexbytes import HexBytes
from web3 import Web3
from web3.types import ChecksumAddress

from .constants import ADDRESS_LENGTH, ADDRESS_PREFIX, EXPLORER_TX_URL
from .exceptions import ValidationError

_WEI_QUANTUM = Decimal(1).scaleb(-18)


def validate_address(value: Any, field: str = "destination") -> ChecksumAddress:
    """Check a 0x-prefixed, 42 character hex address and checksum it."""
    if not isinstance(value, str):
        raise ValidationError("Invalid address", field=field, value=value)

    candidate = value.strip()
    if (
        not candidate.startswith(ADDRESS_PREFIX)
        or len(candidate) != ADDRESS_LENGTH
        or not is_hex_address(candidate.lower())
    ):
        raise ValidationError("Invalid address", field=field, value=candidate)

    return Web3.to_checksum_address(candidate.lower())


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    """Parse a positive, finite ETH amount."""
    if value is None or isinstance(value, bool):
        raise ValidationError("Invalid amount", field=field, value=value)

    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError("Amount must be finite", field=field, value=value)

    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid amount", field=field, value=value)

    if not amount.is_finite():
        raise ValidationError("Amount must be finite", field=field, value=value)
    if amount <= 0:
        raise ValidationError("Amount must be positive", field=field, value=value)

    return amount


def to_wei(value: Any, field: str = "amount") -> int:
    """Convert an ETH amount to wei, truncating below one wei."""
    amount = parse_amount(value, field=field)
    try:
        truncated = amount.quantize(_WEI_QUANTUM, rounding=ROUND_DOWN)
    except InvalidOperation:
        raise ValidationError("Amount is too large", field=field, value=value)

    wei = int(Web3.to_wei(truncated, "ether"))
    if wei <= 0:
        raise ValidationError("Amount is below one wei", field=field, value=value)
    return wei


def validate_timeout(value: Any, limit: float, field: str = "timeout") -> float:
    """Check a caller wait bound in seconds, capped at ``limit``; ``None`` means ``limit``."""
    if value is None:
        return limit
    if isinstance(value, bool):
        raise ValidationError("Timeout must be a number of seconds", field=field, value=value)

    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Timeout must be a number of seconds", field=field, value=value)

    if not math.isfinite(timeout) or timeout <= 0:
        raise ValidationError(
            "Timeout must be a positive, finite number of seconds", field=field, value=value
        )
    return min(timeout, limit)


def from_wei(value: int) -> float:
    """Convert wei to a float ETH figure for display."""
    return float(Web3.from_wei(value, "ether"))


def to_hex_hash(value: Any) -> str:
    """Normalise a transaction hash to a 0x-prefixed hex string."""
    if isinstance(value, str):
        return value if value.startswith("0x") else f"0x{value}"
    return Web3.to_hex(HexBytes(value))


def receipt_field(receipt: Any, name: str, default: Any = None) -> Any:
    """Read a field from a receipt that may be a mapping or attribute object."""
    if isinstance(receipt, Mapping):
        return receipt.get(name, default)
    return getattr(receipt, name, default)


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return Web3.to_hex(HexBytes(receipt))
    return receipt


def explorer_url(tx_hash: str) -> str:
    """Block explorer link for a transaction hash."""
    return EXPLORER_TX_URL.format(tx_hash=tx_hash)
