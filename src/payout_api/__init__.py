"""Treasury payout relay.

Disburses ETH from a single custodial account through a pool of
interchangeable JSON-RPC endpoints, gating every transfer on live balance
and tracking it to inclusion.
"""

from .base import PayoutEstimatorBase
from .estimator import FixedRateEstimator, RandomPayoutEstimator
from .evm import (
    BalanceGate,
    ConnectionManager,
    EndpointPool,
    ServiceConfig,
    TransactionDispatcher,
)
from .exceptions import (
    ConfirmationTimeoutError,
    ConnectivityError,
    InsufficientFundsError,
    PayoutError,
    SubmissionError,
    ValidationError,
)
from .service import PayoutService
from .types import (
    Address,
    BalanceCheck,
    BalanceReport,
    BalanceSnapshot,
    ConnectionState,
    DisbursementResult,
    NetworkEndpoint,
    PayoutEstimate,
    TransferRequest,
    TransferResult,
    Wei,
)
from .utils import from_wei, to_wei, validate_address

__version__ = "0.1.0"

__all__ = [
    # Components
    "BalanceGate",
    "ConnectionManager",
    "EndpointPool",
    "PayoutService",
    "ServiceConfig",
    "TransactionDispatcher",
    # Payout models
    "PayoutEstimatorBase",
    "RandomPayoutEstimator",
    "FixedRateEstimator",
    # Types
    "Address",
    "Wei",
    "NetworkEndpoint",
    "ConnectionState",
    "TransferRequest",
    "TransferResult",
    "BalanceSnapshot",
    "BalanceCheck",
    "BalanceReport",
    "PayoutEstimate",
    "DisbursementResult",
    # Exceptions
    "PayoutError",
    "ValidationError",
    "ConnectivityError",
    "InsufficientFundsError",
    "SubmissionError",
    "ConfirmationTimeoutError",
    # Utility functions
    "to_wei",
    "from_wei",
    "validate_address",
]
