"""Ethereum JSON-RPC plumbing: endpoint failover, balance gate and dispatch."""

from .balance import BalanceGate, is_sufficient
from .config import ServiceConfig
from .connections import ConnectionManager, build_async_web3
from .endpoints import EndpointPool
from .transactions import TransactionDispatcher, validate_transfer_request

__all__ = [
    "BalanceGate",
    "ConnectionManager",
    "EndpointPool",
    "ServiceConfig",
    "TransactionDispatcher",
    "build_async_web3",
    "is_sufficient",
    "validate_transfer_request",
]
