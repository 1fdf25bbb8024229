"""Connection management with endpoint failover for the payout relay."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import cast

from aiohttp import ClientTimeout
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.types import ChecksumAddress

from ..exceptions import ConnectivityError, ValidationError
from ..types import ConnectionState, NetworkEndpoint
from .config import ServiceConfig
from .endpoints import EndpointPool

logger = logging.getLogger(__name__)

Web3Factory = Callable[[NetworkEndpoint, float], AsyncWeb3]


def build_async_web3(endpoint: NetworkEndpoint, request_timeout: float) -> AsyncWeb3:
    provider = AsyncHTTPProvider(
        endpoint.url, request_kwargs={"timeout": ClientTimeout(total=request_timeout)}
    )
    return AsyncWeb3(provider)


class ConnectionManager:
    """Own the single live RPC handle and the signing account bound to it.

    The handle is DISCONNECTED until some endpoint passes a liveness probe.
    A failed probe drops it back to DISCONNECTED and the next ``acquire``
    walks the endpoint rotation once. There is no background reconnect loop.
    """

    def __init__(
        self,
        config: ServiceConfig,
        pool: EndpointPool | None = None,
        *,
        web3_factory: Web3Factory | None = None,
    ) -> None:
        self.config = config
        self.pool = pool or EndpointPool(config.rpc_urls)
        self._web3_factory = web3_factory or build_async_web3

        try:
            signer: LocalAccount = Account.from_key(config.private_key)
        except Exception as exc:
            raise ValidationError(
                "Failed to derive signer account from provided private key",
                field="private_key",
                details={"error": str(exc)},
            ) from exc

        self._account = signer
        self._state: ConnectionState | None = None
        self._live = False
        self._last_good_index = 0
        self._generation = 0
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> bool:
        """Warm up a connection; logs instead of raising when nothing answers."""

        try:
            await self.acquire()
        except ConnectivityError as exc:
            logger.error("All RPC endpoints failed; will retry on next request: %s", exc.details)
            return False
        return True

    async def disconnect(self) -> None:
        async with self._lock:
            state = self._state
            self._state = None
            self._live = False
            if state is not None:
                await _close(state.web3)

    async def acquire(self) -> ConnectionState:
        """Return a probed, live connection, failing over if needed."""

        async with self._lock:
            return await self._acquire_locked()

    @asynccontextmanager
    async def pinned(self) -> AsyncIterator[ConnectionState]:
        """Hold the live connection so no swap happens until the block exits."""

        async with self._lock:
            yield await self._acquire_locked()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def account(self) -> LocalAccount:
        return self._account

    @property
    def address(self) -> ChecksumAddress:
        return cast(ChecksumAddress, self._account.address)

    @property
    def is_live(self) -> bool:
        return self._live and self._state is not None

    @property
    def last_good_index(self) -> int:
        return self._last_good_index

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def state(self) -> ConnectionState:
        if not self.is_live:
            raise ConnectivityError("No live RPC connection; call acquire() first")
        return cast(ConnectionState, self._state)

    def is_current(self, state: ConnectionState) -> bool:
        return self.is_live and state.generation == self._generation

    # ------------------------------------------------------------------
    # Internal wiring
    # ------------------------------------------------------------------
    async def _acquire_locked(self) -> ConnectionState:
        start_index = self._last_good_index
        state = self._state

        if self._live and state is not None:
            try:
                await self._probe(state.web3)
                return state
            except Exception as exc:
                logger.warning(
                    "RPC %s failed liveness probe, reconnecting: %s",
                    state.endpoint.display,
                    _describe(exc),
                )
                self._live = False
                start_index = state.index + 1

        errors: dict[str, str] = {}
        for index, endpoint in self.pool.rotation(start_index):
            logger.debug("Trying RPC %s", endpoint.display)
            web3: AsyncWeb3 | None = None
            try:
                web3 = self._web3_factory(endpoint, self.config.request_timeout)
                block_number = await self._probe(web3)
            except Exception as exc:
                logger.warning("RPC %s failed: %s", endpoint.display, _describe(exc))
                errors[endpoint.display] = _describe(exc)
                if web3 is not None and (state is None or web3 is not state.web3):
                    await _close(web3)
                continue

            if state is not None and state.web3 is not web3:
                await _close(state.web3)
            return self._swap(index, endpoint, web3, block_number)

        if state is not None:
            await _close(state.web3)
        self._state = None
        self._live = False
        raise ConnectivityError(
            "All RPC endpoints are unavailable",
            details={"endpoints": errors},
        )

    async def _probe(self, web3: AsyncWeb3) -> int:
        return await asyncio.wait_for(web3.eth.block_number, timeout=self.config.request_timeout)

    def _swap(
        self, index: int, endpoint: NetworkEndpoint, web3: AsyncWeb3, block_number: int
    ) -> ConnectionState:
        web3.eth.default_account = self._account.address
        self._generation += 1
        state = ConnectionState(
            index=index,
            endpoint=endpoint,
            web3=web3,
            account=self._account,
            generation=self._generation,
        )
        self._state = state
        self._live = True
        self._last_good_index = index
        logger.info(
            "Connected to RPC %s at block %s (signer %s)",
            endpoint.display,
            block_number,
            self._account.address,
        )
        return state


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def _close(web3: AsyncWeb3) -> None:
    """Release the provider's HTTP session; handles without one are left alone."""

    disconnect = getattr(getattr(web3, "provider", None), "disconnect", None)
    if disconnect is None:
        return
    try:
        await disconnect()
    except Exception as exc:
        logger.debug("Closing RPC provider failed: %s", _describe(exc))
