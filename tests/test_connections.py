"""Tests for connection failover."""

from __future__ import annotations

import asyncio

import pytest
from eth_account import Account

from payout_api.evm.connections import ConnectionManager
from payout_api.exceptions import ConnectivityError, ValidationError


def _manager(make_config, network, urls) -> ConnectionManager:
    return ConnectionManager(make_config(urls), web3_factory=network)


def test_failover_skips_unreachable_endpoints(make_config, network) -> None:
    urls = ("https://bad1", "https://bad2", "https://good")
    network.add("https://bad1", alive=False)
    network.add("https://bad2", alive=False)
    network.add("https://good")
    manager = _manager(make_config, network, urls)

    state = asyncio.run(manager.acquire())

    assert state.endpoint.url == "https://good"
    assert state.index == 2
    assert manager.last_good_index == 2
    assert manager.is_live


@pytest.mark.parametrize("unreachable", [0, 1, 2, 3, 4])
def test_first_k_unreachable_connects_to_candidate_k(make_config, network, unreachable: int) -> None:
    urls = tuple(f"https://rpc-{i}" for i in range(5))
    for i, url in enumerate(urls):
        if i >= unreachable:
            network.add(url)
    manager = _manager(make_config, network, urls)

    state = asyncio.run(manager.acquire())

    assert state.index == unreachable
    assert manager.last_good_index == unreachable


def test_all_endpoints_unreachable_raises_connectivity_error(make_config, network) -> None:
    urls = ("https://a", "https://b", "https://c")
    network.add("https://a", alive=False)
    manager = _manager(make_config, network, urls)

    with pytest.raises(ConnectivityError) as excinfo:
        asyncio.run(manager.acquire())

    assert not manager.is_live
    assert set(excinfo.value.details["endpoints"]) == set(urls)
    assert network.opened == list(urls)
    with pytest.raises(ConnectivityError):
        manager.state


def test_live_connection_is_reused_after_successful_probe(make_config, network) -> None:
    eth = network.add("https://a")
    manager = _manager(make_config, network, ("https://a", "https://b"))

    async def scenario():
        first = await manager.acquire()
        second = await manager.acquire()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is second
    assert network.opened == ["https://a"]
    assert eth.calls == ["block_number", "block_number"]
    assert manager.generation == 1


def test_probe_failure_swaps_to_next_endpoint(make_config, network) -> None:
    primary = network.add("https://a")
    network.add("https://b")
    manager = _manager(make_config, network, ("https://a", "https://b"))

    async def scenario():
        first = await manager.acquire()
        primary.alive = False
        second = await manager.acquire()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.endpoint.url == "https://a"
    assert second.endpoint.url == "https://b"
    assert second.generation == first.generation + 1
    assert manager.last_good_index == 1
    assert not manager.is_current(first)
    assert manager.is_current(second)


def test_dead_endpoint_is_retried_last_after_probe_failure(make_config, network) -> None:
    urls = ("https://a", "https://b", "https://c")
    primary = network.add("https://a")
    manager = _manager(make_config, network, urls)

    async def scenario():
        await manager.acquire()
        primary.alive = False
        network.opened.clear()
        with pytest.raises(ConnectivityError):
            await manager.acquire()

    asyncio.run(scenario())

    assert network.opened == ["https://b", "https://c", "https://a"]
    assert not manager.is_live


def test_rotation_resumes_from_last_known_good(make_config, network) -> None:
    urls = ("https://a", "https://b", "https://c")
    network.add("https://a")
    network.add("https://c")
    manager = _manager(make_config, network, urls)

    async def scenario():
        network.eth("https://a").alive = False
        await manager.acquire()
        await manager.disconnect()
        network.eth("https://a").alive = True
        network.opened.clear()
        return await manager.acquire()

    state = asyncio.run(scenario())

    assert state.endpoint.url == "https://c"
    assert network.opened == ["https://c"]


def test_signing_identity_is_bound_to_new_handle(make_config, network) -> None:
    eth = network.add("https://a")
    config = make_config(("https://a",))
    manager = ConnectionManager(config, web3_factory=network)

    state = asyncio.run(manager.acquire())

    expected = Account.from_key(config.private_key).address
    assert state.account.address == expected
    assert manager.address == expected
    assert eth.default_account == expected


def test_invalid_private_key_is_a_validation_error(make_config, network) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ConnectionManager(make_config(private_key="0x1234"), web3_factory=network)

    assert excinfo.value.field == "private_key"


def test_connect_reports_failure_without_raising(make_config, network) -> None:
    manager = _manager(make_config, network, ("https://a",))

    assert asyncio.run(manager.connect()) is False
    assert not manager.is_live


def test_slow_probe_counts_as_failure(make_config, network) -> None:
    slow = network.add("https://slow")
    slow.probe_delay = 5.0
    network.add("https://fast")
    manager = ConnectionManager(
        make_config(("https://slow", "https://fast"), request_timeout=0.05),
        web3_factory=network,
    )

    state = asyncio.run(manager.acquire())

    assert state.endpoint.url == "https://fast"
    assert manager.last_good_index == 1


def test_pinned_connection_blocks_swaps_until_released(make_config, network) -> None:
    network.add("https://a")
    manager = _manager(make_config, network, ("https://a",))
    events: list[str] = []

    async def holder():
        async with manager.pinned():
            events.append("pinned")
            await asyncio.sleep(0.05)
            events.append("released")

    async def contender():
        await asyncio.sleep(0.01)
        await manager.acquire()
        events.append("acquired")

    async def scenario():
        await asyncio.gather(holder(), contender())

    asyncio.run(scenario())

    assert events == ["pinned", "released", "acquired"]


def test_swap_closes_replaced_provider(make_config, network) -> None:
    primary = network.add("https://a")
    network.add("https://b")
    manager = _manager(make_config, network, ("https://a", "https://b"))

    async def scenario():
        await manager.acquire()
        primary.alive = False
        await manager.acquire()

    asyncio.run(scenario())

    assert network.disconnects("https://a") == 1
    assert network.disconnects("https://b") == 0


def test_failed_candidate_provider_is_closed(make_config, network) -> None:
    network.add("https://a", alive=False)
    network.add("https://b")
    manager = _manager(make_config, network, ("https://a", "https://b"))

    asyncio.run(manager.acquire())

    assert network.disconnects("https://a") == 1
    assert network.disconnects("https://b") == 0


def test_disconnect_closes_live_provider(make_config, network) -> None:
    network.add("https://a")
    manager = _manager(make_config, network, ("https://a",))

    async def scenario():
        await manager.acquire()
        await manager.disconnect()

    asyncio.run(scenario())

    assert network.disconnects("https://a") == 1
    assert not manager.is_live
