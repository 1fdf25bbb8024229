"""Ordered pool of interchangeable RPC endpoints."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from ..exceptions import ValidationError
from ..types import NetworkEndpoint


class EndpointPool:
    """Fixed, ordered set of candidate endpoints; order is failover priority."""

    def __init__(self, urls: Iterable[str | NetworkEndpoint]) -> None:
        endpoints: list[NetworkEndpoint] = []
        seen: set[str] = set()
        for item in urls:
            url = (item.url if isinstance(item, NetworkEndpoint) else str(item)).strip()
            if not url or url in seen:
                continue
            seen.add(url)
            endpoints.append(NetworkEndpoint(url=url, rank=len(endpoints)))

        if not endpoints:
            raise ValidationError("At least one RPC endpoint is required", field="rpc_urls")

        self._endpoints = tuple(endpoints)

    def __len__(self) -> int:
        return len(self._endpoints)

    def __getitem__(self, index: int) -> NetworkEndpoint:
        return self._endpoints[index]

    def __iter__(self) -> Iterator[NetworkEndpoint]:
        return iter(self._endpoints)

    @property
    def endpoints(self) -> tuple[NetworkEndpoint, ...]:
        return self._endpoints

    def rotation(self, start_index: int = 0) -> Iterator[tuple[int, NetworkEndpoint]]:
        """Yield every endpoint once, starting at ``start_index`` and wrapping."""

        size = len(self._endpoints)
        for offset in range(size):
            index = (start_index + offset) % size
            yield index, self._endpoints[index]
