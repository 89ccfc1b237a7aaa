"""Chunk reference merging and the bloom gateway client that filters them."""

from __future__ import annotations

import heapq
import logging
import threading
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

__all__ = [
    "ShortRef",
    "GroupedChunkRefs",
    "ClientConfig",
    "BlockWithSeries",
    "GatewayClient",
    "merge_chunk_sets",
    "merge_series",
    "ERR_ADDRESSES_REQUIRED",
]

ERR_ADDRESSES_REQUIRED = (
    "addresses requires a list of comma separated strings in DNS service "
    "discovery format with at least one item"
)

_log = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class ShortRef:
    """A chunk reference within a series, ordered by (start, end, checksum)."""

    start: int
    end: int
    checksum: int


@dataclass
class GroupedChunkRefs:
    """The chunk references of a single series."""

    fingerprint: int
    tenant: str = ""
    refs: list[ShortRef] = field(default_factory=list)


@dataclass
class ClientConfig:
    """Configuration of the bloom gateway client."""

    cache_results: bool = False
    addresses: str = ""

    def validate(self) -> None:
        """Raise ValueError if the configuration cannot be used."""
        if not self.addresses:
            raise ValueError(ERR_ADDRESSES_REQUIRED)


@dataclass
class BlockWithSeries:
    """A bloom block key together with the series to be filtered against it."""

    block: Any
    series: list[GroupedChunkRefs] = field(default_factory=list)


@dataclass
class _FilterRequest:
    start: Any
    end: Any
    refs: list[GroupedChunkRefs]
    blocks: list[str]
    plan: Any


@dataclass
class _AddrWithGroups:
    addr: str
    blocks: list[str]
    groups: list[GroupedChunkRefs]


class _BloomClient(Protocol):
    def filter_chunk_refs(self, request: _FilterRequest) -> list[GroupedChunkRefs]: ...


class _ClientPool(Protocol):
    def addr(self, key: str) -> str: ...

    def get_client_for(self, addr: str) -> _BloomClient: ...

    def stop(self) -> None: ...


def merge_chunk_sets(first: Sequence[ShortRef], second: Sequence[ShortRef]) -> list[ShortRef]:
    """Merge two sorted ref sequences, dropping references present in both."""
    result: list[ShortRef] = []
    i = j = 0
    while i < len(first) and j < len(second):
        a, b = first[i], second[j]
        if a == b:
            result.append(a)
            i += 1
            j += 1
        elif a < b:
            result.append(a)
            i += 1
        else:
            result.append(b)
            j += 1
    result.extend(first[i:])
    result.extend(second[j:])
    return result


def _sorted_refs(refs: list[ShortRef]) -> list[ShortRef]:
    if all(a <= b for a, b in zip(refs, refs[1:])):
        return refs
    return sorted(refs)


def _merge_groups(new: GroupedChunkRefs, acc: GroupedChunkRefs) -> GroupedChunkRefs:
    return GroupedChunkRefs(
        fingerprint=new.fingerprint,
        tenant=new.tenant,
        refs=merge_chunk_sets(_sorted_refs(new.refs), _sorted_refs(acc.refs)),
    )


def merge_series(inputs: Iterable[Iterable[GroupedChunkRefs]]) -> list[GroupedChunkRefs]:
    """Combine several responses into one list sorted by fingerprint, merging duplicates."""

    def by_fp(group: GroupedChunkRefs) -> int:
        return group.fingerprint

    streams = [sorted(groups, key=by_fp) for groups in inputs]
    merged: list[GroupedChunkRefs] = []
    for group in heapq.merge(*streams, key=by_fp):
        if merged and merged[-1].fingerprint == group.fingerprint:
            merged[-1] = _merge_groups(group, merged[-1])
        else:
            merged.append(group)
    return merged


class GatewayClient:
    """Sends chunk references to the bloom gateways that own their blocks."""

    def __init__(
        self,
        pool: _ClientPool,
        dns_provider: Any = None,
        config: ClientConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self._pool = pool
        self._dns_provider = dns_provider
        self._log = logger or _log
        self._lock = threading.Lock()
        self.requests: Counter[str] = Counter()

    def close(self) -> None:
        """Stop the connection pool and the address discovery."""
        self._pool.stop()
        if self._dns_provider is not None:
            self._dns_provider.stop()

    def filter_chunks(
        self,
        tenant: str,
        interval: tuple[Any, Any],
        blocks: Sequence[BlockWithSeries],
        plan: Any,
    ) -> list[GroupedChunkRefs]:
        """Filter the series of each block on its gateway and merge the results.

        ``interval`` is a (start, end) pair. A gateway that fails to answer leaves
        its series unfiltered; a block whose gateway cannot be resolved makes the
        whole call return every series unfiltered.
        """
        if not blocks:
            return []

        servers: dict[str, _AddrWithGroups] = {}
        for item in blocks:
            key = str(item.block)
            try:
                addr = self._pool.addr(key)
            except Exception as err:
                self._log.error(
                    "failed to resolve server address for block %s: %s", key, err
                )
                return merge_series(b.series for b in blocks)
            server = servers.get(addr)
            if server is None:
                servers[addr] = _AddrWithGroups(addr, [key], list(item.series))
            else:
                server.blocks.append(key)
                server.groups.extend(item.series)

        start, end = interval
        with ThreadPoolExecutor(max_workers=len(servers)) as executor:
            results = list(
                executor.map(
                    lambda server: self._filter_on(server, start, end, plan),
                    servers.values(),
                )
            )
        return merge_series(results)

    def _count(self, kind: str) -> None:
        with self._lock:
            self.requests[kind] += 1

    def _filter_on(
        self, server: _AddrWithGroups, start: Any, end: Any, plan: Any
    ) -> list[GroupedChunkRefs]:
        server.groups.sort(key=lambda group: group.fingerprint)

        def call(client: _BloomClient) -> list[GroupedChunkRefs]:
            request = _FilterRequest(start, end, server.groups, server.blocks, plan)
            try:
                response = client.filter_chunk_refs(request)
            except Exception as err:
                self._log.error(
                    "filter failed for instance %s, skipping (series=%d blocks=%d): %s",
                    server.addr,
                    len(server.groups),
                    len(server.blocks),
                    err,
                )
                self._count("error")
                return server.groups
            self._count("success")
            return list(response)

        return self._do_for_addrs([server.addr], call)

    def _do_for_addrs(
        self,
        addrs: Sequence[str],
        fn: Callable[[_BloomClient], list[GroupedChunkRefs]],
    ) -> list[GroupedChunkRefs]:
        last_error: Exception | None = None
        for addr in addrs:
            try:
                client = self._pool.get_client_for(addr)
            except Exception as err:
                self._log.error("failed to get client for instance %s: %s", addr, err)
                last_error = err
                continue
            try:
                return fn(client)
            except Exception as err:
                self._log.error("client do failed for instance %s: %s", addr, err)
                last_error = err
        if last_error is not None:
            raise last_error
        raise LookupError("no addresses to send the request to")