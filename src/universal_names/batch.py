"""
Batch resolution through Multicall3.

Resolves many names of one ENS-compatible backend in a few round trips:
first every name's resolver is read from the registry, then every record
is read from the resolvers. Calls are chunked by max_batch_size and chunks
run concurrently under a semaphore.

Failures are isolated. A reverted or undecodable call maps only its own
entry to None. A chunk whose aggregate call fails in transport marks its
entries as failed, and entries that cannot be answered in a batch
(wildcard names without an exact resolver, OffchainLookup reverts) are
marked for fallback; the dispatcher resolves both groups one by one.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Generic, Optional, Sequence, TypeVar

from eth_abi.exceptions import DecodingError

from .abi import checksum, decode_result, encode_call, is_zero_address
from .audit_logger import AuditLogger, ComponentLogger
from .ccip_read import OFFCHAIN_LOOKUP_SELECTOR
from .exceptions import ContractRevertError, TransportError
from .models import Call3, CallResult, Name, ResolutionResult
from .multicall import Multicall3
from .namehash import labelhash, namehash, reverse_node
from .resolvers.ens import ENSResolver, timestamp_to_datetime

T = TypeVar("T")


@dataclass
class BatchOutcome(Generic[T]):
    """
    Result of a batch operation.

    results holds an entry for every requested key. Keys listed in failed
    (chunk transport failure) or fallback (needs the per-name path) have a
    None result that is not authoritative.
    """

    results: dict[str, Optional[T]] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)
    fallback: list[str] = field(default_factory=list)

    @property
    def unresolved(self) -> list[str]:
        """Keys the caller should retry one by one."""
        return self.failed + [k for k in self.fallback if k not in self.failed]


class _Pending:
    """Marker for entries that need the per-name path."""


FALLBACK = _Pending()


class BatchResolver:
    """Multicall-backed bulk lookups for one ENS-compatible backend."""

    def __init__(
        self,
        backend: ENSResolver,
        multicall: Optional[Multicall3] = None,
        max_batch_size: int = 100,
        max_concurrent_chunks: int = 4,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the batch resolver.

        Args:
            backend: ENS-compatible backend whose registry is queried
            multicall: Multicall3 client (defaults to the canonical address on the backend's RPC)
            max_batch_size: Calls per aggregate3 request
            max_concurrent_chunks: Chunks in flight at once
            logger: Optional audit logger
        """
        if max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        if max_concurrent_chunks <= 0:
            raise ValueError("max_concurrent_chunks must be positive")
        self._backend = backend
        self._multicall = multicall or Multicall3(backend.rpc)
        self._max_batch_size = max_batch_size
        self._max_concurrent_chunks = max_concurrent_chunks
        self._log = ComponentLogger(logger, "BatchResolver")

    @property
    def backend(self) -> ENSResolver:
        return self._backend

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    def can_resolve(self, name: Name) -> bool:
        return self._backend.can_resolve(name)

    # Operations

    async def resolve_many(self, names: Sequence[Name]) -> BatchOutcome[ResolutionResult]:
        """Forward-resolve names to their Ethereum address."""
        outcome: BatchOutcome[ResolutionResult] = BatchOutcome()
        keys = _unique([n.value for n in names])
        resolvers = await self._resolvers(keys, outcome)

        pending = [k for k in keys if isinstance(resolvers.get(k), str)]
        addresses = await self._resolver_reads(
            pending,
            resolvers,
            lambda key: encode_call("addr(bytes32)", [namehash(key)]),
            lambda raw: _address_or_none(_decode("address", raw)),
            outcome,
        )

        for key in keys:
            address = addresses.get(key)
            if address is None:
                outcome.results.setdefault(key, None)
                continue
            outcome.results[key] = ResolutionResult(
                address=address,
                resolver_used=self._backend.id,
                name=key,
                chain_id=self._backend.supported_chain_ids[0],
                metadata={"resolver": resolvers[key], "coin_type": 60, "batched": True},
            )
        return outcome

    async def reverse_resolve_many(self, addresses: Sequence[str]) -> BatchOutcome[str]:
        """
        Primary names of addresses, keyed by lower-cased address.

        A primary name only counts if it forward-resolves to the address.
        """
        outcome: BatchOutcome[str] = BatchOutcome()
        keys = _unique([a.lower() for a in addresses])

        reverse_resolvers = await self._registry_resolvers(
            keys, lambda key: reverse_node(key), outcome, missing_is_fallback=False
        )
        pending = [k for k in keys if isinstance(reverse_resolvers.get(k), str)]
        names = await self._resolver_reads(
            pending,
            reverse_resolvers,
            lambda key: encode_call("name(bytes32)", [reverse_node(key)]),
            lambda raw: (_decode("string", raw) or None),
            outcome,
        )

        # Forward verification of the claimed names
        claimed = {k: n.lower() for k, n in names.items() if n}
        forward_outcome: BatchOutcome[ResolutionResult] = BatchOutcome()
        forward_keys = _unique(list(claimed.values()))
        forward_resolvers = await self._resolvers(forward_keys, forward_outcome)
        verify_pending = [n for n in forward_keys if isinstance(forward_resolvers.get(n), str)]
        forward = await self._resolver_reads(
            verify_pending,
            forward_resolvers,
            lambda key: encode_call("addr(bytes32)", [namehash(key)]),
            lambda raw: _address_or_none(_decode("address", raw)),
            forward_outcome,
        )
        needs_per_name = set(forward_outcome.unresolved)

        for key in keys:
            name = claimed.get(key)
            if name is None:
                outcome.results.setdefault(key, None)
                continue
            if name in needs_per_name:
                outcome.results[key] = None
                if key not in outcome.fallback:
                    outcome.fallback.append(key)
                continue
            resolved = forward.get(name)
            outcome.results[key] = name if resolved and resolved.lower() == key else None
        return outcome

    async def fetch_records_many(
        self,
        names: Sequence[Name],
        keys: Sequence[str],
    ) -> BatchOutcome[dict[str, str]]:
        """Text records for many names; each result maps key to non-empty value."""
        outcome: BatchOutcome[dict[str, str]] = BatchOutcome()
        name_keys = _unique([n.value for n in names])
        resolvers = await self._resolvers(name_keys, outcome)
        pending = [k for k in name_keys if isinstance(resolvers.get(k), str)]

        calls = [
            Call3(resolvers[name], encode_call("text(bytes32,string)", [namehash(name), key]))
            for name in pending
            for key in keys
        ]
        results = await self._execute(calls)

        texts: dict[str, dict[str, str]] = {name: {} for name in pending}
        index = 0
        for name in pending:
            for key in keys:
                result = results[index]
                index += 1
                if result is None:
                    if name not in outcome.failed:
                        outcome.failed.append(name)
                    continue
                if _is_offchain(result):
                    if name not in outcome.fallback:
                        outcome.fallback.append(name)
                    continue
                value = _decode("string", result.return_data) if result.success else None
                if value:
                    texts[name][key] = value

        for name in name_keys:
            if name in texts and name not in outcome.failed and name not in outcome.fallback:
                outcome.results[name] = texts[name]
            else:
                outcome.results.setdefault(name, None)
        return outcome

    async def fetch_expiries_many(
        self,
        names: Sequence[Name],
        registrar_address: Optional[str] = None,
    ) -> BatchOutcome[datetime]:
        """
        Registrar expiries of second-level names.

        Names that are not second-level names under the backend's TLDs map to
        None, as does everything when no registrar is known.
        """
        outcome: BatchOutcome[datetime] = BatchOutcome()
        registrar = registrar_address or self._backend.registrar_address
        eligible: list[Name] = []
        for name in names:
            outcome.results[name.value] = None
            if (
                registrar is not None
                and len(name.labels) == 2
                and name.tld in self._backend.supported_tlds
            ):
                eligible.append(name)
        if not eligible:
            return outcome

        registrar = checksum(registrar)
        calls = [
            Call3(
                registrar,
                encode_call("nameExpires(uint256)", [int.from_bytes(labelhash(n.labels[0]), "big")]),
            )
            for n in eligible
        ]
        results = await self._execute(calls)
        for name, result in zip(eligible, results):
            if result is None:
                outcome.failed.append(name.value)
                continue
            if result.success:
                outcome.results[name.value] = timestamp_to_datetime(
                    _decode("uint256", result.return_data)
                )
        return outcome

    # Stages

    async def _resolvers(self, keys: list[str], outcome: BatchOutcome) -> dict[str, object]:
        return await self._registry_resolvers(keys, namehash, outcome, missing_is_fallback=True)

    async def _registry_resolvers(
        self,
        keys: list[str],
        node_of: Callable[[str], bytes],
        outcome: BatchOutcome,
        missing_is_fallback: bool,
    ) -> dict[str, object]:
        """
        Read registry.resolver(node) for every key.

        Returns:
            key -> checksummed resolver address, None (no resolver), or
            FALLBACK when a parent may answer through a wildcard resolver
        """
        registry = self._backend.registry_address
        calls = [Call3(registry, encode_call("resolver(bytes32)", [node_of(k)])) for k in keys]
        results = await self._execute(calls)

        resolvers: dict[str, object] = {}
        for key, result in zip(keys, results):
            if result is None:
                outcome.failed.append(key)
                resolvers[key] = None
                continue
            resolver = _address_or_none(_decode("address", result.return_data)) if result.success else None
            if resolver is None and missing_is_fallback and key.count(".") >= 2:
                # Subnames may be served by a parent's ENSIP-10 resolver
                outcome.fallback.append(key)
                resolvers[key] = FALLBACK
            else:
                resolvers[key] = resolver
        return resolvers

    async def _resolver_reads(
        self,
        keys: list[str],
        resolvers: dict[str, object],
        build: Callable[[str], bytes],
        parse: Callable[[bytes], Optional[str]],
        outcome: BatchOutcome,
    ) -> dict[str, Optional[str]]:
        calls = [Call3(resolvers[k], build(k)) for k in keys]
        results = await self._execute(calls)

        values: dict[str, Optional[str]] = {}
        for key, result in zip(keys, results):
            if result is None:
                outcome.failed.append(key)
                values[key] = None
            elif _is_offchain(result):
                outcome.fallback.append(key)
                values[key] = None
            else:
                values[key] = parse(result.return_data) if result.success else None
        return values

    async def _execute(self, calls: list[Call3]) -> list[Optional[CallResult]]:
        """
        Run calls in chunks.

        Returns:
            One entry per call; None where the whole chunk failed
        """
        if not calls:
            return []
        chunks = [
            calls[i: i + self._max_batch_size]
            for i in range(0, len(calls), self._max_batch_size)
        ]
        semaphore = asyncio.Semaphore(self._max_concurrent_chunks)

        async def run_chunk(index: int, chunk: list[Call3]) -> list[Optional[CallResult]]:
            async with semaphore:
                try:
                    return list(await self._multicall.aggregate3(chunk))
                except (TransportError, ContractRevertError) as e:
                    self._log.warn(
                        "Multicall chunk failed",
                        {"chunk": index, "calls": len(chunk), "error": str(e)},
                    )
                    return [None] * len(chunk)

        chunk_results = await asyncio.gather(*(run_chunk(i, c) for i, c in enumerate(chunks)))
        self._log.debug("Batch executed", {"calls": len(calls), "chunks": len(chunks)})
        return [result for chunk in chunk_results for result in chunk]


def _unique(keys: list[str]) -> list[str]:
    return list(dict.fromkeys(keys))


def _is_offchain(result: CallResult) -> bool:
    return not result.success and result.return_data[:4] == OFFCHAIN_LOOKUP_SELECTOR


def _decode(abi_type: str, data: bytes):
    if not data:
        return None
    try:
        return decode_result([abi_type], data)[0]
    except (DecodingError, ValueError):
        return None


def _address_or_none(address: Optional[str]) -> Optional[str]:
    if not address or is_zero_address(address):
        return None
    return checksum(address)
