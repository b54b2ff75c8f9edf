"""
Universal name service: the dispatcher.

Entry point for every name operation. It normalizes input, answers from
the cache when it can, otherwise picks backends and records analytics:

- explicit TLD ownership (register_tld) is consulted first
- then every registered backend whose can_resolve() accepts the name, in
  registration order
- the first non-None answer wins and is cached

A backend that fails in transport is skipped. If every candidate failed in
transport the call raises ResolutionFailedError ("could not check"), which
is distinct from returning None ("not registered"). CCIP-Read protocol
violations propagate to the caller and nothing is cached.
"""

import asyncio
import threading
import time
from datetime import datetime
from typing import Awaitable, Callable, Iterable, Optional, Sequence, TypeVar

from eth_utils import is_address

from .analytics import NameAnalytics, OperationStopwatch
from .audit_logger import AuditLogger
from .batch import BatchResolver
from .cache import NameCache
from .ccip_read import CCIPRead, CCIPReadClient
from .config import ServiceConfig
from .enums import LogLevel, OperationKind
from .exceptions import (
    NameRejectedError,
    NameServiceError,
    ProtocolError,
    ResolutionFailedError,
    TransportError,
)
from .expiration import ExpirationTracker
from .models import AnalyticsStats, CacheStats, Name, NameRecords, ResolutionResult
from .multicall import Multicall3
from .normalizer import NameNormalizer
from .resolvers.base import NameResolverBackend
from .resolvers.cifi import CiFiResolver
from .resolvers.ens import ENSResolver
from .resolvers.registry import RegistryResolver
from .resolvers.sns import SnsResolver
from .resolvers.spaceid import ARBITRUM_CHAIN_ID, SpaceIdResolver
from .resolvers.suins import SuiNsResolver
from .resolvers.unstoppable import UnstoppableResolver
from .rpc_client import HttpRpcClient, RpcClient
from .tld_registry import DEFAULT_TLDS

T = TypeVar("T")

POLYGON_CHAIN_ID = 137
BNB_CHAIN_ID = 56


class UniversalNameService:
    """
    Multi-backend name resolution with caching, batching and analytics.

    Construct it explicitly and pass it where it is needed; from_config()
    wires the built-in backends from a ServiceConfig.
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        cache: Optional[NameCache] = None,
        analytics: Optional[NameAnalytics] = None,
        logger: Optional[AuditLogger] = None,
        normalizer: Optional[NameNormalizer] = None,
    ) -> None:
        """
        Initialize the service without any backend.

        Args:
            config: Service configuration (defaults to ServiceConfig())
            cache: Cache to use; built from config.cache when omitted and enabled
            analytics: Analytics collector; built from config when omitted
            logger: Optional audit logger
            normalizer: Name normalizer (defaults to NameNormalizer())
        """
        self._config = config or ServiceConfig()
        self._logger = logger
        self._normalizer = normalizer or NameNormalizer()

        if cache is None and self._config.cache.enabled:
            cache = NameCache(self._config.cache, logger=logger)
        self._cache = cache
        self._analytics = analytics or NameAnalytics(enabled=self._config.enable_analytics)

        self._backends: list[NameResolverBackend] = []
        self._tld_owners: dict[str, str] = {}
        self._registry_lock = threading.Lock()

        self._batch: Optional[BatchResolver] = None
        self._tracker: Optional[ExpirationTracker] = None
        self._transports: list = []

    async def __aenter__(self) -> "UniversalNameService":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @classmethod
    def from_config(
        cls,
        config: ServiceConfig,
        logger: Optional[AuditLogger] = None,
        rpc: Optional[RpcClient] = None,
    ) -> "UniversalNameService":
        """
        Build a service with the built-in backends.

        ENS and Unstoppable Domains use the main RPC (or rpc if given).
        SPACE ID (.bnb on BNB Chain, .arb on Arbitrum) and Unstoppable on
        Polygon are registered when chain_rpc_urls configures those chains;
        CiFi when cifi is set; SNS and SuiNS unless disabled; one
        RegistryResolver per configured registry.
        """
        service = cls(config=config, logger=logger)
        mainnet = service._transport(config.rpc.chain_id, config.rpc.url, rpc)

        service.register_resolver(ENSResolver(mainnet, chain_id=config.rpc.chain_id, logger=logger))

        for spaceid_chain in (BNB_CHAIN_ID, ARBITRUM_CHAIN_ID):
            if spaceid_chain in config.chain_rpc_urls:
                transport = service._transport(spaceid_chain, config.chain_rpc_urls[spaceid_chain])
                service.register_resolver(SpaceIdResolver(transport, chain_id=spaceid_chain, logger=logger))

        if POLYGON_CHAIN_ID in config.chain_rpc_urls:
            polygon = service._transport(POLYGON_CHAIN_ID, config.chain_rpc_urls[POLYGON_CHAIN_ID])
            service.register_resolver(UnstoppableResolver(polygon, chain_id=POLYGON_CHAIN_ID, logger=logger))
        else:
            service.register_resolver(UnstoppableResolver(mainnet, chain_id=1, logger=logger))

        if config.cifi is not None:
            service.register_resolver(
                CiFiResolver(
                    api_key=config.cifi.api_key,
                    base_url=config.cifi.base_url,
                    timeout=config.cifi.timeout_seconds,
                    logger=logger,
                )
            )

        if config.sns.enabled:
            service.register_resolver(
                SnsResolver(
                    base_url=config.sns.base_url,
                    timeout=config.sns.timeout_seconds,
                    logger=logger,
                )
            )

        if config.suins.enabled:
            sui = HttpRpcClient(config.suins.rpc_url, timeout=config.suins.timeout_seconds, logger=logger)
            service._transports.append(sui)
            service.register_resolver(SuiNsResolver(sui, logger=logger))

        for registry in config.registries:
            if registry.chain_id == config.rpc.chain_id:
                transport = mainnet
            elif registry.chain_id in config.chain_rpc_urls:
                transport = service._transport(registry.chain_id, config.chain_rpc_urls[registry.chain_id])
            else:
                raise ValueError(
                    f"No RPC URL configured for chain {registry.chain_id} "
                    f"(registry '{registry.backend_id}')"
                )
            service.register_resolver(
                RegistryResolver(
                    transport,
                    registry_address=registry.registry_address,
                    tlds=registry.tlds,
                    backend_id=registry.backend_id,
                    chain_id=registry.chain_id,
                    controller_address=registry.registrar_address,
                    logger=logger,
                ),
                tlds=registry.tlds,
            )

        for entry in config.tlds or DEFAULT_TLDS:
            if service.get_backend(entry.backend_id) is not None:
                service.register_tld(entry.tld, entry.backend_id)

        if config.batch.enabled and service.get_backend(config.batch.backend_id) is not None:
            service.enable_batch_resolution(config.batch.backend_id)

        return service

    def _transport(self, chain_id: int, url: str, rpc: Optional[RpcClient] = None) -> RpcClient:
        """RPC transport for a chain, wrapped for CCIP-Read when enabled."""
        if rpc is None:
            rpc = HttpRpcClient(
                url,
                timeout=self._config.rpc.timeout_seconds,
                chain_id=chain_id,
                logger=self._logger,
            )
            self._transports.append(rpc)
        ccip = self._config.ccip_read
        if not ccip.enabled:
            return rpc
        client = CCIPReadClient(
            rpc,
            ccip=CCIPRead(timeout=ccip.gateway_timeout_seconds, logger=self._logger),
            max_redirects=ccip.max_redirects,
            logger=self._logger,
        )
        self._transports.append(client)
        return client

    # Backend registry

    def register_resolver(
        self,
        backend: NameResolverBackend,
        tlds: Optional[Iterable[str]] = None,
    ) -> None:
        """
        Register a backend. Earlier registrations take precedence.

        Args:
            backend: The backend
            tlds: TLDs to map explicitly to this backend
        """
        with self._registry_lock:
            if any(b.id == backend.id for b in self._backends):
                raise ValueError(f"Backend '{backend.id}' is already registered")
            self._backends.append(backend)
            for tld in tlds or ():
                self._tld_owners[tld.lower()] = backend.id
        self._log_info("Resolver registered", {"backend": backend.id, "tlds": list(backend.supported_tlds)})

    def register_tld(self, tld: str, backend_id: str) -> None:
        """Route a TLD to a backend ahead of the can_resolve() scan."""
        with self._registry_lock:
            if not any(b.id == backend_id for b in self._backends):
                raise ValueError(f"Unknown backend '{backend_id}'")
            self._tld_owners[tld.lower().lstrip(".")] = backend_id

    def unregister_resolver(self, backend_id: str) -> Optional[NameResolverBackend]:
        """Remove a backend and its TLD mappings. Returns the removed backend."""
        with self._registry_lock:
            backend = next((b for b in self._backends if b.id == backend_id), None)
            if backend is None:
                return None
            self._backends.remove(backend)
            self._tld_owners = {t: b for t, b in self._tld_owners.items() if b != backend_id}
            if self._batch is not None and self._batch.backend.id == backend_id:
                self._batch = None
        self._log_info("Resolver unregistered", {"backend": backend_id})
        return backend

    def get_backend(self, backend_id: str) -> Optional[NameResolverBackend]:
        with self._registry_lock:
            return next((b for b in self._backends if b.id == backend_id), None)

    @property
    def backends(self) -> list[NameResolverBackend]:
        with self._registry_lock:
            return list(self._backends)

    @property
    def tld_owners(self) -> dict[str, str]:
        with self._registry_lock:
            return dict(self._tld_owners)

    def candidates_for(self, name: Name) -> list[NameResolverBackend]:
        """Backends to try for a name, in order."""
        with self._registry_lock:
            backends = list(self._backends)
            owner_id = self._tld_owners.get(name.tld) if name.tld else None

        ordered: list[NameResolverBackend] = []
        if owner_id is not None:
            ordered.extend(b for b in backends if b.id == owner_id)
        ordered.extend(b for b in backends if b.id != owner_id and b.can_resolve(name))
        return ordered

    # Batch

    def enable_batch_resolution(
        self,
        backend_id: Optional[str] = None,
        max_batch_size: Optional[int] = None,
        max_concurrent_chunks: Optional[int] = None,
        multicall_address: Optional[str] = None,
    ) -> BatchResolver:
        """Route resolve_many() for an ENS-compatible backend through Multicall3."""
        batch_config = self._config.batch
        backend = self.get_backend(backend_id or batch_config.backend_id)
        if not isinstance(backend, ENSResolver):
            raise ValueError("Batch resolution requires a registered ENS-compatible backend")

        rpc = backend.rpc
        if isinstance(rpc, CCIPReadClient):
            # aggregate3 with allowFailure never reverts with OffchainLookup
            rpc = rpc.rpc
        self._batch = BatchResolver(
            backend,
            multicall=Multicall3(rpc, multicall_address or batch_config.multicall_address),
            max_batch_size=max_batch_size or batch_config.max_batch_size,
            max_concurrent_chunks=max_concurrent_chunks or batch_config.max_concurrent_chunks,
            logger=self._logger,
        )
        self._log_info("Batch resolution enabled", {"backend": backend.id})
        return self._batch

    def disable_batch_resolution(self) -> None:
        self._batch = None

    @property
    def batch_resolver(self) -> Optional[BatchResolver]:
        return self._batch

    # Forward resolution

    async def resolve(
        self,
        name: str,
        chain_id: Optional[int] = None,
        coin_type: Optional[int] = None,
        use_cache: bool = True,
    ) -> Optional[str]:
        """
        Resolve a name to an address.

        Returns:
            The address, or None if no backend has one

        Raises:
            NameRejectedError: If the name is malformed or unsafe
            ResolutionFailedError: If every candidate backend failed in transport
            ProtocolError: On a CCIP-Read protocol violation
        """
        result = await self.resolve_with_metadata(name, chain_id, coin_type, use_cache)
        return result.address if result else None

    async def resolve_with_metadata(
        self,
        name: str,
        chain_id: Optional[int] = None,
        coin_type: Optional[int] = None,
        use_cache: bool = True,
    ) -> Optional[ResolutionResult]:
        """Like resolve() but returns the full ResolutionResult."""
        stopwatch = self._analytics.start_operation(OperationKind.RESOLVE)
        parsed = self._normalize(name, stopwatch)

        if use_cache and self._cache is not None:
            cached = self._cache.get_forward(parsed.value, chain_id, coin_type)
            if cached is not None:
                stopwatch.success(from_cache=True)
                return cached

        try:
            result = await self._resolve_parsed(parsed, chain_id, coin_type)
        except NameServiceError as e:
            stopwatch.failure(e)
            raise

        if result is None:
            stopwatch.failure()
            return None
        if self._cache is not None:
            self._cache.set_forward(parsed.value, result, chain_id, coin_type)
        stopwatch.success()
        return result

    async def _resolve_parsed(
        self,
        parsed: Name,
        chain_id: Optional[int],
        coin_type: Optional[int],
        skip: Sequence[str] = (),
    ) -> Optional[ResolutionResult]:
        candidates = [b for b in self.candidates_for(parsed) if b.id not in skip]
        return await self._first_result(
            parsed.value,
            candidates,
            lambda backend: backend.resolve(parsed, chain_id, coin_type),
        )

    async def resolve_many(
        self,
        names: Sequence[str],
        chain_id: Optional[int] = None,
        use_cache: bool = True,
    ) -> dict[str, Optional[str]]:
        """
        Resolve many names at once.

        Invalid names and names that could not be checked map to None; one
        bad name never fails the whole batch.

        Returns:
            Input name -> address or None
        """
        stopwatch = self._analytics.start_operation(OperationKind.BATCH)
        results: dict[str, Optional[str]] = {}
        parsed_by_input: dict[str, Name] = {}

        for raw in names:
            try:
                parsed_by_input[raw] = self._normalizer.normalize(raw)
            except NameRejectedError as e:
                self._log_info("Skipping invalid name in batch", {"name": raw, "reason": e.code})
                results[raw] = None

        pending: dict[str, Name] = {}
        for raw, parsed in parsed_by_input.items():
            cached = None
            if use_cache and self._cache is not None:
                cached = self._cache.get_forward(parsed.value, chain_id, None)
            if cached is not None:
                results[raw] = cached.address
            else:
                pending[raw] = parsed

        per_name: dict[str, tuple[Name, Sequence[str]]] = {}
        batch = self._batch
        batched = {}
        if batch is not None:
            batched = {
                raw: parsed
                for raw, parsed in pending.items()
                if chain_id in (None, *batch.backend.supported_chain_ids)
                and self._first_candidate_id(parsed) == batch.backend.id
            }
        for raw, parsed in pending.items():
            if raw not in batched:
                per_name[raw] = (parsed, ())

        if batched:
            outcome = await batch.resolve_many(list(batched.values()))
            unresolved = set(outcome.unresolved)
            for raw, parsed in batched.items():
                result = outcome.results.get(parsed.value)
                if parsed.value in unresolved:
                    per_name[raw] = (parsed, ())
                elif result is not None:
                    results[raw] = result.address
                    if self._cache is not None:
                        self._cache.set_forward(parsed.value, result, chain_id, None)
                elif len(self.candidates_for(parsed)) > 1:
                    per_name[raw] = (parsed, (batch.backend.id,))
                else:
                    results[raw] = None

        async def resolve_one(parsed: Name, skip: Sequence[str]) -> Optional[str]:
            try:
                result = await self._resolve_parsed(parsed, chain_id, None, skip)
            except (ResolutionFailedError, ProtocolError) as e:
                self._log_error("Resolution failed in batch", e, {"name": parsed.value})
                return None
            if result is None:
                return None
            if self._cache is not None:
                self._cache.set_forward(parsed.value, result, chain_id, None)
            return result.address

        raws = list(per_name)
        addresses = await asyncio.gather(*(resolve_one(*per_name[raw]) for raw in raws))
        results.update(zip(raws, addresses))

        stopwatch.success()
        self._log_info(
            "Batch resolution completed",
            {
                "names": len(names),
                "resolved": sum(1 for v in results.values() if v),
                "batched": len(batched),
            },
        )
        return {raw: results.get(raw) for raw in names}

    def _first_candidate_id(self, parsed: Name) -> Optional[str]:
        candidates = self.candidates_for(parsed)
        return candidates[0].id if candidates else None

    # Reverse resolution

    async def reverse_resolve(
        self,
        address: str,
        chain_id: Optional[int] = None,
        use_cache: bool = True,
    ) -> Optional[str]:
        """
        Primary name of an address.

        Raises:
            NameRejectedError: If address is not a valid address
            ResolutionFailedError: If every reverse-capable backend failed in transport
        """
        stopwatch = self._analytics.start_operation(OperationKind.REVERSE)
        if not isinstance(address, str) or not (
            is_address(address) or any(b.accepts_address(address) for b in self.backends)
        ):
            error = NameRejectedError(
                code="invalid_address",
                message=f"Not a valid address: {address!r}",
                details={"address": address},
            )
            stopwatch.failure(error)
            raise error

        if use_cache and self._cache is not None:
            cached = self._cache.get_reverse(address)
            if cached is not None:
                stopwatch.success(from_cache=True)
                return cached

        candidates = [
            b for b in self.backends
            if b.supports_reverse
            and b.accepts_address(address)
            and (chain_id is None or not b.supported_chain_ids or chain_id in b.supported_chain_ids)
        ]
        try:
            name = await self._first_result(
                address,
                candidates,
                lambda backend: backend.reverse_resolve(address, chain_id),
            )
        except NameServiceError as e:
            stopwatch.failure(e)
            raise

        if name is None:
            stopwatch.failure()
            return None
        if self._cache is not None:
            self._cache.set_reverse(address, name)
        stopwatch.success()
        return name

    # Records

    async def get_records(self, name: str, use_cache: bool = True) -> Optional[NameRecords]:
        """Full record set of a name."""
        stopwatch = self._analytics.start_operation(OperationKind.RECORDS)
        parsed = self._normalize(name, stopwatch)

        if use_cache and self._cache is not None:
            cached = self._cache.get_records(parsed.value)
            if cached is not None:
                stopwatch.success(from_cache=True)
                return cached

        try:
            records = await self._first_result(
                parsed.value,
                self.candidates_for(parsed),
                lambda backend: backend.get_records(parsed),
            )
        except NameServiceError as e:
            stopwatch.failure(e)
            raise

        if records is None:
            stopwatch.failure()
            return None
        if self._cache is not None:
            self._cache.set_records(parsed.value, records)
        stopwatch.success()
        return records

    async def get_text(self, name: str, key: str) -> Optional[str]:
        """
        One text record.

        Served from cached records when they hold the key, otherwise asked
        of the backends directly.
        """
        stopwatch = self._analytics.start_operation(OperationKind.RECORDS)
        parsed = self._normalize(name, stopwatch)

        if self._cache is not None:
            cached = self._cache.get_records(parsed.value)
            if cached is not None and key in cached.texts:
                stopwatch.success(from_cache=True)
                return cached.texts[key]

        try:
            value = await self._first_result(
                parsed.value,
                self.candidates_for(parsed),
                lambda backend: backend.get_text(parsed, key),
            )
        except NameServiceError as e:
            stopwatch.failure(e)
            raise

        if value is None:
            stopwatch.failure()
        else:
            stopwatch.success()
        return value

    async def get_avatar(self, name: str) -> Optional[str]:
        records = await self.get_records(name)
        if records is None:
            return None
        return records.avatar or records.get_text("avatar")

    # Expiry

    async def get_expiry(self, name: str) -> Optional[datetime]:
        """Registration expiry of a name, or None if unknown."""
        stopwatch = self._analytics.start_operation(OperationKind.EXPIRY)
        parsed = self._normalize(name, stopwatch)

        if self._cache is not None:
            cached = self._cache.get_records(parsed.value)
            if cached is not None and cached.expires_at is not None:
                stopwatch.success(from_cache=True)
                return cached.expires_at

        try:
            expiry = await self._first_result(
                parsed.value,
                self.candidates_for(parsed),
                lambda backend: backend.get_expiry(parsed),
            )
        except NameServiceError as e:
            stopwatch.failure(e)
            raise

        if expiry is None:
            stopwatch.failure()
        else:
            stopwatch.success()
        return expiry

    async def get_expiries(self, names: Sequence[str]) -> dict[str, Optional[datetime]]:
        """
        Expiries for many names, using the batch path where possible.

        Names whose expiry could not be checked are left out of the result,
        so callers can tell them apart from names without an expiry.
        """
        expiries: dict[str, Optional[datetime]] = {}
        parsed_by_input: dict[str, Name] = {}
        for raw in names:
            try:
                parsed_by_input[raw] = self._normalizer.normalize(raw)
            except NameRejectedError:
                expiries[raw] = None

        remaining = dict(parsed_by_input)
        batch = self._batch
        if batch is not None:
            batchable = {
                raw: parsed
                for raw, parsed in remaining.items()
                if self._first_candidate_id(parsed) == batch.backend.id
            }
            if batchable:
                outcome = await batch.fetch_expiries_many(list(batchable.values()))
                unresolved = set(outcome.unresolved)
                for raw, parsed in batchable.items():
                    if parsed.value not in unresolved:
                        expiries[raw] = outcome.results.get(parsed.value)
                        del remaining[raw]

        async def fetch(raw: str) -> None:
            try:
                expiries[raw] = await self.get_expiry(raw)
            except (ResolutionFailedError, ProtocolError) as e:
                self._log_error("Expiry check failed", e, {"name": raw})

        await asyncio.gather(*(fetch(raw) for raw in remaining))
        return expiries

    def create_expiration_tracker(self) -> ExpirationTracker:
        """The service's expiration tracker, created on first use."""
        if self._tracker is None:
            expiration = self._config.expiration
            self._tracker = ExpirationTracker(
                source=self,
                thresholds_days=expiration.thresholds_days,
                check_interval_seconds=expiration.check_interval_seconds,
                logger=self._logger,
            )
        return self._tracker

    @property
    def expiration_tracker(self) -> Optional[ExpirationTracker]:
        return self._tracker

    # Dispatch

    async def _first_result(
        self,
        key: str,
        candidates: list[NameResolverBackend],
        call: Callable[[NameResolverBackend], Awaitable[Optional[T]]],
    ) -> Optional[T]:
        """
        Ask candidates in order; the first non-None answer wins.

        Raises:
            ResolutionFailedError: If every candidate failed in transport
            ProtocolError: As soon as a backend reports a protocol violation
        """
        if not candidates:
            return None

        transport_errors: dict[str, str] = {}
        for backend in candidates:
            start = time.perf_counter()
            try:
                value = await call(backend)
            except TransportError as e:
                self._analytics.record_backend_call(backend.id, False, _elapsed_ms(start))
                self._analytics.record_error(e)
                transport_errors[backend.id] = e.message
                self._log_warn(
                    "Backend could not be checked",
                    {"backend": backend.id, "name": key, "error_code": e.code, "error": e.message},
                )
                continue
            except ProtocolError as e:
                self._analytics.record_backend_call(backend.id, False, _elapsed_ms(start))
                self._log_error("Protocol violation", e, {"backend": backend.id, "name": key})
                raise

            self._analytics.record_backend_call(backend.id, True, _elapsed_ms(start))
            if value is not None:
                self._log_debug("Resolved", {"backend": backend.id, "name": key})
                return value

        if len(transport_errors) == len(candidates):
            raise ResolutionFailedError(
                code="resolution_failed",
                message=f"Could not check {key}: every backend failed",
                details={"name": key, "backends": transport_errors},
            )
        return None

    def _normalize(self, name: str, stopwatch: OperationStopwatch) -> Name:
        try:
            return self._normalizer.normalize(name)
        except NameRejectedError as e:
            stopwatch.failure(e)
            raise

    # Cache and analytics

    def get_cache_stats(self) -> Optional[CacheStats]:
        return self._cache.get_stats() if self._cache is not None else None

    def get_analytics(self) -> AnalyticsStats:
        return self._analytics.get_stats()

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def invalidate(self, name: str) -> int:
        """Drop every cached entry of a name. Returns the number removed."""
        if self._cache is None:
            return 0
        return self._cache.invalidate(self._normalizer.normalize(name).value)

    @property
    def cache(self) -> Optional[NameCache]:
        return self._cache

    @property
    def analytics(self) -> NameAnalytics:
        return self._analytics

    @property
    def normalizer(self) -> NameNormalizer:
        return self._normalizer

    @property
    def config(self) -> ServiceConfig:
        return self._config

    # Lifecycle

    def start(self) -> None:
        """Start the cache sweep and, if one was created, expiration polling."""
        if self._cache is not None:
            self._cache.start()
        if self._tracker is not None:
            self._tracker.start()

    async def aclose(self) -> None:
        """Stop background tasks and release backends and transports."""
        if self._tracker is not None:
            await self._tracker.stop()
        if self._cache is not None:
            await self._cache.stop()
        for backend in self.backends:
            await backend.close()
        for transport in reversed(self._transports):
            await transport.close()
        self._transports.clear()

    # Logging helpers

    def _log_debug(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.DEBUG, "UniversalNameService", message, data)

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.INFO, "UniversalNameService", message, data)

    def _log_warn(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.WARN, "UniversalNameService", message, data)

    def _log_error(self, message: str, error: Exception, data: dict) -> None:
        if self._logger:
            self._logger.log_error("UniversalNameService", message, error=error, additional_data=data)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
