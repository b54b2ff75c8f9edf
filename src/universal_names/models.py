"""
Data models for the universal name service.

This module defines all data structures used for names, resolution results,
record sets, cache entries, off-chain lookups, expiration state and
analytics snapshots.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Generic, Mapping, Optional, TypeVar

from .enums import ExpirationEventKind, RejectionCode, SecurityIssueCode, Severity

T = TypeVar("T")

ETHEREUM_COIN_TYPE = 60
EXPIRING_SOON_DAYS = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _frozen(mapping: Optional[Mapping]) -> Mapping:
    """Read-only copy, so a returned result cannot alter the cached one."""
    return MappingProxyType(dict(mapping or {}))


def days_between(now: datetime, expiry: datetime) -> int:
    """Whole days from now until expiry, truncated toward zero."""
    return int((expiry - now).total_seconds() / 86400)


@dataclass(frozen=True)
class Name:
    """A validated, normalized name."""

    raw: str = field(compare=False)  # Original input
    value: str  # Normalized form, safe as cache key and network input
    labels: tuple[str, ...]
    tld: Optional[str]  # None for single-label names
    is_handle: bool = False  # '@user' style handle
    is_unicode: bool = False  # Contains non-ASCII characters after mapping

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ResolutionResult:
    """Outcome of a forward resolution. Immutable once constructed."""

    address: str
    resolver_used: str  # Backend id, e.g. 'ens', 'unstoppable', 'cifi'
    name: str
    chain_id: Optional[int] = None
    expires_at: Optional[datetime] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", _frozen(self.metadata))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or _utcnow()) > self.expires_at

    def is_expiring_soon(self, now: Optional[datetime] = None) -> bool:
        """True if the name expires within 30 days and has not expired yet."""
        if self.expires_at is None or self.is_expired(now):
            return False
        return days_between(now or _utcnow(), self.expires_at) < EXPIRING_SOON_DAYS

    def days_until_expiration(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.expires_at is None or self.is_expired(now):
            return None
        return days_between(now or _utcnow(), self.expires_at)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "address": self.address,
            "resolver_used": self.resolver_used,
            "name": self.name,
        }
        if self.chain_id is not None:
            data["chain_id"] = self.chain_id
        if self.expires_at is not None:
            data["expires_at"] = self.expires_at.isoformat()
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ResolutionResult":
        return cls(
            address=data["address"],
            resolver_used=data["resolver_used"],
            name=data["name"],
            chain_id=data.get("chain_id"),
            expires_at=_parse_datetime(data.get("expires_at")),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class NameRecords:
    """
    Full record set for a name.

    An immutable snapshot; it is re-fetched wholesale on each query and only
    the cache layer keeps it around between calls.
    """

    addresses: Mapping[int, str] = field(default_factory=dict)  # coin type -> address
    texts: Mapping[str, str] = field(default_factory=dict)
    content_hash: Optional[str] = None
    avatar: Optional[str] = None
    owner: Optional[str] = None
    resolver: Optional[str] = None
    expires_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "addresses", _frozen(self.addresses))
        object.__setattr__(self, "texts", _frozen(self.texts))

    def get_address(self, coin_type: int) -> Optional[str]:
        return self.addresses.get(coin_type)

    @property
    def ethereum_address(self) -> Optional[str]:
        return self.addresses.get(ETHEREUM_COIN_TYPE)

    def get_text(self, key: str) -> Optional[str]:
        return self.texts.get(key)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "addresses": {str(k): v for k, v in self.addresses.items()},
            "texts": dict(self.texts),
        }
        for key in ("content_hash", "avatar", "owner", "resolver"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.expires_at is not None:
            data["expires_at"] = self.expires_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "NameRecords":
        return cls(
            addresses={int(k): v for k, v in (data.get("addresses") or {}).items()},
            texts=dict(data.get("texts") or {}),
            content_hash=data.get("content_hash"),
            avatar=data.get("avatar"),
            owner=data.get("owner"),
            resolver=data.get("resolver"),
            expires_at=_parse_datetime(data.get("expires_at")),
        )


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its creation time and TTL (monotonic seconds)."""

    value: T
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now > self.created_at + self.ttl

    def time_until_expiration(self, now: float) -> float:
        return max(0.0, self.created_at + self.ttl - now)


@dataclass(frozen=True)
class OffchainLookup:
    """Decoded contents of an EIP-3668 OffchainLookup revert."""

    sender: str
    urls: tuple[str, ...]
    call_data: bytes
    callback_function: bytes  # 4-byte selector
    extra_data: bytes


@dataclass(frozen=True)
class SecurityIssue:
    """A single diagnostic finding about a name."""

    code: SecurityIssueCode
    severity: Severity
    message: str
    label: Optional[str] = None
    characters: tuple[str, ...] = ()


@dataclass
class NormalizationResult:
    """Result of a non-raising normalization attempt."""

    valid: bool
    name: Optional[Name]
    code: Optional[RejectionCode] = None
    message: Optional[str] = None
    details: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ExpirationInfo:
    """Expiration snapshot for a tracked name, recomputed on every poll."""

    name: str
    expiry: datetime
    days_until_expiration: int
    is_expired: bool
    is_expiring_soon: bool
    urgency: int  # 0 (none) .. 3 (critical)

    @property
    def urgency_label(self) -> str:
        return ("none", "low", "medium", "critical")[self.urgency]

    @classmethod
    def compute(cls, name: str, expiry: datetime, now: datetime) -> "ExpirationInfo":
        days = days_between(now, expiry)
        expired = now > expiry
        if expired or days <= 7:
            urgency = 3
        elif days <= 14:
            urgency = 2
        elif days <= 30:
            urgency = 1
        else:
            urgency = 0
        return cls(
            name=name,
            expiry=expiry,
            days_until_expiration=days,
            is_expired=expired,
            is_expiring_soon=not expired and days <= EXPIRING_SOON_DAYS,
            urgency=urgency,
        )


@dataclass(frozen=True)
class ExpirationEvent:
    """Emitted on onExpiring and onExpired channels."""

    kind: ExpirationEventKind
    name: str
    expiry: datetime
    days_until_expiration: int
    threshold_days: Optional[int] = None  # Set for EXPIRING events


@dataclass(frozen=True)
class RenewalEvent:
    """Emitted on the onRenewed channel."""

    name: str
    previous_expiry: datetime
    new_expiry: datetime
    kind: ExpirationEventKind = ExpirationEventKind.RENEWED


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache statistics."""

    hits: int
    misses: int
    evictions: int
    expirations: int
    forward_size: int
    reverse_size: int
    records_size: int

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.total_requests
        return self.hits / total if total else 0.0

    @property
    def total_size(self) -> int:
        return self.forward_size + self.reverse_size + self.records_size

    @property
    def recommendation(self) -> str:
        if self.total_requests == 0:
            return "No traffic yet"
        if self.hit_rate < 0.3:
            return "Low hit rate: consider increasing TTL or cache size"
        if self.hit_rate < 0.7:
            return "Moderate hit rate: cache is working"
        return "Good hit rate: cache is effective"


@dataclass
class ResolverStats:
    """Per-backend call statistics."""

    backend_id: str
    calls: int = 0
    successes: int = 0
    failures: int = 0
    response_times_ms: list[float] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        return self.successes / self.calls if self.calls else 0.0

    @property
    def average_response_time_ms(self) -> float:
        if not self.response_times_ms:
            return 0.0
        return sum(self.response_times_ms) / len(self.response_times_ms)


@dataclass(frozen=True)
class AnalyticsStats:
    """Aggregate analytics snapshot."""

    total_operations: int
    successes: int
    failures: int
    cache_served: int
    operations_by_kind: dict[str, int]
    resolvers: dict[str, ResolverStats]
    errors_by_type: dict[str, int]
    average_response_time_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float

    @property
    def success_rate(self) -> float:
        return self.successes / self.total_operations if self.total_operations else 0.0

    @property
    def cache_hit_ratio(self) -> float:
        return self.cache_served / self.total_operations if self.total_operations else 0.0

    @property
    def most_used_resolver(self) -> Optional[str]:
        if not self.resolvers:
            return None
        return max(self.resolvers.values(), key=lambda s: s.calls).backend_id

    @property
    def fastest_resolver(self) -> Optional[str]:
        timed = [s for s in self.resolvers.values() if s.response_times_ms]
        if not timed:
            return None
        return min(timed, key=lambda s: s.average_response_time_ms).backend_id

    def to_dict(self) -> dict:
        return {
            "total_operations": self.total_operations,
            "successes": self.successes,
            "failures": self.failures,
            "success_rate": self.success_rate,
            "cache_hit_ratio": self.cache_hit_ratio,
            "operations_by_kind": dict(self.operations_by_kind),
            "resolvers": {
                rid: {
                    "calls": s.calls,
                    "successes": s.successes,
                    "failures": s.failures,
                    "average_response_time_ms": s.average_response_time_ms,
                }
                for rid, s in self.resolvers.items()
            },
            "errors_by_type": dict(self.errors_by_type),
            "average_response_time_ms": self.average_response_time_ms,
            "p50_ms": self.p50_ms,
            "p95_ms": self.p95_ms,
            "p99_ms": self.p99_ms,
        }


@dataclass(frozen=True)
class Call3:
    """A single call inside a Multicall3 aggregate3 request."""

    target: str
    call_data: bytes
    allow_failure: bool = True


@dataclass(frozen=True)
class CallResult:
    """Result of one aggregated call."""

    success: bool
    return_data: bytes


@dataclass(frozen=True)
class RegistrationResult:
    """Transaction submitted for a registration or renewal."""

    name: str
    tx_hash: str
    duration_seconds: int
    value_wei: int
