"""
Resolver backend capability interface.

Every naming system is one NameResolverBackend. The dispatcher picks
backends by can_resolve() in registration order, so the interface is fixed
and no reflection is involved.

Error contract for implementations:
- a missing record or a plain contract revert is a miss: return None
- transport failures raise TransportError; the dispatcher records them and
  moves on to the next backend
- CCIP-Read protocol violations raise ProtocolError and abort the call
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Protocol, Sequence, runtime_checkable

from eth_utils import is_address

from ..models import Name, NameRecords, RegistrationResult, ResolutionResult


class NameResolverBackend(ABC):
    """Base class for all resolver backends."""

    supports_reverse: bool = False
    supports_registration: bool = False

    @property
    @abstractmethod
    def id(self) -> str:
        """Stable backend identifier, e.g. 'ens'."""

    @property
    @abstractmethod
    def supported_tlds(self) -> Sequence[str]:
        """TLDs this backend owns. Empty means it claims any name."""

    @property
    def supported_chain_ids(self) -> Sequence[int]:
        return ()

    def can_resolve(self, name: Name) -> bool:
        """Default ownership test: TLD membership."""
        tlds = self.supported_tlds
        if not tlds:
            return True
        return name.tld is not None and name.tld in tlds

    @abstractmethod
    async def resolve(
        self,
        name: Name,
        chain_id: Optional[int] = None,
        coin_type: Optional[int] = None,
    ) -> Optional[ResolutionResult]:
        """Forward resolution. None if the name has no address."""

    def accepts_address(self, address: str) -> bool:
        """Whether address is in this backend's address format (EVM by default)."""
        return is_address(address)

    async def reverse_resolve(self, address: str, chain_id: Optional[int] = None) -> Optional[str]:
        """Primary name of an address. Unsupported by default."""
        return None

    @abstractmethod
    async def get_records(self, name: Name) -> Optional[NameRecords]:
        """Full record set, or None if the name is not registered."""

    async def get_text(self, name: Name, key: str) -> Optional[str]:
        """One text record. Defaults to a lookup in the full record set."""
        records = await self.get_records(name)
        return records.get_text(key) if records else None

    async def get_expiry(self, name: Name) -> Optional[datetime]:
        """Registration expiry, or None if unknown or not applicable."""
        return None

    async def close(self) -> None:
        """Release backend resources."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id!r}, tlds={list(self.supported_tlds)!r})"


@runtime_checkable
class TransactionSigner(Protocol):
    """
    Collaborator that signs and broadcasts transactions.

    The engine never holds keys; registrable backends delegate writes here.
    """

    async def send_transaction(self, to: str, data: bytes, value: int = 0) -> str:
        """Submit a transaction and return its hash."""
        ...


class RegistrableResolverBackend(NameResolverBackend):
    """Backend that also supports on-chain registration."""

    supports_registration = True

    @abstractmethod
    async def is_available(self, name: Name) -> bool:
        """True if the name can be registered."""

    @abstractmethod
    async def get_price(self, name: Name, duration_seconds: int) -> int:
        """Registration price in wei for the given duration."""

    @abstractmethod
    async def set_records(self, name: Name, records: NameRecords) -> str:
        """Write address and text records. Returns the transaction hash."""

    @abstractmethod
    async def register(
        self,
        name: Name,
        owner: str,
        duration_seconds: int,
    ) -> RegistrationResult:
        """Register a name for owner."""

    @abstractmethod
    async def renew(self, name: Name, duration_seconds: int) -> RegistrationResult:
        """Extend a registration."""
