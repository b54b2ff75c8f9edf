"""
ENS resolver backend.

ENSResolver works against any ENS-compatible registry: it looks up the
resolver of a name through registry.resolver(bytes32), falls back to
ENSIP-10 wildcard resolution through a parent's resolver, and reads
addresses, text records and content hashes from the resolver. Reads go
through the RpcClient it is given; pass a CCIPReadClient to follow
EIP-3668 off-chain lookups.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional, Sequence

from eth_abi.exceptions import DecodingError

from ..abi import (
    checksum,
    decode_result,
    dns_encode,
    encode_call,
    is_zero_address,
    to_hex,
)
from ..audit_logger import AuditLogger, ComponentLogger
from ..exceptions import ContractRevertError
from ..models import Name, NameRecords, ResolutionResult
from ..namehash import labelhash, namehash, reverse_name
from ..rpc_client import RpcClient
from .base import NameResolverBackend

ENS_REGISTRY_ADDRESS = "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e"
ENS_BASE_REGISTRAR_ADDRESS = "0x57f1887a8BF19b14fC0dF6Fd9B2acc9Af147eA85"

# ENSIP-10 IExtendedResolver
EXTENDED_RESOLVER_INTERFACE = bytes.fromhex("9061b923")

ETH_COIN_TYPE = 60
DEFAULT_COIN_TYPES = (60, 0, 501)
DEFAULT_TEXT_KEYS = (
    "avatar",
    "email",
    "url",
    "description",
    "com.twitter",
    "com.github",
)


def evm_coin_type(chain_id: int) -> int:
    """ENSIP-11 coin type for an EVM chain (60 for Ethereum mainnet)."""
    return ETH_COIN_TYPE if chain_id == 1 else (0x80000000 | chain_id)


class ENSResolver(NameResolverBackend):
    """
    Backend for ENS and ENS-compatible registries.

    Handles:
    - Registry lookup of the name's resolver, with ENSIP-10 wildcard fallback
    - addr(bytes32) and multi-coin addr(bytes32,uint256) (ENSIP-9/11)
    - Reverse resolution via <addr>.addr.reverse with forward verification
    - Text records, content hash, owner, and .eth expiry via the base registrar
    """

    supports_reverse = True

    def __init__(
        self,
        rpc: RpcClient,
        registry_address: str = ENS_REGISTRY_ADDRESS,
        registrar_address: Optional[str] = ENS_BASE_REGISTRAR_ADDRESS,
        tlds: Sequence[str] = ("eth",),
        chain_id: int = 1,
        backend_id: str = "ens",
        text_keys: Sequence[str] = DEFAULT_TEXT_KEYS,
        coin_types: Sequence[int] = DEFAULT_COIN_TYPES,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the backend.

        Args:
            rpc: Transport (a CCIPReadClient enables off-chain lookups)
            registry_address: ENS-compatible registry contract
            registrar_address: Base registrar exposing nameExpires(uint256), if any
            tlds: TLDs served by this registry
            chain_id: Chain the registry lives on
            backend_id: Identifier reported in results
            text_keys: Text records fetched by get_records
            coin_types: Address coin types fetched by get_records
            logger: Optional audit logger
        """
        self._rpc = rpc
        self._registry = checksum(registry_address)
        self._registrar = checksum(registrar_address) if registrar_address else None
        self._tlds = tuple(t.lower() for t in tlds)
        self._chain_id = chain_id
        self._id = backend_id
        self._text_keys = tuple(text_keys)
        self._coin_types = tuple(coin_types)
        self._log = ComponentLogger(logger, f"Resolver:{backend_id}")

    @property
    def id(self) -> str:
        return self._id

    @property
    def supported_tlds(self) -> Sequence[str]:
        return self._tlds

    @property
    def supported_chain_ids(self) -> Sequence[int]:
        return (self._chain_id,)

    @property
    def registry_address(self) -> str:
        return self._registry

    @property
    def registrar_address(self) -> Optional[str]:
        return self._registrar

    @property
    def rpc(self) -> RpcClient:
        return self._rpc

    # Resolution

    async def resolve(
        self,
        name: Name,
        chain_id: Optional[int] = None,
        coin_type: Optional[int] = None,
    ) -> Optional[ResolutionResult]:
        if coin_type is None:
            coin_type = evm_coin_type(chain_id) if chain_id is not None else ETH_COIN_TYPE

        found = await self.find_resolver(name.value)
        if found is None:
            return None
        resolver, exact = found

        address = await self._address(name.value, resolver, exact, coin_type)
        if address is None:
            return None

        return ResolutionResult(
            address=address,
            resolver_used=self._id,
            name=name.value,
            chain_id=chain_id if chain_id is not None else self._chain_id,
            metadata={
                "resolver": resolver,
                "coin_type": coin_type,
                "wildcard": not exact,
            },
        )

    async def reverse_resolve(self, address: str, chain_id: Optional[int] = None) -> Optional[str]:
        reverse = reverse_name(address)
        resolver = await self.registry_resolver(reverse)
        if resolver is None:
            return None

        raw = await self._call(resolver, encode_call("name(bytes32)", [namehash(reverse)]))
        primary = self._decode_one("string", raw)
        if not primary:
            return None
        primary = primary.lower()

        # The primary name only counts if it resolves back to the address
        found = await self.find_resolver(primary)
        if found is None:
            return None
        forward = await self._address(primary, found[0], found[1], ETH_COIN_TYPE)
        if forward is None or forward.lower() != address.lower():
            self._log.debug(
                "Reverse record failed forward verification",
                {"address": address, "name": primary},
            )
            return None
        return primary

    async def get_records(self, name: Name) -> Optional[NameRecords]:
        found = await self.find_resolver(name.value)
        if found is None:
            return None
        resolver, exact = found

        addresses, texts = await asyncio.gather(
            asyncio.gather(*(
                self._address(name.value, resolver, exact, c) for c in self._coin_types
            )),
            asyncio.gather(*(
                self._text(name.value, resolver, exact, k) for k in self._text_keys
            )),
        )
        content_hash = await self._content_hash(name.value, resolver, exact)
        owner = await self.get_owner(name.value)
        expiry = await self.get_expiry(name)

        text_map = {k: v for k, v in zip(self._text_keys, texts) if v}
        return NameRecords(
            addresses={c: a for c, a in zip(self._coin_types, addresses) if a},
            texts=text_map,
            content_hash=content_hash,
            avatar=text_map.get("avatar"),
            owner=owner,
            resolver=resolver,
            expires_at=expiry,
        )

    async def get_text(self, name: Name, key: str) -> Optional[str]:
        found = await self.find_resolver(name.value)
        if found is None:
            return None
        return await self._text(name.value, found[0], found[1], key)

    async def get_expiry(self, name: Name) -> Optional[datetime]:
        """Expiry of a second-level name from the base registrar."""
        if self._registrar is None or len(name.labels) != 2 or name.tld not in self._tlds:
            return None
        token_id = int.from_bytes(labelhash(name.labels[0]), "big")
        raw = await self._call(self._registrar, encode_call("nameExpires(uint256)", [token_id]))
        return timestamp_to_datetime(self._decode_one("uint256", raw))

    async def get_owner(self, name: str) -> Optional[str]:
        raw = await self._call(self._registry, encode_call("owner(bytes32)", [namehash(name)]))
        owner = self._decode_one("address", raw)
        if owner is None or is_zero_address(owner):
            return None
        return checksum(owner)

    # Resolver discovery

    async def registry_resolver(self, name: str) -> Optional[str]:
        """Resolver set in the registry for exactly this name."""
        raw = await self._call(self._registry, encode_call("resolver(bytes32)", [namehash(name)]))
        resolver = self._decode_one("address", raw)
        if resolver is None or is_zero_address(resolver):
            return None
        return checksum(resolver)

    async def find_resolver(self, name: str) -> Optional[tuple[str, bool]]:
        """
        Find the resolver responsible for a name.

        Returns:
            (resolver address, exact) where exact is False when the resolver
            belongs to a parent and answers through ENSIP-10 resolve();
            None if no resolver applies
        """
        labels = name.split(".")
        for index in range(len(labels)):
            candidate = ".".join(labels[index:])
            resolver = await self.registry_resolver(candidate)
            if resolver is None:
                continue
            if index == 0:
                return resolver, True
            if await self.supports_interface(resolver, EXTENDED_RESOLVER_INTERFACE):
                return resolver, False
            return None
        return None

    async def supports_interface(self, contract: str, interface_id: bytes) -> bool:
        raw = await self._call(contract, encode_call("supportsInterface(bytes4)", [interface_id]))
        return bool(self._decode_one("bool", raw))

    # Record reads

    async def _address(
        self,
        name: str,
        resolver: str,
        exact: bool,
        coin_type: int,
    ) -> Optional[str]:
        node = namehash(name)
        if coin_type == ETH_COIN_TYPE:
            raw = await self._resolver_call(name, resolver, exact, encode_call("addr(bytes32)", [node]))
            address = self._decode_one("address", raw)
            if address is None or is_zero_address(address):
                return None
            return checksum(address)

        raw = await self._resolver_call(
            name, resolver, exact, encode_call("addr(bytes32,uint256)", [node, coin_type])
        )
        value = self._decode_one("bytes", raw)
        if not value:
            return None
        if len(value) == 20:
            return checksum(to_hex(value))
        return to_hex(value)

    async def _text(self, name: str, resolver: str, exact: bool, key: str) -> Optional[str]:
        raw = await self._resolver_call(
            name, resolver, exact, encode_call("text(bytes32,string)", [namehash(name), key])
        )
        value = self._decode_one("string", raw)
        return value or None

    async def _content_hash(self, name: str, resolver: str, exact: bool) -> Optional[str]:
        raw = await self._resolver_call(
            name, resolver, exact, encode_call("contenthash(bytes32)", [namehash(name)])
        )
        value = self._decode_one("bytes", raw)
        return to_hex(value) if value else None

    async def _resolver_call(
        self,
        name: str,
        resolver: str,
        exact: bool,
        data: bytes,
    ) -> Optional[bytes]:
        if exact:
            return await self._call(resolver, data)
        raw = await self._call(resolver, encode_call("resolve(bytes,bytes)", [dns_encode(name), data]))
        return self._decode_one("bytes", raw)

    async def _call(self, to: str, data: bytes) -> Optional[bytes]:
        """eth_call where a revert means 'no record'."""
        try:
            return await self._rpc.eth_call(to, data)
        except ContractRevertError:
            return None

    def _decode_one(self, abi_type: str, raw: Optional[bytes]):
        if not raw:
            return None
        try:
            (value,) = decode_result([abi_type], raw)
        except (DecodingError, ValueError) as e:
            self._log.debug("Undecodable return data", {"type": abi_type, "error": str(e)})
            return None
        return value


def timestamp_to_datetime(timestamp: Optional[int]) -> Optional[datetime]:
    """
    UTC datetime of a unix timestamp.

    None for missing or zero values and for values no datetime can hold
    (contracts return uint256, which may be arbitrary garbage).
    """
    if not timestamp:
        return None
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        return None

