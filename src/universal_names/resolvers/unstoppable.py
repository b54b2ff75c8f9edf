"""
Unstoppable Domains backend.

UNS keeps every record in the registry itself as string key/value pairs,
keyed by token id (the namehash as an integer). There is no reverse
registry, so reverse resolution is not supported.
"""

import asyncio
from typing import Optional, Sequence

from eth_abi.exceptions import DecodingError

from ..abi import checksum, decode_result, encode_call, is_zero_address
from ..audit_logger import AuditLogger, ComponentLogger
from ..exceptions import ContractRevertError
from ..models import Name, NameRecords, ResolutionResult
from ..namehash import namehash
from ..rpc_client import RpcClient
from .base import NameResolverBackend

UNS_POLYGON_REGISTRY = "0xa9a6A3626993D487d2Dbda3173cf58cA1a9D9e9f"
UNS_ETHEREUM_REGISTRY = "0x049aba7510f45BA5b64ea9E658E342F904DB358D"

UNSTOPPABLE_TLDS = (
    "crypto",
    "nft",
    "wallet",
    "x",
    "bitcoin",
    "dao",
    "888",
    "zil",
    "blockchain",
)

# coin type -> UNS record key
ADDRESS_KEYS = {
    60: "crypto.ETH.address",
    0: "crypto.BTC.address",
    501: "crypto.SOL.address",
    966: "crypto.MATIC.address",
}

# UNS record key -> NameRecords text key
TEXT_KEYS = {
    "whois.email.value": "email",
    "whois.for_sale.value": "url",
    "social.twitter.username": "com.twitter",
    "browser.redirect_url": "browser.redirect_url",
}
AVATAR_KEY = "social.picture.value"
CONTENT_HASH_KEY = "ipfs.html.value"


def record_key_for_coin(coin_type: int) -> str:
    """UNS record key holding the address for a SLIP-44 coin type."""
    return ADDRESS_KEYS.get(coin_type, f"crypto.{coin_type}.address")


def token_id(name: str) -> int:
    return int.from_bytes(namehash(name), "big")


class UnstoppableResolver(NameResolverBackend):
    """Backend for Unstoppable Domains on Polygon (default) or Ethereum."""

    def __init__(
        self,
        rpc: RpcClient,
        chain_id: int = 137,
        registry_address: Optional[str] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        if registry_address is None:
            registry_address = UNS_ETHEREUM_REGISTRY if chain_id == 1 else UNS_POLYGON_REGISTRY
        self._rpc = rpc
        self._chain_id = chain_id
        self._registry = checksum(registry_address)
        self._log = ComponentLogger(logger, "Resolver:unstoppable")

    @property
    def id(self) -> str:
        return "unstoppable"

    @property
    def supported_tlds(self) -> Sequence[str]:
        return UNSTOPPABLE_TLDS

    @property
    def supported_chain_ids(self) -> Sequence[int]:
        return (self._chain_id,)

    @property
    def registry_address(self) -> str:
        return self._registry

    async def resolve(
        self,
        name: Name,
        chain_id: Optional[int] = None,
        coin_type: Optional[int] = None,
    ) -> Optional[ResolutionResult]:
        key = record_key_for_coin(60 if coin_type is None else coin_type)
        address = await self.get_record(name.value, key)
        if address is None:
            return None
        return ResolutionResult(
            address=address,
            resolver_used=self.id,
            name=name.value,
            chain_id=chain_id if chain_id is not None else self._chain_id,
            metadata={"record_key": key},
        )

    async def get_records(self, name: Name) -> Optional[NameRecords]:
        coin_types = list(ADDRESS_KEYS)
        text_keys = list(TEXT_KEYS)
        keys = [ADDRESS_KEYS[c] for c in coin_types] + text_keys + [AVATAR_KEY, CONTENT_HASH_KEY]

        values = await asyncio.gather(*(self.get_record(name.value, k) for k in keys))
        owner = await self.get_owner(name.value)
        if owner is None and not any(values):
            return None

        address_values = values[: len(coin_types)]
        text_values = values[len(coin_types): len(coin_types) + len(text_keys)]
        avatar, content_hash = values[-2:]

        return NameRecords(
            addresses={c: v for c, v in zip(coin_types, address_values) if v},
            texts={TEXT_KEYS[k]: v for k, v in zip(text_keys, text_values) if v},
            content_hash=content_hash,
            avatar=avatar,
            owner=owner,
            resolver=self._registry,
        )

    async def get_record(self, name: str, key: str) -> Optional[str]:
        """Read one UNS record; empty values are treated as missing."""
        raw = await self._call(encode_call("get(string,uint256)", [key, token_id(name)]))
        value = self._decode("string", raw)
        return value or None

    async def get_owner(self, name: str) -> Optional[str]:
        raw = await self._call(encode_call("ownerOf(uint256)", [token_id(name)]))
        owner = self._decode("address", raw)
        if not owner or is_zero_address(owner):
            return None
        return checksum(owner)

    async def _call(self, data: bytes) -> Optional[bytes]:
        try:
            return await self._rpc.eth_call(self._registry, data)
        except ContractRevertError:
            return None

    def _decode(self, abi_type: str, raw: Optional[bytes]):
        if not raw:
            return None
        try:
            return decode_result([abi_type], raw)[0]
        except (DecodingError, ValueError) as e:
            self._log.debug("Undecodable return data", {"type": abi_type, "error": str(e)})
            return None
