"""
Custom community registry backend.

A community registry is an ENS-style registry for its own TLDs (e.g. .xdc)
whose controller also exposes availability, pricing and expiry views plus
register/renew entry points. Reads reuse the ENS resolution path; writes
are encoded here and handed to the injected TransactionSigner, which owns
the keys and broadcasts.
"""

from datetime import datetime
from typing import Optional, Sequence

from ..abi import checksum, encode_call, from_hex
from ..audit_logger import AuditLogger
from ..exceptions import RegistrationError
from ..models import Name, NameRecords, RegistrationResult
from ..namehash import namehash
from ..rpc_client import RpcClient
from .base import RegistrableResolverBackend, TransactionSigner
from .ens import ETH_COIN_TYPE, ENSResolver, timestamp_to_datetime


class RegistryResolver(ENSResolver, RegistrableResolverBackend):
    """Resolver and registrar for one custom registry deployment."""

    def __init__(
        self,
        rpc: RpcClient,
        registry_address: str,
        tlds: Sequence[str],
        backend_id: str = "registry",
        chain_id: int = 1,
        controller_address: Optional[str] = None,
        signer: Optional[TransactionSigner] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the backend.

        Args:
            rpc: Read transport
            registry_address: Registry contract (resolver/owner lookups)
            tlds: TLDs owned by this registry
            backend_id: Identifier reported in results
            chain_id: Chain the registry lives on
            controller_address: Contract exposing available/rentPrice/nameExpires
                and register/renew; defaults to the registry itself
            signer: Transaction signer; required for writes only
            logger: Optional audit logger
        """
        super().__init__(
            rpc,
            registry_address=registry_address,
            registrar_address=None,
            tlds=tlds,
            chain_id=chain_id,
            backend_id=backend_id,
            logger=logger,
        )
        self._controller = checksum(controller_address or registry_address)
        self._signer = signer

    @property
    def controller_address(self) -> str:
        return self._controller

    # Views

    async def get_expiry(self, name: Name) -> Optional[datetime]:
        raw = await self._call(
            self._controller, encode_call("nameExpires(bytes32)", [namehash(name.value)])
        )
        return timestamp_to_datetime(self._decode_one("uint256", raw))

    async def is_available(self, name: Name) -> bool:
        raw = await self._call(
            self._controller, encode_call("available(bytes32)", [namehash(name.value)])
        )
        return bool(self._decode_one("bool", raw))

    async def get_price(self, name: Name, duration_seconds: int) -> int:
        raw = await self._call(
            self._controller,
            encode_call("rentPrice(bytes32,uint256)", [namehash(name.value), duration_seconds]),
        )
        price = self._decode_one("uint256", raw)
        if price is None:
            raise RegistrationError(
                code="price_unavailable",
                message=f"Registry returned no price for {name.value}",
                details={"name": name.value},
            )
        return price

    # Writes

    async def register(
        self,
        name: Name,
        owner: str,
        duration_seconds: int,
    ) -> RegistrationResult:
        signer = self._require_signer()
        if not await self.is_available(name):
            raise RegistrationError(
                code="unavailable",
                message=f"{name.value} is not available",
                details={"name": name.value},
            )
        price = await self.get_price(name, duration_seconds)
        data = encode_call(
            "register(bytes32,string,address,uint256)",
            [namehash(name.value), name.value, owner, duration_seconds],
        )
        tx_hash = await signer.send_transaction(self._controller, data, price)
        self._log.info(
            "Registration submitted",
            {"name": name.value, "tx_hash": tx_hash, "duration_seconds": duration_seconds},
        )
        return RegistrationResult(
            name=name.value,
            tx_hash=tx_hash,
            duration_seconds=duration_seconds,
            value_wei=price,
        )

    async def renew(self, name: Name, duration_seconds: int) -> RegistrationResult:
        signer = self._require_signer()
        price = await self.get_price(name, duration_seconds)
        data = encode_call("renew(bytes32,uint256)", [namehash(name.value), duration_seconds])
        tx_hash = await signer.send_transaction(self._controller, data, price)
        self._log.info("Renewal submitted", {"name": name.value, "tx_hash": tx_hash})
        return RegistrationResult(
            name=name.value,
            tx_hash=tx_hash,
            duration_seconds=duration_seconds,
            value_wei=price,
        )

    async def set_resolver(self, name: Name, resolver: str) -> str:
        signer = self._require_signer()
        data = encode_call("setResolver(bytes32,address)", [namehash(name.value), resolver])
        return await signer.send_transaction(self.registry_address, data)

    async def set_records(self, name: Name, records: NameRecords) -> str:
        """
        Write address and text records to the name's resolver.

        One transaction per record; returns the hash of the last one.
        """
        signer = self._require_signer()
        resolver = await self.registry_resolver(name.value)
        if resolver is None:
            raise RegistrationError(
                code="no_resolver",
                message=f"{name.value} has no resolver set",
                details={"name": name.value},
            )

        node = namehash(name.value)
        calls: list[bytes] = []
        for coin_type, address in records.addresses.items():
            if coin_type == ETH_COIN_TYPE:
                calls.append(encode_call("setAddr(bytes32,address)", [node, address]))
            else:
                calls.append(
                    encode_call("setAddr(bytes32,uint256,bytes)", [node, coin_type, from_hex(address)])
                )
        texts = dict(records.texts)
        if records.avatar and "avatar" not in texts:
            texts["avatar"] = records.avatar
        for key, value in texts.items():
            calls.append(encode_call("setText(bytes32,string,string)", [node, key, value]))
        if records.content_hash:
            calls.append(
                encode_call("setContenthash(bytes32,bytes)", [node, from_hex(records.content_hash)])
            )

        if not calls:
            raise RegistrationError(
                code="empty_records",
                message="No records to write",
                details={"name": name.value},
            )

        tx_hash = ""
        for data in calls:
            tx_hash = await signer.send_transaction(resolver, data)
        self._log.info(
            "Record update submitted",
            {"name": name.value, "transactions": len(calls), "tx_hash": tx_hash},
        )
        return tx_hash

    def _require_signer(self) -> TransactionSigner:
        if self._signer is None:
            raise RegistrationError(
                code="no_signer",
                message="A transaction signer is required for registry writes",
            )
        return self._signer
