"""
Sui Name Service backend.

Resolves .sui names through a Sui full node. The node performs the name
service lookup itself (suix_resolveNameServiceAddress forward,
suix_resolveNameServiceNames reverse), so no Move object decoding happens
here. Sui addresses are 32-byte hex and live outside the EVM chain id space.
"""

import re
from typing import Optional, Sequence

from ..audit_logger import AuditLogger, ComponentLogger
from ..enums import TransportErrorCode
from ..exceptions import RpcError
from ..models import Name, NameRecords, ResolutionResult
from ..rpc_client import HttpRpcClient
from .base import NameResolverBackend

SUI_MAINNET_RPC_URL = "https://fullnode.mainnet.sui.io"
SUI_TLD = "sui"
SUI_COIN_TYPE = 784

_SUI_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{64}$")


class SuiNsResolver(NameResolverBackend):
    """Backend for SuiNS names over Sui JSON-RPC."""

    supports_reverse = True

    def __init__(self, rpc: HttpRpcClient, logger: Optional[AuditLogger] = None) -> None:
        """
        Initialize the backend.

        Args:
            rpc: JSON-RPC client pointed at a Sui full node
            logger: Optional audit logger
        """
        self._rpc = rpc
        self._log = ComponentLogger(logger, "Resolver:suins")

    @property
    def id(self) -> str:
        return "suins"

    @property
    def supported_tlds(self) -> Sequence[str]:
        return (SUI_TLD,)

    def accepts_address(self, address: str) -> bool:
        return bool(_SUI_ADDRESS.match(address))

    async def resolve(
        self,
        name: Name,
        chain_id: Optional[int] = None,
        coin_type: Optional[int] = None,
    ) -> Optional[ResolutionResult]:
        if coin_type is not None and coin_type != SUI_COIN_TYPE:
            return None
        address = await self._lookup_address(name)
        if address is None:
            return None
        return ResolutionResult(
            address=address,
            resolver_used=self.id,
            name=name.value,
            metadata={"coin_type": SUI_COIN_TYPE},
        )

    async def reverse_resolve(self, address: str, chain_id: Optional[int] = None) -> Optional[str]:
        if not self.accepts_address(address):
            return None
        page = await self._rpc.request("suix_resolveNameServiceNames", [address, None, 1])
        if page is None:
            return None
        if not isinstance(page, dict) or not isinstance(page.get("data"), list):
            raise RpcError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message="Unexpected suix_resolveNameServiceNames result",
                details={"address": address},
            )
        names = [n for n in page["data"] if isinstance(n, str)]
        return names[0] if names else None

    async def get_records(self, name: Name) -> Optional[NameRecords]:
        address = await self._lookup_address(name)
        if address is None:
            return None
        return NameRecords(addresses={SUI_COIN_TYPE: address})

    async def _lookup_address(self, name: Name) -> Optional[str]:
        result = await self._rpc.request("suix_resolveNameServiceAddress", [name.value])
        if result is None:
            return None
        if not isinstance(result, str) or not self.accepts_address(result):
            raise RpcError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message="Unexpected suix_resolveNameServiceAddress result",
                details={"name": name.value},
            )
        self._log.debug("Name resolved", {"name": name.value, "address": result})
        return result
