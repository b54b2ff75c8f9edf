"""SPACE ID backend: the ENS protocol deployed for .bnb and .arb."""

from typing import Optional, Sequence

from ..audit_logger import AuditLogger
from ..rpc_client import RpcClient
from .ens import ENSResolver

SPACEID_REGISTRY_ADDRESS = "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e"
BNB_CHAIN_ID = 56
ARBITRUM_CHAIN_ID = 42161

# Each SPACE ID TLD lives on exactly one chain
SPACEID_CHAIN_TLDS = {
    BNB_CHAIN_ID: ("bnb",),
    ARBITRUM_CHAIN_ID: ("arb",),
}
SPACEID_BACKEND_IDS = {
    BNB_CHAIN_ID: "spaceid",
    ARBITRUM_CHAIN_ID: "spaceid-arb",
}


class SpaceIdResolver(ENSResolver):
    """
    SPACE ID names.

    One instance talks to one chain and only claims that chain's TLD:
    .bnb on BNB Chain (backend 'spaceid'), .arb on Arbitrum ('spaceid-arb').
    """

    def __init__(
        self,
        rpc: RpcClient,
        chain_id: int = BNB_CHAIN_ID,
        registry_address: str = SPACEID_REGISTRY_ADDRESS,
        tlds: Optional[Sequence[str]] = None,
        backend_id: Optional[str] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        if tlds is None:
            if chain_id not in SPACEID_CHAIN_TLDS:
                raise ValueError(f"SPACE ID has no default TLD on chain {chain_id}; pass tlds")
            tlds = SPACEID_CHAIN_TLDS[chain_id]
        super().__init__(
            rpc,
            registry_address=registry_address,
            registrar_address=None,
            tlds=tlds,
            chain_id=chain_id,
            backend_id=backend_id or SPACEID_BACKEND_IDS.get(chain_id, "spaceid"),
            logger=logger,
        )
