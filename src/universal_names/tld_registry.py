"""
TLD Registry - default ownership of naming-system TLDs.

Maps every TLD the built-in backends serve to the backend id that owns it.
The dispatcher registers these mappings ahead of the can_resolve() fallback
scan, so an owned TLD always goes to its backend first.
"""

from typing import Optional

from .config import TLDConfig

# ============================================================================
# Ethereum Name Service
# ============================================================================
ENS_TLDS = [
    TLDConfig(tld="eth", backend_id="ens", chain_id=1, description="Ethereum Name Service"),
]


# ============================================================================
# SPACE ID
# ============================================================================
SPACEID_TLDS = [
    TLDConfig(tld="bnb", backend_id="spaceid", chain_id=56, description="SPACE ID on BNB Chain"),
    TLDConfig(tld="arb", backend_id="spaceid-arb", chain_id=42161, description="SPACE ID on Arbitrum"),
]


# ============================================================================
# Unstoppable Domains (UNS registry on Polygon)
# ============================================================================
UNSTOPPABLE_TLDS = [
    TLDConfig(tld="crypto", backend_id="unstoppable", chain_id=137, description="Unstoppable Domains"),
    TLDConfig(tld="nft", backend_id="unstoppable", chain_id=137, description="Unstoppable Domains"),
    TLDConfig(tld="wallet", backend_id="unstoppable", chain_id=137, description="Unstoppable Domains"),
    TLDConfig(tld="x", backend_id="unstoppable", chain_id=137, description="Unstoppable Domains"),
    TLDConfig(tld="bitcoin", backend_id="unstoppable", chain_id=137, description="Unstoppable Domains"),
    TLDConfig(tld="dao", backend_id="unstoppable", chain_id=137, description="Unstoppable Domains"),
    TLDConfig(tld="888", backend_id="unstoppable", chain_id=137, description="Unstoppable Domains"),
    TLDConfig(tld="zil", backend_id="unstoppable", chain_id=137, description="Unstoppable Domains"),
    TLDConfig(tld="blockchain", backend_id="unstoppable", chain_id=137, description="Unstoppable Domains"),
]


# ============================================================================
# Solana and Sui name services (non-EVM, queried over HTTP / JSON-RPC)
# ============================================================================
SNS_TLDS = [
    TLDConfig(tld="sol", backend_id="sns", description="Solana Name Service"),
]

SUINS_TLDS = [
    TLDConfig(tld="sui", backend_id="suins", description="Sui Name Service"),
]


# ============================================================================
# CiFi identity (handles use the '@' prefix instead of a TLD)
# ============================================================================
CIFI_TLDS = [
    TLDConfig(tld="cifi", backend_id="cifi", description="CiFi identity usernames"),
]


DEFAULT_TLDS = (
    ENS_TLDS
    + SPACEID_TLDS
    + UNSTOPPABLE_TLDS
    + SNS_TLDS
    + SUINS_TLDS
    + CIFI_TLDS
)

TLD_COUNT = len(DEFAULT_TLDS)


def get_tld_config(tld: str, table: Optional[list[TLDConfig]] = None) -> Optional[TLDConfig]:
    """Ownership entry for a TLD, case-insensitive."""
    tld = tld.lower()
    for entry in table if table is not None else DEFAULT_TLDS:
        if entry.tld == tld:
            return entry
    return None


def tlds_for_backend(backend_id: str, table: Optional[list[TLDConfig]] = None) -> list[str]:
    return [e.tld for e in (table if table is not None else DEFAULT_TLDS) if e.backend_id == backend_id]
