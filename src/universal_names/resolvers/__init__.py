"""Resolver backends, one per naming system."""

from universal_names.resolvers.base import (
    NameResolverBackend,
    RegistrableResolverBackend,
    TransactionSigner,
)
from universal_names.resolvers.ens import (
    ENSResolver,
    ENS_REGISTRY_ADDRESS,
    ENS_BASE_REGISTRAR_ADDRESS,
    evm_coin_type,
)
from universal_names.resolvers.spaceid import SpaceIdResolver
from universal_names.resolvers.unstoppable import UnstoppableResolver
from universal_names.resolvers.cifi import CiFiResolver
from universal_names.resolvers.registry import RegistryResolver
from universal_names.resolvers.sns import SnsResolver
from universal_names.resolvers.suins import SuiNsResolver

__all__ = [
    "NameResolverBackend",
    "RegistrableResolverBackend",
    "TransactionSigner",
    "ENSResolver",
    "ENS_REGISTRY_ADDRESS",
    "ENS_BASE_REGISTRAR_ADDRESS",
    "evm_coin_type",
    "SpaceIdResolver",
    "UnstoppableResolver",
    "CiFiResolver",
    "RegistryResolver",
    "SnsResolver",
    "SuiNsResolver",
]
