"""
CiFi identity backend.

Resolves '@alice' handles and 'alice.cifi' names through the CiFi identity
HTTP API: the profile gives the primary address, the linked-address list
gives one wallet per chain. Nothing here touches a blockchain.
"""

import time
from typing import Any, Optional, Sequence
from urllib.parse import quote

import httpx

from ..audit_logger import AuditLogger, ComponentLogger
from ..enums import TransportErrorCode
from ..exceptions import TransportError
from ..models import Name, NameRecords, ResolutionResult
from .base import NameResolverBackend
from .ens import ETH_COIN_TYPE, evm_coin_type

CIFI_BASE_URL = "https://api.cifi.network"
CIFI_TLD = "cifi"

# Chains a CiFi profile commonly links; any linked chain is served
CIFI_CHAIN_IDS = (1, 137, 42161, 8453, 10, 43114, 50, 295)


def chain_to_coin_type(chain_id: int) -> int:
    """Coin type under which a linked wallet is reported in NameRecords."""
    # CiFi uses chain id 0 for Bitcoin
    if chain_id == 0:
        return 0
    return evm_coin_type(chain_id)


def coin_type_to_chain(coin_type: int) -> Optional[int]:
    if coin_type == ETH_COIN_TYPE:
        return 1
    if coin_type == 0:
        return 0
    if coin_type & 0x80000000:
        return coin_type & 0x7FFFFFFF
    return None


class CiFiResolver(NameResolverBackend):
    """Backend for CiFi usernames."""

    def __init__(
        self,
        api_key: str,
        base_url: str = CIFI_BASE_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the backend.

        Args:
            api_key: CiFi API key, sent as bearer token
            base_url: API base URL
            timeout: Request timeout in seconds
            client: Optional pre-configured httpx client (tests pass a MockTransport)
            logger: Optional audit logger
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._log = ComponentLogger(logger, "Resolver:cifi")

    @property
    def id(self) -> str:
        return "cifi"

    @property
    def supported_tlds(self) -> Sequence[str]:
        return (CIFI_TLD,)

    @property
    def supported_chain_ids(self) -> Sequence[int]:
        return CIFI_CHAIN_IDS

    def can_resolve(self, name: Name) -> bool:
        return name.is_handle or name.tld == CIFI_TLD

    @staticmethod
    def username(name: Name) -> str:
        """'@alice' and 'alice.cifi' both map to 'alice'."""
        labels = name.labels
        if name.tld == CIFI_TLD:
            labels = labels[:-1]
        return ".".join(labels)

    async def resolve(
        self,
        name: Name,
        chain_id: Optional[int] = None,
        coin_type: Optional[int] = None,
    ) -> Optional[ResolutionResult]:
        profile = await self.get_profile(self.username(name))
        if profile is None:
            return None
        user_id = str(profile.get("userId", ""))

        wanted_chain = chain_id
        if wanted_chain is None and coin_type is not None:
            wanted_chain = coin_type_to_chain(coin_type)

        if wanted_chain is None:
            address = profile.get("primaryAddress")
        else:
            wallets = await self.get_linked_addresses(user_id)
            address = next(
                (w.get("address") for w in wallets if w.get("chainId") == wanted_chain),
                None,
            )
            if address is None and wanted_chain == profile.get("primaryChainId"):
                address = profile.get("primaryAddress")

        if not address:
            return None

        return ResolutionResult(
            address=address,
            resolver_used=self.id,
            name=name.value,
            chain_id=wanted_chain if wanted_chain is not None else profile.get("primaryChainId"),
            metadata={
                "cifi_user_id": user_id,
                "username": profile.get("username"),
            },
        )

    async def get_records(self, name: Name) -> Optional[NameRecords]:
        profile = await self.get_profile(self.username(name))
        if profile is None:
            return None
        wallets = await self.get_linked_addresses(str(profile.get("userId", "")))

        addresses: dict[int, str] = {}
        for wallet in wallets:
            chain = wallet.get("chainId")
            if isinstance(chain, int) and wallet.get("address"):
                addresses[chain_to_coin_type(chain)] = wallet["address"]
        primary = profile.get("primaryAddress")
        primary_chain = profile.get("primaryChainId")
        if primary and isinstance(primary_chain, int):
            addresses.setdefault(chain_to_coin_type(primary_chain), primary)

        texts = {
            key: str(profile[field])
            for key, field in (("username", "username"), ("email", "email"))
            if profile.get(field)
        }
        metadata = profile.get("metadata")
        avatar = metadata.get("avatar") if isinstance(metadata, dict) else None

        return NameRecords(
            addresses=addresses,
            texts=texts,
            avatar=avatar,
            owner=primary,
        )

    # API

    async def get_profile(self, user_id: str) -> Optional[dict]:
        """Profile JSON, or None if the user does not exist."""
        body = await self._get(f"/v1/identity/profiles/{quote(user_id, safe='')}")
        return body if isinstance(body, dict) else None

    async def get_linked_addresses(self, user_id: str) -> list[dict]:
        body = await self._get(f"/v1/identity/profiles/{quote(user_id, safe='')}/addresses")
        if not isinstance(body, dict):
            return []
        addresses = body.get("addresses")
        if not isinstance(addresses, list):
            return []
        return [a for a in addresses if isinstance(a, dict)]

    async def _get(self, path: str) -> Optional[Any]:
        """
        GET an API path.

        Returns:
            Decoded JSON, or None on HTTP 404

        Raises:
            TransportError: On network failure, timeout, other HTTP errors
                or an undecodable body
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._timeout),
            )

        url = f"{self._base_url}{path}"
        start_time = time.perf_counter()
        try:
            response = await self._client.get(
                url,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.TimeoutException as e:
            raise TransportError(
                code=TransportErrorCode.TIMEOUT.value,
                message=f"CiFi request timed out after {self._timeout}s",
                details={"path": path},
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                code=TransportErrorCode.NETWORK_ERROR.value,
                message=f"CiFi connection error: {e}",
                details={"path": path},
            ) from e

        self._log.debug(
            "CiFi request completed",
            {
                "path": path,
                "status": response.status_code,
                "elapsed_ms": (time.perf_counter() - start_time) * 1000,
            },
        )

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise TransportError(
                code=TransportErrorCode.HTTP_ERROR.value,
                message=f"CiFi API returned HTTP {response.status_code}",
                details={"path": path, "status_code": response.status_code},
            )
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message="CiFi response is not valid JSON",
                details={"path": path},
            ) from e

    async def close(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
