"""
Solana Name Service backend.

Resolves .sol names through the SNS SDK proxy, an HTTP service that runs
the SNS program lookups (domain key derivation, owner and record accounts)
server side and answers in JSON:

    GET /resolve/{domain}                  -> {"s": "ok", "result": "<owner>"}
    GET /favorite-domain/{owner}           -> {"s": "ok", "result": {"reverse": "...", "stale": false}}
    GET /record-v2/{domain}/{record}       -> {"s": "ok", "result": {"deserialized": "..."}}

An "error" status means the domain or record does not exist.
"""

import asyncio
import re
import time
from typing import Any, Optional, Sequence
from urllib.parse import quote

import httpx

from ..audit_logger import AuditLogger, ComponentLogger
from ..enums import TransportErrorCode
from ..exceptions import TransportError
from ..models import Name, NameRecords, ResolutionResult
from .base import NameResolverBackend

SNS_PROXY_URL = "https://sns-sdk-proxy.bonfida.workers.dev"
SOL_TLD = "sol"
SOLANA_COIN_TYPE = 501

# SNS record -> text key used in NameRecords
TEXT_RECORDS = {
    "url": "url",
    "email": "email",
    "github": "com.github",
    "twitter": "com.twitter",
    "discord": "com.discord",
    "telegram": "org.telegram",
}
AVATAR_RECORD = "pic"

_SOLANA_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


class SnsResolver(NameResolverBackend):
    """Backend for Solana Name Service names."""

    supports_reverse = True

    def __init__(
        self,
        base_url: str = SNS_PROXY_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the backend.

        Args:
            base_url: SNS SDK proxy base URL
            timeout: Request timeout in seconds
            client: Optional pre-configured httpx client (tests pass a MockTransport)
            logger: Optional audit logger
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._log = ComponentLogger(logger, "Resolver:sns")

    @property
    def id(self) -> str:
        return "sns"

    @property
    def supported_tlds(self) -> Sequence[str]:
        return (SOL_TLD,)

    def accepts_address(self, address: str) -> bool:
        return bool(_SOLANA_ADDRESS.match(address))

    @staticmethod
    def domain(name: Name) -> str:
        """'sub.alice.sol' -> 'sub.alice'."""
        return ".".join(name.labels[:-1])

    async def resolve(
        self,
        name: Name,
        chain_id: Optional[int] = None,
        coin_type: Optional[int] = None,
    ) -> Optional[ResolutionResult]:
        if coin_type is not None and coin_type != SOLANA_COIN_TYPE:
            return None
        owner = await self._owner(name)
        if owner is None:
            return None
        return ResolutionResult(
            address=owner,
            resolver_used=self.id,
            name=name.value,
            metadata={"coin_type": SOLANA_COIN_TYPE},
        )

    async def reverse_resolve(self, address: str, chain_id: Optional[int] = None) -> Optional[str]:
        if not self.accepts_address(address):
            return None
        result = await self._get(f"/favorite-domain/{quote(address, safe='')}")
        if not isinstance(result, dict) or result.get("stale"):
            return None
        reverse = result.get("reverse")
        if not isinstance(reverse, str) or not reverse:
            return None
        return f"{reverse}.{SOL_TLD}"

    async def get_records(self, name: Name) -> Optional[NameRecords]:
        owner = await self._owner(name)
        if owner is None:
            return None

        keys = list(TEXT_RECORDS) + [AVATAR_RECORD]
        values = await asyncio.gather(*(self._record(name, key) for key in keys))
        found = dict(zip(keys, values))

        return NameRecords(
            addresses={SOLANA_COIN_TYPE: owner},
            texts={TEXT_RECORDS[k]: v for k, v in found.items() if k in TEXT_RECORDS and v},
            avatar=found.get(AVATAR_RECORD),
            owner=owner,
        )

    # API

    async def _owner(self, name: Name) -> Optional[str]:
        result = await self._get(f"/resolve/{quote(self.domain(name), safe='.')}")
        if isinstance(result, str) and self.accepts_address(result):
            return result
        return None

    async def _record(self, name: Name, record: str) -> Optional[str]:
        result = await self._get(f"/record-v2/{quote(self.domain(name), safe='.')}/{record}")
        if isinstance(result, dict):
            result = result.get("deserialized")
        return result if isinstance(result, str) and result else None

    async def _get(self, path: str) -> Optional[Any]:
        """
        GET a proxy path.

        Returns:
            The "result" field, or None when the proxy reports an error
            status, HTTP 400 or HTTP 404

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
            response = await self._client.get(url)
        except httpx.TimeoutException as e:
            raise TransportError(
                code=TransportErrorCode.TIMEOUT.value,
                message=f"SNS request timed out after {self._timeout}s",
                details={"path": path},
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                code=TransportErrorCode.NETWORK_ERROR.value,
                message=f"SNS connection error: {e}",
                details={"path": path},
            ) from e

        self._log.debug(
            "SNS request completed",
            {
                "path": path,
                "status": response.status_code,
                "elapsed_ms": (time.perf_counter() - start_time) * 1000,
            },
        )

        if response.status_code in (400, 404):
            return None
        if response.status_code != 200:
            raise TransportError(
                code=TransportErrorCode.HTTP_ERROR.value,
                message=f"SNS proxy returned HTTP {response.status_code}",
                details={"path": path, "status_code": response.status_code},
            )
        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message="SNS response is not valid JSON",
                details={"path": path},
            ) from e

        if not isinstance(body, dict):
            raise TransportError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message="SNS response is not a JSON object",
                details={"path": path},
            )
        if body.get("s") != "ok":
            return None
        return body.get("result")

    async def close(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
