"""
CCIP-Read (EIP-3668) off-chain lookup support.

CCIPRead performs a single gateway round trip and decodes OffchainLookup
revert data. CCIPReadClient wraps an RpcClient: when a call reverts with
OffchainLookup it queries the gateways, re-invokes the contract with the
callback payload, and repeats up to a bounded number of redirects.
"""

from typing import Optional, Sequence

import httpx
from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError

from .abi import checksum, from_hex, to_hex
from .audit_logger import AuditLogger, ComponentLogger
from .enums import ProtocolErrorCode, TransportErrorCode
from .exceptions import (
    ContractRevertError,
    GatewayError,
    ProtocolError,
    RedirectLimitExceededError,
)
from .models import OffchainLookup
from .rpc_client import RpcClient


# bytes4(keccak256("OffchainLookup(address,string[],bytes,bytes4,bytes)"))
OFFCHAIN_LOOKUP_SELECTOR = bytes.fromhex("556f1830")
OFFCHAIN_LOOKUP_TYPES = ["address", "string[]", "bytes", "bytes4", "bytes"]

DEFAULT_MAX_REDIRECTS = 4
DEFAULT_GATEWAY_TIMEOUT = 10.0


class CCIPRead:
    """
    Gateway side of EIP-3668.

    Gateways are tried strictly in order, one at a time; the first HTTP 200
    with a parseable 'data' field wins.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_GATEWAY_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the gateway client.

        Args:
            timeout: Per-gateway request timeout in seconds
            client: Optional pre-configured httpx client
            logger: Optional audit logger
        """
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._log = ComponentLogger(logger, "CCIPRead")

    async def request(
        self,
        sender: str,
        urls: Sequence[str],
        call_data: bytes,
    ) -> Optional[bytes]:
        """
        Query gateways for the off-chain answer.

        Templates containing '{data}' are fetched with GET; templates without
        it are sent as POST with a JSON body {"data", "sender"}.

        Returns:
            The decoded response bytes, or None if every gateway failed
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )

        sender_hex = sender.lower()
        data_hex = to_hex(call_data)

        for template in urls:
            url = template.replace("{sender}", sender_hex).replace("{data}", data_hex)
            try:
                if "{data}" in template:
                    response = await self._client.get(url, timeout=self._timeout)
                else:
                    response = await self._client.post(
                        url,
                        json={"data": data_hex, "sender": sender_hex},
                        timeout=self._timeout,
                    )
            except httpx.HTTPError as e:
                self._log.warn(
                    "Gateway request failed",
                    {"gateway": template, "error_type": type(e).__name__, "error": str(e)},
                )
                continue

            if response.status_code != 200:
                self._log.warn(
                    "Gateway returned non-200 status",
                    {"gateway": template, "status": response.status_code},
                )
                continue

            result = self._parse_body(response)
            if result is None:
                self._log.warn("Gateway returned malformed body", {"gateway": template})
                continue

            return result

        return None

    @staticmethod
    def _parse_body(response: httpx.Response) -> Optional[bytes]:
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        data = body.get("data")
        if not isinstance(data, str) or not data.startswith("0x"):
            return None
        try:
            return from_hex(data)
        except ValueError:
            return None

    @staticmethod
    def parse_error(revert_data: bytes) -> Optional[OffchainLookup]:
        """
        Decode OffchainLookup revert data.

        Returns:
            The decoded lookup, or None if the data is not an OffchainLookup error

        Raises:
            ProtocolError: If the selector matches but the payload is malformed
        """
        if len(revert_data) < 4 or revert_data[:4] != OFFCHAIN_LOOKUP_SELECTOR:
            return None

        try:
            sender, urls, call_data, callback, extra_data = abi_decode(
                OFFCHAIN_LOOKUP_TYPES, revert_data[4:]
            )
        except (DecodingError, ValueError, OverflowError) as e:
            raise ProtocolError(
                code=ProtocolErrorCode.MALFORMED_LOOKUP.value,
                message=f"Malformed OffchainLookup payload: {e}",
                details={"revert_data": to_hex(revert_data[:68])},
            ) from e

        if not urls:
            raise ProtocolError(
                code=ProtocolErrorCode.MALFORMED_LOOKUP.value,
                message="OffchainLookup carries no gateway URLs",
                details={"sender": sender},
            )

        return OffchainLookup(
            sender=checksum(sender),
            urls=tuple(urls),
            call_data=bytes(call_data),
            callback_function=bytes(callback),
            extra_data=bytes(extra_data),
        )

    @staticmethod
    def encode_callback(lookup: OffchainLookup, response: bytes) -> bytes:
        """callbackFunction || abi.encode(bytes response, bytes extraData)"""
        return lookup.callback_function + abi_encode(
            ["bytes", "bytes"], [response, lookup.extra_data]
        )

    async def close(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None


class CCIPReadClient:
    """
    RpcClient wrapper that follows OffchainLookup reverts.

    Implements the RpcClient protocol, so backends can use it anywhere a
    plain transport is accepted.
    """

    def __init__(
        self,
        rpc: RpcClient,
        ccip: Optional[CCIPRead] = None,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        enabled: bool = True,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        if max_redirects < 0:
            raise ValueError("max_redirects cannot be negative")
        self._rpc = rpc
        self._ccip = ccip or CCIPRead(logger=logger)
        self._max_redirects = max_redirects
        self._enabled = enabled
        self._log = ComponentLogger(logger, "CCIPReadClient")

    @property
    def rpc(self) -> RpcClient:
        return self._rpc

    @property
    def max_redirects(self) -> int:
        return self._max_redirects

    async def eth_call(self, to: str, data: bytes) -> bytes:
        """
        Call a contract, transparently resolving OffchainLookup reverts.

        Raises:
            ContractRevertError: For reverts that are not OffchainLookup errors
            ProtocolError: On malformed lookups or a sender mismatch
            RedirectLimitExceededError: After max_redirects gateway round trips
            GatewayError: If no gateway answered a lookup
            TransportError: On RPC failure
        """
        call_data = data
        redirects = 0

        while True:
            try:
                return await self._rpc.eth_call(to, call_data)
            except ContractRevertError as e:
                revert = e

            if not self._enabled:
                raise revert

            lookup = CCIPRead.parse_error(revert.revert_data)
            if lookup is None:
                raise revert

            if lookup.sender.lower() != to.lower():
                raise ProtocolError(
                    code=ProtocolErrorCode.SENDER_MISMATCH.value,
                    message="OffchainLookup sender does not match the called contract",
                    details={"sender": lookup.sender, "to": to},
                )

            if redirects >= self._max_redirects:
                raise RedirectLimitExceededError(
                    code=ProtocolErrorCode.REDIRECT_LIMIT.value,
                    message=f"CCIP-Read redirect limit of {self._max_redirects} exceeded",
                    details={"to": to, "redirects": redirects},
                )

            self._log.debug(
                "Following OffchainLookup",
                {"to": to, "gateways": len(lookup.urls), "redirect": redirects + 1},
            )
            response = await self._ccip.request(lookup.sender, lookup.urls, lookup.call_data)
            redirects += 1

            if response is None:
                raise GatewayError(
                    code=TransportErrorCode.GATEWAY_EXHAUSTED.value,
                    message="All CCIP-Read gateways failed",
                    details={"to": to, "gateways": list(lookup.urls)},
                )

            call_data = CCIPRead.encode_callback(lookup, response)

    async def close(self) -> None:
        await self._ccip.close()
