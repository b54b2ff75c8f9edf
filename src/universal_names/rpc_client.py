"""
JSON-RPC transport used by on-chain resolver backends.

The engine only needs eth_call. RpcClient is the collaborator interface;
HttpRpcClient is a thin httpx implementation without pooling beyond httpx,
retries, or chain-specific quirks.

Reverts surface as ContractRevertError carrying the revert data so that
callers can recognise EIP-3668 OffchainLookup errors. Every other failure
surfaces as a TransportError.
"""

import itertools
import time
from abc import abstractmethod
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from .abi import from_hex, to_hex
from .audit_logger import AuditLogger, ComponentLogger
from .enums import TransportErrorCode
from .exceptions import ContractRevertError, RpcError, TransportError


@runtime_checkable
class RpcClient(Protocol):
    """Protocol defining the transport interface required by the engine."""

    @abstractmethod
    async def eth_call(self, to: str, data: bytes) -> bytes:
        """
        Execute a read-only call.

        Args:
            to: Target contract address
            data: ABI-encoded call data

        Returns:
            Raw return data

        Raises:
            ContractRevertError: If the call reverted
            TransportError: On any transport or RPC failure
        """
        ...


class HttpRpcClient:
    """Async JSON-RPC client over HTTP."""

    def __init__(
        self,
        url: str,
        timeout: float = 15.0,
        chain_id: int = 1,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the RPC client.

        Args:
            url: JSON-RPC endpoint URL
            timeout: Request timeout in seconds
            chain_id: Chain the endpoint serves
            client: Optional pre-configured httpx client (tests pass a MockTransport)
            logger: Optional audit logger
        """
        self._url = url
        self._timeout = timeout
        self._chain_id = chain_id
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)
        self._log = ComponentLogger(logger, "RpcClient")

    @property
    def chain_id(self) -> int:
        return self._chain_id

    async def __aenter__(self) -> "HttpRpcClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def eth_call(self, to: str, data: bytes) -> bytes:
        result = await self.request(
            "eth_call",
            [{"to": to, "data": to_hex(data)}, "latest"],
        )
        if not isinstance(result, str):
            raise RpcError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message="eth_call result is not a hex string",
                details={"to": to},
            )
        try:
            return from_hex(result)
        except ValueError as e:
            raise RpcError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message=f"eth_call returned invalid hex: {e}",
                details={"to": to},
            ) from e

    async def request(self, method: str, params: list) -> Any:
        """
        Send one JSON-RPC request and return its result.

        Raises:
            ContractRevertError: If the node reports an execution revert
            TransportError: On HTTP failure, timeout or malformed response
            RpcError: On a JSON-RPC error that is not a revert
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._timeout),
            )

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        start_time = time.perf_counter()

        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.TimeoutException as e:
            raise TransportError(
                code=TransportErrorCode.TIMEOUT.value,
                message=f"RPC request timed out after {self._timeout}s",
                details={"method": method},
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                code=TransportErrorCode.NETWORK_ERROR.value,
                message=f"RPC connection error: {e}",
                details={"method": method},
            ) from e

        self._log.debug(
            f"{method} completed",
            {
                "rpc_url": self._url,
                "status": response.status_code,
                "elapsed_ms": (time.perf_counter() - start_time) * 1000,
            },
        )

        if response.status_code != 200:
            raise TransportError(
                code=TransportErrorCode.HTTP_ERROR.value,
                message=f"RPC endpoint returned HTTP {response.status_code}",
                details={"method": method, "status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message="RPC response is not valid JSON",
                details={"method": method},
            ) from e

        if not isinstance(body, dict):
            raise TransportError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message="RPC response is not a JSON object",
                details={"method": method},
            )

        error = body.get("error")
        if error is not None:
            raise self._error_from_response(method, error)

        return body.get("result")

    def _error_from_response(self, method: str, error: Any) -> Exception:
        if not isinstance(error, dict):
            return RpcError(
                code=TransportErrorCode.RPC_ERROR.value,
                message=str(error),
                details={"method": method},
            )

        message = str(error.get("message", ""))
        revert_data = self._extract_revert_data(error.get("data"))
        if revert_data is not None:
            return ContractRevertError(revert_data, message=message or "Execution reverted")
        if "revert" in message.lower():
            return ContractRevertError(b"", message=message)

        return RpcError(
            code=TransportErrorCode.RPC_ERROR.value,
            message=message or "JSON-RPC error",
            details={"method": method, "rpc_code": error.get("code")},
        )

    @staticmethod
    def _extract_revert_data(data: Any) -> Optional[bytes]:
        # Some nodes nest the payload as {"data": {"data": "0x..."}}
        if isinstance(data, dict):
            data = data.get("data")
        if isinstance(data, str) and data.startswith("0x"):
            try:
                return from_hex(data)
            except ValueError:
                return None
        return None

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
