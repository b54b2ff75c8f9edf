"""
Multicall3 aggregation.

Bundles many read calls into one eth_call against the Multicall3
contract, with per-call failure allowed.
"""

from typing import Sequence

from eth_abi.exceptions import DecodingError

from .abi import checksum, decode_result, encode_call
from .enums import TransportErrorCode
from .exceptions import RpcError
from .models import Call3, CallResult
from .rpc_client import RpcClient

MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"
AGGREGATE3_SIGNATURE = "aggregate3((address,bool,bytes)[])"


class Multicall3:
    """Client for the Multicall3 aggregate3 entry point."""

    def __init__(self, rpc: RpcClient, address: str = MULTICALL3_ADDRESS) -> None:
        self._rpc = rpc
        self._address = checksum(address)

    @property
    def address(self) -> str:
        return self._address

    async def aggregate3(self, calls: Sequence[Call3]) -> list[CallResult]:
        """
        Execute calls in one round trip.

        Returns:
            One CallResult per call, in order

        Raises:
            TransportError: If the aggregate call itself fails or cannot be decoded
            ContractRevertError: If the aggregate reverts (a call with allow_failure=False failed)
        """
        if not calls:
            return []

        data = encode_call(
            AGGREGATE3_SIGNATURE,
            [[(checksum(c.target), c.allow_failure, c.call_data) for c in calls]],
        )
        raw = await self._rpc.eth_call(self._address, data)

        try:
            (results,) = decode_result(["(bool,bytes)[]"], raw)
        except (DecodingError, ValueError) as e:
            raise RpcError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message=f"Could not decode aggregate3 result: {e}",
                details={"calls": len(calls)},
            ) from e

        if len(results) != len(calls):
            raise RpcError(
                code=TransportErrorCode.PARSE_ERROR.value,
                message="aggregate3 returned a different number of results",
                details={"calls": len(calls), "results": len(results)},
            )

        return [CallResult(success=bool(ok), return_data=bytes(ret)) for ok, ret in results]
