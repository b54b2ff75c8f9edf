"""
Property-based tests for CCIP-Read (EIP-3668) handling.

Gateways are served by httpx.MockTransport; contracts are scripted
RpcClients that revert with OffchainLookup until they see a callback.
"""

import json

import httpx
import pytest
from eth_abi import decode as abi_decode
from hypothesis import given, settings
from hypothesis import strategies as st

from universal_names.abi import from_hex
from universal_names.ccip_read import CCIPRead, CCIPReadClient
from universal_names.exceptions import (
    ContractRevertError,
    GatewayError,
    ProtocolError,
    RedirectLimitExceededError,
    TransportError,
)

from fakes import ALICE, RESOLVER_ADDRESS, offchain_lookup, run_async

CALLBACK = bytes.fromhex("aabbccdd")


class OffchainContract:
    """
    Contract that answers through a gateway.

    Any call reverts with OffchainLookup unless it is a callback, in which
    case the gateway response is returned as-is. With always_revert set the
    callback reverts again, forcing another redirect.
    """

    def __init__(self, urls, sender: str = RESOLVER_ADDRESS, always_revert: bool = False) -> None:
        self.urls = list(urls)
        self.sender = sender
        self.always_revert = always_revert
        self.calls: list[bytes] = []

    async def eth_call(self, to: str, data: bytes) -> bytes:
        self.calls.append(data)
        if data[:4] == CALLBACK and not self.always_revert:
            response, extra = abi_decode(["bytes", "bytes"], data[4:])
            assert extra == b"context"
            return bytes(response)
        raise ContractRevertError(
            offchain_lookup(self.sender, self.urls, b"\x12\x34", CALLBACK, b"context")
        )

    async def close(self) -> None:
        pass


class PlainRevertContract:
    async def eth_call(self, to: str, data: bytes) -> bytes:
        raise ContractRevertError(b"\x08\xc3\x79\xa0")

    async def close(self) -> None:
        pass


def gateway_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestGatewayFallbackProperty:
    """
    Property-based tests for gateway ordering.

    **Property 12: The first healthy gateway in order answers the lookup**
    """

    @given(
        failures=st.lists(
            st.sampled_from(["timeout", "500", "malformed", "connect"]),
            max_size=4,
        ),
    )
    @settings(max_examples=50)
    def test_first_healthy_gateway_wins(self, failures: list[str]) -> None:
        """
        Property 12: Gateway fallback.

        *For any* number of failing gateways listed before a healthy one,
        each SHALL be tried once in order and the healthy answer SHALL be
        used.
        """
        hits: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            host = request.url.host
            hits.append(host)
            if host == "good.example":
                return httpx.Response(200, json={"data": "0xbeef"})
            kind = failures[int(host.split(".")[0][1:])]
            if kind == "timeout":
                raise httpx.ReadTimeout("timed out", request=request)
            if kind == "connect":
                raise httpx.ConnectError("refused", request=request)
            if kind == "500":
                return httpx.Response(500)
            return httpx.Response(200, content=b"not json")

        urls = [f"https://g{i}.example/{{sender}}/{{data}}" for i in range(len(failures))]
        urls.append("https://good.example/{sender}/{data}.json")
        contract = OffchainContract(urls)

        async def scenario() -> bytes:
            ccip = CCIPRead(client=gateway_client(handler))
            return await CCIPReadClient(contract, ccip).eth_call(RESOLVER_ADDRESS, b"\x01\x02")

        result = run_async(scenario())

        assert result == bytes.fromhex("beef")
        assert hits == [f"g{i}.example" for i in range(len(failures))] + ["good.example"]
        assert len(contract.calls) == 2

    def test_all_gateways_failing_raises_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        contract = OffchainContract(["https://a.example/{data}", "https://b.example/{data}"])

        async def scenario() -> None:
            ccip = CCIPRead(client=gateway_client(handler))
            await CCIPReadClient(contract, ccip).eth_call(RESOLVER_ADDRESS, b"\x01")

        with pytest.raises(GatewayError) as exc_info:
            run_async(scenario())

        assert isinstance(exc_info.value, TransportError)
        assert exc_info.value.code == "gateway_exhausted"


class TestGatewayRequestShape:
    """URL templating and request methods."""

    def test_get_substitutes_sender_and_data(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": "0x01"})

        async def scenario() -> bytes:
            ccip = CCIPRead(client=gateway_client(handler))
            return await ccip.request(ALICE, ["https://gw.example/{sender}/{data}.json"], b"\xca\xfe")

        assert run_async(scenario()) == b"\x01"
        assert seen[0].method == "GET"
        assert seen[0].url.path == f"/{ALICE.lower()}/0xcafe.json"

    def test_post_when_template_has_no_data(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": "0x02"})

        async def scenario() -> bytes:
            ccip = CCIPRead(client=gateway_client(handler))
            return await ccip.request(ALICE, ["https://gw.example/lookup/{sender}"], b"\xca\xfe")

        assert run_async(scenario()) == b"\x02"
        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"data": "0xcafe", "sender": ALICE.lower()}


class TestRedirectLimitProperty:
    """
    Property-based tests for bounded redirects.

    **Property 13: Lookups stop after the configured number of redirects**
    """

    @given(max_redirects=st.integers(min_value=0, max_value=6))
    @settings(max_examples=20)
    def test_redirect_limit(self, max_redirects: int) -> None:
        """
        Property 13: Redirect limit.

        *For any* limit N, a contract that always answers with another
        OffchainLookup SHALL cause exactly N gateway trips followed by
        RedirectLimitExceededError.
        """
        trips: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            trips.append(str(request.url))
            return httpx.Response(200, json={"data": "0x00"})

        contract = OffchainContract(["https://gw.example/{data}"], always_revert=True)

        async def scenario() -> None:
            ccip = CCIPRead(client=gateway_client(handler))
            client = CCIPReadClient(contract, ccip, max_redirects=max_redirects)
            await client.eth_call(RESOLVER_ADDRESS, b"\x01")

        with pytest.raises(RedirectLimitExceededError) as exc_info:
            run_async(scenario())

        assert len(trips) == max_redirects
        assert isinstance(exc_info.value, ProtocolError)
        assert exc_info.value.details["redirects"] == max_redirects

    def test_default_limit_is_four(self) -> None:
        assert CCIPReadClient(PlainRevertContract()).max_redirects == 4


class TestLookupValidation:
    """Sender checks and non-lookup reverts."""

    def test_sender_mismatch_is_protocol_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("gateway must not be contacted")

        contract = OffchainContract(["https://gw.example/{data}"], sender=ALICE)

        async def scenario() -> None:
            ccip = CCIPRead(client=gateway_client(handler))
            await CCIPReadClient(contract, ccip).eth_call(RESOLVER_ADDRESS, b"\x01")

        with pytest.raises(ProtocolError) as exc_info:
            run_async(scenario())

        assert exc_info.value.code == "sender_mismatch"

    def test_plain_revert_passes_through(self) -> None:
        async def scenario() -> None:
            await CCIPReadClient(PlainRevertContract()).eth_call(RESOLVER_ADDRESS, b"\x01")

        with pytest.raises(ContractRevertError):
            run_async(scenario())

    def test_disabled_client_does_not_follow(self) -> None:
        contract = OffchainContract(["https://gw.example/{data}"])

        async def scenario() -> None:
            await CCIPReadClient(contract, enabled=False).eth_call(RESOLVER_ADDRESS, b"\x01")

        with pytest.raises(ContractRevertError):
            run_async(scenario())

    def test_parse_error_decodes_lookup(self) -> None:
        revert = offchain_lookup(RESOLVER_ADDRESS, ["https://a/{data}", "https://b"], b"\x99", CALLBACK, b"x")

        lookup = CCIPRead.parse_error(revert)

        assert lookup.sender == RESOLVER_ADDRESS
        assert lookup.urls == ("https://a/{data}", "https://b")
        assert lookup.call_data == b"\x99"
        assert lookup.callback_function == CALLBACK
        assert CCIPRead.parse_error(b"\x08\xc3\x79\xa0") is None

    def test_truncated_lookup_is_protocol_error(self) -> None:
        revert = offchain_lookup(RESOLVER_ADDRESS, ["https://a/{data}"])

        with pytest.raises(ProtocolError):
            CCIPRead.parse_error(revert[:40])

    def test_callback_payload(self) -> None:
        lookup = CCIPRead.parse_error(
            offchain_lookup(RESOLVER_ADDRESS, ["https://a"], b"", CALLBACK, b"extra")
        )

        payload = CCIPRead.encode_callback(lookup, from_hex("0xabcd"))

        assert payload[:4] == CALLBACK
        assert abi_decode(["bytes", "bytes"], payload[4:]) == (b"\xab\xcd", b"extra")
