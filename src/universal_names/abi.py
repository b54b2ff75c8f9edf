"""
ABI helpers for contract calls.

Thin layer over eth_abi and eth_utils: selector computation, call data
encoding, result decoding and DNS wire-format names for ENSIP-10.
"""

from typing import Any, Sequence

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_utils import is_address, keccak, to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_HASH = b"\x00" * 32


def selector(signature: str) -> bytes:
    """4-byte function selector of a canonical Solidity signature."""
    return keccak(signature.encode())[:4]


def selector_hex(signature: str) -> str:
    return "0x" + selector(signature).hex()


def encode_call(signature: str, args: Sequence[Any] = ()) -> bytes:
    """
    Encode full call data (selector + arguments) for a signature.

    The argument types are taken from the signature itself, e.g.
    'text(bytes32,string)'.
    """
    types = parse_argument_types(signature)
    if not types:
        return selector(signature)
    return selector(signature) + abi_encode(types, [_coerce(t, a) for t, a in zip(types, args)])


def decode_result(types: Sequence[str], data: bytes) -> tuple:
    """
    Decode return data.

    Raises:
        DecodingError: If the data does not match the types
    """
    if not data:
        raise DecodingError("Empty return data")
    return abi_decode(list(types), data)


def parse_argument_types(signature: str) -> list[str]:
    """Split the top-level argument list of a signature, keeping tuples intact."""
    inner = signature[signature.index("(") + 1: signature.rindex(")")]
    types: list[str] = []
    depth = 0
    current = ""
    for char in inner:
        if char == "," and depth == 0:
            types.append(current)
            current = ""
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        current += char
    if current:
        types.append(current)
    return types


def checksum(address: str) -> str:
    """Normalise to EIP-55 checksum address (required by eth_abi >= 5)."""
    if not is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def is_zero_address(address: str) -> bool:
    return address.lower() == ZERO_ADDRESS


def dns_encode(name: str) -> bytes:
    """DNS wire-format encoding of a dotted name, as used by ENSIP-10 resolve()."""
    encoded = b""
    for label in name.split("."):
        raw = label.encode("utf-8")
        if len(raw) > 255:
            raise ValueError(f"Label too long for DNS encoding: {label!r}")
        encoded += bytes([len(raw)]) + raw
    return encoded + b"\x00"


def to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def from_hex(data: str) -> bytes:
    if data.startswith(("0x", "0X")):
        data = data[2:]
    return bytes.fromhex(data)


def _coerce(abi_type: str, value: Any) -> Any:
    if abi_type == "address" and isinstance(value, str):
        return checksum(value)
    return value
