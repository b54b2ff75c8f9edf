"""
ENS namehash and labelhash (EIP-137).
"""

from eth_utils import keccak

from .abi import ZERO_HASH


def labelhash(label: str) -> bytes:
    return keccak(label.encode("utf-8"))


def namehash(name: str) -> bytes:
    """
    Recursive keccak hash of a normalized dotted name.

    namehash('') is 32 zero bytes; namehash('a.b') is
    keccak(namehash('b') + labelhash('a')).
    """
    node = ZERO_HASH
    if not name:
        return node
    for label in reversed(name.split(".")):
        node = keccak(node + labelhash(label))
    return node


def reverse_node(address: str) -> bytes:
    """Node of '<addr>.addr.reverse' for a reverse record lookup."""
    return namehash(reverse_name(address))


def reverse_name(address: str) -> str:
    return f"{address.lower().removeprefix('0x')}.addr.reverse"
