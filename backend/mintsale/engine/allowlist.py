"""
Allowlist membership proofs.

Leaves are keccak256 of the 20-byte address. Proofs are verified by hashing
the running node with each sibling in sorted order (the "sortPairs" Merkle
convention), then comparing against the published root. Tree construction
happens elsewhere; only verification lives here.
"""

from typing import Iterable

from eth_utils import is_address, keccak, to_bytes, to_canonical_address, to_checksum_address

from mintsale.core.constants import ZERO_ADDRESS
from mintsale.core.errors import InvalidAddress, ZeroAddress


def normalize_address(address: str) -> str:
    """Return the checksummed form of ``address`` or raise InvalidAddress."""
    if not isinstance(address, str) or not is_address(address):
        raise InvalidAddress(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def to_node(value: bytes | str) -> bytes:
    """Coerce a 0x-hex string or raw bytes into a 32-byte tree node."""
    node = value if isinstance(value, bytes) else to_bytes(hexstr=value)
    if len(node) != 32:
        raise ValueError(f"Merkle node must be 32 bytes, got {len(node)}")
    return node


def leaf_for(address: str) -> bytes:
    return keccak(to_canonical_address(address))


def hash_pair(a: bytes, b: bytes) -> bytes:
    return keccak(a + b) if a <= b else keccak(b + a)


def process_proof(proof: Iterable[bytes | str], leaf: bytes) -> bytes:
    computed = leaf
    for sibling in proof:
        computed = hash_pair(computed, to_node(sibling))
    return computed


class AllowlistVerifier:
    """Stateless check of an address against a Merkle root."""

    def __init__(self, root: bytes | str):
        self.root = to_node(root)

    def verify(self, proof: Iterable[bytes | str], address: str) -> bool:
        address = normalize_address(address)
        if address == ZERO_ADDRESS:
            raise ZeroAddress()
        return process_proof(proof, leaf_for(address)) == self.root
