"""
Binary merkle tree over claim leaves.

Conventions (shared with the on-chain verifier, see `leaf.HASH_CONVENTION`):
- level 0 holds the leaves in claim index order
- each pair of siblings is sorted by raw bytes before hashing: keccak256(min(a, b) + max(a, b))
- a trailing node without a sibling is carried up to the next level unchanged
- the root of a single leaf is that leaf, the root of no leaves is `EMPTY_ROOT`

Because pairs are sorted, a proof is just the list of sibling digests from the leaf
upwards. Levels where the ancestor was carried up contribute no entry.
"""
from __future__ import annotations

from typing import Sequence, Union

from eth_utils import keccak

DIGEST_LENGTH = 32
EMPTY_ROOT = bytes(DIGEST_LENGTH)

Digest = Union[bytes, str]


def to_hex(digest: bytes) -> str:
    return "0x" + digest.hex()


def from_hex(digest: Digest) -> bytes:
    """Accepts raw bytes or 0x prefixed hex, raises ValueError if it is not a 32 byte digest"""
    if isinstance(digest, str):
        digest = bytes.fromhex(digest[2:] if digest[:2] in ("0x", "0X") else digest)
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != DIGEST_LENGTH:
        raise ValueError(f"Expected a {DIGEST_LENGTH} byte digest")
    return bytes(digest)


def hash_pair(a: bytes, b: bytes) -> bytes:
    if a <= b:
        return keccak(a + b)
    return keccak(b + a)


class MerkleTree:
    """
    Holds every level of the tree, `layers[0]` are the leaves and `layers[-1]` is `[root]`
    """

    def __init__(self, layers: list[list[bytes]]):
        self.layers = layers

    @classmethod
    def build(cls, leaves: Sequence[bytes]) -> MerkleTree:
        current = [from_hex(leaf) for leaf in leaves]
        layers = [current]
        while len(current) > 1:
            next_layer = []
            for i in range(0, len(current), 2):
                if i + 1 < len(current):
                    next_layer.append(hash_pair(current[i], current[i + 1]))
                else:
                    next_layer.append(current[i])
            layers.append(next_layer)
            current = next_layer
        return cls(layers)

    @property
    def leaves(self) -> list[bytes]:
        return self.layers[0]

    @property
    def root(self) -> bytes:
        if not self.leaves:
            return EMPTY_ROOT
        return self.layers[-1][0]

    @property
    def hex_root(self) -> str:
        return to_hex(self.root)

    def proof(self, index: int) -> list[bytes]:
        """Sibling digests for the leaf at `index`, from the bottom level upwards"""
        if index < 0 or index >= len(self.leaves):
            raise IndexError(f"No leaf at index {index}, tree has {len(self.leaves)}")
        proof = []
        position = index
        for layer in self.layers[:-1]:
            sibling = position ^ 1
            if sibling < len(layer):
                proof.append(layer[sibling])
            position //= 2
        return proof

    def hex_proof(self, index: int) -> list[str]:
        return [to_hex(p) for p in self.proof(index)]

    def proofs_by_index(self) -> dict[int, list[str]]:
        return {i: self.hex_proof(i) for i in range(len(self.leaves))}


def fold_proof(proof: Sequence[Digest], leaf: Digest) -> bytes:
    computed = from_hex(leaf)
    for sibling in proof:
        computed = hash_pair(computed, from_hex(sibling))
    return computed


def verify_proof(proof: Sequence[Digest], leaf: Digest, root: Digest) -> bool:
    """
    Recalculate the root from a leaf and its proof and compare it to `root`.
    Malformed digests never verify.
    """
    try:
        return fold_proof(proof, leaf) == from_hex(root)
    except (ValueError, TypeError):
        return False
