import pytest
from eth_utils import keccak

from distributor.leaf import leaf_digest
from distributor.merkle import (
    EMPTY_ROOT,
    MerkleTree,
    from_hex,
    hash_pair,
    to_hex,
    verify_proof,
)
from distributor.test.conftest import make_claims


def leaves_for(n: int) -> list[bytes]:
    return [leaf_digest(c) for c in make_claims(n)]


def test_hash_pair_is_order_independent():
    a, b = keccak(b"a"), keccak(b"b")
    low, high = sorted([a, b])

    assert hash_pair(a, b) == hash_pair(b, a) == keccak(low + high)


def test_single_leaf_root_is_leaf():
    leaves = leaves_for(1)
    tree = MerkleTree.build(leaves)

    assert tree.root == leaves[0]
    assert tree.proof(0) == []
    assert verify_proof([], leaves[0], tree.root)


def test_empty_tree():
    tree = MerkleTree.build([])

    assert tree.root == EMPTY_ROOT
    with pytest.raises(IndexError):
        tree.proof(0)


def test_two_leaves():
    leaves = leaves_for(2)
    tree = MerkleTree.build(leaves)

    assert tree.root == hash_pair(leaves[0], leaves[1])
    assert tree.proof(0) == [leaves[1]]
    assert tree.proof(1) == [leaves[0]]


def test_odd_node_is_carried_up():
    leaves = leaves_for(3)
    tree = MerkleTree.build(leaves)

    left = hash_pair(leaves[0], leaves[1])
    assert tree.layers[1] == [left, leaves[2]]
    assert tree.root == hash_pair(left, leaves[2])

    # the carried leaf skips the level it had no sibling on
    assert tree.proof(2) == [left]
    assert tree.proof(0) == [leaves[1], leaves[2]]


def test_five_leaves_layers():
    leaves = leaves_for(5)
    tree = MerkleTree.build(leaves)

    assert [len(layer) for layer in tree.layers] == [5, 3, 2, 1]
    assert tree.proof(4) == [tree.layers[2][0]]


@pytest.mark.parametrize("n", [1, 2, 3, 4, 5, 7, 8, 25])
def test_every_proof_verifies(n):
    leaves = leaves_for(n)
    tree = MerkleTree.build(leaves)

    for i, leaf in enumerate(leaves):
        assert verify_proof(tree.proof(i), leaf, tree.root)
        assert verify_proof(tree.hex_proof(i), to_hex(leaf), tree.hex_root)


@pytest.mark.parametrize("n", [2, 3, 25])
def test_proof_length_is_logarithmic(n):
    tree = MerkleTree.build(leaves_for(n))

    depth = len(tree.layers) - 1
    assert all(len(tree.proof(i)) <= depth for i in range(n))


@pytest.mark.parametrize("n", [2, 3, 25])
def test_proof_does_not_verify_other_leaf(n):
    leaves = leaves_for(n)
    tree = MerkleTree.build(leaves)

    assert not verify_proof(tree.proof(0), leaves[1], tree.root)


def test_tampered_proof_fails():
    leaves = leaves_for(4)
    tree = MerkleTree.build(leaves)
    proof = tree.proof(1)

    tampered = bytearray(proof[0])
    tampered[0] ^= 0x01

    assert not verify_proof([bytes(tampered), *proof[1:]], leaves[1], tree.root)
    assert not verify_proof(proof[:-1], leaves[1], tree.root)


def test_wrong_root_fails():
    leaves = leaves_for(4)
    tree = MerkleTree.build(leaves)

    other = MerkleTree.build(leaves_for(5))
    assert not verify_proof(tree.proof(0), leaves[0], other.root)


@pytest.mark.parametrize(
    "proof, leaf, root",
    [
        (["0x1234"], None, None),
        (["not hex"], None, None),
        ([], "0x", None),
        ([], None, "0x" + "00" * 31),
    ],
)
def test_malformed_input_never_verifies(proof, leaf, root):
    leaves = leaves_for(2)
    tree = MerkleTree.build(leaves)

    assert not verify_proof(
        proof or tree.proof(0),
        leaves[0] if leaf is None else leaf,
        tree.root if root is None else root,
    )


def test_verify_is_pure():
    leaves = leaves_for(3)
    tree = MerkleTree.build(leaves)
    proof = tree.hex_proof(0)
    snapshot = list(proof)

    verify_proof(proof, leaves[0], tree.root)
    verify_proof(proof, leaves[0], tree.root)

    assert proof == snapshot
    assert tree.leaves == leaves


def test_build_order_matters():
    leaves = leaves_for(3)

    assert MerkleTree.build(leaves).root != MerkleTree.build(leaves[::-1]).root


def test_from_hex_roundtrip():
    digest = keccak(b"digest")

    assert from_hex(to_hex(digest)) == digest
    assert from_hex(digest) == digest
    with pytest.raises(ValueError):
        from_hex("0x1234")


def test_proofs_by_index():
    tree = MerkleTree.build(leaves_for(3))

    proofs = tree.proofs_by_index()
    assert sorted(proofs) == [0, 1, 2]
    assert proofs[2] == tree.hex_proof(2)
