"""
Tests for Merkle tree commitments.

Verification must fail closed: malformed proofs return False, never raise.
"""

import dataclasses

import pytest

from sigstark.errors import DomainError
from sigstark.field import FieldElement
from sigstark.hashing import Blake3Hasher, Shake256Hasher, get_hasher
from sigstark.merkle import (
    MerkleProof,
    MerkleTree,
    build_merkle_tree,
    leaf_hash,
    verify_merkle_proof,
)


HASHER = Shake256Hasher()


def rows(n, width=2):
    return [tuple(FieldElement(i * width + j) for j in range(width)) for i in range(n)]


class TestMerkleTree:
    """Tests for Merkle tree implementation."""

    def test_single_leaf(self):
        """Root of a one-leaf tree is its leaf hash."""
        leaf = (FieldElement(42),)
        tree = build_merkle_tree([leaf], HASHER)
        assert tree.root == leaf_hash(HASHER, 0, leaf)
        assert tree.height == 0
        proof = tree.prove(0)
        assert proof.path == ()
        assert proof.verify(tree.root, HASHER, height=0)

    @pytest.mark.parametrize('n', [2, 4, 8, 32])
    def test_all_proofs_verify(self, n):
        tree = build_merkle_tree(rows(n), HASHER)
        assert tree.height == n.bit_length() - 1
        for i in range(n):
            proof = tree.prove(i)
            assert proof.leaf == rows(n)[i]
            assert verify_merkle_proof(proof, tree.root, HASHER, height=tree.height)

    @pytest.mark.parametrize('n', [0, 3, 6])
    def test_rejects_non_power_of_two(self, n):
        with pytest.raises(DomainError):
            MerkleTree(rows(n), HASHER)

    def test_prove_out_of_range(self):
        tree = build_merkle_tree(rows(4), HASHER)
        with pytest.raises(IndexError):
            tree.prove(4)

    def test_deterministic(self):
        assert build_merkle_tree(rows(8), HASHER).root == build_merkle_tree(rows(8), HASHER).root

    def test_leaf_order_matters(self):
        leaves = rows(4)
        swapped = [leaves[1], leaves[0]] + leaves[2:]
        assert build_merkle_tree(leaves, HASHER).root != build_merkle_tree(swapped, HASHER).root

    def test_root_is_256_bit_integer(self):
        root = build_merkle_tree(rows(4), HASHER).root
        assert isinstance(root, int)
        assert 0 <= root < 1 << 256

    def test_hashers_differ(self):
        assert build_merkle_tree(rows(4), Blake3Hasher()).root != build_merkle_tree(rows(4), HASHER).root


class TestMerkleFailClosed:
    """Tampered or malformed proofs are rejected without raising."""

    @pytest.fixture
    def tree(self):
        return build_merkle_tree(rows(8), HASHER)

    def test_wrong_root(self, tree):
        assert not tree.prove(3).verify(tree.root + 1, HASHER)

    def test_tampered_leaf(self, tree):
        proof = dataclasses.replace(tree.prove(3), leaf=(FieldElement(999), FieldElement(0)))
        assert not proof.verify(tree.root, HASHER)

    def test_wrong_index(self, tree):
        proof = dataclasses.replace(tree.prove(3), index=2)
        assert not proof.verify(tree.root, HASHER)

    def test_index_outside_path(self, tree):
        proof = dataclasses.replace(tree.prove(3), index=8)
        assert not proof.verify(tree.root, HASHER)
        proof = dataclasses.replace(tree.prove(3), index=-1)
        assert not proof.verify(tree.root, HASHER)

    def test_wrong_height(self, tree):
        assert not tree.prove(3).verify(tree.root, HASHER, height=2)

    def test_truncated_path(self, tree):
        proof = tree.prove(3)
        short = MerkleProof(index=1, leaf=proof.leaf, path=proof.path[:-1])
        assert not short.verify(tree.root, HASHER)

    def test_leaf_of_integers(self, tree):
        proof = dataclasses.replace(tree.prove(3), leaf=(6, 7))
        assert not proof.verify(tree.root, HASHER)

    def test_empty_leaf(self, tree):
        proof = dataclasses.replace(tree.prove(3), leaf=())
        assert not proof.verify(tree.root, HASHER)

    def test_sibling_out_of_range(self, tree):
        proof = tree.prove(3)
        bad = dataclasses.replace(proof, path=(1 << 256,) + proof.path[1:])
        assert not bad.verify(tree.root, HASHER)


class TestHasherRegistry:
    """Pluggable hash primitive."""

    def test_lookup(self):
        assert get_hasher('shake256').name == 'shake256'
        assert get_hasher('blake3').name == 'blake3'

    def test_unknown(self):
        from sigstark.errors import ConfigurationError
        with pytest.raises(ConfigurationError):
            get_hasher('md5')

    def test_length_prefixing(self):
        """Moving a byte between parts changes the digest."""
        from sigstark.tags import StarkTag
        assert HASHER.hash(StarkTag.SEED, b'ab', b'c') != HASHER.hash(StarkTag.SEED, b'a', b'bc')
        assert len(HASHER.hash(StarkTag.SEED, b'x')) == 32
