import pytest

from chaintrack_api.crypto import keccak256, to_hex
from chaintrack_api.errors import FormatError, InputError
from chaintrack_api.merkle import (
    InclusionProof,
    MerkleTree,
    build_tree,
    hash_leaf,
    hash_pair,
    verify,
)


def test_leaf_hash_is_keccak256_of_utf8():
    assert hash_leaf("") == "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    assert hash_leaf("abc") == "0x4e03657aea45a94fc7d47ba826c8d667c0d1e6e33a64a036ec44f58fa12d6c45"
    assert hash_leaf("ü") == to_hex(keccak256("ü".encode("utf-8")))


def test_digest_wire_format():
    d = hash_leaf("P1")
    assert len(d) == 66
    assert d.startswith("0x")
    assert d == d.lower()


def test_pair_hash_sorts_before_hashing():
    a, b = hash_leaf("a"), hash_leaf("b")
    assert hash_pair(a, b) == hash_pair(b, a)
    lo, hi = sorted([bytes.fromhex(a[2:]), bytes.fromhex(b[2:])])
    assert hash_pair(a, b) == to_hex(keccak256(lo + hi))


def test_merkle_basic():
    items = [f"leaf-{i}" for i in range(5)]
    tree = MerkleTree.from_items(items)
    assert tree.root
    proof = tree.get_proof("leaf-2")
    assert verify(proof)


def test_concrete_three_item_scenario():
    tree = build_tree(["P1", "P2", "P3"])
    h1, h2, h3 = hash_leaf("P1"), hash_leaf("P2"), hash_leaf("P3")
    assert tree.get_leaves() == [h1, h2, h3]
    layer1 = [hash_pair(h1, h2), hash_pair(h3, h3)]
    root = hash_pair(layer1[0], layer1[1])
    assert tree.get_root() == root

    p = tree.get_proof("P2")
    assert p.leaf == h2
    assert list(p.proof) == [h1, layer1[1]]
    assert p.root == root
    assert verify(p)


def test_root_is_deterministic():
    items = ["A-1", "A-2", "A-3", "A-4", "A-5", "A-6", "A-7"]
    assert build_tree(items).root == build_tree(list(items)).root


@pytest.mark.parametrize("n", [1, 2, 3, 4, 5, 6, 7, 8, 9, 17])
def test_every_item_proof_verifies(n):
    items = [f"BATCH-ITEM-{i:05d}" for i in range(n)]
    tree = build_tree(items)
    for item in items:
        p = tree.get_proof(item)
        assert len(p.proof) == tree.depth
        assert verify(p)


def test_odd_node_pairs_with_itself_at_every_level():
    items = ["i0", "i1", "i2", "i3", "i4"]
    h = [hash_leaf(x) for x in items]
    tree = build_tree(items)
    l1 = [hash_pair(h[0], h[1]), hash_pair(h[2], h[3]), hash_pair(h[4], h[4])]
    l2 = [hash_pair(l1[0], l1[1]), hash_pair(l1[2], l1[2])]
    assert tree.root == hash_pair(l2[0], l2[1])
    assert list(tree.get_proof("i4").proof) == [h[4], l1[2], l2[0]]


def test_single_item_root_is_leaf():
    tree = build_tree(["a"])
    assert tree.root == hash_leaf("a")
    p = tree.get_proof("a")
    assert p.proof == ()
    assert verify(p)


def test_empty_input_rejected():
    with pytest.raises(InputError):
        build_tree([])


def test_missing_item_rejected():
    tree = build_tree(["P1", "P2"])
    with pytest.raises(InputError):
        tree.get_proof("not-present")


def test_tampered_item_fails_verification():
    tree = build_tree(["P1", "P2", "P3"])
    p = tree.get_proof("P2")
    forged = InclusionProof(leaf=hash_leaf("P2x"), proof=p.proof, root=p.root)
    assert verify(forged) is False
    bad_sibling = list(p.proof)
    bad_sibling[0] = hash_leaf("P9")
    assert verify(InclusionProof(leaf=p.leaf, proof=tuple(bad_sibling), root=p.root)) is False


def test_reordering_changes_root():
    # pairs (a,b),(c,d) versus (a,c),(b,d): different tree shape
    assert build_tree(["a", "b", "c", "d"]).root != build_tree(["a", "c", "b", "d"]).root
    # swapping within a pair is invisible because pair hashing sorts
    assert build_tree(["a", "b", "c", "d"]).root == build_tree(["b", "a", "c", "d"]).root


def test_duplicate_items_first_match_and_explicit_index():
    tree = build_tree(["x", "y", "x"])
    first = tree.get_proof("x")
    assert first == tree.proof_at(0)
    last = tree.proof_at(2)
    assert last.leaf == first.leaf
    assert last.proof != first.proof
    assert verify(last)
    with pytest.raises(InputError):
        tree.proof_at(3)
    with pytest.raises(InputError):
        tree.proof_at(-1)


@pytest.mark.parametrize(
    "leaf",
    [
        "0x1234",
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470",
        "0xC5D2460186F7233C927E7DB2DCC703C0E500B653CA82273B7BFAD8045D85A470",
        "0x" + "zz" * 32,
        None,
    ],
)
def test_malformed_digest_raises_format_error(leaf):
    root = hash_leaf("a")
    with pytest.raises(FormatError):
        verify(InclusionProof(leaf=leaf, proof=(), root=root))


def test_verify_accepts_persisted_dict():
    p = build_tree(["P1", "P2", "P3"]).get_proof("P3")
    assert verify(p.to_dict())
    with pytest.raises(FormatError):
        verify({"leaf": p.leaf, "root": p.root})


def test_from_items_rejects_bare_string():
    with pytest.raises(InputError):
        MerkleTree.from_items("abc")
