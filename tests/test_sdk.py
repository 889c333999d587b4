from chaintrack_api.merkle import build_tree, hash_leaf
from chaintrack_sdk.verify import verify_proof, verify_root


def test_verify_proof_record():
    tree = build_tree(["u1", "u2", "u3", "u4"])
    rec = tree.get_proof("u3").to_dict()
    assert verify_proof(rec)
    assert verify_proof(rec, item="u3")
    assert not verify_proof(rec, item="u4")


def test_verify_proof_never_raises():
    rec = build_tree(["u1", "u2"]).get_proof("u1").to_dict()
    assert not verify_proof({})
    assert not verify_proof(None)
    assert not verify_proof(dict(rec, root="0x00"))
    assert not verify_proof(dict(rec, proof="0x" + "0" * 64))
    assert not verify_proof(dict(rec, leaf=hash_leaf("u9")))


def test_verify_root_requires_matching_ledger_root():
    tree = build_tree(["u1", "u2", "u3"])
    rec = tree.get_proof("u2").to_dict()
    assert verify_root(rec, tree.root)
    assert not verify_root(rec, build_tree(["u1"]).root)
