"""Fuzz harness for Merkle tree construction & inclusion proof verification."""
from __future__ import annotations
import atheris
import sys

with atheris.instrument_imports():
    from chaintrack_api.errors import InputError
    from chaintrack_api.merkle import MerkleTree, verify


def TestOneInput(data: bytes):  # noqa: N802
    if not data:
        return
    fdp = atheris.FuzzedDataProvider(data)
    # bounded item count keeps each run linear
    count = fdp.ConsumeIntInRange(1, 64)
    items = [fdp.ConsumeUnicodeNoSurrogates(12) for _ in range(count)]
    try:
        tree = MerkleTree.from_items(items)
    except InputError:
        return
    idx = fdp.ConsumeIntInRange(0, len(items) - 1)
    proof = tree.proof_at(idx)
    if len(proof.proof) != tree.depth:
        raise RuntimeError("proof length differs from tree depth")
    if not verify(proof):
        raise RuntimeError("valid inclusion proof failed")
    if tree.get_proof(items[idx]).leaf != proof.leaf:
        raise RuntimeError("first-match proof has a different leaf")


def main():
    atheris.Setup(sys.argv, TestOneInput, enable_python_coverage=True)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
