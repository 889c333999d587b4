"""Inclusion proof fuzzing with mutated proofs and malformed digests."""
from __future__ import annotations
import atheris
import sys
import random

with atheris.instrument_imports():
    from chaintrack_api.errors import FormatError
    from chaintrack_api.merkle import InclusionProof, MerkleTree, verify


def TestOneInput(data: bytes):  # noqa: N802
    if len(data) < 8:
        return
    seed = int.from_bytes(data[:4], 'little')
    random.seed(seed)
    chunk_len = 1 + (data[4] % 32)
    body = data[5:]
    items = [
        body[i:i + chunk_len].decode("latin-1")
        for i in range(0, min(len(body), chunk_len * 16), chunk_len)
    ]
    if len(set(items)) < 3:
        return
    tree = MerkleTree.from_items(items)
    idx = seed % len(items)
    proof = tree.proof_at(idx)
    siblings = list(proof.proof)
    r = random.random()
    if r < 0.2:
        # flip one bit of one sibling; must be rejected
        pos = random.randrange(len(siblings))
        raw = bytearray(bytes.fromhex(siblings[pos][2:]))
        raw[0] ^= 0x01
        siblings[pos] = "0x" + raw.hex()
        if verify(InclusionProof(proof.leaf, tuple(siblings), proof.root)):
            raise RuntimeError("tampered proof unexpectedly verified")
    elif r < 0.3:
        try:
            verify(InclusionProof(proof.leaf.upper(), proof.proof, proof.root))
        except FormatError:
            pass
        else:
            raise RuntimeError("malformed digest accepted")
    elif not verify(proof):
        raise RuntimeError("valid proof failed")


def main():
    atheris.Setup(sys.argv, TestOneInput, enable_python_coverage=True)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
