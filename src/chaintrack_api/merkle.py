"""Merkle commitment over a batch's item identifiers.

Leaves are keccak256(utf8(item)). Parents are keccak256 of the two children
sorted by byte value, so a verifier never needs left/right flags. A dangling
node at the end of an odd layer is paired with itself. These rules match the
on-chain verifier bit for bit and must not change.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .crypto import keccak256, to_hex, from_hex
from .errors import FormatError, InputError


def _leaf(item: str) -> bytes:
    return keccak256(item.encode("utf-8"))


def _pair(a: bytes, b: bytes) -> bytes:
    if b < a:
        a, b = b, a
    return keccak256(a + b)


def hash_leaf(item: str) -> str:
    """Leaf digest for one item identifier, in wire form."""
    return to_hex(_leaf(item))


def hash_pair(left: str, right: str) -> str:
    """Parent digest of two wire digests (order-insensitive)."""
    return to_hex(_pair(from_hex(left), from_hex(right)))


@dataclass(frozen=True)
class InclusionProof:
    leaf: str
    proof: Tuple[str, ...] = field(default_factory=tuple)
    root: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"leaf": self.leaf, "proof": list(self.proof), "root": self.root}

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "InclusionProof":
        try:
            leaf, proof, root = obj["leaf"], obj["proof"], obj["root"]
        except (KeyError, TypeError) as e:
            raise FormatError("malformed proof: expected leaf, proof and root") from e
        if isinstance(proof, (str, bytes)) or not isinstance(proof, Sequence):
            raise FormatError("malformed proof: proof must be a list of digests")
        return cls(leaf=leaf, proof=tuple(proof), root=root)


@dataclass(frozen=True)
class MerkleTree:
    leaves: Tuple[bytes, ...]
    levels: Tuple[Tuple[bytes, ...], ...]  # level 0 = leaves, last = (root,)

    @classmethod
    def from_leaves(cls, leaves: Sequence[bytes]) -> "MerkleTree":
        if not leaves:
            raise InputError("cannot build tree with no leaves")
        lvl = tuple(leaves)
        levels = [lvl]
        while len(lvl) > 1:
            nxt = []
            for i in range(0, len(lvl), 2):
                a = lvl[i]
                b = lvl[i + 1] if i + 1 < len(lvl) else lvl[i]  # self-pair if odd
                nxt.append(_pair(a, b))
            lvl = tuple(nxt)
            levels.append(lvl)
        return cls(tuple(leaves), tuple(levels))

    @classmethod
    def from_items(cls, items: Sequence[str]) -> "MerkleTree":
        """Build the tree for an ordered list of item identifiers."""
        if isinstance(items, str):
            raise InputError("items must be a list of strings, not a string")
        return cls.from_leaves([_leaf(item) for item in items])

    @property
    def root(self) -> str:
        return to_hex(self.levels[-1][0])

    def get_root(self) -> str:
        return self.root

    @property
    def depth(self) -> int:
        """Number of levels below the root (= proof length)."""
        return len(self.levels) - 1

    def __len__(self) -> int:
        return len(self.leaves)

    def get_leaves(self) -> List[str]:
        return [to_hex(leaf) for leaf in self.leaves]

    def index_of(self, item: str) -> int:
        """First leaf index whose hash matches ``item``."""
        target = _leaf(item)
        try:
            return self.leaves.index(target)
        except ValueError:
            raise InputError("leaf not found in tree") from None

    def proof_at(self, index: int) -> InclusionProof:
        """Proof for the leaf at ``index``; one sibling per level, bottom to top."""
        if not 0 <= index < len(self.leaves):
            raise InputError(f"leaf index {index} out of range")
        proof = []
        idx = index
        for level in self.levels[:-1]:
            sibling_idx = idx - 1 if idx % 2 == 1 else idx + 1
            if sibling_idx < len(level):
                proof.append(to_hex(level[sibling_idx]))
            else:
                proof.append(to_hex(level[idx]))
            idx //= 2
        return InclusionProof(
            leaf=to_hex(self.leaves[index]), proof=tuple(proof), root=self.root
        )

    def get_proof(self, item: str) -> InclusionProof:
        """Proof for the first occurrence of ``item``."""
        return self.proof_at(self.index_of(item))


def build_tree(items: Sequence[str]) -> MerkleTree:
    return MerkleTree.from_items(items)


def verify(proof: InclusionProof) -> bool:
    """Recompute the root from leaf and siblings; False on mismatch.

    Raises FormatError if any digest is malformed.
    """
    if isinstance(proof, Mapping):
        proof = InclusionProof.from_dict(proof)
    h = from_hex(proof.leaf)
    root = from_hex(proof.root)
    for sibling in proof.proof:
        h = _pair(h, from_hex(sibling))
    return h == root
