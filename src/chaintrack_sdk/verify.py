from typing import Any, Dict, Optional

from chaintrack_api.errors import FormatError
from chaintrack_api.merkle import InclusionProof, hash_leaf, verify


def verify_proof(proof_json: Dict[str, Any], item: Optional[str] = None) -> bool:
    """Return True if the {leaf, proof, root} record reconstructs its root.

    When ``item`` is given the leaf must also be keccak256 of that item.
    Malformed records yield False instead of raising, so light clients can
    show "not verified" without special error handling.
    """
    try:
        proof = InclusionProof.from_dict(proof_json)
        ok = verify(proof)
    except FormatError:
        return False
    if item is not None:
        return ok and hash_leaf(item) == proof.leaf
    return ok


def verify_root(proof_json: Dict[str, Any], expected_root: str) -> bool:
    """As verify_proof, and the proof's root equals a root read from the ledger."""
    if not isinstance(proof_json, dict) or proof_json.get("root") != expected_root:
        return False
    return verify_proof(proof_json)
