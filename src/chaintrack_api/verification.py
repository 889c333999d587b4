from __future__ import annotations
import logging
from typing import Optional

from .errors import LedgerUnavailable
from .ledger import LedgerClient
from .merkle import InclusionProof, hash_leaf, verify
from .models import VerificationResult

"""Consumer-facing authenticity check for a single item.

Local proof verification first, then (optionally) the ledger:
- root not on chain yet, or ledger unreachable -> "pending" (retry later)
- on-chain root differs from the proof's root -> "not_verified"
- otherwise the contract's own verifyMerkleProof view must agree.
"""

logger = logging.getLogger(__name__)

VERIFIED = "verified"
NOT_VERIFIED = "not_verified"
PENDING = "pending"


def verify_item(
    item: str,
    proof: InclusionProof,
    ledger: Optional[LedgerClient] = None,
    batch_code: Optional[str] = None,
    expected_root: Optional[str] = None,
) -> VerificationResult:
    """Raises FormatError for malformed digests; never for a mismatch.

    ``expected_root`` is the root stored for the batch; a proof for any other
    root is rejected even if it is internally consistent.
    """
    local_ok = verify(proof) and hash_leaf(item) == proof.leaf
    if not local_ok:
        return VerificationResult(
            status=NOT_VERIFIED, local_valid=False, detail="proof does not match item"
        )
    if expected_root is not None and proof.root != expected_root:
        return VerificationResult(
            status=NOT_VERIFIED,
            local_valid=False,
            detail="proof root does not match stored batch root",
        )
    if ledger is None:
        return VerificationResult(status=VERIFIED, local_valid=True)
    if not batch_code:
        raise ValueError("batch_code is required for on-chain verification")

    try:
        onchain_root = ledger.get_batch_merkle_root(batch_code)
    except LedgerUnavailable as e:
        logger.warning("ledger unavailable while verifying batch %s: %s", batch_code, e)
        return VerificationResult(status=PENDING, local_valid=True, detail="ledger unavailable")
    if onchain_root is None:
        return VerificationResult(
            status=PENDING, local_valid=True, detail="root not yet confirmed on ledger"
        )
    if onchain_root != proof.root:
        logger.info("batch %s: on-chain root differs from proof root", batch_code)
        return VerificationResult(
            status=NOT_VERIFIED,
            local_valid=True,
            onchain_root=onchain_root,
            onchain_root_matches=False,
            detail="on-chain root does not match proof root",
        )

    try:
        onchain_ok = ledger.verify_merkle_proof(batch_code, proof.leaf, proof.proof)
    except LedgerUnavailable as e:
        logger.warning("ledger unavailable during proof check for %s: %s", batch_code, e)
        return VerificationResult(
            status=PENDING,
            local_valid=True,
            onchain_root=onchain_root,
            onchain_root_matches=True,
            detail="ledger unavailable",
        )
    return VerificationResult(
        status=VERIFIED if onchain_ok else NOT_VERIFIED,
        local_valid=True,
        onchain_root=onchain_root,
        onchain_root_matches=True,
        onchain_valid=onchain_ok,
        detail=None if onchain_ok else "contract rejected proof",
    )
