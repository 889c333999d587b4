from __future__ import annotations
import datetime
import json
import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .crypto import is_digest
from .errors import InputError
from .merkle import InclusionProof, MerkleTree, hash_leaf, verify
from .models import BatchCommitment, ProductItem, ProofModel
from .settings import get_settings

logger = logging.getLogger(__name__)

_BATCH_CODE_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def _check_batch_code(batch_code: str) -> str:
    # batch codes become file names; no separators or traversal
    if not isinstance(batch_code, str) or not _BATCH_CODE_RE.match(batch_code):
        raise InputError(f"invalid batch code: {batch_code!r}")
    if batch_code in (".", ".."):
        raise InputError(f"invalid batch code: {batch_code!r}")
    return batch_code


def product_data_strings(products: Iterable[ProductItem]) -> List[str]:
    """Deterministic ``id|code|type|timestamp`` strings for each product."""
    return [p.canonical() for p in products]


def create_batch_tree(products: Iterable[ProductItem]) -> MerkleTree:
    return MerkleTree.from_items(product_data_strings(products))


def generate_item_codes(batch_code: str, count: int) -> List[str]:
    """One identifier per physical unit, e.g. ``OIL-2024-ITEM-00001``."""
    if count < 1:
        raise InputError("item count must be at least 1")
    return [f"{batch_code}-ITEM-{n:05d}" for n in range(1, count + 1)]


def commit_batch(
    batch_code: str,
    product_type: str,
    items: Sequence[str],
    max_items: Optional[int] = None,
) -> BatchCommitment:
    """Build the batch tree and derive one inclusion proof per item.

    The tree is discarded afterwards; only root and proofs are kept. For a
    repeated identifier the proof of its first occurrence is recorded.
    """
    _check_batch_code(batch_code)
    if isinstance(items, str):
        raise InputError("items must be a list of strings, not a string")
    if max_items is None:
        max_items = get_settings().max_batch_items
    if len(items) > max_items:
        raise InputError(f"batch exceeds {max_items} items")
    tree = MerkleTree.from_items(list(items))
    proofs = {}
    for idx, item in enumerate(items):
        if item in proofs:
            continue
        proofs[item] = ProofModel.from_proof(tree.proof_at(idx))
    if len(proofs) != len(items):
        logger.warning(
            "batch %s has %d duplicate item identifiers",
            batch_code,
            len(items) - len(proofs),
        )
    logger.info("built commitment for batch %s: %d items, root %s", batch_code, len(tree), tree.root)
    return BatchCommitment(
        batch_code=batch_code,
        product_type=product_type,
        merkle_root=tree.root,
        item_count=len(tree),
        created_at=_now_iso(),
        items=list(items),
        proofs=proofs,
    )


def _batches_dir() -> Path:
    return Path(get_settings().storage_dir) / "batches"


def save_commitment(commitment: BatchCommitment) -> Path:
    _check_batch_code(commitment.batch_code)
    out_dir = _batches_dir()
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{commitment.batch_code}.json"
    out_path.write_text(json.dumps(commitment.model_dump(), indent=2))
    return out_path


def load_commitment(batch_code: str) -> BatchCommitment:
    _check_batch_code(batch_code)
    path = _batches_dir() / f"{batch_code}.json"
    if not path.exists():
        raise FileNotFoundError(f"no commitment stored for batch {batch_code}")
    return BatchCommitment(**json.loads(path.read_text()))


def record_anchor(batch_code: str, tx_hash: str) -> BatchCommitment:
    """Attach the ledger transaction that committed the batch root.

    The anchor is set once; a different hash for an anchored batch is refused.
    """
    if not is_digest(tx_hash):
        raise InputError("tx hash must be 0x + 64 lowercase hex chars")
    commitment = load_commitment(batch_code)
    if commitment.tx_hash is not None and commitment.tx_hash != tx_hash:
        raise InputError(f"batch {batch_code} already anchored by {commitment.tx_hash}")
    commitment.tx_hash = tx_hash
    save_commitment(commitment)
    logger.info("batch %s anchored by tx %s", batch_code, tx_hash)
    return commitment


def proof_for_item(commitment: BatchCommitment, item: str) -> InclusionProof:
    try:
        return commitment.proofs[item].to_proof()
    except KeyError:
        raise InputError("item not found in batch") from None


def verify_product_in_batch(item: str, proof: InclusionProof) -> bool:
    """True iff ``proof`` is for ``item`` and reconstructs its root."""
    ok = verify(proof)
    return ok and hash_leaf(item) == proof.leaf
