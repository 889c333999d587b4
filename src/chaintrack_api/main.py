from __future__ import annotations
import datetime
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query

from .settings import settings, get_settings
from .logutil import setup_logging
from .errors import FormatError, InputError, LedgerError
from .batches import (
    commit_batch,
    generate_item_codes,
    load_commitment,
    proof_for_item,
    record_anchor,
    save_commitment,
    verify_product_in_batch,
)
from .ledger import LedgerClient
from .merkle import verify
from .models import (
    AnchorRequest,
    BatchSummary,
    CreateBatchRequest,
    ProofModel,
    VerificationResult,
    VerifyItemRequest,
    VerifyProofRequest,
)
from .verification import verify_item
from .middleware.size_limit import SizeLimitMiddleware

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="ChainTrack Merkle Service")
app.add_middleware(SizeLimitMiddleware)


def get_ledger() -> Optional[LedgerClient]:
    """Ledger client for on-chain checks, or None when disabled/unconfigured."""
    s = get_settings()
    if not s.onchain_verify or not s.rpc_url:
        return None
    try:
        return LedgerClient(s.rpc_url, s.contract_address, s.rpc_timeout_seconds)
    except ValueError as e:
        logger.error("ledger client misconfigured: %s", e)
        raise HTTPException(status_code=503, detail=f"ledger misconfigured: {e}")


def _load(batch_code: str):
    try:
        return load_commitment(batch_code)
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="unknown batch")


def _summary(c) -> BatchSummary:
    return BatchSummary(**c.model_dump(include=set(BatchSummary.model_fields)))


@app.get("/healthz")
async def healthz():
    return {"ok": True, "ts": datetime.datetime.now(datetime.timezone.utc).isoformat()}


@app.post("/batches", status_code=201)
def create_batch(req: CreateBatchRequest) -> BatchSummary:
    s = get_settings()
    try:
        load_commitment(req.batch_code)
    except FileNotFoundError:
        pass
    else:
        # a committed root is immutable; a changed item set needs a new batch
        raise HTTPException(status_code=409, detail="batch already exists")
    try:
        if req.items is not None:
            items = req.items
        else:
            if req.item_count > s.max_batch_items:
                raise InputError(f"batch exceeds {s.max_batch_items} items")
            items = generate_item_codes(req.batch_code, req.item_count)
        commitment = commit_batch(
            req.batch_code, req.product_type, items, max_items=s.max_batch_items
        )
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    save_commitment(commitment)
    logger.info("stored batch %s root %s", commitment.batch_code, commitment.merkle_root)
    return _summary(commitment)


@app.get("/batches/{batch_code}")
def get_batch(batch_code: str) -> BatchSummary:
    return _summary(_load(batch_code))


@app.get("/batches/{batch_code}/proof")
def get_item_proof(batch_code: str, item: str = Query(...)) -> ProofModel:
    c = _load(batch_code)
    try:
        return ProofModel.from_proof(proof_for_item(c, item))
    except InputError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/batches/{batch_code}/anchor")
def anchor_batch(batch_code: str, req: AnchorRequest) -> BatchSummary:
    """Record the transaction that submitted this batch root to the ledger."""
    _load(batch_code)
    try:
        return _summary(record_anchor(batch_code, req.tx_hash))
    except InputError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.post("/proofs/verify")
def verify_proof(req: VerifyProofRequest):
    """Standalone verification; needs neither the batch nor the ledger."""
    proof = req.proof.to_proof()
    try:
        if req.item is not None:
            ok = verify_product_in_batch(req.item, proof)
        else:
            ok = verify(proof)
    except FormatError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"valid": ok}


@app.post("/batches/{batch_code}/verify")
def verify_batch_item(
    batch_code: str,
    req: VerifyItemRequest,
    ledger: Optional[LedgerClient] = Depends(get_ledger),
) -> VerificationResult:
    try:
        commitment = load_commitment(batch_code)
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileNotFoundError:
        # without a ledger there is no root to check the proof against
        if ledger is None or req.proof is None:
            raise HTTPException(status_code=404, detail="unknown batch")
        commitment = None
    if req.proof is not None:
        proof = req.proof.to_proof()
    else:
        try:
            proof = proof_for_item(commitment, req.item)
        except InputError:
            return VerificationResult(
                status="not_verified", local_valid=False, detail="item not found in batch"
            )
    expected_root = commitment.merkle_root if commitment is not None else None
    try:
        return verify_item(
            req.item, proof, ledger=ledger, batch_code=batch_code, expected_root=expected_root
        )
    except FormatError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except LedgerError as e:
        logger.error("ledger error verifying batch %s: %s", batch_code, e)
        raise HTTPException(status_code=502, detail="ledger error")
