from __future__ import annotations
from typing import Optional, Dict, List
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ConfigDict

from .crypto import is_digest
from .merkle import InclusionProof

_BATCH_CODE_PATTERN = r"^[A-Za-z0-9_.-]+$"


def _check_digest(v):
    if not is_digest(v):
        raise ValueError("digest must be 0x + 64 lowercase hex chars")
    return v


class ProofModel(BaseModel):
    """Wire form of an inclusion proof: exactly {leaf, proof[], root}."""

    model_config = ConfigDict(strict=True, extra="forbid")

    leaf: str
    proof: List[str] = Field(default_factory=list)
    root: str

    @field_validator("leaf", "root")
    @classmethod
    def _digest(cls, v):
        return _check_digest(v)

    @field_validator("proof")
    @classmethod
    def _digests(cls, v):
        for d in v:
            _check_digest(d)
        return v

    def to_proof(self) -> InclusionProof:
        return InclusionProof(leaf=self.leaf, proof=tuple(self.proof), root=self.root)

    @classmethod
    def from_proof(cls, p: InclusionProof) -> "ProofModel":
        return cls(leaf=p.leaf, proof=list(p.proof), root=p.root)


class ProductItem(BaseModel):
    """One physical unit of a batch; hashed via its canonical string."""

    id: str
    code: str
    type: str
    timestamp: int

    def canonical(self) -> str:
        return f"{self.id}|{self.code}|{self.type}|{self.timestamp}"


class BatchCommitment(BaseModel):
    batch_code: str = Field(pattern=_BATCH_CODE_PATTERN)
    product_type: str
    merkle_root: str
    item_count: int
    created_at: str
    items: List[str] = Field(default_factory=list)
    proofs: Dict[str, ProofModel] = Field(default_factory=dict)
    tx_hash: Optional[str] = None

    @field_validator("merkle_root")
    @classmethod
    def _root(cls, v):
        return _check_digest(v)


class CreateBatchRequest(BaseModel):
    """Batch creation input; either explicit items or a count of generated codes."""

    model_config = ConfigDict(extra="forbid")

    batch_code: str = Field(pattern=_BATCH_CODE_PATTERN, max_length=128)
    product_type: str = Field(min_length=1)
    items: Optional[List[str]] = None
    item_count: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _items_or_count(self):
        if (self.items is None) == (self.item_count is None):
            raise ValueError("provide exactly one of items or item_count")
        return self


class BatchSummary(BaseModel):
    batch_code: str
    product_type: str
    merkle_root: str
    item_count: int
    created_at: str
    tx_hash: Optional[str] = None


class VerifyProofRequest(BaseModel):
    proof: ProofModel
    item: Optional[str] = None


class VerifyItemRequest(BaseModel):
    item: str
    proof: Optional[ProofModel] = None


class VerificationResult(BaseModel):
    status: str  # verified | not_verified | pending
    local_valid: bool
    onchain_root: Optional[str] = None
    onchain_root_matches: Optional[bool] = None
    onchain_valid: Optional[bool] = None
    detail: Optional[str] = None

    @property
    def verified(self) -> bool:
        return self.status == "verified"


class AnchorRequest(BaseModel):
    """Hash of the ledger transaction that submitted the batch root."""

    tx_hash: str

    @field_validator("tx_hash")
    @classmethod
    def _tx(cls, v):
        return _check_digest(v)
