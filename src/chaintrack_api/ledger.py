"""Read-only client for the supply-chain contract's Merkle views.

Only ``eth_call`` is used; submitting roots requires a wallet signer and
happens outside this service.
"""
from __future__ import annotations
import itertools
import logging
from typing import Any, Optional, Sequence

import requests
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address

from .crypto import ZERO_HASH, from_hex, to_hex
from .errors import ExecutionReverted, LedgerError, LedgerUnavailable
from .settings import get_settings

logger = logging.getLogger(__name__)

GET_BATCH_MERKLE_ROOT = "getBatchMerkleRoot(string)"
VERIFY_MERKLE_PROOF = "verifyMerkleProof(string,bytes32,bytes32[])"

_RETRYABLE_STATUS = {429, 502, 503, 504}


def normalize_address(address: str) -> str:
    """Checksummed form of an address; ValueError if missing or invalid."""
    if not address:
        raise ValueError("address missing")
    if not is_address(address):
        raise ValueError(f"invalid address: {address}")
    return to_checksum_address(address)


def safe_normalize_address(address: str) -> Optional[str]:
    try:
        return normalize_address(address)
    except ValueError:
        return None


def explorer_url(value: str, kind: str = "tx", base_url: Optional[str] = None) -> str:
    if kind not in ("tx", "address"):
        raise ValueError("kind must be 'tx' or 'address'")
    base = (base_url or get_settings().explorer_url).rstrip("/")
    return f"{base}/{kind}/{value}"


def format_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


class LedgerClient:
    def __init__(
        self,
        rpc_url: Optional[str] = None,
        contract_address: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        s = get_settings()
        self.rpc_url = rpc_url if rpc_url is not None else s.rpc_url
        if not self.rpc_url:
            raise ValueError("ledger RPC URL not configured")
        self.contract_address = normalize_address(contract_address or s.contract_address)
        self.timeout = timeout if timeout is not None else s.rpc_timeout_seconds
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    def _rpc(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning("ledger rpc %s unreachable: %s", method, e)
            raise LedgerUnavailable(f"ledger unreachable: {e}") from e
        if resp.status_code in _RETRYABLE_STATUS:
            raise LedgerUnavailable(f"ledger returned HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise LedgerError(f"ledger returned HTTP {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as e:
            raise LedgerError("ledger returned a non-JSON response") from e
        if not isinstance(body, dict):
            raise LedgerError("rpc response is not a JSON object")
        err = body.get("error")
        if err:
            msg = err.get("message", "") if isinstance(err, dict) else str(err)
            if "revert" in msg.lower():
                raise ExecutionReverted(msg)
            raise LedgerError(f"rpc error: {msg}")
        if "result" not in body:
            raise LedgerError("rpc response missing result")
        return body["result"]

    def _call(self, signature: str, arg_types: Sequence[str], args: Sequence[Any]) -> bytes:
        data = function_signature_to_4byte_selector(signature) + encode(list(arg_types), list(args))
        result = self._rpc(
            "eth_call",
            [{"to": self.contract_address, "data": "0x" + data.hex()}, "latest"],
        )
        if not isinstance(result, str) or not result.startswith("0x"):
            raise LedgerError("malformed eth_call result")
        try:
            raw = bytes.fromhex(result[2:])
        except ValueError as e:
            raise LedgerError("eth_call result is not hex") from e
        if not raw:
            # no code at address, or a revert without reason on some nodes
            raise ExecutionReverted("empty eth_call result")
        return raw

    @staticmethod
    def _decode(types: Sequence[str], raw: bytes) -> tuple:
        try:
            return decode(list(types), raw)
        except DecodingError as e:
            raise LedgerError(f"cannot decode eth_call result: {e}") from e

    def get_batch_merkle_root(self, batch_code: str) -> Optional[str]:
        """Root committed for ``batch_code``, or None if not on the ledger yet."""
        try:
            raw = self._call(GET_BATCH_MERKLE_ROOT, ["string"], [batch_code])
        except ExecutionReverted:
            logger.info("no on-chain batch %s", batch_code)
            return None
        (root,) = self._decode(["bytes32"], raw)
        root_hex = to_hex(root)
        if root_hex == ZERO_HASH:
            return None
        return root_hex

    def verify_merkle_proof(self, batch_code: str, leaf: str, proof: Sequence[str]) -> bool:
        """Contract-side verification against the root stored on-chain."""
        args = [batch_code, from_hex(leaf), [from_hex(p) for p in proof]]
        try:
            raw = self._call(VERIFY_MERKLE_PROOF, ["string", "bytes32", "bytes32[]"], args)
        except ExecutionReverted:
            return False
        (ok,) = self._decode(["bool"], raw)
        return bool(ok)

    def chain_id(self) -> int:
        return int(self._rpc("eth_chainId", []), 16)
