from __future__ import annotations
import re

from eth_utils import keccak

from .errors import FormatError

DIGEST_PREFIX = "0x"
DIGEST_LEN = 32
ZERO_HASH = DIGEST_PREFIX + "00" * DIGEST_LEN

_DIGEST_RE = re.compile(r"^0x[0-9a-f]{64}$")


def keccak256(data: bytes) -> bytes:
    return keccak(data)


def to_hex(b: bytes) -> str:
    """Render a 32-byte digest in the contract's bytes32 wire form."""
    if len(b) != DIGEST_LEN:
        raise FormatError(f"digest must be {DIGEST_LEN} bytes, got {len(b)}")
    return DIGEST_PREFIX + b.hex()


def from_hex(s: str) -> bytes:
    """Decode a wire digest with strict validation (prefix, case, length)."""
    if not isinstance(s, str) or not _DIGEST_RE.match(s):
        raise FormatError("malformed digest: expected 0x + 64 lowercase hex chars")
    return bytes.fromhex(s[2:])


def is_digest(s) -> bool:
    return isinstance(s, str) and bool(_DIGEST_RE.match(s))
