from __future__ import annotations


class InputError(ValueError):
    """Caller supplied input the engine cannot build or prove from."""


class FormatError(ValueError):
    """A digest string is not 0x-prefixed, lowercase, 32-byte hex."""


class LedgerError(RuntimeError):
    """The ledger RPC endpoint returned an error for a view call."""


class LedgerUnavailable(LedgerError):
    """Transient ledger failure (unreachable, timeout, bad gateway); retryable."""


class ExecutionReverted(LedgerError):
    """The contract reverted the view call (e.g. unknown batch code)."""
