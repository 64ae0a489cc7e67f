"""Ledger anchoring errors."""

from clausebase_api.errors import DependencyFailure


class LedgerAnchorError(DependencyFailure):
    """Base error for proof anchoring failures."""


class SignerNotConfigured(LedgerAnchorError):
    """No usable signer credential is available."""


class LedgerNetworkError(LedgerAnchorError):
    """Ledger could not be reached within the timeout."""


class RejectedByLedger(LedgerAnchorError):
    """Ledger refused the proof record."""
