"""
Ledger exception hierarchy.

    LedgerError
    ├── ValidationError      bad input, rejected before any write
    ├── StorageError         database failure, whole effect rolled back
    └── InvariantViolation   a defect: balances no longer sum to zero
"""


class LedgerError(Exception):
    """Base exception for ledger operations"""
    pass


class ValidationError(LedgerError):
    """Raised when a transaction is rejected before touching the ledger"""
    pass


class StorageError(LedgerError):
    """Raised when the database fails while applying an effect (retryable)"""
    pass


class InvariantViolation(LedgerError):
    """Raised when ledger state breaks the zero-sum rule. Never repaired silently."""
    pass
