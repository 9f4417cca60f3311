"""
Sent-Notification Ledger Exceptions
"""


class LedgerServiceError(Exception):
    """Base exception for ledger errors"""
    pass


class LedgerPersistenceError(LedgerServiceError):
    """Raised when the ledger cannot be loaded or written; aborts the current cycle"""
    pass
