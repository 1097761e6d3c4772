"""
Custom exception classes for the pending transaction tracker
"""

class TrackerError(Exception):
    """Base exception for tracker operations"""
    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or "TRACKER_ERROR"

class ConfigurationError(TrackerError):
    """Tracker constructed without a required collaborator"""
    def __init__(self, message: str):
        super().__init__(message, "CONFIG_ERROR")

class NoTxHashError(TrackerError):
    """A submitted transaction has no network hash"""
    def __init__(self, message: str = "We had an error while submitting this transaction, please try again."):
        super().__init__(message, "NO_TX_HASH")
        self.name = "NoTxHashError"

class LedgerQueryError(TrackerError):
    """Transient failure while querying the ledger"""
    def __init__(self, message: str):
        super().__init__(message, "LEDGER_QUERY_ERROR")

class NonceLockError(TrackerError):
    """Invalid use of a nonce lock handle"""
    def __init__(self, message: str = "Nonce lock already released"):
        super().__init__(message, "NONCE_LOCK_ERROR")
