"""Exceptions raised by the scanning pipeline"""


class PolyscanError(Exception):
    """Base class for all polyscan errors"""


class TransportError(PolyscanError):
    """Network, HTTP or JSON-RPC failure while talking to the chain"""

    def __init__(self, method: str, cause: Exception):
        self.method = method
        self.cause = cause
        super().__init__(f"{method} failed: {str(cause)[:200]}")


class ReceiptNotFoundError(PolyscanError, LookupError):
    """A transaction receipt required by the caller does not exist"""

    def __init__(self, tx_hash: str):
        self.tx_hash = tx_hash
        super().__init__(f"Transaction receipt not found: {tx_hash}")


class MalformedLogError(PolyscanError, ValueError):
    """A log does not carry enough topics or data for its event shape"""
