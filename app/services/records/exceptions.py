"""
Record Source Domain Exceptions
"""


class RecordServiceError(Exception):
    """Base exception for record source errors"""
    pass


class RecordSourceUnavailableError(RecordServiceError):
    """Raised when a record kind cannot be loaded; that kind is skipped this cycle"""

    def __init__(self, kind: str, reason: str = ""):
        self.kind = kind
        self.reason = reason
        if reason:
            super().__init__(f"Records of kind '{kind}' unavailable: {reason}")
        else:
            super().__init__(f"Records of kind '{kind}' unavailable")
