"""
Errors shared between the core and the storage adapter.

The adapter raises ApiError for every remote failure; the core catches it
where a failure needs a different meaning (e.g. a failed chunk becomes a
TransferFailed upload error). Keeping it here means the core never
imports boto3 to recognise a remote failure.
"""

from typing import Optional


class ApiError(Exception):
    """
    A remote call failed.

    Carries the service's own error code and message unchanged, plus the
    operation name so the user can tell which call failed.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        code: Optional[str] = None,
    ) -> None:
        self.operation = operation
        self.code = code
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.code:
            return f"{self.code}: {self.message}"
        return self.message
