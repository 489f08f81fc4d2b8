"""
Models for chunked uploads.

An UploadSession is the mutable state of one upload in flight. It belongs
to a single pipeline call and is thrown away when that call returns.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class UploadError(Exception):
    """Base class for upload failures."""
    pass


class SourceUnreadable(UploadError):
    """
    The local file could not be opened, sized, or read.

    A local problem: retrying the same command will not help until the
    file itself is fixed.
    """

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read '{path}': {reason}")


class TransferFailed(UploadError):
    """
    A chunk could not be sent to the remote store.

    The upload is aborted at the failing chunk. Re-running the command
    starts over from the first byte and overwrites the destination.
    """

    def __init__(self, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"Transfer failed: {cause}")


@dataclass
class UploadSession:
    """
    Progress of one upload.

    bytes_sent only ever grows, and never past total_size.
    """
    source_path: Path
    destination_key: str
    total_size: int
    chunk_size: int
    bytes_sent: int = 0
    chunks_sent: int = 0

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be a positive integer")
        if self.total_size < 0:
            raise ValueError("Total size cannot be negative")

    def advance(self, chunk_length: int) -> None:
        """Record one acknowledged chunk."""
        if chunk_length < 0:
            raise ValueError("Chunk length cannot be negative")
        if self.bytes_sent + chunk_length > self.total_size:
            raise ValueError("Cannot send more bytes than the source holds")
        self.bytes_sent += chunk_length
        self.chunks_sent += 1

    @property
    def is_complete(self) -> bool:
        return self.bytes_sent == self.total_size

    @property
    def fraction_complete(self) -> float:
        if self.total_size == 0:
            return 1.0
        return self.bytes_sent / self.total_size


@dataclass(frozen=True)
class UploadSummary:
    """What a finished upload reports back."""
    bytes_sent: int
    destination_key: str
    bucket: str
    chunks_sent: int = 0
    content_type: Optional[str] = None
