"""
Chunked upload with progress reporting.
"""

from .models import (
    SourceUnreadable,
    TransferFailed,
    UploadError,
    UploadSession,
    UploadSummary,
)
from .pipeline import DEFAULT_CHUNK_SIZE, ChunkedObjectWriter, ProgressSink, upload

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "ChunkedObjectWriter",
    "ProgressSink",
    "SourceUnreadable",
    "TransferFailed",
    "UploadError",
    "UploadSession",
    "UploadSummary",
    "upload",
]
