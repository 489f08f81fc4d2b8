"""
Chunked upload pipeline.

Reads a local file as a bounded sequence of chunks and streams them,
in order, to an object writer. After each acknowledged chunk the
progress sink is called with (bytes_sent, total_size).

Failure semantics:
- Local problems (missing file, read error, file changing size while
  being read) raise SourceUnreadable.
- Remote problems raise TransferFailed wrapping the ApiError. Nothing is
  retried here; the caller re-runs the whole upload if it wants to.
"""

import logging
import mimetypes
import os
import stat
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Iterator, Optional, Protocol, Union

from ..errors import ApiError
from .models import SourceUnreadable, TransferFailed, UploadSession, UploadSummary

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024

ProgressSink = Callable[[int, int], None]


class ChunkedObjectWriter(Protocol):
    """
    The part of the storage client the pipeline needs.

    Implementations must send chunks in the order the iterable yields
    them, call on_chunk_sent(len(chunk)) once each chunk has been
    acknowledged, stop at the first failure, and raise ApiError for remote
    failures. total_size, when given, is the number of bytes the chunks
    add up to; writers may use it to size their requests.
    """

    def put_object_chunked(
        self,
        bucket: str,
        key: str,
        chunks: Iterable[bytes],
        content_type: Optional[str] = None,
        on_chunk_sent: Optional[Callable[[int], None]] = None,
        total_size: Optional[int] = None,
    ) -> None:
        ...


def guess_content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or "application/octet-stream"


def iter_chunks(
    handle: BinaryIO,
    chunk_size: int,
    total_size: int,
    path: Path,
) -> Iterator[bytes]:
    """
    Yield successive chunks of at most chunk_size bytes.

    Stops once total_size bytes have been read. Raises SourceUnreadable
    if a read fails or the file turns out longer or shorter than it was
    when the upload started.
    """
    bytes_read = 0
    while bytes_read < total_size:
        want = min(chunk_size, total_size - bytes_read)
        try:
            chunk = handle.read(want)
        except OSError as e:
            raise SourceUnreadable(path, str(e)) from e
        if not chunk:
            raise SourceUnreadable(
                path,
                f"file shrank while reading ({bytes_read} of {total_size} bytes)",
            )
        bytes_read += len(chunk)
        yield chunk

    # One extra byte means the file grew after we sized it.
    try:
        trailing = handle.read(1)
    except OSError as e:
        raise SourceUnreadable(path, str(e)) from e
    if trailing:
        raise SourceUnreadable(path, "file grew while reading")


def _open_source(path: Path) -> tuple[BinaryIO, int]:
    # Check the type before opening: opening a FIFO blocks until a writer appears.
    try:
        info = os.stat(path)
    except OSError as e:
        raise SourceUnreadable(path, e.strerror or str(e)) from e
    if not stat.S_ISREG(info.st_mode):
        raise SourceUnreadable(path, "not a regular file")

    try:
        handle = path.open("rb")
    except OSError as e:
        raise SourceUnreadable(path, e.strerror or str(e)) from e

    # The path may have been swapped between stat and open.
    try:
        info = os.fstat(handle.fileno())
    except OSError as e:
        handle.close()
        raise SourceUnreadable(path, e.strerror or str(e)) from e

    if not stat.S_ISREG(info.st_mode):
        handle.close()
        raise SourceUnreadable(path, "not a regular file")

    return handle, info.st_size


def upload(
    client: ChunkedObjectWriter,
    source_path: Union[str, Path],
    bucket: str,
    key: Optional[str] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress_sink: Optional[ProgressSink] = None,
) -> UploadSummary:
    """
    Upload a local file in chunks.

    Args:
        client: Anything implementing put_object_chunked
        source_path: Local file to send
        bucket: Destination bucket
        key: Destination key; defaults to the file's base name
        chunk_size: Bytes per chunk; the last chunk may be shorter
        progress_sink: Called with (bytes_sent, total_size) after each chunk

    Returns:
        UploadSummary with the byte count and destination key

    Raises:
        ValueError: chunk_size is not positive
        SourceUnreadable: the local file could not be read
        TransferFailed: the remote store rejected a chunk
    """
    if chunk_size <= 0:
        raise ValueError("Chunk size must be a positive integer")

    path = Path(source_path)
    destination_key = key or path.name
    content_type = guess_content_type(path)

    handle, total_size = _open_source(path)

    with handle:
        session = UploadSession(
            source_path=path,
            destination_key=destination_key,
            total_size=total_size,
            chunk_size=chunk_size,
        )

        def on_chunk_sent(chunk_length: int) -> None:
            session.advance(chunk_length)
            if progress_sink is not None:
                progress_sink(session.bytes_sent, session.total_size)

        logger.info(
            "Starting upload",
            extra={
                "bucket": bucket,
                "key": destination_key,
                "total_size": total_size,
                "chunk_size": chunk_size,
            }
        )

        try:
            client.put_object_chunked(
                bucket,
                destination_key,
                iter_chunks(handle, chunk_size, total_size, path),
                content_type=content_type,
                on_chunk_sent=on_chunk_sent,
                total_size=total_size,
            )
        except ApiError as e:
            logger.error(
                "Upload aborted",
                extra={
                    "bucket": bucket,
                    "key": destination_key,
                    "bytes_sent": session.bytes_sent,
                    "error": str(e),
                }
            )
            raise TransferFailed(e) from e

    # An empty file sends no chunks; still report completion once.
    if total_size == 0 and progress_sink is not None:
        progress_sink(0, 0)

    logger.info(
        "Upload complete",
        extra={
            "bucket": bucket,
            "key": destination_key,
            "bytes_sent": session.bytes_sent,
            "chunks": session.chunks_sent,
        }
    )

    return UploadSummary(
        bytes_sent=session.bytes_sent,
        destination_key=destination_key,
        bucket=bucket,
        chunks_sent=session.chunks_sent,
        content_type=content_type,
    )
