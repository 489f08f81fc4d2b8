"""
Unit tests for the chunked upload pipeline.

The pipeline runs against the in-memory MockStorageClient (or small
subclasses of it that record or fail), and against S3StorageClient over a
fake boto3 client that enforces the multipart part-size rule. Files are
real, under tmp_path.
"""

import math
import os
from typing import Optional

import pytest
from botocore.exceptions import ClientError

from s3sh.core.errors import ApiError
from s3sh.core.upload.models import (
    SourceUnreadable,
    TransferFailed,
    UploadSession,
    UploadSummary,
)
from s3sh.core.upload.pipeline import upload
from s3sh.infrastructure.storage.client import MockStorageClient, S3StorageClient, StorageConfig

BUCKET = "test-bucket"


class RecordingStorageClient(MockStorageClient):
    """Mock client that remembers the size of every chunk it received."""

    def __init__(self) -> None:
        super().__init__()
        self.chunk_sizes: list[int] = []

    def put_object_chunked(self, bucket, key, chunks, **kwargs):
        def record(chunk_iter):
            for chunk in chunk_iter:
                self.chunk_sizes.append(len(chunk))
                yield chunk

        super().put_object_chunked(bucket, key, record(chunks), **kwargs)


class FailingStorageClient(RecordingStorageClient):
    """Mock client whose Nth chunk (1-based) is rejected by the 'service'."""

    def __init__(self, fail_on_chunk: int) -> None:
        super().__init__()
        self.fail_on_chunk = fail_on_chunk

    def put_object_chunked(self, bucket, key, chunks, **kwargs):
        def failing(chunk_iter):
            for number, chunk in enumerate(chunk_iter, start=1):
                if number == self.fail_on_chunk:
                    raise ApiError("upload_part", "Please reduce your request rate.", code="SlowDown")
                yield chunk

        super().put_object_chunked(bucket, key, failing(chunks), **kwargs)


@pytest.fixture
def client() -> RecordingStorageClient:
    storage = RecordingStorageClient()
    storage.create_bucket(BUCKET)
    return storage


@pytest.fixture
def make_file(tmp_path):
    """Create a file of the given size with non-repeating content."""
    def _make(size: int, name: str = "data.bin"):
        path = tmp_path / name
        path.write_bytes(bytes(i % 251 for i in range(size)))
        return path
    return _make


class ProgressRecorder:
    def __init__(self) -> None:
        self.calls: list[tuple[int, int]] = []

    def __call__(self, bytes_sent: int, total_size: int) -> None:
        self.calls.append((bytes_sent, total_size))


# ---------------------------------------------------------------------------
# Chunking and progress
# ---------------------------------------------------------------------------

class TestChunking:

    @pytest.mark.parametrize(
        "size,chunk_size",
        [(10, 3), (9, 3), (1, 1024), (1024, 1024), (1025, 1024), (5000, 7)],
    )
    def test_chunk_count_is_ceiling(self, client, make_file, size, chunk_size):
        """N bytes in chunks of C means ceil(N / C) chunks, all but the last full."""
        path = make_file(size)

        summary = upload(client, path, BUCKET, chunk_size=chunk_size)

        assert len(client.chunk_sizes) == math.ceil(size / chunk_size)
        assert all(s == chunk_size for s in client.chunk_sizes[:-1])
        assert summary.bytes_sent == size
        assert summary.chunks_sent == len(client.chunk_sizes)

    def test_content_arrives_intact(self, client, make_file):
        path = make_file(1000)

        upload(client, path, BUCKET, key="copy.bin", chunk_size=64)

        assert client.get_object_data(BUCKET, "copy.bin") == path.read_bytes()

    def test_progress_reports_every_chunk_and_ends_at_total(self, client, make_file):
        path = make_file(10)
        progress = ProgressRecorder()

        upload(client, path, BUCKET, chunk_size=4, progress_sink=progress)

        assert progress.calls == [(4, 10), (8, 10), (10, 10)]

    def test_progress_is_monotonic(self, client, make_file):
        path = make_file(777)
        progress = ProgressRecorder()

        upload(client, path, BUCKET, chunk_size=100, progress_sink=progress)

        sent = [b for b, _ in progress.calls]
        assert sent == sorted(sent)
        assert progress.calls[-1] == (777, 777)

    def test_empty_file_reports_completion_once(self, client, make_file):
        path = make_file(0, name="empty.txt")
        progress = ProgressRecorder()

        summary = upload(client, path, BUCKET, progress_sink=progress)

        assert summary.bytes_sent == 0
        assert progress.calls == [(0, 0)]
        assert client.get_object_data(BUCKET, "empty.txt") == b""


class TestDestination:

    def test_key_defaults_to_file_name(self, client, make_file):
        path = make_file(5, name="report.csv")

        summary = upload(client, path, BUCKET)

        assert summary.destination_key == "report.csv"
        assert client.head_object(BUCKET, "report.csv").size == 5

    def test_content_type_is_guessed(self, client, make_file):
        path = make_file(5, name="report.csv")

        summary = upload(client, path, BUCKET)

        assert summary.content_type == "text/csv"
        assert client.head_object(BUCKET, "report.csv").content_type == "text/csv"

    def test_unknown_extension_is_octet_stream(self, client, make_file):
        path = make_file(5, name="blob.zzz-unknown")

        summary = upload(client, path, BUCKET)

        assert summary.content_type == "application/octet-stream"

    def test_upload_twice_overwrites(self, client, make_file):
        """Re-running an upload is safe: the second one replaces the first."""
        path = make_file(300)

        first = upload(client, path, BUCKET, key="same.bin", chunk_size=128)
        path.write_bytes(b"x" * 300)
        second = upload(client, path, BUCKET, key="same.bin", chunk_size=128)

        assert first.bytes_sent == second.bytes_sent == 300
        assert client.get_object_data(BUCKET, "same.bin") == b"x" * 300


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestFailures:

    def test_failed_chunk_stops_the_upload(self, make_file):
        storage = FailingStorageClient(fail_on_chunk=3)
        storage.create_bucket(BUCKET)
        path = make_file(100)
        progress = ProgressRecorder()

        with pytest.raises(TransferFailed) as exc_info:
            upload(storage, path, BUCKET, chunk_size=10, progress_sink=progress)

        # Two chunks went through; nothing after the failing third.
        assert storage.chunk_sizes == [10, 10]
        assert progress.calls == [(10, 100), (20, 100)]
        assert isinstance(exc_info.value.cause, ApiError)
        assert exc_info.value.cause.code == "SlowDown"

    def test_failed_upload_publishes_nothing(self, make_file):
        storage = FailingStorageClient(fail_on_chunk=2)
        storage.create_bucket(BUCKET)
        path = make_file(50)

        with pytest.raises(TransferFailed):
            upload(storage, path, BUCKET, key="partial.bin", chunk_size=10)

        with pytest.raises(ApiError, match="does not exist"):
            storage.head_object(BUCKET, "partial.bin")

    def test_missing_bucket_is_a_transfer_failure(self, make_file):
        storage = MockStorageClient()
        path = make_file(10)

        with pytest.raises(TransferFailed) as exc_info:
            upload(storage, path, "no-such-bucket")

        assert exc_info.value.cause.code == "NoSuchBucket"

    def test_missing_file(self, client, tmp_path):
        with pytest.raises(SourceUnreadable, match="missing.bin"):
            upload(client, tmp_path / "missing.bin", BUCKET)

        assert client.chunk_sizes == []

    def test_directory_is_not_uploadable(self, client, tmp_path):
        with pytest.raises(SourceUnreadable):
            upload(client, tmp_path, BUCKET, key="dir")

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs named pipes")
    def test_named_pipe_is_rejected_without_blocking(self, client, tmp_path):
        """Opening a FIFO with no writer would hang; it is refused up front."""
        fifo = tmp_path / "pipe"
        os.mkfifo(fifo)

        with pytest.raises(SourceUnreadable, match="not a regular file"):
            upload(client, fifo, BUCKET)

        assert client.chunk_sizes == []

    @pytest.mark.parametrize("chunk_size", [0, -1])
    def test_chunk_size_must_be_positive(self, client, make_file, chunk_size):
        path = make_file(10)

        with pytest.raises(ValueError, match="positive"):
            upload(client, path, BUCKET, chunk_size=chunk_size)

    def test_file_growing_during_upload_is_detected(self, make_file):
        """A file that changes size mid-upload is a local error, not silent truncation."""
        path = make_file(20)

        class GrowingStorageClient(MockStorageClient):
            def put_object_chunked(self, bucket, key, chunks, **kwargs):
                def grow_after_first(chunk_iter):
                    for number, chunk in enumerate(chunk_iter, start=1):
                        if number == 1:
                            with path.open("ab") as handle:
                                handle.write(b"more")
                        yield chunk
                super().put_object_chunked(bucket, key, grow_after_first(chunks), **kwargs)

        storage = GrowingStorageClient()
        storage.create_bucket(BUCKET)

        with pytest.raises(SourceUnreadable, match="grew"):
            upload(storage, path, BUCKET, key="growing.bin", chunk_size=8)

        with pytest.raises(ApiError):
            storage.head_object(BUCKET, "growing.bin")


# ---------------------------------------------------------------------------
# Through the S3 adapter
# ---------------------------------------------------------------------------

class StrictMultipartS3:
    """
    Stand-in boto3 client that enforces the multipart size rule.

    Completing an upload fails with EntityTooSmall when any part but the
    last is under min_part_size. fail_on_part rejects that part number.
    """

    def __init__(self, min_part_size: int, fail_on_part: Optional[int] = None) -> None:
        self.min_part_size = min_part_size
        self.fail_on_part = fail_on_part
        self.calls: list[str] = []
        self.part_sizes: list[int] = []
        self.objects: dict[str, bytes] = {}
        self._parts: dict[int, bytes] = {}

    def create_multipart_upload(self, **kwargs):
        self.calls.append("create_multipart_upload")
        return {"UploadId": "upload-1"}

    def upload_part(self, Body, PartNumber, **kwargs):
        self.calls.append("upload_part")
        if PartNumber == self.fail_on_part:
            raise ClientError(
                {"Error": {"Code": "InternalError", "Message": "We encountered an internal error."}},
                "UploadPart",
            )
        self.part_sizes.append(len(Body))
        self._parts[PartNumber] = bytes(Body)
        return {"ETag": f'"etag-{PartNumber}"'}

    def complete_multipart_upload(self, Key, MultipartUpload, **kwargs):
        self.calls.append("complete_multipart_upload")
        numbers = [part["PartNumber"] for part in MultipartUpload["Parts"]]
        sizes = [len(self._parts[n]) for n in numbers]
        if any(size < self.min_part_size for size in sizes[:-1]):
            raise ClientError(
                {"Error": {"Code": "EntityTooSmall", "Message": "Your proposed upload is smaller than the minimum allowed size"}},
                "CompleteMultipartUpload",
            )
        self.objects[Key] = b"".join(self._parts[n] for n in numbers)
        return {}

    def abort_multipart_upload(self, **kwargs):
        self.calls.append("abort_multipart_upload")
        return {}

    def put_object(self, Key, Body, **kwargs):
        self.calls.append("put_object")
        self.objects[Key] = bytes(Body)
        return {}


class TestS3Upload:
    """The pipeline and the real adapter together, against a strict fake."""

    MIN_PART = 1024

    def make_client(self, fake: StrictMultipartS3) -> S3StorageClient:
        return S3StorageClient(StorageConfig(), s3_client=fake, min_part_size=self.MIN_PART)

    def test_chunks_below_part_minimum_still_complete(self, make_file):
        fake = StrictMultipartS3(min_part_size=self.MIN_PART)
        path = make_file(3000)
        progress = ProgressRecorder()

        summary = upload(self.make_client(fake), path, BUCKET, chunk_size=100, progress_sink=progress)

        assert summary.bytes_sent == 3000
        assert fake.objects["data.bin"] == path.read_bytes()
        assert fake.part_sizes == [1100, 1100, 800]
        assert "abort_multipart_upload" not in fake.calls
        # One report per chunk, ending at the total.
        assert len(progress.calls) == 30
        assert progress.calls[-1] == (3000, 3000)

    def test_failed_part_aborts_and_raises_transfer_failed(self, make_file):
        fake = StrictMultipartS3(min_part_size=self.MIN_PART, fail_on_part=2)
        path = make_file(3000)
        progress = ProgressRecorder()

        with pytest.raises(TransferFailed) as exc_info:
            upload(self.make_client(fake), path, BUCKET, chunk_size=100, progress_sink=progress)

        assert exc_info.value.cause.code == "InternalError"
        assert fake.calls == [
            "create_multipart_upload",
            "upload_part",
            "upload_part",
            "abort_multipart_upload",
        ]
        # Only the chunks in the acknowledged first part were reported.
        assert progress.calls[-1] == (1100, 3000)
        assert "data.bin" not in fake.objects

    def test_small_file_is_one_put(self, make_file):
        fake = StrictMultipartS3(min_part_size=self.MIN_PART)
        path = make_file(500)

        upload(self.make_client(fake), path, BUCKET, chunk_size=100)

        assert fake.calls == ["put_object"]
        assert fake.objects["data.bin"] == path.read_bytes()


# ---------------------------------------------------------------------------
# Session model
# ---------------------------------------------------------------------------

class TestUploadSession:

    def make_session(self, total_size=10):
        return UploadSession(
            source_path="data.bin",
            destination_key="data.bin",
            total_size=total_size,
            chunk_size=4,
        )

    def test_advance_counts_bytes_and_chunks(self):
        session = self.make_session()

        session.advance(4)
        session.advance(4)

        assert session.bytes_sent == 8
        assert session.chunks_sent == 2
        assert not session.is_complete

    def test_cannot_exceed_total(self):
        session = self.make_session(total_size=5)
        session.advance(4)

        with pytest.raises(ValueError, match="more bytes"):
            session.advance(4)

        assert session.bytes_sent == 4

    def test_fraction_complete(self):
        session = self.make_session(total_size=8)
        session.advance(4)

        assert session.fraction_complete == 0.5

    def test_empty_source_is_complete(self):
        session = self.make_session(total_size=0)

        assert session.is_complete
        assert session.fraction_complete == 1.0

    def test_rejects_zero_chunk_size(self):
        with pytest.raises(ValueError, match="positive"):
            UploadSession(
                source_path="data.bin",
                destination_key="data.bin",
                total_size=1,
                chunk_size=0,
            )


class TestUploadSummary:

    def test_bucket_is_required(self):
        with pytest.raises(TypeError):
            UploadSummary(bytes_sent=1, destination_key="a.bin")

    def test_pipeline_fills_in_bucket(self, client, make_file):
        summary = upload(client, make_file(3), BUCKET)

        assert summary.bucket == BUCKET
