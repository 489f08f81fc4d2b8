"""
Object storage client.

Wraps the S3 API with typed operations, plus an in-memory mock for local
development and tests. Every remote failure is re-raised as ApiError with
the service's own code and message; nothing is retried here beyond
botocore's standard per-request retry policy.

Credentials are never handled directly. StorageConfig only names a region,
profile and endpoint; boto3's provider chain resolves the credentials.
"""

import io
import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Iterator, Optional, Protocol, Sequence, Union

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ...core.buckets import EncryptionMode
from ...core.errors import ApiError
from ...core.lifecycle.models import LifecycleRule
from .lifecycle import WireRule, to_wire_rules

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"

# S3 multipart limits: every part but the last is at least 5 MiB, and an
# upload has at most 10,000 parts.
MIN_PART_SIZE = 5 * 1024 * 1024
MAX_PARTS = 10_000


@dataclass
class StorageConfig:
    """
    Where and as whom to connect.

    Every field is optional: None defers to boto3's chain (AWS_REGION,
    AWS_PROFILE, ~/.aws/config), and the region finally falls back to
    us-east-1.
    """
    region: Optional[str] = None
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None


@dataclass(frozen=True)
class BucketInfo:
    name: str
    creation_date: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int = 0
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectAttributes:
    """Metadata returned by a HEAD request on an object."""
    key: str
    size: int = 0
    content_type: Optional[str] = None
    last_modified: Optional[datetime] = None
    storage_class: Optional[str] = None
    etag: Optional[str] = None


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    The CLI and the upload pipeline depend on this, not on boto3, so tests
    can hand in the mock and nothing else changes.
    """

    @property
    def region(self) -> str:
        ...

    def list_buckets(self) -> list[BucketInfo]:
        ...

    def create_bucket(self, bucket: str, region: Optional[str] = None) -> None:
        ...

    def get_bucket_location(self, bucket: str) -> str:
        ...

    def put_public_access(self, bucket: str, is_public: bool) -> None:
        ...

    def put_versioning(self, bucket: str, enabled: bool) -> None:
        ...

    def put_encryption(self, bucket: str, mode: EncryptionMode) -> None:
        ...

    def put_tags(self, bucket: str, tags: Sequence[tuple[str, str]]) -> None:
        ...

    def get_lifecycle_configuration(self, bucket: str) -> list[WireRule]:
        """Current rules, or an empty list when the bucket has none."""
        ...

    def put_lifecycle_configuration(
        self,
        bucket: str,
        rules: Sequence[Union[LifecycleRule, WireRule]],
    ) -> None:
        """Replace the bucket's whole rule set."""
        ...

    def list_objects(self, bucket: str, prefix: str = "") -> list[ObjectInfo]:
        ...

    def put_object_chunked(
        self,
        bucket: str,
        key: str,
        chunks: Iterable[bytes],
        content_type: Optional[str] = None,
        on_chunk_sent: Optional[Callable[[int], None]] = None,
        total_size: Optional[int] = None,
    ) -> None:
        """Send chunks in order; call on_chunk_sent(len) once each is acknowledged."""
        ...

    def head_object(self, bucket: str, key: str) -> ObjectAttributes:
        ...

    def delete_object(self, bucket: str, key: str) -> None:
        ...

    def restore_object(
        self,
        bucket: str,
        key: str,
        days: int = 1,
        tier: str = "Standard",
    ) -> None:
        ...


def _public_access_block(is_public: bool) -> dict[str, bool]:
    block = not is_public
    return {
        "BlockPublicAcls": block,
        "IgnorePublicAcls": block,
        "BlockPublicPolicy": block,
        "RestrictPublicBuckets": block,
    }


def part_size_for(total_size: Optional[int], min_part_size: int = MIN_PART_SIZE) -> int:
    """
    Smallest part size that keeps an upload of total_size bytes within
    MAX_PARTS parts, and never below min_part_size.
    """
    if not total_size:
        return min_part_size
    return max(min_part_size, math.ceil(total_size / MAX_PARTS))


class S3StorageClient:
    """
    S3 object storage client backed by boto3.

    Works against AWS S3 and S3-compatible services (MinIO, R2, Ceph)
    through StorageConfig.endpoint_url.
    """

    def __init__(
        self,
        config: StorageConfig,
        s3_client: Any = None,
        min_part_size: int = MIN_PART_SIZE,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Region / profile / endpoint selection
            s3_client: Pre-built boto3 client; built from config when None
            min_part_size: Smallest multipart part the service accepts
        """
        self._config = config
        self._min_part_size = min_part_size

        if s3_client is not None:
            self._s3_client = s3_client
            self._region = config.region or DEFAULT_REGION
        else:
            with self._translate_errors("configure"):
                session = boto3.Session(
                    profile_name=config.profile,
                    region_name=config.region,
                )
            self._region = config.region or session.region_name or DEFAULT_REGION

            boto_config = BotoConfig(
                signature_version="s3v4",
                retries={"mode": "standard"},
            )
            self._s3_client = session.client(
                "s3",
                region_name=self._region,
                endpoint_url=config.endpoint_url,
                config=boto_config,
            )

        logger.info(
            "Initialized S3 storage client",
            extra={
                "region": self._region,
                "profile": config.profile,
                "endpoint": config.endpoint_url,
            }
        )

    @property
    def region(self) -> str:
        return self._region

    @contextmanager
    def _translate_errors(self, operation: str, **context: Any) -> Iterator[None]:
        """Log and re-raise botocore failures as ApiError."""
        try:
            yield
        except ClientError as e:
            error = e.response.get("Error", {})
            logger.error(
                f"{operation} failed",
                extra={**context, "code": error.get("Code"), "error": str(e)}
            )
            raise ApiError(
                operation,
                error.get("Message") or str(e),
                code=error.get("Code"),
            ) from e
        except BotoCoreError as e:
            logger.error(f"{operation} failed", extra={**context, "error": str(e)})
            raise ApiError(operation, str(e)) from e

    # -----------------------------------------------------------------------
    # Buckets
    # -----------------------------------------------------------------------

    def list_buckets(self) -> list[BucketInfo]:
        with self._translate_errors("list_buckets"):
            response = self._s3_client.list_buckets()

        return [
            BucketInfo(name=b.get("Name", "<unknown>"), creation_date=b.get("CreationDate"))
            for b in response.get("Buckets", [])
        ]

    def create_bucket(self, bucket: str, region: Optional[str] = None) -> None:
        """
        Create a bucket.

        us-east-1 is the one region that must not be sent as a location
        constraint.
        """
        region = region or self._region
        params: dict[str, Any] = {"Bucket": bucket}
        if region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        with self._translate_errors("create_bucket", bucket=bucket, region=region):
            self._s3_client.create_bucket(**params)

        logger.info("Created bucket", extra={"bucket": bucket, "region": region})

    def get_bucket_location(self, bucket: str) -> str:
        with self._translate_errors("get_bucket_location", bucket=bucket):
            response = self._s3_client.get_bucket_location(Bucket=bucket)
        return response.get("LocationConstraint") or DEFAULT_REGION

    def put_public_access(self, bucket: str, is_public: bool) -> None:
        with self._translate_errors("put_public_access_block", bucket=bucket):
            self._s3_client.put_public_access_block(
                Bucket=bucket,
                PublicAccessBlockConfiguration=_public_access_block(is_public),
            )

    def put_versioning(self, bucket: str, enabled: bool) -> None:
        status = "Enabled" if enabled else "Suspended"
        with self._translate_errors("put_bucket_versioning", bucket=bucket):
            self._s3_client.put_bucket_versioning(
                Bucket=bucket,
                VersioningConfiguration={"Status": status},
            )

    def put_encryption(self, bucket: str, mode: EncryptionMode) -> None:
        with self._translate_errors("put_bucket_encryption", bucket=bucket):
            self._s3_client.put_bucket_encryption(
                Bucket=bucket,
                ServerSideEncryptionConfiguration={
                    "Rules": [
                        {"ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": mode.value}}
                    ]
                },
            )

    def put_tags(self, bucket: str, tags: Sequence[tuple[str, str]]) -> None:
        with self._translate_errors("put_bucket_tagging", bucket=bucket):
            self._s3_client.put_bucket_tagging(
                Bucket=bucket,
                Tagging={"TagSet": [{"Key": k, "Value": v} for k, v in tags]},
            )

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def get_lifecycle_configuration(self, bucket: str) -> list[WireRule]:
        with self._translate_errors("get_bucket_lifecycle_configuration", bucket=bucket):
            try:
                response = self._s3_client.get_bucket_lifecycle_configuration(Bucket=bucket)
            except ClientError as e:
                # A bucket without rules answers with an error, not an empty set.
                if e.response.get("Error", {}).get("Code") == "NoSuchLifecycleConfiguration":
                    return []
                raise

        return list(response.get("Rules", []))

    def put_lifecycle_configuration(
        self,
        bucket: str,
        rules: Sequence[Union[LifecycleRule, WireRule]],
    ) -> None:
        wire_rules = to_wire_rules(rules)

        with self._translate_errors(
            "put_bucket_lifecycle_configuration",
            bucket=bucket,
            rule_count=len(wire_rules),
        ):
            self._s3_client.put_bucket_lifecycle_configuration(
                Bucket=bucket,
                LifecycleConfiguration={"Rules": wire_rules},
            )

        logger.info(
            "Put lifecycle configuration",
            extra={"bucket": bucket, "rule_count": len(wire_rules)}
        )

    # -----------------------------------------------------------------------
    # Objects
    # -----------------------------------------------------------------------

    def list_objects(self, bucket: str, prefix: str = "") -> list[ObjectInfo]:
        objects = []
        with self._translate_errors("list_objects_v2", bucket=bucket):
            paginator = self._s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    objects.append(ObjectInfo(
                        key=obj.get("Key", "<unknown>"),
                        size=obj.get("Size", 0),
                        last_modified=obj.get("LastModified"),
                    ))
        return objects

    def put_object_chunked(
        self,
        bucket: str,
        key: str,
        chunks: Iterable[bytes],
        content_type: Optional[str] = None,
        on_chunk_sent: Optional[Callable[[int], None]] = None,
        total_size: Optional[int] = None,
    ) -> None:
        """
        Upload chunks as the parts of a multipart upload.

        Chunks are buffered until they add up to a full part (at least
        5 MiB, larger when total_size would otherwise need more than
        MAX_PARTS parts), so any chunk size is accepted. on_chunk_sent is
        called for each chunk once the part holding it is acknowledged.

        The multipart upload is only created once a full part is in hand;
        a source that fits in one part, including an empty one, becomes a
        single PUT. On any failure, including an interrupt or a local read
        error raised by the chunk iterator, the multipart upload is aborted
        so no partial object is published.
        """
        part_size = part_size_for(total_size, self._min_part_size)
        extra_args = {"ContentType": content_type} if content_type else {}
        upload_id: Optional[str] = None
        parts: list[dict[str, Any]] = []
        buffer = bytearray()
        pending: list[int] = []

        def send_part(body: bytes) -> None:
            nonlocal upload_id
            if upload_id is None:
                with self._translate_errors("create_multipart_upload", bucket=bucket, key=key):
                    response = self._s3_client.create_multipart_upload(
                        Bucket=bucket, Key=key, **extra_args
                    )
                upload_id = response["UploadId"]

            part_number = len(parts) + 1
            with self._translate_errors(
                "upload_part", bucket=bucket, key=key, part_number=part_number
            ):
                response = self._s3_client.upload_part(
                    Bucket=bucket,
                    Key=key,
                    UploadId=upload_id,
                    PartNumber=part_number,
                    Body=body,
                )
            parts.append({"ETag": response["ETag"], "PartNumber": part_number})

            logger.debug(
                "Uploaded part",
                extra={"key": key, "part_number": part_number, "size_bytes": len(body)}
            )

        def report(lengths: list[int]) -> None:
            if on_chunk_sent is not None:
                for length in lengths:
                    on_chunk_sent(length)

        try:
            for chunk in chunks:
                buffer += chunk
                pending.append(len(chunk))
                if len(buffer) >= part_size:
                    send_part(bytes(buffer))
                    report(pending)
                    buffer.clear()
                    pending = []

            if upload_id is None:
                with self._translate_errors("put_object", bucket=bucket, key=key):
                    self._s3_client.put_object(
                        Bucket=bucket, Key=key, Body=bytes(buffer), **extra_args
                    )
                report(pending)
                return

            if buffer:
                send_part(bytes(buffer))
                report(pending)

            with self._translate_errors("complete_multipart_upload", bucket=bucket, key=key):
                self._s3_client.complete_multipart_upload(
                    Bucket=bucket,
                    Key=key,
                    UploadId=upload_id,
                    MultipartUpload={"Parts": parts},
                )
        except BaseException:
            if upload_id is not None:
                self._abort_multipart_upload(bucket, key, upload_id)
            raise

    def _abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """
        Best-effort abort. The original failure is what the caller sees;
        an abort failure is only logged.
        """
        try:
            self._s3_client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
            logger.info("Aborted multipart upload", extra={"bucket": bucket, "key": key})
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                "Failed to abort multipart upload",
                extra={"bucket": bucket, "key": key, "upload_id": upload_id, "error": str(e)}
            )

    def head_object(self, bucket: str, key: str) -> ObjectAttributes:
        with self._translate_errors("head_object", bucket=bucket, key=key):
            response = self._s3_client.head_object(Bucket=bucket, Key=key)

        return ObjectAttributes(
            key=key,
            size=response.get("ContentLength", 0),
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
            storage_class=response.get("StorageClass", "STANDARD"),
            etag=response.get("ETag"),
        )

    def delete_object(self, bucket: str, key: str) -> None:
        with self._translate_errors("delete_object", bucket=bucket, key=key):
            self._s3_client.delete_object(Bucket=bucket, Key=key)

    def restore_object(
        self,
        bucket: str,
        key: str,
        days: int = 1,
        tier: str = "Standard",
    ) -> None:
        with self._translate_errors("restore_object", bucket=bucket, key=key):
            self._s3_client.restore_object(
                Bucket=bucket,
                Key=key,
                RestoreRequest={
                    "Days": days,
                    "GlacierJobParameters": {"Tier": tier},
                },
            )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _MockObject:
    data: bytes
    content_type: Optional[str]
    last_modified: datetime
    storage_class: str = "STANDARD"


@dataclass
class _MockBucket:
    region: str
    creation_date: datetime
    objects: dict[str, _MockObject] = field(default_factory=dict)
    lifecycle_rules: list[WireRule] = field(default_factory=list)
    tags: list[tuple[str, str]] = field(default_factory=list)
    versioning: Optional[str] = None
    encryption: Optional[str] = None
    public_access_block: Optional[dict[str, bool]] = None
    restore_requests: list[dict[str, Any]] = field(default_factory=list)


class MockStorageClient:
    """
    In-memory storage for local development and tests.

    Buckets and objects live in dictionaries for the life of the process.
    Missing buckets and keys raise ApiError with the same codes S3 uses.
    Chunked uploads only become visible once every chunk has arrived.
    """

    def __init__(self, region: str = DEFAULT_REGION) -> None:
        self._region = region
        self._buckets: dict[str, _MockBucket] = {}
        logger.info("Initialized mock storage client (in-memory)")

    @property
    def region(self) -> str:
        return self._region

    def _bucket(self, operation: str, bucket: str) -> _MockBucket:
        if bucket not in self._buckets:
            raise ApiError(operation, "The specified bucket does not exist", code="NoSuchBucket")
        return self._buckets[bucket]

    def _object(self, operation: str, bucket: str, key: str) -> _MockObject:
        objects = self._bucket(operation, bucket).objects
        if key not in objects:
            raise ApiError(operation, "The specified key does not exist.", code="NoSuchKey")
        return objects[key]

    def list_buckets(self) -> list[BucketInfo]:
        return [
            BucketInfo(name=name, creation_date=b.creation_date)
            for name, b in sorted(self._buckets.items())
        ]

    def create_bucket(self, bucket: str, region: Optional[str] = None) -> None:
        if bucket in self._buckets:
            raise ApiError(
                "create_bucket",
                "Your previous request to create the named bucket succeeded and you already own it.",
                code="BucketAlreadyOwnedByYou",
            )
        self._buckets[bucket] = _MockBucket(
            region=region or self._region,
            creation_date=datetime.now(timezone.utc),
        )

    def get_bucket_location(self, bucket: str) -> str:
        return self._bucket("get_bucket_location", bucket).region

    def put_public_access(self, bucket: str, is_public: bool) -> None:
        self._bucket("put_public_access_block", bucket).public_access_block = (
            _public_access_block(is_public)
        )

    def put_versioning(self, bucket: str, enabled: bool) -> None:
        self._bucket("put_bucket_versioning", bucket).versioning = (
            "Enabled" if enabled else "Suspended"
        )

    def put_encryption(self, bucket: str, mode: EncryptionMode) -> None:
        self._bucket("put_bucket_encryption", bucket).encryption = mode.value

    def put_tags(self, bucket: str, tags: Sequence[tuple[str, str]]) -> None:
        self._bucket("put_bucket_tagging", bucket).tags = list(tags)

    def get_lifecycle_configuration(self, bucket: str) -> list[WireRule]:
        return list(self._bucket("get_bucket_lifecycle_configuration", bucket).lifecycle_rules)

    def put_lifecycle_configuration(
        self,
        bucket: str,
        rules: Sequence[Union[LifecycleRule, WireRule]],
    ) -> None:
        self._bucket("put_bucket_lifecycle_configuration", bucket).lifecycle_rules = (
            to_wire_rules(rules)
        )

    def list_objects(self, bucket: str, prefix: str = "") -> list[ObjectInfo]:
        objects = self._bucket("list_objects_v2", bucket).objects
        return [
            ObjectInfo(key=key, size=len(obj.data), last_modified=obj.last_modified)
            for key, obj in sorted(objects.items())
            if key.startswith(prefix)
        ]

    def put_object_chunked(
        self,
        bucket: str,
        key: str,
        chunks: Iterable[bytes],
        content_type: Optional[str] = None,
        on_chunk_sent: Optional[Callable[[int], None]] = None,
        total_size: Optional[int] = None,
    ) -> None:
        target = self._bucket("create_multipart_upload", bucket)
        buffer = io.BytesIO()

        for chunk in chunks:
            buffer.write(chunk)
            if on_chunk_sent is not None:
                on_chunk_sent(len(chunk))

        target.objects[key] = _MockObject(
            data=buffer.getvalue(),
            content_type=content_type,
            last_modified=datetime.now(timezone.utc),
        )

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "key": key, "size_bytes": buffer.tell()}
        )

    def get_object_data(self, bucket: str, key: str) -> bytes:
        """Mock-only accessor for the stored bytes."""
        return self._object("get_object", bucket, key).data

    def set_storage_class(self, bucket: str, key: str, storage_class: str) -> None:
        """Mock-only: simulate a lifecycle transition having happened."""
        self._object("copy_object", bucket, key).storage_class = storage_class

    def head_object(self, bucket: str, key: str) -> ObjectAttributes:
        obj = self._object("head_object", bucket, key)
        return ObjectAttributes(
            key=key,
            size=len(obj.data),
            content_type=obj.content_type,
            last_modified=obj.last_modified,
            storage_class=obj.storage_class,
        )

    def delete_object(self, bucket: str, key: str) -> None:
        # S3 deletes are idempotent: a missing key is not an error.
        self._bucket("delete_object", bucket).objects.pop(key, None)

    def restore_object(
        self,
        bucket: str,
        key: str,
        days: int = 1,
        tier: str = "Standard",
    ) -> None:
        obj = self._object("restore_object", bucket, key)
        if obj.storage_class not in ("GLACIER", "DEEP_ARCHIVE"):
            raise ApiError(
                "restore_object",
                "Restore is not allowed for the object's current storage class",
                code="InvalidObjectState",
            )
        self._bucket("restore_object", bucket).restore_requests.append(
            {"Key": key, "Days": days, "Tier": tier}
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Region / profile / endpoint (defaults to boto3's chain)
        mock_mode: If True, return the in-memory client

    Returns:
        StorageClient implementation (S3 or Mock)
    """
    config = config or StorageConfig()

    if mock_mode:
        return MockStorageClient(region=config.region or DEFAULT_REGION)

    return S3StorageClient(config)
