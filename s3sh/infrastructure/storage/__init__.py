"""
Object storage integration.

Supports AWS S3 and S3-compatible services via boto3.
Includes mock mode for local development without credentials.
"""

from .client import (
    BucketInfo,
    MockStorageClient,
    ObjectAttributes,
    ObjectInfo,
    S3StorageClient,
    StorageClient,
    StorageConfig,
    create_storage_client,
)
from .lifecycle import merge_rule_set, serialize_rule

__all__ = [
    "BucketInfo",
    "MockStorageClient",
    "ObjectAttributes",
    "ObjectInfo",
    "S3StorageClient",
    "StorageClient",
    "StorageConfig",
    "create_storage_client",
    "merge_rule_set",
    "serialize_rule",
]
