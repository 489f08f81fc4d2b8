"""
Bucket-level input checks and options.

Bucket commands are mostly pass-through, but names, tags and encryption
modes are validated locally so bad input is rejected before any request
is made.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

_BUCKET_NAME_CHARS = re.compile(r"^[a-z0-9.-]+$")


class InvalidBucketName(ValueError):
    """Raised when a bucket name breaks the service's naming rules."""
    pass


class EncryptionMode(Enum):
    """Default server-side encryption for a bucket."""
    AES256 = "AES256"
    KMS = "aws:kms"

    @classmethod
    def parse(cls, raw: str) -> "EncryptionMode":
        for mode in cls:
            if mode.value == raw:
                return mode
        raise ValueError(f"Invalid encryption mode '{raw}'. Use 'AES256' or 'aws:kms'")


def validate_bucket_name(name: str) -> str:
    """
    Check a bucket name against the S3 naming rules.

    Names are 3-63 characters of lowercase letters, digits, dots and
    hyphens, and must begin and end with a letter or digit.
    """
    if len(name) < 3 or len(name) > 63:
        raise InvalidBucketName("Bucket name must be between 3 and 63 characters")
    if not _BUCKET_NAME_CHARS.match(name):
        raise InvalidBucketName(
            "Bucket name must only contain lowercase letters, numbers, dots, and hyphens"
        )
    if name[0] in ".-" or name[-1] in ".-":
        raise InvalidBucketName("Bucket name must begin and end with a letter or number")
    return name


def parse_tag(raw: str) -> tuple[str, str]:
    """Split KEY=value on the first '='. The value may itself contain '='."""
    key, sep, value = raw.partition("=")
    if not sep:
        raise ValueError(f"invalid KEY=value: no `=` found in `{raw}`")
    if not key:
        raise ValueError(f"invalid KEY=value: empty key in `{raw}`")
    return key, value


@dataclass
class BucketOptions:
    """
    Optional settings applied after create, or by update.

    None means "leave as is".
    """
    public: Optional[bool] = None
    versioning: Optional[bool] = None
    encryption: Optional[EncryptionMode] = None
    tags: list[tuple[str, str]] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return (
            self.public is not None
            or self.versioning is not None
            or self.encryption is not None
            or bool(self.tags)
        )
