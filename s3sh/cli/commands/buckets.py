"""
Bucket commands.

Most of these forward straight to the storage client. The lifecycle
command is the exception: it builds and validates the rule locally,
merges it into the bucket's current rule set by ID, and puts the result.
"""

import logging
from typing import Optional, Union

from rich.console import Console
from rich.markup import escape

from ...core.buckets import BucketOptions, validate_bucket_name
from ...core.lifecycle.builder import build_rule
from ...core.lifecycle.models import LifecycleRule
from ...infrastructure.storage.client import StorageClient
from ...infrastructure.storage.lifecycle import merge_rule_set
from .. import render

logger = logging.getLogger(__name__)


def list_buckets(client: StorageClient, console: Console) -> None:
    render.render_buckets(console, client.list_buckets())


def create_bucket(
    client: StorageClient,
    console: Console,
    name: str,
    options: Optional[BucketOptions] = None,
) -> None:
    """Validate the name, create the bucket, then apply any options."""
    validate_bucket_name(name)

    client.create_bucket(name, region=client.region)
    render.success(console, f"Bucket '{name}' created successfully.")

    if options is not None and options.has_changes:
        console.print("Applying configurations...")
        update_bucket(client, console, name, options)


def show_bucket_config(client: StorageClient, console: Console, name: str) -> None:
    region = client.get_bucket_location(name)
    render.render_bucket_location(console, name, region)


def update_bucket(
    client: StorageClient,
    console: Console,
    name: str,
    options: BucketOptions,
) -> None:
    """Apply each option that was given; leave the rest untouched."""
    if not options.has_changes:
        render.warning(console, "Nothing to update.")
        return

    if options.public is not None:
        client.put_public_access(name, options.public)
        status = "Public" if options.public else "Private"
        render.success(console, f"Bucket '{name}' public access set to: [cyan]{status}[/cyan]")

    if options.versioning is not None:
        client.put_versioning(name, options.versioning)
        status = "Enabled" if options.versioning else "Suspended"
        render.success(console, f"Bucket '{name}' versioning set to: [cyan]{status}[/cyan]")

    if options.encryption is not None:
        client.put_encryption(name, options.encryption)
        render.success(
            console,
            f"Bucket '{name}' encryption set to: [cyan]{options.encryption.value}[/cyan]",
        )

    if options.tags:
        client.put_tags(name, options.tags)
        render.success(console, f"Bucket '{name}' tags updated.")


def apply_lifecycle_rule(client: StorageClient, bucket: str, rule: LifecycleRule) -> int:
    """
    Merge a rule into the bucket's configuration and put it.

    Returns the number of rules in the new configuration.
    """
    existing = client.get_lifecycle_configuration(bucket)
    rules = merge_rule_set(existing, rule)

    logger.info(
        "Applying lifecycle rule",
        extra={
            "bucket": bucket,
            "rule_id": rule.id,
            "replaced": len(rules) == len(existing),
            "rule_count": len(rules),
        }
    )

    client.put_lifecycle_configuration(bucket, rules)
    return len(rules)


def put_lifecycle_rule(
    client: StorageClient,
    console: Console,
    bucket: str,
    rule_id: str,
    transitions: Optional[str] = None,
    expiration: Union[int, str, None] = None,
    prefix: Optional[str] = None,
    status: Union[str, bool, None] = None,
) -> LifecycleRule:
    """
    Build, validate and apply one lifecycle rule.

    Raises LifecycleValidationFailed before any request is made when the
    input is rejected.
    """
    rule = build_rule(
        raw_id=rule_id,
        raw_transitions_json=transitions,
        raw_expiration=expiration,
        raw_prefix=prefix,
        raw_status=status,
    ).unwrap()

    apply_lifecycle_rule(client, bucket, rule)
    render.success(console, f"Lifecycle rule '{escape(rule.id)}' set for bucket '{bucket}'.")
    return rule


def show_lifecycle_rules(client: StorageClient, console: Console, bucket: str) -> None:
    render.render_lifecycle_rules(console, bucket, client.get_lifecycle_configuration(bucket))
