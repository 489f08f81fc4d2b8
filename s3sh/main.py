"""
Command-line entry point.

Parses arguments, configures logging, builds the storage client and
dispatches to a command handler. Failures are reported with the stage
that failed and mapped to exit codes:

    0    success
    1    local I/O, transfer, or remote API failure
    2    invalid input or configuration (nothing was sent)
    130  interrupted

Usage:
    s3sh bucket list
    s3sh bucket lifecycle my-bucket --id archive \\
        --transitions '[{"days": 30, "storage_class": "STANDARD_IA"}]' --expiration 365
    s3sh object upload my-bucket ./backup.tar.gz --key backups/latest.tar.gz
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from pydantic import ValidationError as SettingsValidationError
from rich.console import Console

from . import __version__
from .cli import render
from .cli.commands import buckets, objects
from .cli.dependencies import get_storage_client
from .config.settings import Settings, get_settings
from .core.buckets import BucketOptions, EncryptionMode, parse_tag
from .core.errors import ApiError
from .core.flags import parse_flag
from .core.lifecycle.models import LifecycleValidationFailed
from .core.upload.models import SourceUnreadable, TransferFailed
from .infrastructure.storage.client import StorageClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2
EXIT_INTERRUPTED = 130

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# ---------------------------------------------------------------------------
# Argument types
# ---------------------------------------------------------------------------

def _bool_arg(raw: str) -> bool:
    flag = parse_flag(raw)
    if flag is not None:
        return flag
    raise argparse.ArgumentTypeError(f"expected true or false, got '{raw}'")


def _positive_int_arg(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got '{raw}'")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return value


def _tag_arg(raw: str) -> tuple[str, str]:
    try:
        return parse_tag(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _encryption_arg(raw: str) -> EncryptionMode:
    try:
        return EncryptionMode.parse(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _add_bucket_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--public", type=_bool_arg, metavar="BOOL",
        help="true = public, false = private (block all public access)",
    )
    parser.add_argument("--versioning", type=_bool_arg, metavar="BOOL", help="Enable or suspend versioning")
    parser.add_argument(
        "--encryption", type=_encryption_arg, metavar="MODE",
        help="Default encryption: AES256 or aws:kms",
    )
    parser.add_argument(
        "--tags", type=_tag_arg, nargs="+", default=[], metavar="KEY=VALUE",
        help="Bucket tags",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3sh",
        description="A simple client for S3-compatible object storage",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-r", "--region", help="Region (default: S3SH_REGION, then the AWS chain)")
    parser.add_argument("-p", "--profile", help="Named AWS profile")
    parser.add_argument("--endpoint-url", help="Custom endpoint for S3-compatible services")
    parser.add_argument(
        "--mock", action="store_true", default=None,
        help="Use an in-memory store instead of a real service",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG logs")

    resources = parser.add_subparsers(dest="resource", required=True)

    # bucket ...
    bucket = resources.add_parser("bucket", help="Manage buckets")
    bucket_actions = bucket.add_subparsers(dest="action", required=True)

    bucket_actions.add_parser("list", help="List all buckets")

    create = bucket_actions.add_parser("create", help="Create a new bucket")
    create.add_argument("name", help="Name of the bucket")
    _add_bucket_options(create)

    config = bucket_actions.add_parser("config", help="Get bucket configuration")
    config.add_argument("name", help="Name of the bucket")

    update = bucket_actions.add_parser("update", help="Update bucket configuration")
    update.add_argument("name", help="Name of the bucket")
    _add_bucket_options(update)

    lifecycle = bucket_actions.add_parser("lifecycle", help="Add or replace a lifecycle rule")
    lifecycle.add_argument("name", help="Name of the bucket")
    lifecycle.add_argument("--id", required=True, dest="rule_id", help="Rule ID")
    lifecycle.add_argument("--prefix", default="", help="Key prefix filter (default: all objects)")
    lifecycle.add_argument(
        "--transitions",
        help='Transitions JSON, e.g. \'[{"days": 30, "storage_class": "STANDARD_IA"}]\'',
    )
    lifecycle.add_argument("--expiration", help="Days until matching objects expire")
    lifecycle.add_argument("--status", default=None, help="Enable the rule (default: true)")

    rules = bucket_actions.add_parser("lifecycle-rules", help="Show a bucket's lifecycle rules")
    rules.add_argument("name", help="Name of the bucket")

    # object ...
    obj = resources.add_parser("object", help="Manage objects")
    object_actions = obj.add_subparsers(dest="action", required=True)

    list_objects = object_actions.add_parser("list", help="List objects in a bucket")
    list_objects.add_argument("bucket", help="Name of the bucket")
    list_objects.add_argument("--prefix", default="", help="Only list keys with this prefix")

    upload = object_actions.add_parser("upload", help="Upload a file to a bucket")
    upload.add_argument("bucket", help="Name of the bucket")
    upload.add_argument("file", help="Path to the file to upload")
    upload.add_argument("-k", "--key", help="Object key (defaults to the file name)")
    upload.add_argument(
        "--chunk-size", type=_positive_int_arg, metavar="BYTES",
        help="Bytes per chunk (default: S3SH_CHUNK_SIZE or 8 MiB)",
    )

    delete = object_actions.add_parser("delete", help="Delete an object from a bucket")
    delete.add_argument("bucket", help="Name of the bucket")
    delete.add_argument("key", help="Key of the object")

    restore = object_actions.add_parser("restore", help="Restore an archived object")
    restore.add_argument("bucket", help="Name of the bucket")
    restore.add_argument("key", help="Key of the object")
    restore.add_argument("--days", type=_positive_int_arg, help="Days to keep the restored copy")
    restore.add_argument("--tier", choices=["Standard", "Bulk", "Expedited"], help="Retrieval tier")

    attributes = object_actions.add_parser("attributes", help="Get object attributes")
    attributes.add_argument("bucket", help="Name of the bucket")
    attributes.add_argument("key", help="Key of the object")

    return parser


def configure_logging(settings: Settings, verbosity: int) -> None:
    """Logs go to stderr so stdout only carries rendered output."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = getattr(logging, settings.log_level, logging.WARNING)

    logging.basicConfig(format=LOG_FORMAT, level=level, stream=sys.stderr)


def _bucket_options(args: argparse.Namespace) -> BucketOptions:
    return BucketOptions(
        public=args.public,
        versioning=args.versioning,
        encryption=args.encryption,
        tags=list(args.tags),
    )


def dispatch(
    args: argparse.Namespace,
    client: StorageClient,
    console: Console,
    settings: Settings,
) -> None:
    """Run the handler for the parsed command."""
    command = (args.resource, args.action)

    if command == ("bucket", "list"):
        buckets.list_buckets(client, console)
    elif command == ("bucket", "create"):
        buckets.create_bucket(client, console, args.name, _bucket_options(args))
    elif command == ("bucket", "config"):
        buckets.show_bucket_config(client, console, args.name)
    elif command == ("bucket", "update"):
        buckets.update_bucket(client, console, args.name, _bucket_options(args))
    elif command == ("bucket", "lifecycle"):
        buckets.put_lifecycle_rule(
            client,
            console,
            args.name,
            rule_id=args.rule_id,
            transitions=args.transitions,
            expiration=args.expiration,
            prefix=args.prefix,
            status=args.status,
        )
    elif command == ("bucket", "lifecycle-rules"):
        buckets.show_lifecycle_rules(client, console, args.name)
    elif command == ("object", "list"):
        objects.list_objects(client, console, args.bucket, prefix=args.prefix)
    elif command == ("object", "upload"):
        objects.upload_object(
            client,
            console,
            args.bucket,
            args.file,
            key=args.key,
            chunk_size=args.chunk_size or settings.chunk_size,
        )
    elif command == ("object", "delete"):
        objects.delete_object(client, console, args.bucket, args.key)
    elif command == ("object", "restore"):
        objects.restore_object(
            client,
            console,
            args.bucket,
            args.key,
            days=args.days or settings.restore_days,
            tier=args.tier or settings.restore_tier,
        )
    elif command == ("object", "attributes"):
        objects.show_object_attributes(client, console, args.bucket, args.key)
    else:
        raise ValueError(f"Unknown command: {' '.join(command)}")


def main(
    argv: Optional[Sequence[str]] = None,
    client: Optional[StorageClient] = None,
    console: Optional[Console] = None,
) -> int:
    """
    Run one command and return the exit code.

    client and console can be injected (tests); otherwise they are built
    from settings and flags.
    """
    args = build_parser().parse_args(argv)
    console = console or Console()
    error_console = Console(stderr=True) if console.file is sys.stdout else console

    try:
        settings = get_settings()
    except SettingsValidationError as e:
        render.failure(error_console, "Configuration error", str(e))
        return EXIT_INVALID_INPUT

    configure_logging(settings, args.verbose)

    try:
        if client is None:
            client = get_storage_client(
                settings,
                region=args.region,
                profile=args.profile,
                endpoint_url=args.endpoint_url,
                mock_mode=args.mock,
            )
        dispatch(args, client, console, settings)
    except LifecycleValidationFailed as e:
        render.failure(error_console, "Validation failed", f"{e} ({e.kind.value})")
        return EXIT_INVALID_INPUT
    except SourceUnreadable as e:
        render.failure(error_console, "Local I/O error", str(e))
        return EXIT_FAILURE
    except TransferFailed as e:
        render.failure(error_console, "Transfer failed", f"{e.cause} (upload aborted; re-run to retry)")
        return EXIT_FAILURE
    except ApiError as e:
        render.failure(error_console, f"Remote call failed ({e.operation})", str(e))
        return EXIT_FAILURE
    except ValueError as e:
        render.failure(error_console, "Validation failed", str(e))
        return EXIT_INVALID_INPUT
    except KeyboardInterrupt:
        render.failure(error_console, "Interrupted", "operation cancelled")
        return EXIT_INTERRUPTED

    return EXIT_OK


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
