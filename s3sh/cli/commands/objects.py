"""
Object commands.

Upload runs the chunked pipeline behind a progress bar; the others are
single pass-through calls.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape

from ...core.upload.models import UploadSummary
from ...core.upload.pipeline import DEFAULT_CHUNK_SIZE, upload
from ...infrastructure.storage.client import StorageClient
from .. import render

logger = logging.getLogger(__name__)


def list_objects(client: StorageClient, console: Console, bucket: str, prefix: str = "") -> None:
    render.render_objects(console, client.list_objects(bucket, prefix=prefix))


def upload_object(
    client: StorageClient,
    console: Console,
    bucket: str,
    file_path: str,
    key: Optional[str] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> UploadSummary:
    """Upload a file with a progress bar. Errors propagate as UploadError."""
    description = f"Uploading {escape(key or Path(file_path).name)}"

    with render.RichProgressSink(console, description) as sink:
        summary = upload(
            client,
            file_path,
            bucket,
            key=key,
            chunk_size=chunk_size,
            progress_sink=sink,
        )

    render.success(
        console,
        f"Object '{escape(summary.destination_key)}' uploaded to '{bucket}' "
        f"({summary.bytes_sent} bytes).",
    )
    return summary


def delete_object(client: StorageClient, console: Console, bucket: str, key: str) -> None:
    client.delete_object(bucket, key)
    render.success(console, f"Object '{escape(key)}' deleted from '{bucket}'.")


def restore_object(
    client: StorageClient,
    console: Console,
    bucket: str,
    key: str,
    days: int = 1,
    tier: str = "Standard",
) -> None:
    client.restore_object(bucket, key, days=days, tier=tier)
    render.success(console, f"Restore request initiated for '{escape(key)}'.")


def show_object_attributes(client: StorageClient, console: Console, bucket: str, key: str) -> None:
    render.render_object_attributes(console, client.head_object(bucket, key))
